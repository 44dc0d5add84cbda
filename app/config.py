"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="SIMKL Receiver", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    simkl_client_id: str | None = Field(
        default=None,
        alias="PRIVATE_SIMKL_CLIENT_ID",
        validation_alias=AliasChoices("PRIVATE_SIMKL_CLIENT_ID", "SIMKL_CLIENT_ID"),
    )
    simkl_api_url: HttpUrl = Field(
        default="https://api.simkl.com", alias="SIMKL_API_URL"
    )
    simkl_redirect_uri: HttpUrl | None = Field(
        default=None, alias="SIMKL_REDIRECT_URI"
    )

    configure_path: str = Field(default="/configure", alias="CONFIGURE_PATH")
    http_timeout_seconds: float = Field(
        default=20.0, alias="HTTP_TIMEOUT", gt=0, le=300
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./simkl_receiver.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("simkl_client_id", mode="before")
    @classmethod
    def _blank_client_id_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("configure_path", mode="before")
    @classmethod
    def _normalise_configure_path(cls, value: object) -> str:
        """Keep the follow-up route an absolute application path."""

        path = str(value or "").strip() or "/configure"
        if not path.startswith("/"):
            path = f"/{path}"
        return path

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
