"""Pydantic models describing SIMKL credentials and sync requests."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

SIMKL_RECEIVER_ID = "simkl"


class SimklPreAuth(BaseModel):
    """Pending authorization stored before the user is sent to SIMKL."""

    code: str = Field(min_length=1)
    client_id: str | None = None

    @field_validator("client_id", mode="before")
    @classmethod
    def _blank_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class SimklAuth(BaseModel):
    """Credential produced by a successful PIN exchange."""

    access_token: str = Field(min_length=1)
    client_id: str = Field(min_length=1)


class SimklUserSettings(BaseModel):
    """User configuration owned by the SIMKL receiver."""

    model_config = ConfigDict(extra="allow")

    auth: SimklAuth | None = None


class EpisodeCount(BaseModel):
    season: int = Field(ge=0)
    episode: int = Field(ge=0)


class MetaIds(BaseModel):
    """Identifiers of a watched title plus an optional episode position."""

    ids: dict[str, str | int] = Field(min_length=1)
    count: EpisodeCount | None = None
