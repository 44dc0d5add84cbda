"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import httpx
import pytest

# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.config import Settings  # noqa: E402
from app.database import Database  # noqa: E402

API_BASE_URL = "https://api.simkl.test"


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {
        "_env_file": None,
        "PRIVATE_SIMKL_CLIENT_ID": "server-client",
        "SIMKL_API_URL": API_BASE_URL,
    }
    base.update(overrides)
    return Settings(**base)  # type: ignore[arg-type]


def mock_http_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=API_BASE_URL
    )


@pytest.fixture
async def database(tmp_path) -> AsyncIterator[Database]:
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'receiver.db'}")
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()
