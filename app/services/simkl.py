"""Utilities for communicating with the SIMKL API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import ExchangeFailed, SyncFailed, SyncPreconditionFailed
from ..models import MetaIds, SimklAuth, SimklUserSettings
from ..utils import drop_none

logger = logging.getLogger(__name__)


def build_sync_payload(meta_ids: MetaIds) -> dict[str, Any]:
    """Return the ``/sync/history`` body for a movie or a single episode."""

    data: dict[str, Any] = {
        "title": None,
        "ids": dict(meta_ids.ids),
    }
    if meta_ids.count is None:
        return {"movies": [data]}

    data["seasons"] = [
        {
            "number": meta_ids.count.season,
            "episodes": [{"number": meta_ids.count.episode}],
        }
    ]
    return {"shows": [data]}


class SimklClient:
    """Thin wrapper around the SIMKL HTTP API."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    def build_headers(self, auth: SimklAuth | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"{self._settings.app_name} (simkl-receiver)",
        }
        if auth is not None:
            headers["simkl-api-key"] = auth.client_id
            headers["Authorization"] = f"Bearer {auth.access_token}"
        return headers

    async def request_pin(
        self, client_id: str, *, redirect_uri: str | None = None
    ) -> dict[str, Any]:
        """Ask SIMKL for a fresh device PIN tied to ``client_id``."""

        params: dict[str, str] = {"client_id": client_id}
        if redirect_uri:
            params["redirect"] = redirect_uri
        try:
            response = await self._client.get(
                "/oauth/pin",
                params=params,
                headers={**self.build_headers(), "simkl-api-key": client_id},
            )
        except httpx.HTTPError as exc:
            logger.warning("Failed to request SIMKL PIN: %s", exc)
            raise ExchangeFailed("Unable to reach SIMKL. Please try again shortly.") from exc

        data = _json_object(response)
        if response.status_code >= 400 or not data.get("user_code"):
            logger.warning(
                "SIMKL rejected PIN request (%s): %s",
                response.status_code,
                response.text,
            )
            raise ExchangeFailed(
                f"SIMKL did not issue a PIN code. Client ID: {client_id}"
            )
        return data

    async def check_pin(self, code: str, client_id: str) -> dict[str, Any]:
        """Return the PIN status body, which may hold ``access_token`` or ``error``."""

        try:
            response = await self._client.get(
                f"/oauth/pin/{code}",
                params={"client_id": client_id},
                headers={**self.build_headers(), "simkl-api-key": client_id},
            )
        except httpx.HTTPError as exc:
            logger.warning("Failed to check SIMKL PIN status: %s", exc)
            raise ExchangeFailed(
                f"Couldn't validate SIMKL pin. Client ID: {client_id}"
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("Unexpected non-JSON SIMKL PIN response: %s", response.text)
            raise ExchangeFailed(
                f"Couldn't validate SIMKL pin. Client ID: {client_id}"
            ) from exc
        if not isinstance(data, dict):
            logger.warning("Unexpected SIMKL PIN response structure")
            raise ExchangeFailed(
                f"Couldn't validate SIMKL pin. Client ID: {client_id}"
            )
        logger.info(
            "SIMKL PIN status %s (token present: %s)",
            response.status_code,
            bool(data.get("access_token")),
        )
        return data

    async def sync_meta_object(
        self, meta_ids: MetaIds, user_config: SimklUserSettings
    ) -> Any:
        """Record a watch event in the user's SIMKL history."""

        logger.info("Starting SIMKL sync for ids %s", meta_ids.ids)
        if user_config.auth is None:
            raise SyncPreconditionFailed("No user config! This should not happen!")

        payload = build_sync_payload(meta_ids)
        try:
            response = await self._client.post(
                "/sync/history",
                headers=self.build_headers(user_config.auth),
                json=drop_none(payload),
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("SIMKL history sync failed: %s", exc)
            raise SyncFailed() from exc

        try:
            data = response.json()
        except ValueError:
            data = response.text
        logger.info("SIMKL history sync accepted (%s)", response.status_code)
        return data


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    if isinstance(data, dict):
        return data
    return {}
