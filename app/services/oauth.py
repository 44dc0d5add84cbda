"""SIMKL PIN sign-in: starting the flow and completing it after the redirect."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ..config import Settings
from ..errors import (
    ClientIdMissing,
    ExchangeFailed,
    MissingPreAuth,
    NoAccessToken,
    ProviderError,
    SimklError,
)
from ..models import SimklPreAuth
from ..receiver import SimklReceiver
from ..storage import ProfileStorage, preauth_key
from .exchange import ServerExchangeDelegate, plan_exchange, run_exchange
from .simkl import SimklClient

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LoginStart:
    url: str
    user_code: str
    expires_in: int | None = None


@dataclass(slots=True)
class AuthorizationOutcome:
    """Result of one callback activation, ready to be rendered."""

    status: str
    message: str
    redirect_to: str | None = None
    http_status: int = 200

    @property
    def ok(self) -> bool:
        return self.status == "success"


class SimklAuthorizationHandler:
    """Drives the PIN sign-in for one browser profile."""

    def __init__(
        self,
        storage: ProfileStorage,
        receiver: SimklReceiver,
        client: SimklClient,
        delegate: ServerExchangeDelegate,
        settings: Settings,
    ) -> None:
        self._storage = storage
        self._receiver = receiver
        self._client = client
        self._delegate = delegate
        self._settings = settings

    @property
    def preauth_id(self) -> str:
        return preauth_key(self._receiver.receiver_info.id)

    async def start(
        self,
        *,
        client_id: str | None = None,
        redirect_uri: str | None = None,
    ) -> LoginStart:
        """Request a PIN from SIMKL and remember it for the callback.

        The stored record only carries ``client_id`` when the user supplied
        one, so the callback knows whether the server has to resolve it.
        """

        user_client_id = (client_id or "").strip() or None
        request_client_id = user_client_id or self._delegate.server_client_id()
        if not request_client_id:
            raise ClientIdMissing(
                "No SIMKL Client ID configured. Enter your own Client ID to sign in."
            )

        data = await self._client.request_pin(
            request_client_id, redirect_uri=redirect_uri
        )
        user_code = str(data["user_code"])
        pre_auth = SimklPreAuth(code=user_code, client_id=user_client_id)
        await self._storage.set(self.preauth_id, pre_auth.model_dump_json())

        verification_url = str(
            data.get("verification_url") or "https://simkl.com/pin"
        ).rstrip("/")
        expires_in = data.get("expires_in")
        logger.info(
            "Started SIMKL sign in for profile %s (own client id: %s)",
            self._storage.profile_id,
            user_client_id is not None,
        )
        return LoginStart(
            url=f"{verification_url}/{user_code}",
            user_code=user_code,
            expires_in=expires_in if isinstance(expires_in, int) else None,
        )

    async def complete(self) -> AuthorizationOutcome:
        """Finish the sign in; failures are reported, never raised."""

        try:
            await self._complete()
        except SimklError as exc:
            logger.warning("SIMKL sign in failed: %s", exc.message)
            return AuthorizationOutcome(
                status="error", message=exc.message, http_status=exc.http_status
            )
        except Exception as exc:
            logger.exception("Unexpected error during SIMKL sign in")
            return AuthorizationOutcome(
                status="error",
                message=f"Unexpected error: {exc}",
                http_status=500,
            )
        return AuthorizationOutcome(
            status="success",
            message="Redirecting to configure page...",
            redirect_to=self._settings.configure_path,
            http_status=303,
        )

    async def _complete(self) -> None:
        pre_auth = await self._claim_pre_auth()

        result = await run_exchange(plan_exchange(pre_auth), self._client, self._delegate)
        client_id = result.client_id
        data = result.data

        if not client_id:
            raise ClientIdMissing()
        if not data:
            raise ExchangeFailed("No result from SIMKL API. Please try again.")
        if data.get("error"):
            raise ProviderError(data["error"])
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise NoAccessToken(
                "No Access Token received from SIMKL. Response: "
                + _describe_response(data)
            )

        await self._receiver.merge_user_config(
            {"auth": {"access_token": access_token, "client_id": client_id}}
        )
        logger.info("Stored SIMKL credentials for profile %s", self._storage.profile_id)

    async def _claim_pre_auth(self) -> SimklPreAuth:
        raw = await self._storage.claim(self.preauth_id)
        if not raw:
            raise MissingPreAuth()
        try:
            return SimklPreAuth.model_validate_json(raw)
        except ValidationError as exc:
            logger.info("Discarding unreadable SIMKL pre-auth record: %s", exc)
            raise MissingPreAuth() from exc


def _describe_response(data: dict[str, Any]) -> str:
    redacted = {
        key: ("***" if "token" in key else value) for key, value in data.items()
    }
    return json.dumps(redacted, default=str)
