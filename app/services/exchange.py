"""Exchange of a SIMKL PIN code for an access token."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Union

from ..config import Settings
from ..errors import ExchangeFailed
from ..models import SimklPreAuth
from .simkl import SimklClient

logger = logging.getLogger(__name__)

SIMKL_CLIENT_ID_SECRET = "PRIVATE_SIMKL_CLIENT_ID"


class SecretProvider(Protocol):
    def get(self, name: str) -> str | None: ...


class SettingsSecretProvider:
    """Resolve server-held secrets from the application settings."""

    _FIELDS = {SIMKL_CLIENT_ID_SECRET: "simkl_client_id"}

    def __init__(self, settings: Settings):
        self._settings = settings

    def get(self, name: str) -> str | None:
        field = self._FIELDS.get(name)
        if field is None:
            return None
        value = getattr(self._settings, field, None)
        return value or None


@dataclass(slots=True, frozen=True)
class ClientSuppliedExchange:
    """The user brought their own client id; ask SIMKL directly."""

    code: str
    client_id: str


@dataclass(slots=True, frozen=True)
class ServerDelegatedExchange:
    """The server substitutes its own client id."""

    code: str


PinExchange = Union[ClientSuppliedExchange, ServerDelegatedExchange]


@dataclass(slots=True)
class ExchangeResult:
    data: dict[str, Any] | None
    client_id: str | None


def plan_exchange(pre_auth: SimklPreAuth) -> PinExchange:
    if pre_auth.client_id:
        return ClientSuppliedExchange(code=pre_auth.code, client_id=pre_auth.client_id)
    return ServerDelegatedExchange(code=pre_auth.code)


class ServerExchangeDelegate:
    """Trusted exchange that may inject the server's client id."""

    def __init__(self, client: SimklClient, secrets: SecretProvider):
        self._client = client
        self._secrets = secrets

    def server_client_id(self) -> str | None:
        return self._secrets.get(SIMKL_CLIENT_ID_SECRET)

    async def validate_code(
        self, code: str, client_id: str | None = None
    ) -> dict[str, Any] | None:
        """Return the PIN body plus the ``client_id`` used, or ``None`` on failure."""

        resolved_client_id = client_id or self.server_client_id()
        if not resolved_client_id:
            logger.warning("No server-side SIMKL client id configured")
            return None
        try:
            data = await self._client.check_pin(code, resolved_client_id)
        except ExchangeFailed:
            return None
        return {**data, "client_id": resolved_client_id}


async def run_exchange(
    exchange: PinExchange,
    client: SimklClient,
    delegate: ServerExchangeDelegate,
) -> ExchangeResult:
    """Carry out ``exchange`` and report which client id was used."""

    if isinstance(exchange, ClientSuppliedExchange):
        data = await client.check_pin(exchange.code, exchange.client_id)
        return ExchangeResult(data=data, client_id=exchange.client_id)

    data = await delegate.validate_code(exchange.code)
    if data is None:
        raise ExchangeFailed(
            "Failed to validate code with server. Please try logging in again."
        )
    client_id = data.get("client_id")
    return ExchangeResult(
        data=data,
        client_id=client_id if isinstance(client_id, str) and client_id else None,
    )
