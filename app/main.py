"""Entry point for the FastAPI-powered SIMKL receiver."""

from __future__ import annotations

import json
import logging
import secrets
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from pydantic import ValidationError

from . import __version__
from .config import settings
from .database import Database
from .errors import ClientIdMissing, SimklError
from .models import MetaIds
from .receiver import SimklReceiver
from .services.exchange import ServerExchangeDelegate, SettingsSecretProvider
from .services.oauth import SimklAuthorizationHandler
from .services.simkl import SimklClient
from .storage import ProfileStorage
from .web import render_callback_error, render_config_page

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PROFILE_COOKIE = "simkl_profile"
PROFILE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365

app: FastAPI


@dataclass(slots=True)
class ReceiverServices:
    database: Database
    client: SimklClient
    delegate: ServerExchangeDelegate


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    try:
        http_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(settings.simkl_api_url),
                timeout=httpx.Timeout(settings.http_timeout_seconds, connect=10.0),
            )
        )
        database = Database(settings.database_url)
        exit_stack.push_async_callback(database.dispose)
        await database.create_all()

        client = SimklClient(settings, http_client)
        delegate = ServerExchangeDelegate(client, SettingsSecretProvider(settings))
        fastapi_app.state.services = ReceiverServices(
            database=database, client=client, delegate=delegate
        )

        yield
    finally:
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="SIMKL sign in and watch-history sync",
        version=__version__,
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_services(fastapi_app: FastAPI) -> ReceiverServices:
    services = getattr(fastapi_app.state, "services", None)
    if not isinstance(services, ReceiverServices):
        raise RuntimeError("Receiver services not initialised")
    return services


def register_routes(fastapi_app: FastAPI) -> None:
    def _receiver(profile_id: str) -> SimklReceiver:
        services = get_services(fastapi_app)
        return SimklReceiver(services.database.session_factory, profile_id)

    def _authorization_handler(profile_id: str) -> SimklAuthorizationHandler:
        services = get_services(fastapi_app)
        storage = ProfileStorage(services.database.session_factory, profile_id)
        return SimklAuthorizationHandler(
            storage,
            _receiver(profile_id),
            services.client,
            services.delegate,
            settings,
        )

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get(settings.configure_path, response_class=HTMLResponse)
    async def configure_page(request: Request) -> HTMLResponse:
        profile_id, created = _resolve_profile(request)
        user_config = await _receiver(profile_id).get_user_config()
        response = HTMLResponse(
            render_config_page(
                settings,
                connected=user_config.auth is not None,
                login_endpoint=str(request.app.url_path_for("simkl_login")),
            )
        )
        return _with_profile_cookie(response, profile_id, created)

    @fastapi_app.post("/api/simkl/login", name="simkl_login")
    async def simkl_login(request: Request) -> JSONResponse:
        profile_id, created = _resolve_profile(request)
        payload = await _json_body(request)
        client_id = payload.get("client_id")
        if client_id is not None and not isinstance(client_id, str):
            raise HTTPException(status_code=400, detail="client_id must be a string")

        handler = _authorization_handler(profile_id)
        try:
            started = await handler.start(
                client_id=client_id, redirect_uri=_resolve_simkl_redirect(request)
            )
        except ClientIdMissing as exc:
            raise HTTPException(
                status_code=503,
                detail={
                    "error": "simkl_client_id_missing",
                    "description": exc.message,
                },
            ) from exc
        except SimklError as exc:
            raise HTTPException(status_code=exc.http_status, detail=exc.message) from exc

        response = JSONResponse(
            {
                "url": started.url,
                "user_code": started.user_code,
                "expires_in": started.expires_in,
            }
        )
        return _with_profile_cookie(response, profile_id, created)

    @fastapi_app.get(
        "/oauth/simkl",
        response_class=HTMLResponse,
        name="simkl_oauth_callback",
    )
    async def simkl_oauth_callback(request: Request) -> Response:
        profile_id, created = _resolve_profile(request)
        outcome = await _authorization_handler(profile_id).complete()
        prefix = _resolve_external_prefix(request)
        if outcome.ok and outcome.redirect_to:
            response: Response = RedirectResponse(
                f"{prefix}{outcome.redirect_to}", status_code=outcome.http_status
            )
        else:
            response = HTMLResponse(
                render_callback_error(
                    outcome.message,
                    configure_url=f"{prefix}{settings.configure_path}",
                ),
                status_code=outcome.http_status,
            )
        return _with_profile_cookie(response, profile_id, created)

    @fastapi_app.get("/api/simkl/status")
    async def simkl_status(request: Request) -> JSONResponse:
        profile_id, created = _resolve_profile(request)
        user_config = await _receiver(profile_id).get_user_config()
        auth = user_config.auth
        response = JSONResponse(
            {
                "connected": auth is not None,
                "client_id": auth.client_id if auth is not None else None,
            }
        )
        return _with_profile_cookie(response, profile_id, created)

    @fastapi_app.post("/api/simkl/sync")
    async def simkl_sync(request: Request) -> JSONResponse:
        profile_id, created = _resolve_profile(request)
        payload = await _json_body(request)
        try:
            meta_ids = MetaIds.model_validate(payload)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400, detail=json.loads(exc.json())
            ) from exc

        user_config = await _receiver(profile_id).get_user_config()
        client = get_services(fastapi_app).client
        try:
            result = await client.sync_meta_object(meta_ids, user_config)
        except SimklError as exc:
            raise HTTPException(status_code=exc.http_status, detail=exc.message) from exc
        response = JSONResponse({"result": result})
        return _with_profile_cookie(response, profile_id, created)


def _resolve_profile(request: Request) -> tuple[str, bool]:
    existing = (request.cookies.get(PROFILE_COOKIE) or "").strip()
    if existing and len(existing) <= 64:
        return existing, False
    return secrets.token_urlsafe(24), True


def _with_profile_cookie(response: Response, profile_id: str, created: bool) -> Response:
    if created:
        response.set_cookie(
            PROFILE_COOKIE,
            profile_id,
            max_age=PROFILE_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return response


async def _json_body(request: Request) -> dict[str, Any]:
    if not (await request.body()).strip():
        return {}
    try:
        payload = await request.json()
    except ValueError as exc:
        # JSONDecodeError and UnicodeDecodeError both derive from ValueError.
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    return payload


def _resolve_simkl_redirect(request: Request) -> str:
    if settings.simkl_redirect_uri:
        return str(settings.simkl_redirect_uri)

    base = _resolve_external_base(request)
    path = request.app.url_path_for("simkl_oauth_callback")
    return f"{base}{path}"


def _resolve_external_base(request: Request) -> str:
    headers = request.headers
    scheme = _first_forwarded_value(headers.get("x-forwarded-proto")) or request.url.scheme

    host = _first_forwarded_value(headers.get("x-forwarded-host"))
    if not host:
        host_header = headers.get("host")
        host = _first_forwarded_value(host_header) if host_header else None
    if not host:
        host = request.url.netloc

    port = _first_forwarded_value(headers.get("x-forwarded-port"))
    if port and ":" not in host:
        default_port = "443" if scheme == "https" else "80"
        if port != default_port:
            host = f"{host}:{port}"

    origin = f"{scheme}://{host}".rstrip("/")
    return f"{origin}{_resolve_external_prefix(request)}"


def _resolve_external_prefix(request: Request) -> str:
    """Return the proxy path prefix the app is mounted under, or ``""``."""

    prefix = (
        _first_forwarded_value(request.headers.get("x-forwarded-prefix"))
        or request.scope.get("root_path")
        or ""
    )
    if prefix and not prefix.startswith("/"):
        prefix = f"/{prefix}"
    return prefix.rstrip("/")


def _first_forwarded_value(header_value: str | None) -> str | None:
    if not header_value:
        return None
    return header_value.split(",", 1)[0].strip()


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
