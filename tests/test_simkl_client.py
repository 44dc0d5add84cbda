"""Tests for the SIMKL API client helpers."""

from __future__ import annotations

import json

import httpx
import pytest

from app.errors import ExchangeFailed, SyncFailed, SyncPreconditionFailed
from app.models import MetaIds, SimklAuth, SimklUserSettings
from app.services.simkl import SimklClient, build_sync_payload
from conftest import build_settings, mock_http_client


def _user_config() -> SimklUserSettings:
    return SimklUserSettings(auth=SimklAuth(access_token="tok", client_id="cid"))


def test_movie_payload_without_episode_counter() -> None:
    payload = build_sync_payload(MetaIds(ids={"simkl": "123"}, count=None))

    assert payload == {"movies": [{"title": None, "ids": {"simkl": "123"}}]}


def test_show_payload_with_episode_counter() -> None:
    payload = build_sync_payload(
        MetaIds.model_validate({"ids": {"simkl": "123"}, "count": {"season": 2, "episode": 5}})
    )

    assert payload == {
        "shows": [
            {
                "title": None,
                "ids": {"simkl": "123"},
                "seasons": [{"number": 2, "episodes": [{"number": 5}]}],
            }
        ]
    }


def test_headers_carry_credential() -> None:
    client = SimklClient(build_settings(APP_NAME="Tester"), httpx.AsyncClient())

    headers = client.build_headers(SimklAuth(access_token="tok", client_id="cid"))

    assert headers["Content-Type"] == "application/json"
    assert headers["simkl-api-key"] == "cid"
    assert headers["Authorization"] == "Bearer tok"
    assert headers["User-Agent"].startswith("Tester")


@pytest.mark.anyio("asyncio")
async def test_sync_posts_history_and_returns_body() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(201, json={"added": {"movies": 1}})

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        result = await client.sync_meta_object(
            MetaIds(ids={"simkl": "123"}), _user_config()
        )

    assert result == {"added": {"movies": 1}}
    assert len(requests) == 1
    request = requests[0]
    assert request.method == "POST"
    assert request.url.path == "/sync/history"
    assert request.headers["simkl-api-key"] == "cid"
    assert request.headers["authorization"] == "Bearer tok"
    # ``title`` is unset and therefore left off the wire.
    assert json.loads(request.content) == {"movies": [{"ids": {"simkl": "123"}}]}


@pytest.mark.anyio("asyncio")
async def test_sync_without_credentials_fails_before_network() -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        with pytest.raises(SyncPreconditionFailed):
            await client.sync_meta_object(MetaIds(ids={"simkl": "1"}), SimklUserSettings())

    assert calls == []


@pytest.mark.anyio("asyncio")
async def test_sync_error_status_raises_generic_failure() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "user_token_failed"})

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        with pytest.raises(SyncFailed) as excinfo:
            await client.sync_meta_object(MetaIds(ids={"simkl": "1"}), _user_config())

    assert excinfo.value.message == "Failed to fetch data from Simkl API!"


@pytest.mark.anyio("asyncio")
async def test_sync_transport_error_raises_generic_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        with pytest.raises(SyncFailed):
            await client.sync_meta_object(MetaIds(ids={"simkl": "1"}), _user_config())


@pytest.mark.anyio("asyncio")
async def test_check_pin_returns_body_with_query_client_id() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"result": "OK", "access_token": "tok"})

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        data = await client.check_pin("ABCD", "cid")

    assert data == {"result": "OK", "access_token": "tok"}
    assert seen[0].url.path == "/oauth/pin/ABCD"
    assert seen[0].url.params["client_id"] == "cid"


@pytest.mark.anyio("asyncio")
async def test_check_pin_rejects_non_json_body() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        with pytest.raises(ExchangeFailed, match="Client ID: cid"):
            await client.check_pin("ABCD", "cid")


@pytest.mark.anyio("asyncio")
async def test_request_pin_sends_redirect() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "result": "OK",
                "user_code": "ABCD",
                "verification_url": "https://simkl.com/pin",
                "expires_in": 900,
            },
        )

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        data = await client.request_pin("cid", redirect_uri="https://app.example/oauth/simkl")

    assert data["user_code"] == "ABCD"
    assert seen[0].url.path == "/oauth/pin"
    assert seen[0].url.params["redirect"] == "https://app.example/oauth/simkl"


@pytest.mark.anyio("asyncio")
async def test_request_pin_without_code_fails() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "client_id_failed"})

    async with mock_http_client(handler) as http_client:
        client = SimklClient(build_settings(), http_client)
        with pytest.raises(ExchangeFailed):
            await client.request_pin("bad")
