from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from pyhaassohn._crypto.hashing import md5_hex
from pyhaassohn._transport import HttpTransport
from pyhaassohn.client import StoveClient, check_connection
from pyhaassohn.exceptions import StoveProtocolError, StoveTransportError


class StoveServer:
    """Minimal stand-in for the stove's embedded web server."""

    def __init__(self) -> None:
        self.status: dict = {"meta": {"nonce": "n-1"}, "prg": False, "sp_temp": 20}
        self.posts: list[tuple[dict, str | None]] = []
        self.reply_status = 200
        self.delay = 0.0
        self.raw_body: bytes | None = None

    async def handle(self, request: web.Request) -> web.StreamResponse:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.reply_status != 200:
            return web.Response(status=self.reply_status, text="denied")
        if self.raw_body is not None:
            return web.Response(body=self.raw_body, content_type="application/json")
        if request.method == "POST":
            payload = await request.json()
            self.posts.append((payload, request.headers.get("X-HS-PIN")))
            self.status.update(payload)
        return web.json_response(self.status)


@pytest_asyncio.fixture
async def stove_server() -> AsyncIterator[tuple[StoveServer, str]]:
    stove = StoveServer()
    app = web.Application()
    app.router.add_route("*", "/status.cgi", stove.handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield stove, f"http://{server.host}:{server.port}"
    finally:
        await server.close()


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_http_transport_returns_body(stove_server: tuple[StoveServer, str]) -> None:
    _stove, base_url = stove_server

    async with aiohttp.ClientSession() as session:
        text = await HttpTransport(session, timeout=2.0).request("GET", base_url, "/status.cgi")

    assert json.loads(text)["sp_temp"] == 20


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_http_transport_non_200_is_protocol_error(stove_server: tuple[StoveServer, str]) -> None:
    stove, base_url = stove_server
    stove.reply_status = 403

    async with aiohttp.ClientSession() as session:
        with pytest.raises(StoveProtocolError) as exc_info:
            await HttpTransport(session, timeout=2.0).request("GET", base_url, "/status.cgi")

    assert exc_info.value.status_code == 403
    assert exc_info.value.path == "/status.cgi"


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_http_transport_deadline_is_transport_error(stove_server: tuple[StoveServer, str]) -> None:
    stove, base_url = stove_server
    stove.delay = 1.0

    async with aiohttp.ClientSession() as session:
        with pytest.raises(StoveTransportError, match="timeout"):
            await HttpTransport(session, timeout=0.05).request("GET", base_url, "/status.cgi")


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_http_transport_connection_refused_is_transport_error() -> None:
    app = web.Application()
    server = test_utils.TestServer(app)
    await server.start_server()
    base_url = f"http://{server.host}:{server.port}"
    await server.close()

    async with aiohttp.ClientSession() as session:
        with pytest.raises(StoveTransportError):
            await HttpTransport(session, timeout=2.0).request("GET", base_url, "/status.cgi")


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_client_round_trip_against_server(stove_server: tuple[StoveServer, str]) -> None:
    stove, base_url = stove_server

    async with StoveClient(base_url, "1234", timeout=2.0) as client:
        await client.send_command({"sp_temp": 23})
        status = await client.fetch_status()

    assert stove.posts == [({"sp_temp": 23}, md5_hex("n-1" + md5_hex("1234")))]
    assert status["sp_temp"] == 23


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_undecodable_body_is_protocol_error(stove_server: tuple[StoveServer, str]) -> None:
    stove, base_url = stove_server
    stove.raw_body = b'{"prg":"\xff\xfe"}'

    async with StoveClient(base_url, "1234", timeout=2.0) as client:
        with pytest.raises(StoveProtocolError) as exc_info:
            await client.fetch_status()
    assert exc_info.value.status_code == 200

    result = await check_connection(base_url, "1234", timeout=2.0)
    assert not result.ok
    assert result.error is not None and "UTF-8" in result.error


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_request_log_never_contains_session_secret(
    stove_server: tuple[StoveServer, str],
    caplog: pytest.LogCaptureFixture,
) -> None:
    _stove, base_url = stove_server
    secret = md5_hex("n-1" + md5_hex("1234"))

    with caplog.at_level(logging.DEBUG, logger="pyhaassohn"):
        async with StoveClient(base_url, "1234", timeout=2.0) as client:
            await client.send_command({"prg": True})

    assert "POST" in caplog.text
    assert "X-HS-PIN" in caplog.text
    assert secret not in caplog.text
    assert "<redacted>" in caplog.text
