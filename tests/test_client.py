from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import pytest

from pyhaassohn._crypto.hashing import md5_hex
from pyhaassohn.client import StoveClient, check_connection
from pyhaassohn.exceptions import StoveError, StoveProtocolError, StoveTransportError


class FakeTransport:
    """Replays canned bodies and records every request."""

    def __init__(self, *bodies: str) -> None:
        self.bodies = list(bodies)
        self.requests: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def request(
        self,
        method: str,
        base_url: str,
        path: str,
        *,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        self.requests.append(
            {"method": method, "url": f"{base_url}{path}", "body": body, "headers": dict(headers or {})}
        )
        if self.error is not None:
            raise self.error
        if method == "POST":
            return "{}"
        return self.bodies.pop(0)


def _status(nonce: str = "n1", **fields: Any) -> str:
    return json.dumps({"meta": {"nonce": nonce}, **fields})


@pytest.mark.asyncio
async def test_fetch_status_tracks_nonce() -> None:
    transport = FakeTransport(_status("n1", prg=True), _status("n1"), _status("n2"))
    client = StoveClient("192.168.1.40", "1234", transport=transport)

    status = await client.fetch_status()
    assert status["prg"] is True
    assert client.nonce == "n1"
    first_session = client.session

    await client.fetch_status()
    assert client.session is first_session

    await client.fetch_status()
    assert client.nonce == "n2"
    assert client.session is not first_session
    assert transport.requests[0]["url"] == "http://192.168.1.40/status.cgi"


@pytest.mark.asyncio
async def test_status_without_nonce_keeps_previous_session() -> None:
    transport = FakeTransport(_status("n1"), json.dumps({"prg": False}))
    client = StoveClient("stove.local", "1234", transport=transport)

    await client.fetch_status()
    await client.fetch_status()

    assert client.nonce == "n1"


@pytest.mark.asyncio
async def test_send_command_fetches_nonce_first_and_signs_request() -> None:
    transport = FakeTransport(_status("abc123"))
    client = StoveClient("stove.local:8080", "1234", transport=transport)

    await client.send_command({"sp_temp": 22, "prg": True})

    assert [r["method"] for r in transport.requests] == ["GET", "POST"]
    post = transport.requests[1]
    assert post["url"] == "http://stove.local:8080/status.cgi"
    assert post["body"] == '{"sp_temp":22,"prg":true}'
    assert post["headers"]["Content-Type"] == "application/json"
    assert post["headers"]["X-HS-PIN"] == md5_hex("abc123" + md5_hex("1234"))


@pytest.mark.asyncio
async def test_nonce_is_used_exactly_as_received() -> None:
    transport = FakeTransport(_status(" n1 "))
    client = StoveClient("stove.local", "1234", transport=transport)

    await client.send_command({"prg": True})

    assert client.nonce == " n1 "
    assert transport.requests[-1]["headers"]["X-HS-PIN"] == md5_hex(" n1 " + md5_hex("1234"))


@pytest.mark.asyncio
async def test_send_command_reuses_known_nonce() -> None:
    transport = FakeTransport(_status("abc123"))
    client = StoveClient("stove.local", "1234", transport=transport)
    await client.fetch_status()

    await client.send_command({"prg": False})

    assert [r["method"] for r in transport.requests] == ["GET", "POST"]


@pytest.mark.asyncio
async def test_set_config_invalidates_session() -> None:
    transport = FakeTransport(_status("abc123"), _status("def456"))
    client = StoveClient("stove.local", "1234", transport=transport)
    await client.fetch_status()

    client.set_config("10.0.0.2", "0000")
    assert client.session is None

    await client.send_command({"prg": True})
    post = transport.requests[-1]
    assert post["url"] == "http://10.0.0.2/status.cgi"
    assert post["headers"]["X-HS-PIN"] == md5_hex("def456" + md5_hex("0000"))


@pytest.mark.asyncio
async def test_invalid_json_is_a_protocol_error() -> None:
    client = StoveClient("stove.local", "1234", transport=FakeTransport("<html>busy</html>", "[1, 2]"))

    with pytest.raises(StoveProtocolError):
        await client.fetch_status()
    with pytest.raises(StoveProtocolError, match="not a JSON object"):
        await client.fetch_status()


@pytest.mark.asyncio
async def test_transport_errors_propagate_without_retry() -> None:
    transport = FakeTransport()
    transport.error = StoveTransportError("timeout")
    client = StoveClient("stove.local", "1234", transport=transport)

    with pytest.raises(StoveTransportError, match="timeout"):
        await client.fetch_status()
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_client_requires_context_without_transport() -> None:
    client = StoveClient("stove.local", "1234")

    with pytest.raises(StoveError, match="not initialized"):
        await client.fetch_status()


@pytest.mark.asyncio
async def test_check_connection_reports_status() -> None:
    transport = FakeTransport(_status("n1", prg=True))

    result = await check_connection(" stove.local ", " 1234 ", 8080, transport=transport)

    assert result.ok
    assert result.status is not None and result.status["prg"] is True
    assert transport.requests[0]["url"] == "http://stove.local:8080/status.cgi"


@pytest.mark.asyncio
async def test_check_connection_reports_failure() -> None:
    transport = FakeTransport()
    transport.error = StoveTransportError("timeout")

    result = await check_connection("stove.local", "1234", transport=transport)

    assert not result.ok
    assert result.error == "timeout"
    assert result.status is None


@pytest.mark.asyncio
async def test_check_connection_requires_address() -> None:
    result = await check_connection("  ", "1234", transport=FakeTransport())

    assert not result.ok
    assert result.error == "Device address is required"
