"""Async client for the Haas+Sohn pellet stove local API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from pyhaassohn._constants import DEFAULT_TIMEOUT, PIN_HEADER, STATUS_PATH, USER_AGENT
from pyhaassohn._crypto.hashing import md5_hex
from pyhaassohn._redact import redact_for_log
from pyhaassohn._transport import HttpTransport, Transport
from pyhaassohn.config import StoveConfig, build_base_url, normalize_address
from pyhaassohn.exceptions import StoveError, StoveProtocolError
from pyhaassohn.models.command import ConnectionTestResult
from pyhaassohn.session import Session

_logger = logging.getLogger(__name__)

StatusDocument = dict[str, Any]


class StoveClient:
    """Async client for one stove.

    Usage::

        async with StoveClient("192.168.1.40", "1234") as client:
            status = await client.fetch_status()
            await client.send_command({"sp_temp": 21})

    Every successful :meth:`fetch_status` refreshes the session when the
    stove hands out a new nonce. :meth:`send_command` fetches status first
    when no nonce has been observed yet. Failures are never retried here.
    """

    def __init__(
        self,
        address: str,
        pin: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._address = address
        self._pin_hash = md5_hex(pin)
        self._timeout = timeout
        self._external_session = session is not None
        self._http_session = session
        self._transport: Transport | None = transport
        self._owns_transport = transport is None
        self._session: Session | None = None

    @classmethod
    def from_config(cls, config: StoveConfig, **kwargs: Any) -> StoveClient:
        kwargs.setdefault("timeout", config.timeout)
        return cls(config.resolved_address, config.pin, **kwargs)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> StoveClient:
        if self._owns_transport:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._http_session, timeout=self._timeout)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if self._owns_transport:
            self._transport = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def nonce(self) -> str | None:
        return self._session.nonce if self._session is not None else None

    @property
    def session(self) -> Session | None:
        return self._session

    def set_config(self, address: str, pin: str) -> None:
        """Point the client at a new address/PIN and drop the current session."""
        self._address = address
        self._pin_hash = md5_hex(pin)
        self.invalidate_session()

    def invalidate_session(self) -> None:
        """Forget the nonce; the next command fetches status first."""
        self._session = None

    def _observe_nonce(self, document: Mapping[str, Any]) -> None:
        meta = document.get("meta")
        nonce = meta.get("nonce") if isinstance(meta, Mapping) else None
        if not isinstance(nonce, str) or not nonce:
            return
        if self._session is not None and self._session.nonce == nonce:
            return
        self._session = Session(nonce=nonce, pin_hash=self._pin_hash)
        _logger.debug("Stove issued a new nonce; session secret refreshed")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise StoveError("Client not initialized. Use 'async with StoveClient(...) as client:'")
        return self._transport

    async def fetch_status(self) -> StatusDocument:
        """GET the status document and refresh the session nonce."""
        transport = self._require_transport()
        base_url = build_base_url(self._address)
        text = await transport.request(
            "GET",
            base_url,
            STATUS_PATH,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )

        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoveProtocolError(f"Invalid JSON response: {exc}", status_code=200, path=STATUS_PATH) from exc
        if not isinstance(document, dict):
            raise StoveProtocolError(
                f"Status document is not a JSON object: {text[:64]}",
                status_code=200,
                path=STATUS_PATH,
            )

        self._observe_nonce(document)
        return document

    async def send_command(self, payload: Mapping[str, Any]) -> None:
        """POST changed fields to the stove, authenticated by the session secret."""
        if self._session is None:
            await self.fetch_status()

        transport = self._require_transport()
        base_url = build_base_url(self._address)
        body = json.dumps(dict(payload), separators=(",", ":"))
        headers = {
            "Accept": "*/*",
            "Connection": "keep-alive",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            PIN_HEADER: self._session.secret() if self._session is not None else "",
        }
        _logger.debug("Sending command %s", redact_for_log(dict(payload)))
        await transport.request("POST", base_url, STATUS_PATH, body=body, headers=headers)


async def check_connection(
    address: str,
    pin: str,
    port: int | str | None = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    session: aiohttp.ClientSession | None = None,
    transport: Transport | None = None,
) -> ConnectionTestResult:
    """Fetch status once with the given credentials; never raises."""
    resolved = normalize_address(address, port)
    if not resolved:
        return ConnectionTestResult(ok=False, error="Device address is required")
    try:
        async with StoveClient(resolved, pin.strip(), timeout=timeout, session=session, transport=transport) as client:
            status = await client.fetch_status()
    except StoveError as exc:
        _logger.debug("Connection test to %s failed", resolved, exc_info=True)
        return ConnectionTestResult(ok=False, error=str(exc) or type(exc).__name__)
    return ConnectionTestResult(ok=True, status=status)
