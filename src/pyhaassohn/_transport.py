"""HTTP transport to the stove's ``/status.cgi`` endpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Protocol

import aiohttp

from pyhaassohn._constants import DEFAULT_TIMEOUT
from pyhaassohn._redact import redact_for_log
from pyhaassohn.exceptions import StoveProtocolError, StoveTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by :class:`pyhaassohn.client.StoveClient`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`HttpTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        base_url: str,
        path: str,
        *,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        ...


class HttpTransport:
    """aiohttp transport with a hard per-request deadline.

    Returns the response body of a ``200`` answer. Everything else is
    classified as :class:`StoveTransportError` (the request never completed)
    or :class:`StoveProtocolError` (the stove answered with a non-200 status).
    Nothing is retried here.
    """

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._http = http_session
        self._timeout = timeout

    async def request(
        self,
        method: str,
        base_url: str,
        path: str,
        *,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        url = f"{base_url}{path}"
        _logger.debug("%s %s headers=%s", method, url, redact_for_log(dict(headers or {})))

        try:
            async with asyncio.timeout(self._timeout):
                async with self._http.request(method, url, data=body, headers=headers) as resp:
                    raw = await resp.read()
                    status = resp.status
        except TimeoutError as exc:
            raise StoveTransportError("timeout", path=path) from exc
        except aiohttp.ClientError as exc:
            raise StoveTransportError(f"Request to {url} failed: {exc}", path=path) from exc

        if status != 200:
            raise StoveProtocolError(
                f"Unexpected status code {status} from {path}: {raw[:200].decode('utf-8', errors='replace')}",
                status_code=status,
                path=path,
            )
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StoveProtocolError(
                f"Response from {path} is not valid UTF-8: {exc}",
                status_code=status,
                path=path,
            ) from exc
