"""
API transport — httpx request plus envelope unwrapping.

Shared by the remote cart and the HTTP catalog.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx
from combinators import lift as L
from kungfu import Result, Ok, Error
from pydantic import ValidationError

from boxcart.remote._types import Envelope, RemoteError, RemoteErrorKind

logger = logging.getLogger(__name__)

type TokenProvider = Callable[[], Awaitable[str | None]]


def transport_error(e: Exception) -> RemoteError:
    """Exception raised by httpx → RemoteError."""
    if isinstance(e, httpx.TimeoutException):
        return RemoteError(RemoteErrorKind.NETWORK, f"request timed out: {e}")
    if isinstance(e, httpx.HTTPError):
        return RemoteError(RemoteErrorKind.NETWORK, f"transport failure: {e}")
    return RemoteError(RemoteErrorKind.PROTOCOL, f"unexpected failure: {e}")


class ApiTransport:
    """
    JSON API over httpx.

    Status mapping:
        transport failure, timeout, 5xx  → NETWORK (retriable)
        4xx, envelope status "error"     → REJECTED
        body not an envelope             → PROTOCOL
    """

    def __init__(
        self,
        base_url: str,
        *,
        token_provider: TokenProvider | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._http_client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    async def _headers(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token_provider is not None:
            token = await self._token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        body: Any,
        params: Mapping[str, str] | None,
        headers: Mapping[str, str] | None,
    ) -> httpx.Response:
        return await self._http_client.request(
            method=method,
            url=f"{self.base_url}{path}",
            headers=await self._headers(headers),
            params=params,
            json=body,
        )

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Result[Any, RemoteError]:
        """Send and unwrap the envelope. Ok carries envelope.data."""
        sent = await L.catching_async(
            lambda: self._send(method, path, body, params, headers),
            on_error=transport_error,
        )
        match sent:
            case Ok(response):
                pass
            case Error(e):
                logger.warning(f"{method} {path} failed: {e.message}")
                return Error(e)

        status = response.status_code
        if status >= 500:
            logger.error(f"{method} {path} failed: {status}")
            return Error(
                RemoteError(RemoteErrorKind.NETWORK, f"server error {status}", status_code=status)
            )

        try:
            envelope = Envelope.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            if status >= 400:
                logger.warning(f"{method} {path} rejected: {status}")
                return Error(
                    RemoteError(
                        RemoteErrorKind.REJECTED,
                        response.text or f"HTTP {status}",
                        status_code=status,
                    )
                )
            logger.error(f"{method} {path}: unreadable response: {e}")
            return Error(
                RemoteError(RemoteErrorKind.PROTOCOL, "unreadable response", status_code=status)
            )

        if status >= 400 or envelope.status == "error":
            message = envelope.message or f"HTTP {status}"
            logger.warning(f"{method} {path} rejected: {message}")
            return Error(RemoteError(RemoteErrorKind.REJECTED, message, status_code=status))

        return Ok(envelope.data)


__all__ = ("ApiTransport", "TokenProvider", "transport_error")
