"""HTTP transport used by the step executor."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

import aiohttp

from apiwave.core.errors import ApiwaveError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "apiwave/0.1"


class TransportError(ApiwaveError):
    """An exchange failed before any response was received."""

    def __init__(self, message: str, method: Optional[str] = None, url: Optional[str] = None):
        self.method = method
        self.url = url
        super().__init__(message)


class TransportTimeout(TransportError):
    """The exchange did not complete within its timeout."""


@dataclass(frozen=True)
class HttpResponse:
    """A received HTTP response."""
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: str = ""


class HttpTransport(Protocol):
    """Performs one HTTP exchange.

    Implementations raise TransportError when no response is obtained.
    Retries and URL safety checks belong to the implementation.
    """

    async def exchange(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[str],
        timeout: float,
    ) -> HttpResponse:
        ...


class AiohttpTransport:
    """HttpTransport backed by an aiohttp client session.

    The session is created lazily and shared by every exchange; use the
    transport as an async context manager or call close() when done.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        verify_ssl: bool = True,
        max_connections: int = 100,
    ):
        self.user_agent = user_agent
        self.verify_ssl = verify_ssl
        self.max_connections = max_connections
        self._session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self.max_connections, ssl=self.verify_ssl)
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": self.user_agent},
            )
        return self._session

    async def exchange(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[str],
        timeout: float,
    ) -> HttpResponse:
        session = await self._ensure_session()
        data = body.encode("utf-8") if body is not None else None

        try:
            async with session.request(
                method,
                url,
                headers=headers,
                data=data,
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=False,
            ) as resp:
                text = await resp.text(errors="replace")
                response_headers: dict[str, str] = {}
                for name, value in resp.headers.items():
                    response_headers.setdefault(name, value)
                return HttpResponse(status=resp.status, headers=response_headers, body=text)
        except asyncio.TimeoutError as e:
            raise TransportTimeout(
                f"Request timed out after {int(timeout * 1000)}ms: {method} {url}",
                method=method,
                url=url,
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise TransportError(f"HTTP request failed for {method} {url}: {e}", method=method, url=url) from e

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        await self._ensure_session()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
