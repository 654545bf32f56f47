from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import aiohttp

from apidelta.domain.errors import TransportError

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class HttpResponse:
    status: int
    text: str


class HttpTransport(Protocol):
    """
    Anything that can issue one HTTP request.

    Implementations must raise TransportError for network-level failures and
    return an HttpResponse for every HTTP status, 4xx/5xx included.
    """

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[Any] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> HttpResponse: ...


class AiohttpTransport:
    """HttpTransport over one shared aiohttp.ClientSession (created lazily)."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: Optional[Any] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> HttpResponse:
        session = await self._get_session()
        kwargs: dict[str, Any] = {
            "headers": headers,
            "timeout": aiohttp.ClientTimeout(total=timeout),
        }
        if body is not None:
            if isinstance(body, (str, bytes)):
                kwargs["data"] = body
            else:
                kwargs["json"] = body

        try:
            async with session.request(method, url, **kwargs) as response:
                text = await response.text(errors="replace")
                return HttpResponse(
                    status=response.status,
                    text=text,
                )
        except asyncio.TimeoutError as e:
            raise TransportError(f"Request timed out after {timeout:g}s") from e
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
