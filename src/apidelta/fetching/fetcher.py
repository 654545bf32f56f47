from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from apidelta.domain.errors import TransportError
from apidelta.domain.models import FetchOutcome
from apidelta.fetching.transport import DEFAULT_TIMEOUT_SECONDS, HttpTransport

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_DELAY_MS = 1000


def parse_body(text: str) -> Any:
    """JSON if it parses, the raw text otherwise."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RetryingFetcher:
    """
    One HTTP call with bounded retries and a fixed delay between attempts.

    HTTP status codes are never errors here; only TransportError is retried.
    fetch() never raises for transport problems, it returns a failed FetchOutcome.
    """

    def __init__(
        self,
        transport: HttpTransport,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self.timeout = timeout
        self._sleep = sleep

    async def fetch(
        self,
        url: str,
        headers: dict[str, str],
        retries: int = DEFAULT_RETRIES,
        delay_ms: int = DEFAULT_DELAY_MS,
        *,
        method: str = "GET",
        body: Optional[Any] = None,
    ) -> FetchOutcome:
        attempts = max(1, retries)
        last_error: Optional[str] = None
        elapsed_ms = 0.0

        for attempt in range(1, attempts + 1):
            # clock restarts on every attempt
            started = time.perf_counter()
            try:
                response = await self.transport.request(method, url, headers, body, self.timeout)
            except TransportError as exc:
                elapsed_ms = _elapsed_ms(started)
                last_error = str(exc)
                if attempt < attempts:
                    logger.warning(
                        "fetch attempt failed, retrying",
                        extra={"url": url, "attempt": attempt, "attempts": attempts, "error": last_error},
                    )
                    await self._sleep(delay_ms / 1000)
                continue

            elapsed_ms = _elapsed_ms(started)
            logger.debug(
                "fetch ok",
                extra={"url": url, "status": response.status, "attempt": attempt, "elapsed_ms": elapsed_ms},
            )
            return FetchOutcome(
                success=True,
                status=response.status,
                data=parse_body(response.text),
                error=None,
                elapsed_ms=elapsed_ms,
            )

        logger.error("fetch failed after retries", extra={"url": url, "attempts": attempts, "error": last_error})
        return FetchOutcome(success=False, status=None, data=None, error=last_error, elapsed_ms=elapsed_ms)
