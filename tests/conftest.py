from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

from apidelta.domain.errors import TransportError
from apidelta.fetching.transport import HttpResponse


class FakeTransport:
    """
    Scripted HttpTransport.

    `responses` maps url -> JSON-able body (or a str sent as-is).
    `failures` maps url -> number of leading calls that raise TransportError.
    `crash` is a set of urls that raise RuntimeError (a non-transport bug).
    """

    def __init__(
        self,
        responses: Optional[dict[str, Any]] = None,
        failures: Optional[dict[str, int]] = None,
        crash: Optional[set[str]] = None,
        delay: float = 0.0,
        status: int = 200,
    ) -> None:
        self.responses = dict(responses or {})
        self.failures = dict(failures or {})
        self.crash = set(crash or ())
        self.delay = delay
        self.status = status
        self.calls: list[tuple[str, str, dict[str, str], Any]] = []
        self.in_flight = 0
        self.peak_in_flight = 0

    def count(self, url: str) -> int:
        return sum(1 for _, u, _, _ in self.calls if u == url)

    async def request(self, method, url, headers, body=None, timeout=10.0) -> HttpResponse:
        self.calls.append((method, url, dict(headers), body))
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if url in self.crash:
                raise RuntimeError("boom")
            if self.failures.get(url, 0) > 0:
                self.failures[url] -= 1
                raise TransportError("connection refused")
            body_out = self.responses.get(url, {"ok": True})
            text = body_out if isinstance(body_out, str) else json.dumps(body_out)
            return HttpResponse(status=self.status, text=text)
        finally:
            self.in_flight -= 1


async def no_sleep(_seconds: float) -> None:
    return None
