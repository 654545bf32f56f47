from __future__ import annotations

import json
from typing import Any, Optional

from apidelta.domain.models import FetchOutcome


def cache_key(url: str, headers: dict[str, Any]) -> str:
    return f"{url}|{json.dumps(headers, sort_keys=True, separators=(',', ':'))}"


class ResponseCache:
    """
    Per-job memo of (url, headers) -> successful response.

    Check-then-insert is not atomic: two cells racing on the same key may both
    miss and both fetch. The second put overwrites the first.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[Any, Optional[int]]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[FetchOutcome]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        data, status = entry
        # elapsed_ms=0 marks a cache hit
        return FetchOutcome(success=True, status=status, data=data, error=None, elapsed_ms=0.0)

    def put(self, key: str, outcome: FetchOutcome) -> None:
        if not outcome.success:
            return
        self._entries[key] = (outcome.data, outcome.status)
