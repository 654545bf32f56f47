from __future__ import annotations

import re
from typing import Any, Iterable, Sequence

from apidelta.diffing.differ import diff
from apidelta.domain.models import Diff, DiffCounts, DiffResult, DiffSummary, IgnorePattern, SeverityCounts

# Diff.kind -> DiffCounts bucket
_KIND_BUCKET = {
    "added": "added",
    "deleted": "deleted",
    "changed": "changed",
    "type-changed": "changed",
}


def is_ignored(path: str, ignore_paths: Iterable[IgnorePattern]) -> bool:
    for pattern in ignore_paths:
        if isinstance(pattern, re.Pattern):
            if pattern.search(path):
                return True
        elif path == pattern or path.startswith(pattern + "."):
            return True
    return False


def summarize(diffs: Sequence[Diff]) -> tuple[DiffCounts, DiffSummary]:
    counts = DiffCounts()
    severities = SeverityCounts()

    for d in diffs:
        bucket = _KIND_BUCKET[d.kind]
        setattr(counts, bucket, getattr(counts, bucket) + 1)
        setattr(severities, d.severity, getattr(severities, d.severity) + 1)

    counts.total = counts.added + counts.deleted + counts.changed + counts.array
    summary = DiffSummary(
        total_differences=counts.total,
        by_type=counts,
        by_severity=severities,
        identical=counts.total == 0,
    )
    return counts, summary


def filter_and_summarize(diffs: Iterable[Diff], ignore_paths: Sequence[IgnorePattern] = ()) -> DiffResult:
    kept = [d for d in diffs if not is_ignored(d.path_str, ignore_paths)]
    counts, summary = summarize(kept)
    return DiffResult(diffs=kept, counts=counts, summary=summary)


def compare_documents(
    a: Any,
    b: Any,
    ignore_paths: Sequence[IgnorePattern] = (),
    *,
    order_sensitive: bool = False,
) -> DiffResult:
    """Diff two already-parsed JSON documents and summarize what survives the ignore list."""
    return filter_and_summarize(diff(a, b, order_sensitive=order_sensitive), ignore_paths)
