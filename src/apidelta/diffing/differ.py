"""
Structural differencer for JSON values.

Arrays are order-insensitive by default and use a 3-phase greedy alignment:

1. each element of `a`, in order, takes the best-scoring unused element of `b`
   (>= 0.95 is the same item, >= 0.7 the same item with edits; both are recursed
   into unless the score is exactly 1.0)
2. unmatched elements of `a` are reported as deleted
3. elements of `b` never taken are reported as added

The alignment is first-seen greedy, not a global optimum.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from apidelta.diffing.similarity import MAX_DEPTH, score, stable_dumps, value_type
from apidelta.domain.models import Diff, DiffKind, PathSegment, Severity

EXACT_MATCH_THRESHOLD = 0.95
PARTIAL_MATCH_THRESHOLD = 0.7

# substring markers, checked in this order; first hit wins
_HIGH_MARKERS = ("id", "status", "state", "error", "success", "data.")
_MEDIUM_MARKERS = ("timestamp", "count", "total", "meta", "time", "date")


def join_path(path: Sequence[PathSegment]) -> str:
    return ".".join(str(p) for p in path)


def classify_severity(path: str, kind: DiffKind) -> Severity:
    if kind == "type-changed":
        return "critical"
    if any(marker in path for marker in _HIGH_MARKERS):
        return "high"
    if any(marker in path for marker in _MEDIUM_MARKERS):
        return "medium"
    return "low"


def find_best_match(item: Any, candidates: Sequence[Any], used: set[int]) -> Optional[tuple[int, float]]:
    """Return (index, score) of the best unused candidate, or None if nothing scores above 0."""
    best_index = -1
    best_score = 0.0
    for i, candidate in enumerate(candidates):
        if i in used:
            continue
        s = score(item, candidate)
        if s > best_score:
            best_index, best_score = i, s
    if best_index < 0:
        return None
    return best_index, best_score


def diff(
    a: Any,
    b: Any,
    path: Sequence[PathSegment] = (),
    *,
    order_sensitive: bool = False,
) -> list[Diff]:
    out: list[Diff] = []
    _walk(a, b, list(path), order_sensitive, out, 0)
    return out


def _emit(
    out: list[Diff],
    path: list[PathSegment],
    kind: DiffKind,
    description: str,
    *,
    lhs: Any = None,
    rhs: Any = None,
) -> None:
    out.append(
        Diff(
            path=tuple(path),
            kind=kind,
            severity=classify_severity(join_path(path), kind),
            lhs=lhs,
            rhs=rhs,
            description=description,
        )
    )


def _walk(a: Any, b: Any, path: list[PathSegment], order_sensitive: bool, out: list[Diff], depth: int) -> None:
    if depth > MAX_DEPTH:
        # equal subtrees past the bound are still equal
        if stable_dumps(a) != stable_dumps(b):
            _emit(out, path, "type-changed", "Maximum comparison depth exceeded", lhs=None, rhs=None)
        return

    ta, tb = value_type(a), value_type(b)

    # null against a container is a value change, not a type change;
    # array against object is a type change (no key-union diff across them)
    nullable_pair = "null" in (ta, tb) and {ta, tb} <= {"null", "object", "array"}
    if ta != tb and not nullable_pair:
        _emit(out, path, "type-changed", f"Type changed from {ta} to {tb}", lhs=a, rhs=b)
        return

    if ta == "array" and tb == "array":
        if order_sensitive:
            _walk_positional(a, b, path, out, depth)
        else:
            _walk_aligned(a, b, path, out, depth)
        return

    if ta == "object" and tb == "object":
        for key in a:
            if key not in b:
                _emit(out, path + [key], "deleted", f"Key '{key}' removed", lhs=a[key])
            else:
                _walk(a[key], b[key], path + [key], order_sensitive, out, depth + 1)
        for key in b:
            if key not in a:
                _emit(out, path + [key], "added", f"New key '{key}' added", rhs=b[key])
        return

    if a != b:
        _emit(out, path, "changed", f"Value changed from '{a}' to '{b}'", lhs=a, rhs=b)


def _walk_positional(a: Sequence[Any], b: Sequence[Any], path: list[PathSegment], out: list[Diff], depth: int) -> None:
    for i in range(max(len(a), len(b))):
        if i >= len(a):
            _emit(out, path + [i], "added", f"Extra array item at position {i} (order-sensitive)", rhs=b[i])
        elif i >= len(b):
            _emit(out, path + [i], "deleted", f"Missing array item at position {i} (order-sensitive)", lhs=a[i])
        else:
            _walk(a[i], b[i], path + [i], True, out, depth + 1)


def _walk_aligned(a: Sequence[Any], b: Sequence[Any], path: list[PathSegment], out: list[Diff], depth: int) -> None:
    used: set[int] = set()
    unmatched: list[int] = []

    # phase 1: match
    for i, item in enumerate(a):
        match = find_best_match(item, b, used)
        if match is None:
            unmatched.append(i)
            continue

        j, similarity = match
        if similarity >= EXACT_MATCH_THRESHOLD:
            used.add(j)
            if similarity < 1.0:
                _walk(item, b[j], path + [i], False, out, depth + 1)
        elif similarity >= PARTIAL_MATCH_THRESHOLD:
            used.add(j)
            _walk(item, b[j], path + [i], False, out, depth + 1)
        else:
            unmatched.append(i)

    # phase 2: left-only items
    for i in unmatched:
        _emit(
            out,
            path + [i],
            "deleted",
            "Item from side A not found in side B (no similar match found)",
            lhs=a[i],
        )

    # phase 3: right-only items
    for j, item in enumerate(b):
        if j not in used:
            _emit(out, path + [j], "added", "New item in side B not found in side A", rhs=item)
