from __future__ import annotations

import json
from typing import Any

MAX_DEPTH = 64


def value_type(value: Any) -> str:
    """
    JSON-level type name: null, boolean, number, string, array, object.

    bool is checked before number because bool is an int subclass.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def stable_dumps(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def score(a: Any, b: Any, _depth: int = 0) -> float:
    """
    Structural closeness of two JSON values in [0, 1].

    - arrays: Jaccard overlap of the serialized elements (order-insensitive, not recursive)
    - objects: sum of per-key scores over shared keys / size of the key union
    - anything else: exact match or nothing
    """
    if a is b:
        return 1.0
    if _depth > MAX_DEPTH:
        return 1.0 if stable_dumps(a) == stable_dumps(b) else 0.0

    ta, tb = value_type(a), value_type(b)
    if ta != tb:
        return 0.0
    if ta == "null":
        return 1.0

    if ta == "array":
        if not a and not b:
            return 1.0
        if not a or not b:
            return 0.0
        set_a = {stable_dumps(item) for item in a}
        set_b = {stable_dumps(item) for item in b}
        return len(set_a & set_b) / len(set_a | set_b)

    if ta == "object":
        keys = set(a) | set(b)
        if not keys:
            return 1.0
        acc = 0.0
        for key in keys:
            # keys on one side only contribute 0
            if key in a and key in b:
                acc += score(a[key], b[key], _depth + 1)
        return acc / len(keys)

    return 1.0 if a == b else 0.0
