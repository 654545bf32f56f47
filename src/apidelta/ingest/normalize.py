from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from apidelta.domain.errors import ConfigurationError
from apidelta.domain.models import IgnorePattern, RunConfig

# "/pattern/flags" in ignorePaths means a regular expression
_REGEX_LITERAL = re.compile(r"^/(.+)/([imsx]*)$")
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


def _first(raw: dict, *keys: str, default: Any = None) -> Any:
    # first key present with a non-empty value; covers camelCase/snake_case/legacy aliases
    for k in keys:
        v = raw.get(k)
        if v is not None and v != "":
            return v
    return default


def parse_ignore_pattern(p: Any) -> IgnorePattern:
    if isinstance(p, re.Pattern):
        return p
    text = str(p)
    m = _REGEX_LITERAL.match(text)
    if not m:
        return text
    flags = 0
    for ch in m.group(2):
        flags |= _REGEX_FLAGS[ch]
    try:
        return re.compile(m.group(1), flags)
    except re.error as e:
        raise ConfigurationError(f"Invalid ignore pattern {text!r}: {e}") from e


def _platforms(raw: dict) -> list[str]:
    # legacy "platform": "i" and current "platforms": ["i", "a"] both land in one set
    out: list[str] = []
    many = raw.get("platforms")
    if isinstance(many, str):
        out.append(many)
    elif isinstance(many, Iterable):
        out.extend(str(p) for p in many if p)
    single = raw.get("platform")
    if isinstance(single, str) and single and single not in out:
        out.append(single)
    return out


def normalize_endpoint(raw: dict) -> dict:
    path = raw.get("path")
    path_a = _first(raw, "pathA", "path_a", default=path)
    path_b = _first(raw, "pathB", "path_b", default=path if path is not None else path_a)
    return {
        "key": raw.get("key"),
        "path_a": path_a,
        "path_b": path_b,
        "platforms": _platforms(raw),
        "id_category": _first(raw, "idCategory", "id_category"),
        "base_url_a": _first(raw, "baseUrlA", "base_url_a"),
        "base_url_b": _first(raw, "baseUrlB", "base_url_b"),
        "method": str(_first(raw, "method", default="GET")).upper(),
        "body": raw.get("body"),
    }


def normalize_job(raw: dict, index: int) -> dict:
    pairs: list[Any] = []
    for item in _first(raw, "endpointPairs", "endpoint_pairs", default=[]):
        if isinstance(item, str):
            pairs.append(item)
        elif isinstance(item, dict):
            a = _first(item, "endpointA", "endpoint_a")
            b = _first(item, "endpointB", "endpoint_b", default=a)
            pairs.append({"endpoint_a": a or "", "endpoint_b": b or ""})

    retry = _first(raw, "retryPolicy", "retry_policy", default={})
    return {
        "id": _first(raw, "id", default=f"job-{index + 1}"),
        "name": _first(raw, "name", default=f"Job {index + 1}"),
        "platform": raw.get("platform"),
        "ignore_paths": [parse_ignore_pattern(p) for p in _first(raw, "ignorePaths", "ignore_paths", default=[])],
        "retry_policy": {
            "retries": _first(retry, "retries", default=3),
            "delay_ms": _first(retry, "delayMs", "delay_ms", default=1000),
        },
        "quick_mode": bool(_first(raw, "quickMode", "quick_mode", default=False)),
        "base_url_a": _first(raw, "baseUrlA", "base_url_a", "baseA"),
        "base_url_b": _first(raw, "baseUrlB", "base_url_b", "baseB"),
        "endpoint_pairs": pairs,
        "endpoints_to_run": list(_first(raw, "endpointsToRun", "endpoints_to_run", default=[])),
    }


def normalize_headers(raw: Any) -> dict[str, dict[str, Any]]:
    out: dict[str, dict[str, Any]] = {}
    for platform, template in (raw or {}).items():
        if isinstance(template, list):
            # editor form: [{"key": ..., "value": ..., "enabled": bool}]
            out[platform] = {
                h["key"]: h.get("value", "")
                for h in template
                if isinstance(h, dict) and h.get("key") and h.get("enabled", True) is not False
            }
        else:
            out[platform] = dict(template or {})
    return out


def normalize_ids(raw: Any) -> dict[str, list[dict]]:
    if isinstance(raw, list):
        # editor form: [{"category": ..., "values": [...]}]
        raw = {item.get("category"): item.get("values", []) for item in raw if isinstance(item, dict)}

    out: dict[str, list[dict]] = {}
    for category, values in (raw or {}).items():
        kept: list[dict] = []
        for v in values or []:
            if isinstance(v, dict):
                if v.get("enabled") is False or v.get("value") is None:
                    continue
                kept.append({"category": category, "value": str(v["value"]), "name": v.get("name")})
            else:
                kept.append({"category": category, "value": str(v), "name": None})
        out[category] = kept
    return out


def normalize_run_config(raw: Any) -> RunConfig:
    """
    Convert a raw JSON config (any of the shapes the config editor has produced)
    into the canonical RunConfig the runner consumes.

    Raises ConfigurationError when the result does not validate.
    """
    if isinstance(raw, RunConfig):
        return raw
    if not isinstance(raw, dict):
        raise ConfigurationError("Run config must be a JSON object")

    # {"config": {...}} as posted by the web client
    if "config" in raw and isinstance(raw["config"], dict):
        raw = raw["config"]

    payload = {
        "endpoints": [normalize_endpoint(e) for e in raw.get("endpoints") or [] if isinstance(e, dict)],
        "jobs": [normalize_job(j, i) for i, j in enumerate(raw.get("jobs") or []) if isinstance(j, dict)],
        "headers": normalize_headers(raw.get("headers")),
        "ids": normalize_ids(raw.get("ids")),
    }
    try:
        return RunConfig.model_validate(payload)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid run config: {e}") from e


def load_run_config(path: Path, encoding: Optional[str] = "utf-8") -> RunConfig:
    try:
        raw = json.loads(path.read_text(encoding=encoding))
    except OSError as e:
        raise ConfigurationError(f"Cannot read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config {path} is not valid JSON: {e}") from e
    return normalize_run_config(raw)
