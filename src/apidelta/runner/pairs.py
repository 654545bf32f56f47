from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from apidelta.domain.errors import ConfigurationError
from apidelta.domain.models import EndpointCatalogEntry, HeaderTemplate, IdValue, JobConfig

logger = logging.getLogger(__name__)

DEFAULT_GEO_HEADER = "cb-loc"

# "no substitution" sentinel for endpoints without an id dimension
NO_ID = IdValue()


@dataclass(frozen=True)
class SelfCompare:
    key: str


@dataclass(frozen=True)
class ExplicitPair:
    key_a: str
    key_b: str


@dataclass(frozen=True)
class LegacyList:
    # empty -> every endpoint eligible for the platform
    keys: tuple[str, ...] = ()


PairSpec = Union[SelfCompare, ExplicitPair, LegacyList]


@dataclass(frozen=True)
class EndpointPair:
    a: EndpointCatalogEntry
    b: EndpointCatalogEntry

    @property
    def key(self) -> str:
        return f"{self.a.key}_VS_{self.b.key}"

    @property
    def id_category(self) -> Optional[str]:
        return self.a.id_category or self.b.id_category


@dataclass
class PairResolution:
    pairs: list[EndpointPair] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


def pair_specs(job: JobConfig) -> list[PairSpec]:
    if job.endpoint_pairs:
        specs: list[PairSpec] = []
        for item in job.endpoint_pairs:
            if isinstance(item, str):
                specs.append(SelfCompare(item))
            else:
                specs.append(ExplicitPair(item.endpoint_a, item.endpoint_b))
        return specs
    return [LegacyList(tuple(job.endpoints_to_run))]


def find_endpoint(catalog: Iterable[EndpointCatalogEntry], key: str, platform: str) -> EndpointCatalogEntry:
    if not key:
        raise ConfigurationError("Missing endpoint key")

    entry = next((e for e in catalog if e.key == key), None)
    if entry is None:
        raise ConfigurationError(f"Endpoint not found with key: {key}")
    if not entry.supports(platform):
        available = ", ".join(sorted(entry.platforms)) or "none"
        raise ConfigurationError(
            f"Endpoint {key} does not support platform {platform} (available: {available})"
        )
    return entry


def resolve_pairs(
    specs: Iterable[PairSpec],
    catalog: list[EndpointCatalogEntry],
    platform: str,
) -> PairResolution:
    """Flatten pair specs into concrete EndpointPairs; unresolvable keys become warnings."""
    out = PairResolution()

    for spec in specs:
        if isinstance(spec, SelfCompare):
            try:
                entry = find_endpoint(catalog, spec.key, platform)
            except ConfigurationError as e:
                out.warn(f"Skipping endpoint {spec.key!r}: {e}")
                continue
            out.pairs.append(EndpointPair(entry, entry))

        elif isinstance(spec, ExplicitPair):
            try:
                a = find_endpoint(catalog, spec.key_a, platform)
                b = find_endpoint(catalog, spec.key_b, platform)
            except ConfigurationError as e:
                out.warn(f"Skipping endpoint pair {spec.key_a} <-> {spec.key_b}: {e}")
                continue
            out.pairs.append(EndpointPair(a, b))

        else:
            eligible = [e for e in catalog if e.supports(platform)]
            if spec.keys:
                wanted = set(spec.keys)
                found = {e.key for e in eligible}
                for key in spec.keys:
                    if key not in found:
                        out.warn(f"Skipping endpoint {key!r}: not found for platform {platform}")
                eligible = [e for e in eligible if e.key in wanted]
            out.pairs.extend(EndpointPair(e, e) for e in eligible)

    return out


def resolve_geos(template: HeaderTemplate, geo_header: str = DEFAULT_GEO_HEADER, quick: bool = False) -> list[Optional[str]]:
    value = template.get(geo_header)
    if isinstance(value, list):
        if not value:
            return [None]
        return list(value[:1]) if quick else list(value)
    return [value]


def resolve_ids(pair: EndpointPair, ids: dict[str, list[IdValue]], quick: bool = False) -> list[IdValue]:
    category = pair.id_category
    values = ids.get(category) if category else None
    if not values:
        return [NO_ID]

    resolved = [IdValue(category=category, value=v.value, name=v.name) for v in values]
    return resolved[:1] if quick else resolved


def headers_for_geo(template: HeaderTemplate, geo: Optional[str], geo_header: str = DEFAULT_GEO_HEADER) -> dict[str, str]:
    headers: dict[str, str] = {}
    for name, value in template.items():
        if name == geo_header:
            if geo is not None:
                headers[name] = geo
            continue
        headers[name] = ", ".join(value) if isinstance(value, list) else str(value)
    return headers
