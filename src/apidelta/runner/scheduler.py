from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Optional

from apidelta.diffing.aggregate import filter_and_summarize
from apidelta.diffing.differ import diff
from apidelta.domain.errors import ApiDeltaError, ComparisonError
from apidelta.domain.models import (
    ComparisonRecord,
    ComparisonSummary,
    DiffResult,
    EndpointCatalogEntry,
    EndpointView,
    FetchOutcome,
    HeaderTemplate,
    IdValue,
    JobConfig,
    JobResult,
)
from apidelta.fetching.cache import ResponseCache, cache_key
from apidelta.fetching.fetcher import RetryingFetcher
from apidelta.fetching.transport import DEFAULT_TIMEOUT_SECONDS, HttpTransport
from apidelta.runner.pairs import (
    DEFAULT_GEO_HEADER,
    EndpointPair,
    headers_for_geo,
    pair_specs,
    resolve_geos,
    resolve_ids,
    resolve_pairs,
)
from apidelta.runner.pool import BoundedPool
from apidelta.runner.urls import build_url, substitute_id

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
INVALID_URL = "[INVALID]"


@dataclass(frozen=True)
class ComparisonCell:
    """One unit of work: (endpoint pair, geo, id). Generated, never persisted."""

    index: int
    pair: EndpointPair
    geo: Optional[str]
    id_value: IdValue
    headers: dict[str, str] = field(default_factory=dict)


def summarize_records(records: Sequence[ComparisonRecord]) -> ComparisonSummary:
    successful = sum(1 for r in records if r.succeeded)
    return ComparisonSummary(
        total_comparisons=len(records),
        successful=successful,
        failures=len(records) - successful,
        endpoints_with_diffs=sum(1 for r in records if r.has_diffs),
        total_diffs=sum(r.summary.total_differences for r in records),
    )


def to_endpoint_view(record: ComparisonRecord) -> EndpointView:
    return EndpointView(
        id=f"{record.endpoint_a}_VS_{record.endpoint_b}",
        name=f"{record.endpoint_a} vs {record.endpoint_b}",
        endpoint_a=record.endpoint_a,
        endpoint_b=record.endpoint_b,
        url_a=record.url_a,
        url_b=record.url_b,
        platform=record.platform,
        geo=record.geo,
        id_value=record.id_value,
        id_name=record.id_name,
        response_a=record.response_a,
        response_b=record.response_b,
        diffs=list(record.diffs),
        summary=record.summary,
        error=record.error,
        headers_used_a=dict(record.headers),
        headers_used_b=dict(record.headers),
    )


def compare_responses(job: JobConfig, a: Any, b: Any) -> DiffResult:
    try:
        return filter_and_summarize(diff(a, b), job.ignore_paths)
    except Exception as exc:
        raise ComparisonError(f"Error calculating diffs: {exc}") from exc


class FanoutScheduler:
    """
    Expands one job into geo x pair x id cells and runs them through a bounded pool.

    Every cell ends up as exactly one ComparisonRecord, in generation order.
    No cell failure escapes run_job().
    """

    def __init__(
        self,
        transport: HttpTransport,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        geo_header: str = DEFAULT_GEO_HEADER,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        pool_factory: Callable[[int], BoundedPool] = BoundedPool,
    ) -> None:
        self.concurrency = concurrency
        self.geo_header = geo_header
        self.fetcher = RetryingFetcher(transport, timeout=timeout, sleep=sleep)
        self._pool_factory = pool_factory

    def build_cells(
        self,
        job: JobConfig,
        headers: dict[str, HeaderTemplate],
        ids: dict[str, list[IdValue]],
        catalog: list[EndpointCatalogEntry],
    ) -> tuple[list[ComparisonCell], list[str]]:
        template = headers.get(job.platform, {})
        resolution = resolve_pairs(pair_specs(job), catalog, job.platform)
        if not resolution.pairs:
            resolution.warn(
                f"No valid endpoint pairs found for job {job.name!r}; check platform and endpoint configuration"
            )

        cells: list[ComparisonCell] = []
        for geo in resolve_geos(template, self.geo_header, job.quick_mode):
            geo_headers = headers_for_geo(template, geo, self.geo_header)
            for pair in resolution.pairs:
                for id_value in resolve_ids(pair, ids, job.quick_mode):
                    cells.append(ComparisonCell(len(cells), pair, geo, id_value, geo_headers))

        return cells, resolution.warnings

    async def run_job(
        self,
        job: JobConfig,
        headers: dict[str, HeaderTemplate],
        ids: dict[str, list[IdValue]],
        catalog: list[EndpointCatalogEntry],
    ) -> JobResult:
        cells, warnings = self.build_cells(job, headers, ids, catalog)
        logger.info(
            "job started",
            extra={"job": job.name, "platform": job.platform, "cells": len(cells), "concurrency": self.concurrency},
        )

        # fresh per job, never shared
        cache = ResponseCache()
        pool = self._pool_factory(self.concurrency)
        records = await pool.map([partial(self._run_cell_safely, job, cell, cache) for cell in cells])

        summary = summarize_records(records)
        logger.info(
            "job finished",
            extra={
                "job": job.name,
                "comparisons": summary.total_comparisons,
                "failures": summary.failures,
                "with_diffs": summary.endpoints_with_diffs,
                "cache_hits": cache.hits,
            },
        )

        return JobResult(
            job_id=job.id or "job-1",
            job_name=job.name,
            platform=job.platform,
            base_url_a=job.base_url_a or "",
            base_url_b=job.base_url_b or "",
            summary=summary,
            endpoints=[to_endpoint_view(r) for r in records],
            records=records,
            warnings=warnings,
            cache_hits=cache.hits,
        )

    # ----------------------------
    # cells
    # ----------------------------

    def _record(self, job: JobConfig, cell: ComparisonCell, **fields: Any) -> ComparisonRecord:
        return ComparisonRecord(
            job_id=job.id,
            job_name=job.name,
            platform=job.platform,
            geo=cell.geo,
            id_value=cell.id_value.value,
            id_name=cell.id_value.name,
            id_category=cell.id_value.category,
            endpoint_a=cell.pair.a.key,
            endpoint_b=cell.pair.b.key,
            headers=cell.headers,
            **fields,
        )

    async def _run_cell_safely(self, job: JobConfig, cell: ComparisonCell, cache: ResponseCache) -> ComparisonRecord:
        try:
            return await self._run_cell(job, cell, cache)
        except Exception as exc:
            logger.exception(
                "comparison cell failed",
                extra={"job": job.name, "cell": cell.index, "pair": cell.pair.key},
            )
            kind = exc.kind if isinstance(exc, ApiDeltaError) else "cell"
            return self._record(job, cell, error=str(exc) or type(exc).__name__, error_kind=kind)

    async def _run_cell(self, job: JobConfig, cell: ComparisonCell, cache: ResponseCache) -> ComparisonRecord:
        pair = cell.pair
        path_a = substitute_id(pair.a.path_a, cell.id_value)
        path_b = substitute_id(pair.b.path_b, cell.id_value)

        base_a = pair.a.base_url_a or job.base_url_a
        base_b = pair.b.base_url_b or job.base_url_b
        url_a = build_url(base_a, path_a)
        url_b = build_url(base_b, path_b)

        if not url_a or not url_b:
            if not base_a:
                logger.error("missing base URL A", extra={"job": job.name, "endpoint_a": pair.a.key})
            if not base_b:
                logger.error("missing base URL B", extra={"job": job.name, "endpoint_b": pair.b.key})
            logger.error(
                "skipping comparison due to invalid URLs",
                extra={"job": job.name, "cell": cell.index, "url_a": url_a, "url_b": url_b},
            )
            invalid = FetchOutcome(success=False, status=None, data=None, error="Invalid URL", elapsed_ms=0.0)
            return self._record(
                job,
                cell,
                url_a=url_a or INVALID_URL,
                url_b=url_b or INVALID_URL,
                response_a=invalid,
                response_b=invalid,
                error="Invalid URL",
                error_kind="configuration",
            )

        logger.debug("comparing", extra={"job": job.name, "pair": pair.key, "url_a": url_a, "url_b": url_b})

        retries = job.retry_policy.retries
        delay_ms = job.retry_policy.delay_ms
        response_a, response_b = await asyncio.gather(
            self._fetch_side(cache, pair.a, url_a, dict(cell.headers), retries, delay_ms),
            self._fetch_side(cache, pair.b, url_b, dict(cell.headers), retries, delay_ms),
        )

        fields: dict[str, Any] = {
            "url_a": url_a,
            "url_b": url_b,
            "response_a": response_a,
            "response_b": response_b,
        }
        if not (response_a.success and response_b.success):
            return self._record(job, cell, **fields)

        try:
            result = compare_responses(job, response_a.data, response_b.data)
        except ComparisonError as exc:
            logger.exception("diff engine failed", extra={"job": job.name, "cell": cell.index})
            return self._record(job, cell, error=str(exc), error_kind=exc.kind, **fields)

        return self._record(job, cell, diffs=tuple(result.diffs), summary=result.summary, **fields)

    async def _fetch_side(
        self,
        cache: ResponseCache,
        endpoint: EndpointCatalogEntry,
        url: str,
        headers: dict[str, str],
        retries: int,
        delay_ms: int,
    ) -> FetchOutcome:
        if endpoint.method != "GET":
            return await self.fetcher.fetch(
                url, headers, retries, delay_ms, method=endpoint.method, body=endpoint.body
            )

        key = cache_key(url, headers)
        cached = cache.get(key)
        if cached is not None:
            logger.debug("cache hit", extra={"url": url})
            return cached

        outcome = await self.fetcher.fetch(url, headers, retries, delay_ms)
        cache.put(key, outcome)
        return outcome
