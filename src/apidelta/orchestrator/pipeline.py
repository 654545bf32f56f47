from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional

from apidelta.domain.models import JobConfig, Report, RetryPolicy, RunConfig
from apidelta.fetching.transport import DEFAULT_TIMEOUT_SECONDS, AiohttpTransport, HttpTransport
from apidelta.report.aggregator import DEFAULT_TIMEZONE, build_report
from apidelta.runner.pairs import DEFAULT_GEO_HEADER
from apidelta.runner.scheduler import DEFAULT_CONCURRENCY, FanoutScheduler
from apidelta.store.sink import ReportSink

logger = logging.getLogger(__name__)

DEFAULT_JOB_NAME = "API Comparison"
DEFAULT_PLATFORM = "i"


def with_default_job(config: RunConfig) -> RunConfig:
    """A config with endpoints but no jobs gets one job that self-compares every endpoint."""
    if config.jobs or not config.endpoints:
        return config

    keys = [e.key for e in config.endpoints]
    job = JobConfig(
        id="job-1",
        name=DEFAULT_JOB_NAME,
        platform=DEFAULT_PLATFORM,
        retry_policy=RetryPolicy(retries=3, delay_ms=1000),
        endpoints_to_run=keys,
    )
    logger.info("created default job", extra={"endpoints": len(keys)})
    return config.model_copy(update={"jobs": [job]})


async def run_comparison(
    config: RunConfig,
    *,
    test_engineer: Optional[str] = None,
    transport: Optional[HttpTransport] = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    geo_header: str = DEFAULT_GEO_HEADER,
    timezone_name: str = DEFAULT_TIMEZONE,
    quick: bool = False,
    options: Optional[dict[str, Any]] = None,
    sink: Optional[ReportSink] = None,
) -> Report:
    """
    Run every job of a config concurrently and merge the results into one Report.

    Each job gets its own worker pool and response cache; there is no limiter
    shared across jobs. Never raises for per-comparison failures.
    """
    config = with_default_job(config)
    jobs = config.jobs
    if quick:
        jobs = [job.model_copy(update={"quick_mode": True}) for job in jobs]
    if not jobs:
        logger.warning("no jobs to run")

    owned: Optional[AiohttpTransport] = None
    if transport is None:
        owned = AiohttpTransport()
        transport = owned

    scheduler = FanoutScheduler(transport, concurrency=concurrency, timeout=timeout, geo_header=geo_header)
    logger.info("comparison started", extra={"jobs": len(jobs), "engineer": test_engineer})

    started = time.perf_counter()
    try:
        job_results = await asyncio.gather(
            *(scheduler.run_job(job, config.headers, config.ids, config.endpoints) for job in jobs)
        )
    finally:
        if owned is not None:
            await owned.close()
    duration_ms = round((time.perf_counter() - started) * 1000, 2)

    report = build_report(
        job_results,
        config.headers,
        test_engineer=test_engineer,
        duration_ms=duration_ms,
        options=options,
        timezone_name=timezone_name,
    )

    if sink is not None:
        try:
            saved_id = sink.save(report)
            if saved_id != report.report_id:
                report = report.model_copy(update={"report_id": saved_id})
            logger.info("report saved", extra={"report_id": saved_id})
        except Exception:
            # persistence is best-effort; the in-memory report is still returned
            logger.exception("failed to save report", extra={"report_id": report.report_id})

    return report
