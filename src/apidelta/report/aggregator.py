from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from zoneinfo import ZoneInfo

from apidelta.domain.models import ComparisonSummary, HeaderTemplate, JobResult, Report, ReportMeta

DEFAULT_TIMEZONE = "Asia/Kolkata"
DEFAULT_ENGINEER = "Anonymous User"


def report_timestamps(now: Optional[datetime] = None, timezone_name: str = DEFAULT_TIMEZONE) -> tuple[str, str]:
    """Returns (report_id, human timestamp), both rendered in the fixed report timezone."""
    moment = (now or datetime.now(timezone.utc)).astimezone(ZoneInfo(timezone_name))
    return moment.strftime("%Y-%m-%d_%H-%M-%S"), moment.strftime("%d-%m-%Y %H:%M:%S")


def merge_summaries(summaries: Sequence[ComparisonSummary]) -> ComparisonSummary:
    return ComparisonSummary(
        total_comparisons=sum(s.total_comparisons for s in summaries),
        successful=sum(s.successful for s in summaries),
        failures=sum(s.failures for s in summaries),
        endpoints_with_diffs=sum(s.endpoints_with_diffs for s in summaries),
        total_diffs=sum(s.total_diffs for s in summaries),
    )


def collect_meta(job_results: Sequence[JobResult]) -> ReportMeta:
    # dicts as ordered sets: first-seen order is stable across runs
    endpoints: dict[str, None] = {}
    ids: dict[str, None] = {}
    geos: dict[str, None] = {}

    for job in job_results:
        for record in job.records:
            endpoints[record.endpoint_a] = None
            endpoints[record.endpoint_b] = None
            if record.id_value:
                ids[str(record.id_value)] = None
            if record.geo:
                geos[record.geo] = None

    return ReportMeta(endpoints_run=list(endpoints), ids_used=list(ids), geo_used=list(geos))


def build_report(
    job_results: Sequence[JobResult],
    headers: dict[str, HeaderTemplate],
    *,
    test_engineer: Optional[str] = None,
    duration_ms: float = 0.0,
    options: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> Report:
    report_id, timestamp = report_timestamps(now, timezone_name)
    first = job_results[0] if job_results else None

    return Report(
        report_id=report_id,
        job_name=first.job_name if first else "API Comparison",
        platform=first.platform if first else "i",
        timestamp=timestamp,
        test_engineer=test_engineer or DEFAULT_ENGINEER,
        duration_ms=duration_ms,
        summary=merge_summaries([job.summary for job in job_results]),
        meta=collect_meta(job_results),
        headers_used=headers,
        options=dict(options or {}),
        endpoints=[view for job in job_results for view in job.endpoints],
        jobs=list(job_results),
    )
