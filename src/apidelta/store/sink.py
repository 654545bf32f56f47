from __future__ import annotations

from typing import Optional, Protocol

from apidelta.domain.models import Report

CURRENT = "current"


class ReportSink(Protocol):
    def save(self, report: Report) -> str: ...

    def get(self, report_id: str) -> Optional[Report]: ...

    def list_reports(self, limit: int = 50) -> list[dict]: ...


def report_listing(report: Report) -> dict:
    return {
        "id": report.report_id,
        "timestamp": report.timestamp,
        "test_engineer": report.test_engineer,
        "job_count": len(report.jobs),
        "total_comparisons": report.summary.total_comparisons,
        "failures": report.summary.failures,
    }


class InMemoryReportSink:
    """Process-local sink; `get("current")` is the most recently saved report."""

    def __init__(self) -> None:
        self._reports: dict[str, Report] = {}
        self._latest: Optional[str] = None

    def save(self, report: Report) -> str:
        self._reports[report.report_id] = report
        self._latest = report.report_id
        return report.report_id

    def get(self, report_id: str) -> Optional[Report]:
        if report_id == CURRENT:
            if self._latest is None:
                return None
            report_id = self._latest
        return self._reports.get(report_id)

    def list_reports(self, limit: int = 50) -> list[dict]:
        ids = sorted(self._reports, reverse=True)[:limit]
        return [report_listing(self._reports[i]) for i in ids]
