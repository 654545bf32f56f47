from __future__ import annotations

import re
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from apidelta.domain.errors import ErrorKind

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
DiffKind = Literal["added", "deleted", "changed", "type-changed"]
Severity = Literal["critical", "high", "medium", "low"]

PathSegment = Union[str, int]
IgnorePattern = Union[str, re.Pattern]

# header name -> value; the geo header may hold a list ("run once per value")
HeaderTemplate = dict[str, Union[str, list[str]]]


# ----------------------------
# Inputs (canonical form, see apidelta.ingest.normalize)
# ----------------------------


class EndpointCatalogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    path_a: str
    path_b: str
    platforms: frozenset[str] = frozenset()
    id_category: Optional[str] = None

    # per-endpoint override of the job's base URLs
    base_url_a: Optional[str] = None
    base_url_b: Optional[str] = None

    method: HttpMethod = "GET"
    body: Optional[Any] = None

    def supports(self, platform: str) -> bool:
        return platform in self.platforms


class RetryPolicy(BaseModel):
    retries: int = 3
    delay_ms: int = 1000


class EndpointPairRef(BaseModel):
    endpoint_a: str
    endpoint_b: str


class JobConfig(BaseModel):
    name: str = "Job 1"
    id: Optional[str] = None
    platform: str
    ignore_paths: list[IgnorePattern] = Field(default_factory=list)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    quick_mode: bool = False
    base_url_a: Optional[str] = None
    base_url_b: Optional[str] = None

    # a bare key means self-compare
    endpoint_pairs: list[Union[str, EndpointPairRef]] = Field(default_factory=list)
    # legacy: each key self-compared
    endpoints_to_run: list[str] = Field(default_factory=list)


class IdValue(BaseModel):
    category: Optional[str] = None
    value: Optional[str] = None
    name: Optional[str] = None


class RunConfig(BaseModel):
    endpoints: list[EndpointCatalogEntry] = Field(default_factory=list)
    jobs: list[JobConfig] = Field(default_factory=list)
    headers: dict[str, HeaderTemplate] = Field(default_factory=dict)
    ids: dict[str, list[IdValue]] = Field(default_factory=dict)


# ----------------------------
# Fetch + diff results
# ----------------------------


class FetchOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    status: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    elapsed_ms: float = 0.0


class Diff(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: tuple[PathSegment, ...]
    kind: DiffKind
    severity: Severity
    lhs: Any = None
    rhs: Any = None
    description: str = ""

    @property
    def path_str(self) -> str:
        return ".".join(str(p) for p in self.path)


class DiffCounts(BaseModel):
    added: int = 0
    deleted: int = 0
    changed: int = 0
    array: int = 0  # reserved for array-level diffs; never populated today
    total: int = 0


class SeverityCounts(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0


class DiffSummary(BaseModel):
    total_differences: int = 0
    by_type: DiffCounts = Field(default_factory=DiffCounts)
    by_severity: SeverityCounts = Field(default_factory=SeverityCounts)
    identical: bool = True


class DiffResult(BaseModel):
    diffs: list[Diff] = Field(default_factory=list)
    counts: DiffCounts = Field(default_factory=DiffCounts)
    summary: DiffSummary = Field(default_factory=DiffSummary)

    @property
    def identical(self) -> bool:
        return self.summary.identical


# ----------------------------
# Job + report outputs
# ----------------------------


class ComparisonRecord(BaseModel):
    """Outcome of one (endpoint pair, geo, id) cell. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    job_id: Optional[str] = None
    job_name: str
    platform: str
    geo: Optional[str] = None
    id_value: Optional[str] = None
    id_name: Optional[str] = None
    id_category: Optional[str] = None
    endpoint_a: str
    endpoint_b: str
    url_a: str = ""
    url_b: str = ""
    headers: dict[str, str] = Field(default_factory=dict)

    response_a: Optional[FetchOutcome] = None
    response_b: Optional[FetchOutcome] = None
    diffs: tuple[Diff, ...] = ()
    summary: DiffSummary = Field(default_factory=DiffSummary)

    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def succeeded(self) -> bool:
        return (
            self.error is None
            and self.response_a is not None
            and self.response_b is not None
            and self.response_a.success
            and self.response_b.success
        )

    @property
    def has_diffs(self) -> bool:
        return len(self.diffs) > 0


class EndpointView(BaseModel):
    """Flattened per-endpoint row consumed by diff viewers."""

    id: str
    name: str
    endpoint_a: str
    endpoint_b: str
    url_a: str
    url_b: str
    platform: str
    geo: Optional[str] = None
    id_value: Optional[str] = None
    id_name: Optional[str] = None
    response_a: Optional[FetchOutcome] = None
    response_b: Optional[FetchOutcome] = None
    diffs: list[Diff] = Field(default_factory=list)
    summary: DiffSummary = Field(default_factory=DiffSummary)
    error: Optional[str] = None
    headers_used_a: dict[str, str] = Field(default_factory=dict)
    headers_used_b: dict[str, str] = Field(default_factory=dict)


class ComparisonSummary(BaseModel):
    total_comparisons: int = 0
    successful: int = 0
    failures: int = 0
    endpoints_with_diffs: int = 0
    total_diffs: int = 0


class JobResult(BaseModel):
    job_id: str
    job_name: str
    platform: str
    base_url_a: str = ""
    base_url_b: str = ""
    summary: ComparisonSummary = Field(default_factory=ComparisonSummary)
    endpoints: list[EndpointView] = Field(default_factory=list)
    records: list[ComparisonRecord] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cache_hits: int = 0


class ReportMeta(BaseModel):
    endpoints_run: list[str] = Field(default_factory=list)
    ids_used: list[str] = Field(default_factory=list)
    geo_used: list[str] = Field(default_factory=list)


class Report(BaseModel):
    report_id: str
    job_name: str = "API Comparison"
    platform: str = "i"
    timestamp: str
    test_engineer: str = "Anonymous User"
    duration_ms: float = 0.0
    summary: ComparisonSummary = Field(default_factory=ComparisonSummary)
    meta: ReportMeta = Field(default_factory=ReportMeta)
    headers_used: dict[str, HeaderTemplate] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)
    endpoints: list[EndpointView] = Field(default_factory=list)
    jobs: list[JobResult] = Field(default_factory=list)
