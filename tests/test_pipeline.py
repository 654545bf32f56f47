from datetime import datetime

import pytest

from apidelta.domain.models import EndpointCatalogEntry, JobConfig, RetryPolicy, RunConfig
from apidelta.orchestrator.pipeline import run_comparison, with_default_job
from apidelta.store.sink import CURRENT, InMemoryReportSink

from conftest import FakeTransport


HOME = EndpointCatalogEntry(key="home", path_a="https://a.example.com/home", path_b="https://b.example.com/home", platforms=frozenset({"i"}))
NEWS = EndpointCatalogEntry(key="news", path_a="https://a.example.com/news", path_b="https://b.example.com/news", platforms=frozenset({"i"}))


def test_default_job_is_synthesized_for_catalog_only_config():
    config = with_default_job(RunConfig(endpoints=[HOME, NEWS]))
    assert len(config.jobs) == 1
    job = config.jobs[0]
    assert job.name == "API Comparison"
    assert job.platform == "i"
    assert job.endpoints_to_run == ["home", "news"]

    assert with_default_job(RunConfig()).jobs == []


@pytest.mark.asyncio
async def test_run_comparison_merges_jobs_and_saves():
    transport = FakeTransport(
        responses={
            "https://a.example.com/home": {"title": "a"},
            "https://b.example.com/home": {"title": "b"},
        }
    )
    jobs = [
        JobConfig(id="j1", name="home", platform="i", endpoint_pairs=["home"], retry_policy=RetryPolicy(retries=1)),
        JobConfig(id="j2", name="news", platform="i", endpoint_pairs=["news"], retry_policy=RetryPolicy(retries=1)),
    ]
    sink = InMemoryReportSink()

    report = await run_comparison(
        RunConfig(endpoints=[HOME, NEWS], jobs=jobs),
        test_engineer="sam",
        transport=transport,
        sink=sink,
    )

    assert [j.job_id for j in report.jobs] == ["j1", "j2"]
    assert report.summary.total_comparisons == 2
    assert report.summary.successful == 2
    assert report.summary.endpoints_with_diffs == 1
    assert report.summary.total_diffs == 1
    assert report.meta.endpoints_run == ["home", "news"]
    assert report.test_engineer == "sam"
    assert len(report.endpoints) == 2
    datetime.strptime(report.timestamp, "%d-%m-%Y %H:%M:%S")
    assert sink.get(CURRENT).report_id == report.report_id


@pytest.mark.asyncio
async def test_quick_flag_forces_quick_mode():
    transport = FakeTransport()
    config = RunConfig(
        endpoints=[HOME],
        jobs=[JobConfig(platform="i", endpoint_pairs=["home"], retry_policy=RetryPolicy(retries=1))],
        headers={"i": {"cb-loc": ["IN", "US", "GB"]}},
    )

    report = await run_comparison(config, transport=transport, quick=True)

    assert report.summary.total_comparisons == 1
    assert report.meta.geo_used == ["IN"]


@pytest.mark.asyncio
async def test_empty_config_yields_empty_report():
    report = await run_comparison(RunConfig(), transport=FakeTransport())
    assert report.jobs == []
    assert report.summary.total_comparisons == 0
    assert report.test_engineer == "Anonymous User"


class BrokenSink(InMemoryReportSink):
    def save(self, report):
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_sink_failure_does_not_lose_report():
    report = await run_comparison(RunConfig(endpoints=[HOME]), transport=FakeTransport(), sink=BrokenSink())
    assert report.summary.total_comparisons == 1
    assert report.job_name == "API Comparison"
