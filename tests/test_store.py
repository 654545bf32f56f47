from pathlib import Path

from apidelta.domain.models import ComparisonSummary, Report
from apidelta.store.sink import CURRENT, InMemoryReportSink
from apidelta.store.sqlite_store import ReportSQLiteStore


def report(report_id: str, failures: int = 0) -> Report:
    return Report(
        report_id=report_id,
        timestamp="01-06-2024 05:30:00",
        test_engineer="sam",
        summary=ComparisonSummary(total_comparisons=3, successful=3 - failures, failures=failures),
    )


def test_sqlite_store_save_get_list(tmp_path: Path):
    store = ReportSQLiteStore(ReportSQLiteStore.db_path_for_dir(tmp_path))
    assert store.db_path.exists()
    assert store.get(CURRENT) is None

    assert store.save(report("2024-06-01_05-30-00")) == "2024-06-01_05-30-00"
    assert store.save(report("2024-06-01_05-31-00", failures=1)) == "2024-06-01_05-31-00"

    got = store.get("2024-06-01_05-30-00")
    assert got is not None
    assert got.test_engineer == "sam"
    assert got.summary.total_comparisons == 3

    assert store.get("nope") is None
    assert store.get(CURRENT).report_id == "2024-06-01_05-31-00"

    rows = store.list_reports()
    assert [r["id"] for r in rows] == ["2024-06-01_05-31-00", "2024-06-01_05-30-00"]
    assert rows[0]["failures"] == 1
    assert rows[0]["job_count"] == 0
    assert len(store.list_reports(limit=1)) == 1


def test_sqlite_store_suffixes_colliding_ids(tmp_path: Path):
    store = ReportSQLiteStore(tmp_path / "r.db")

    assert store.save(report("2024-06-01_05-30-00")) == "2024-06-01_05-30-00"
    assert store.save(report("2024-06-01_05-30-00")) == "2024-06-01_05-30-00-2"
    assert store.save(report("2024-06-01_05-30-00")) == "2024-06-01_05-30-00-3"

    again = store.get("2024-06-01_05-30-00-3")
    assert again is not None
    assert again.report_id == "2024-06-01_05-30-00-3"


def test_store_survives_reopen(tmp_path: Path):
    db = tmp_path / "r.db"
    ReportSQLiteStore(db).save(report("2024-06-01_05-30-00"))
    assert ReportSQLiteStore(db).get("2024-06-01_05-30-00") is not None


def test_in_memory_sink():
    sink = InMemoryReportSink()
    assert sink.get(CURRENT) is None
    sink.save(report("b"))
    sink.save(report("a"))

    assert sink.get(CURRENT).report_id == "a"
    assert [r["id"] for r in sink.list_reports()] == ["b", "a"]
