from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Optional

from apidelta.domain.models import Report
from apidelta.store.sink import CURRENT


def _now_ts() -> int:
    return int(time.time())


class ReportSQLiteStore:
    """SQLite-backed ReportSink.

    One row per report; the full report is kept as JSON in `payload`, the
    listing columns are denormalized so `reports list` never parses payloads.
    """

    SCHEMA_VERSION = "1.0"

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @staticmethod
    def db_path_for_dir(root: Path) -> Path:
        return root / ".apidelta" / "reports.db"

    # ----------------------------
    # Connection / schema
    # ----------------------------

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.db_path))
        con.row_factory = sqlite3.Row
        return con

    def _init_db(self) -> None:
        with self._connect() as con:
            con.execute("PRAGMA journal_mode=WAL;")

            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS reports (
                    id TEXT PRIMARY KEY,
                    timestamp TEXT NOT NULL,
                    test_engineer TEXT NOT NULL,
                    job_count INTEGER NOT NULL,
                    total_comparisons INTEGER NOT NULL,
                    failures INTEGER NOT NULL,
                    created_at INTEGER NOT NULL,
                    payload TEXT NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_reports_created ON reports(created_at);")

            if self._get_meta(con, "schema_version") is None:
                self._set_meta(con, "schema_version", self.SCHEMA_VERSION)

    # ----------------------------
    # ReportSink
    # ----------------------------

    def save(self, report: Report) -> str:
        """Insert the report; a second report in the same second gets a -2, -3... suffix."""
        with self._connect() as con:
            report_id = self._free_id(con, report.report_id)
            if report_id != report.report_id:
                report = report.model_copy(update={"report_id": report_id})

            con.execute(
                """
                INSERT INTO reports(
                    id, timestamp, test_engineer, job_count,
                    total_comparisons, failures, created_at, payload
                )
                VALUES(?,?,?,?,?,?,?,?)
                """,
                (
                    report_id,
                    report.timestamp,
                    report.test_engineer,
                    len(report.jobs),
                    report.summary.total_comparisons,
                    report.summary.failures,
                    _now_ts(),
                    report.model_dump_json(),
                ),
            )
        return report_id

    def get(self, report_id: str) -> Optional[Report]:
        with self._connect() as con:
            if report_id == CURRENT:
                row = con.execute(
                    "SELECT payload FROM reports ORDER BY created_at DESC, id DESC LIMIT 1"
                ).fetchone()
            else:
                row = con.execute("SELECT payload FROM reports WHERE id=?", (report_id,)).fetchone()
            if not row:
                return None
            return Report.model_validate_json(row["payload"])

    def list_reports(self, limit: int = 50) -> list[dict]:
        with self._connect() as con:
            rows = con.execute(
                """
                SELECT id, timestamp, test_engineer, job_count, total_comparisons, failures
                FROM reports
                ORDER BY id DESC
                LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [dict(r) for r in rows]

    # ----------------------------
    # internal helpers
    # ----------------------------

    def _free_id(self, con: sqlite3.Connection, report_id: str) -> str:
        candidate = report_id
        n = 1
        while con.execute("SELECT 1 FROM reports WHERE id=?", (candidate,)).fetchone():
            n += 1
            candidate = f"{report_id}-{n}"
        return candidate

    def _get_meta(self, con: sqlite3.Connection, key: str) -> Optional[str]:
        row = con.execute("SELECT value FROM meta WHERE key=?", (key,)).fetchone()
        return row[0] if row else None

    def _set_meta(self, con: sqlite3.Connection, key: str, value: str) -> None:
        con.execute(
            """
            INSERT INTO meta(key, value) VALUES(?, ?)
            ON CONFLICT(key) DO UPDATE SET value=excluded.value
            """,
            (key, value),
        )
