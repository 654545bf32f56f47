from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    log_level: str
    concurrency: int
    request_timeout_seconds: float
    geo_header: str
    report_timezone: str
    db_path: str
    test_engineer: str


def get_settings() -> Settings:
    return Settings(
        log_level=os.getenv("APIDELTA_LOG_LEVEL", "INFO"),
        concurrency=int(os.getenv("APIDELTA_CONCURRENCY", "5")),
        request_timeout_seconds=float(os.getenv("APIDELTA_REQUEST_TIMEOUT_SECONDS", "10")),
        geo_header=os.getenv("APIDELTA_GEO_HEADER", "cb-loc"),
        report_timezone=os.getenv("APIDELTA_REPORT_TIMEZONE", "Asia/Kolkata"),
        db_path=os.getenv("APIDELTA_DB_PATH", ".apidelta/reports.db"),
        test_engineer=os.getenv("APIDELTA_TEST_ENGINEER", "Anonymous User"),
    )
