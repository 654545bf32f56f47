from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from apidelta.config import Settings, get_settings
from apidelta.diffing.aggregate import compare_documents
from apidelta.domain.errors import ConfigurationError
from apidelta.domain.models import Report
from apidelta.ingest.normalize import load_run_config, parse_ignore_pattern
from apidelta.orchestrator.pipeline import run_comparison
from apidelta.store.sqlite_store import ReportSQLiteStore


app = typer.Typer(no_args_is_help=True, add_completion=False)

reports_app = typer.Typer(no_args_is_help=True)
app.add_typer(reports_app, name="reports")

console = Console()


def _setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _short(value: Any, width: int = 60) -> str:
    text = json.dumps(value, ensure_ascii=False, default=str)
    return text if len(text) <= width else text[: width - 1] + "…"


def _read_json(path_str: str) -> Any:
    path = Path(path_str).expanduser()
    if not path.is_file():
        raise typer.BadParameter(f"File does not exist: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"{path} is not valid JSON: {e}")


def _print_report_summary(report: Report) -> None:
    console.print(f"[bold green]apidelta[/bold green] report: [bold]{report.report_id}[/bold]")
    console.print(f"Engineer: {escape(report.test_engineer)}   Timestamp: {report.timestamp}")
    console.print(f"Duration: {report.duration_ms:.0f} ms")
    console.print("")

    table = Table(show_header=True, header_style="bold")
    table.add_column("JOB")
    table.add_column("PLATFORM", no_wrap=True)
    table.add_column("COMPARISONS", justify="right")
    table.add_column("OK", justify="right")
    table.add_column("FAILED", justify="right")
    table.add_column("WITH DIFFS", justify="right")
    table.add_column("DIFFS", justify="right")

    for job in report.jobs:
        s = job.summary
        table.add_row(
            escape(job.job_name),
            job.platform,
            str(s.total_comparisons),
            str(s.successful),
            str(s.failures),
            str(s.endpoints_with_diffs),
            str(s.total_diffs),
        )
    console.print(table)

    for job in report.jobs:
        for warning in job.warnings:
            console.print(f"[yellow]warning[/yellow] ({escape(job.job_name)}): {escape(warning)}")

    s = report.summary
    console.print("")
    console.print(
        f"Total: {s.total_comparisons} comparisons, {s.successful} ok, "
        f"{s.failures} failed, {s.endpoints_with_diffs} with diffs ({s.total_diffs} diffs)"
    )
    console.print(f"Geos: {', '.join(report.meta.geo_used) or '-'}   IDs: {', '.join(report.meta.ids_used) or '-'}")


@app.command()
def run(
    config: str = typer.Argument(..., help="Path to the run config (JSON)"),
    engineer: Optional[str] = typer.Option(None, help="Name recorded on the report"),
    out: Optional[str] = typer.Option(None, help="Write the report JSON to this path"),
    concurrency: Optional[int] = typer.Option(None, help="Max parallel comparisons per job"),
    quick: bool = typer.Option(False, help="Only the first geo and first id of every job"),
    store: bool = typer.Option(True, "--store/--no-store", help="Save the report to the local DB"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    settings = get_settings()
    _setup_logging(settings)

    config_path = Path(config).expanduser().resolve()
    if not config_path.is_file():
        raise typer.BadParameter(f"Config file does not exist: {config_path}")
    try:
        run_config = load_run_config(config_path)
    except ConfigurationError as e:
        raise typer.BadParameter(str(e))

    limit = concurrency or settings.concurrency
    if limit < 1:
        raise typer.BadParameter("concurrency must be >= 1")

    sink = ReportSQLiteStore(Path(settings.db_path).expanduser()) if store else None
    report = asyncio.run(
        run_comparison(
            run_config,
            test_engineer=engineer or settings.test_engineer,
            concurrency=limit,
            timeout=settings.request_timeout_seconds,
            geo_header=settings.geo_header,
            timezone_name=settings.report_timezone,
            quick=quick,
            options={"quick": quick, "concurrency": limit, "config": str(config_path)},
            sink=sink,
        )
    )

    if out:
        out_path = Path(out).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(report.model_dump_json(indent=2), encoding="utf-8")

    if format.lower() == "json":
        console.print_json(report.model_dump_json())
    else:
        _print_report_summary(report)
        if out:
            console.print(f"[bold green]Wrote[/bold green] report to: {out}")

    if report.summary.failures:
        raise typer.Exit(code=1)


@app.command()
def diff(
    left: str = typer.Argument(..., help="JSON file for side A"),
    right: str = typer.Argument(..., help="JSON file for side B"),
    ignore: Optional[list[str]] = typer.Option(None, "--ignore", help="Path (or /regex/) to ignore; repeatable"),
    order_sensitive: bool = typer.Option(False, help="Compare arrays position by position"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    a = _read_json(left)
    b = _read_json(right)
    try:
        patterns = [parse_ignore_pattern(p) for p in ignore or []]
    except ConfigurationError as e:
        raise typer.BadParameter(str(e))

    result = compare_documents(a, b, patterns, order_sensitive=order_sensitive)

    if format.lower() == "json":
        console.print_json(result.model_dump_json())
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("PATH")
        table.add_column("KIND", no_wrap=True)
        table.add_column("SEVERITY", no_wrap=True)
        table.add_column("A")
        table.add_column("B")
        for d in result.diffs:
            table.add_row(
                escape(d.path_str or "(root)"),
                d.kind,
                d.severity,
                escape(_short(d.lhs)) if d.kind != "added" else "",
                escape(_short(d.rhs)) if d.kind != "deleted" else "",
            )
        console.print(table)

        c = result.counts
        sev = result.summary.by_severity
        console.print(
            f"{c.total} differences (added={c.added}, deleted={c.deleted}, changed={c.changed}); "
            f"critical={sev.critical} high={sev.high} medium={sev.medium} low={sev.low}"
        )

    if not result.identical:
        raise typer.Exit(code=1)


@reports_app.command("list")
def reports_list(
    limit: int = typer.Option(20, help="Max rows to print"),
) -> None:
    settings = get_settings()
    store = ReportSQLiteStore(Path(settings.db_path).expanduser())
    rows = store.list_reports(limit=limit)

    console.print(f"[bold]DB:[/bold] {store.db_path}")
    console.print(f"[bold]Reports:[/bold] {len(rows)} (showing up to {limit})")

    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", no_wrap=True)
    table.add_column("TIMESTAMP", no_wrap=True)
    table.add_column("ENGINEER")
    table.add_column("JOBS", justify="right")
    table.add_column("COMPARISONS", justify="right")
    table.add_column("FAILED", justify="right")

    for r in rows:
        table.add_row(
            r["id"],
            r["timestamp"],
            escape(r["test_engineer"]),
            str(r["job_count"]),
            str(r["total_comparisons"]),
            str(r["failures"]),
        )
    console.print(table)


@reports_app.command("show")
def reports_show(
    report_id: str = typer.Argument(..., help="Report id, or 'current' for the latest"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    settings = get_settings()
    store = ReportSQLiteStore(Path(settings.db_path).expanduser())
    report = store.get(report_id)
    if report is None:
        console.print(f"[red]Report not found:[/red] {escape(report_id)}")
        raise typer.Exit(code=1)

    if format.lower() == "json":
        console.print_json(report.model_dump_json())
        return
    _print_report_summary(report)


@app.command()
def ping() -> None:
    console.print("pong")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
