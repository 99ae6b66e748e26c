"""
CLI ``lifecycle-spine log``: execution log and retention commands.
"""

from __future__ import annotations

import typer

from lifecycle_spine.cli.utils import console, open_service, output_items

app = typer.Typer(no_args_is_help=True)

_COLUMNS = [
    "log_id",
    "entry_id",
    "target_id",
    "action_type",
    "attempt",
    "outcome",
    "size_before_mb",
    "size_after_mb",
    "duration_ms",
    "error_detail",
]


@app.command("list")
def list_log(
    entry_id: int | None = typer.Option(None, "--entry", "-e"),
    target: str | None = typer.Option(None, "--target", "-t"),
    limit: int = typer.Option(100, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List execution attempts, oldest first."""
    with open_service(database) as service:
        entries = service.log_entries(entry_id=entry_id, target_id=target, limit=limit)
        output_items(entries, as_json=json_out, title="Execution Log", columns=_COLUMNS)


@app.command("purge")
def purge(
    days: int | None = typer.Option(None, "--days", help="Retention in days (default from settings)"),
    all_tables: bool = typer.Option(False, "--all", help="Also purge settled queue entries"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Delete execution log entries older than the retention period."""
    with open_service(database) as service:
        if all_tables:
            report = service.run_retention()
            for result in report.results:
                console.print(f"  {result.table}: {result.deleted} deleted")
            if not report.success:
                for table, error in report.errors.items():
                    console.print(f"  [red]{table}: {error}[/red]")
                raise typer.Exit(code=1)
            return
        deleted = service.purge_log(days)
        console.print(f"Purged {deleted} log entr{'y' if deleted == 1 else 'ies'}")
