"""
CLI ``lifecycle-spine queue``: action queue commands.
"""

from __future__ import annotations

import typer

from lifecycle_spine.cli.utils import console, open_service, output_dict, output_items
from lifecycle_spine.queue.models import QueueStatus

app = typer.Typer(no_args_is_help=True)

_COLUMNS = ["entry_id", "policy_id", "target_id", "status", "eligible", "attempt_count", "reason"]


@app.command("list")
def list_entries(
    status: QueueStatus | None = typer.Option(None, "--status", "-s", case_sensitive=False),
    policy: str | None = typer.Option(None, "--policy", "-p", help="Policy id or name"),
    target: str | None = typer.Option(None, "--target", "-t"),
    eligible: bool | None = typer.Option(None, "--eligible/--ineligible"),
    limit: int = typer.Option(100, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List queue entries with their decision reasons."""
    with open_service(database) as service:
        entries = service.queue_entries(status, policy, target, eligible, limit)
        output_items(entries, as_json=json_out, title="Action Queue", columns=_COLUMNS)


@app.command("requeue")
def requeue(
    entry_id: int = typer.Argument(..., help="FAILED queue entry id"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Give a FAILED entry a fresh PENDING entry."""
    with open_service(database) as service:
        entry = service.requeue(entry_id)
        output_dict(entry, as_json=json_out, title=f"Requeued as entry {entry.entry_id}")


@app.command("clear")
def clear(
    policy: str | None = typer.Option(None, "--policy", "-p", help="Policy id or name"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Delete PENDING entries."""
    with open_service(database) as service:
        removed = service.clear_queue(policy)
        console.print(f"Removed {removed} pending entr{'y' if removed == 1 else 'ies'}")


@app.command("recover")
def recover(
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Return RUNNING entries left by a crashed executor to PENDING."""
    with open_service(database) as service:
        recovered = service.recover_stale_running()
        console.print(f"Recovered {recovered} running entr{'y' if recovered == 1 else 'ies'}")
