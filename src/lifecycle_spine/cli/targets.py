"""
CLI ``lifecycle-spine targets``: target catalog commands.
"""

from __future__ import annotations

import typer

from lifecycle_spine.cli.utils import console, open_service, output_items
from lifecycle_spine.targets.loader import load_targets_file

app = typer.Typer(no_args_is_help=True)

_COLUMNS = ["target_id", "tier", "size_mb", "compression_profile", "read_only", "boundary", "tags"]


@app.command("register")
def register(
    path: str = typer.Argument(..., help="YAML list of targets"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Register or refresh targets from a file."""
    with open_service(database) as service:
        count = service.register_targets(load_targets_file(path))
        console.print(f"[green]✓[/green] {count} target(s) registered")


@app.command("list")
def list_targets(
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="owner.name"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List catalogued targets."""
    with open_service(database) as service:
        output_items(service.targets(namespace), as_json=json_out, title="Targets", columns=_COLUMNS)


@app.command("refresh-access")
def refresh_access(
    scope: str | None = typer.Option(None, "--scope", help="Selector limiting the targets"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Pull access signals and recompute temperatures."""
    with open_service(database) as service:
        count = service.refresh_access(scope)
        console.print(f"Refreshed {count} target(s)")
