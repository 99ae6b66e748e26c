"""
CLI utility helpers: service construction, error mapping and output formatting.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from lifecycle_spine.core.errors import LifecycleError, NotFoundError, PolicyFileError, ValidationError
from lifecycle_spine.core.logging import configure_logging
from lifecycle_spine.core.settings import LifecycleSettings
from lifecycle_spine.service import LifecycleService

console = Console()
err_console = Console(stderr=True)

EXIT_ERROR = 1
EXIT_BAD_FILE = 2
EXIT_NOT_FOUND = 3


# ── Service helper ───────────────────────────────────────────────────────


def load_settings(database: str | None = None) -> LifecycleSettings:
    """Fresh settings from the environment, with an optional database override."""
    settings = LifecycleSettings()
    if database:
        settings = settings.model_copy(update={"database_path": Path(database)})
    return settings


@contextmanager
def open_service(database: str | None = None) -> Iterator[LifecycleService]:
    """Open a :class:`LifecycleService` for one command and map errors to exit codes."""
    settings = load_settings(database)
    configure_logging(settings.log_level, json_format=settings.log_json)
    with cli_errors():
        service = LifecycleService.from_settings(settings)
        try:
            yield service
        finally:
            service.close()


@contextmanager
def cli_errors() -> Iterator[None]:
    """Print lifecycle errors and exit with their code.

    Policy validation errors exit with the code of their kind (10–16),
    unreadable or malformed files with 2, unknown ids with 3.
    """
    try:
        yield
    except ValidationError as e:
        err_console.print(f"[bold red]Invalid policy[/bold red] ({e.kind.value}): {e.message}")
        raise typer.Exit(code=e.exit_code) from e
    except PolicyFileError as e:
        err_console.print(f"[bold red]Bad file[/bold red]: {e.message}")
        raise typer.Exit(code=EXIT_BAD_FILE) from e
    except NotFoundError as e:
        err_console.print(f"[bold red]Not found[/bold red]: {e.message}")
        raise typer.Exit(code=EXIT_NOT_FOUND) from e
    except LifecycleError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {e.message}")
        raise typer.Exit(code=EXIT_ERROR) from e


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_items(
    items: list[Any],
    *,
    as_json: bool = False,
    title: str = "",
    columns: list[str] | None = None,
) -> None:
    """Render a list of models as a Rich table (or JSON)."""
    rows = [_to_dict(i) for i in items]

    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return

    if not rows:
        console.print("[dim]No items.[/dim]")
        return

    cols = columns or list(rows[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in cols:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(_cell(row.get(c)) for c in cols))
    console.print(table)


def output_dict(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a single model as key-value pairs (or JSON)."""
    d = _to_dict(data)
    if as_json:
        console.print_json(json.dumps(d, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in d.items():
        if isinstance(v, list | dict):
            continue
        console.print(f"  [cyan]{k}[/cyan]: {_cell(v)}")


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, list | tuple):
        return ", ".join(str(v) for v in value)
    return str(value)
