"""
CLI ``lifecycle-spine policy``: policy registry commands.
"""

from __future__ import annotations

import typer

from lifecycle_spine.cli.utils import console, open_service, output_dict, output_items
from lifecycle_spine.policy.loader import load_policy_file

app = typer.Typer(no_args_is_help=True)

_COLUMNS = ["policy_id", "name", "selector", "category", "action_type", "priority", "enabled"]


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="YAML policy file"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Validate every policy in a file without registering it."""
    with open_service(database) as service:
        policies = load_policy_file(path)
        for policy in policies:
            service.validate_policy(policy)
        console.print(f"[green]✓[/green] {len(policies)} policy(ies) valid in {path}")


@app.command("register")
def register(
    path: str = typer.Argument(..., help="YAML policy file"),
    actor: str | None = typer.Option(None, "--actor", help="Recorded as created_by"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Register every policy in a file."""
    with open_service(database) as service:
        registered = [service.register_policy(p, actor) for p in load_policy_file(path)]
        output_items(registered, as_json=json_out, title="Registered", columns=_COLUMNS)


@app.command("list")
def list_policies(
    enabled_only: bool = typer.Option(False, "--enabled", help="Only enabled policies"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List policies in execution order."""
    with open_service(database) as service:
        output_items(service.policies(enabled_only), as_json=json_out, title="Policies", columns=_COLUMNS)


@app.command("show")
def show(
    policy: str = typer.Argument(..., help="Policy id or name"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one policy and its audit trail."""
    with open_service(database) as service:
        found = service.registry.resolve(policy)
        output_dict(found, as_json=json_out, title=found.name)
        if not json_out:
            for record in service.policy_audit(found.policy_id):
                console.print(
                    f"  [dim]{record.recorded_at:%Y-%m-%d %H:%M} {record.operation.value}"
                    f" by {record.actor or '-'}[/dim]"
                )


@app.command("enable")
def enable(
    policy: str = typer.Argument(..., help="Policy id or name"),
    actor: str | None = typer.Option(None, "--actor"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Enable a policy."""
    with open_service(database) as service:
        updated = service.enable_policy(policy, actor)
        console.print(f"[green]✓[/green] Policy {updated.policy_id} ({updated.name}) enabled")


@app.command("disable")
def disable(
    policy: str = typer.Argument(..., help="Policy id or name"),
    actor: str | None = typer.Option(None, "--actor"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Disable a policy. Its queue entries stay but are no longer dispatched."""
    with open_service(database) as service:
        updated = service.disable_policy(policy, actor)
        console.print(f"[yellow]○[/yellow] Policy {updated.policy_id} ({updated.name}) disabled")
