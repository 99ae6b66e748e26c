"""
Root Typer application for the lifecycle-spine CLI.

The scheduling commands (``evaluate``, ``execute``, ``explain``,
``failures``) live here; registry, queue, catalog and log management are
sub-apps.
"""

from __future__ import annotations

import typer
from typer import Typer

from lifecycle_spine.cli.utils import console, open_service, output_dict, output_items

app = Typer(
    name="lifecycle-spine",
    help="lifecycle-spine: policy-driven lifecycle orchestration for partitioned data.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("lifecycle-spine")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"lifecycle-spine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """lifecycle-spine CLI: policies, evaluation, execution and audit."""


# ── Scheduling commands ──────────────────────────────────────────────────


@app.command("evaluate")
def evaluate(
    policy: str | None = typer.Option(None, "--policy", "-p", help="Evaluate one policy (id or name)"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Evaluate one owner.name"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Evaluate policies against targets and refresh the action queue."""
    if policy and namespace:
        raise typer.BadParameter("use --policy or --namespace, not both")
    with open_service(database) as service:
        if policy:
            report = service.evaluate_policy(policy)
        elif namespace:
            report = service.evaluate_namespace(namespace)
        else:
            report = service.evaluate()
        output_dict(report, as_json=json_out, title="Evaluation")


@app.command("execute")
def execute(
    max_ops: int | None = typer.Option(None, "--max-ops", "-m", min=1, help="Operations this cycle"),
    policy: str | None = typer.Option(None, "--policy", "-p", help="Only this policy's entries"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run one execution cycle over dispatchable queue entries."""
    with open_service(database) as service:
        report = service.execute(max_operations=max_ops, policy_ref=policy)
        if json_out:
            output_dict(report, as_json=True)
            return
        if report.gate_closed and report.dispatched == 0:
            console.print("[yellow]Execution window is closed; nothing dispatched[/yellow]")
        output_dict(report, title="Execution")
        if report.entries:
            output_items(report.entries, columns=["entry_id", "target_id", "outcome", "status"])


@app.command("explain")
def explain(
    policy: str = typer.Argument(..., help="Policy id or name"),
    target: str = typer.Argument(..., help="Target id (owner.name:subobject)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Why is (or isn't) a target eligible under a policy?"""
    with open_service(database) as service:
        explanation = service.explain(policy, target)
        if json_out:
            output_dict(explanation, as_json=True)
            return
        verdict = "[green]eligible[/green]" if explanation.eligible else "[red]not eligible[/red]"
        console.print(f"{explanation.target_id} under {explanation.policy_name}: {verdict}")
        console.print(f"  reason: {explanation.reason}")
        for check in explanation.checks:
            mark = "✓" if check.satisfied else "✗"
            console.print(f"  {mark} {check.description}")
        if explanation.entry is not None:
            console.print(f"  queue entry {explanation.entry.entry_id}: {explanation.entry.status.value}")
        for note in explanation.notes:
            console.print(f"  [dim]note: {note}[/dim]")


@app.command("failures")
def failures(
    hours: int | None = typer.Option(None, "--hours", min=1, help="Window (default from settings)"),
    threshold: int | None = typer.Option(None, "--threshold", help="Exit 1 when the count reaches this"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Count failed execution attempts in a recent window."""
    with open_service(database) as service:
        count = service.recent_failure_count(hours)
        console.print(str(count))
    if threshold is not None and count >= threshold:
        raise typer.Exit(code=1)


# ── Sub-command registration ─────────────────────────────────────────────

from lifecycle_spine.cli.log import app as log_app  # noqa: E402
from lifecycle_spine.cli.policy import app as policy_app  # noqa: E402
from lifecycle_spine.cli.queue import app as queue_app  # noqa: E402
from lifecycle_spine.cli.targets import app as targets_app  # noqa: E402

app.add_typer(policy_app, name="policy", help="Policy registry.")
app.add_typer(queue_app, name="queue", help="Action queue.")
app.add_typer(targets_app, name="targets", help="Target catalog and access tracking.")
app.add_typer(log_app, name="log", help="Execution log and retention.")
