"""
stackweave up - Provision the stack.
"""

import json
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stackweave.core.run import NodeStatus, RunReport
from stackweave.exceptions import StackweaveError
from stackweave.utils.logging import get_logger

logger = get_logger("stackweave.cli.up")
console = Console()

app = typer.Typer(name="up", help="Provision the stack", invoke_without_command=True)

STATUS_STYLES = {
    NodeStatus.SUCCESS: "green",
    NodeStatus.FAILED: "red",
    NodeStatus.SKIPPED: "yellow",
}


@app.callback()
def up(
    ctx: typer.Context,
    targets: list[str] | None = typer.Argument(None, help="Resources to provision (default: all)"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    preview: bool = typer.Option(False, "--preview", help="Dry run with placeholder outputs"),
    output: str | None = typer.Option(None, "--output", "-o", help="Dump the report as json or yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """
    Declare the stack and provision it in dependency order.

    Exits with status 1 when any resource failed or was skipped.
    """
    if ctx.invoked_subcommand is not None:
        return

    if output not in (None, "json", "yaml"):
        typer.echo(f"Error: unsupported output format '{output}' (expected json or yaml)", err=True)
        raise typer.Exit(2)

    from stackweave.core.api import up as run_up

    try:
        # Called outside an event loop, so this blocks until the run is done
        report = run_up(project_dir, env, preview=preview, targets=targets or None, verbose=verbose)
    except StackweaveError as e:
        logger.error(f"Run failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    if output == "json":
        typer.echo(json.dumps(report.to_dict(), indent=2, default=str))
    elif output == "yaml":
        typer.echo(yaml.safe_dump(report.to_dict(), sort_keys=False))
    else:
        _print_report(report, preview)

    if not report.succeeded:
        raise typer.Exit(1)


def _print_report(report: RunReport, preview: bool) -> None:
    title = f"{'Preview' if preview else 'Run'}: {report.stack} ({report.status.value})"
    table = Table(title=title, title_style="bold")
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Duration", justify="right", style="dim")
    table.add_column("Detail")

    for outcome in report.outcomes:
        style = STATUS_STYLES.get(outcome.status, "white")
        detail = outcome.error or outcome.skipped_reason or ""
        duration = f"{outcome.duration:.2f}s" if outcome.duration is not None else "-"
        table.add_row(
            outcome.name,
            outcome.kind,
            f"[{style}]{outcome.status.value}[/{style}]",
            str(outcome.attempts),
            duration,
            escape(detail),
        )
    console.print(table)

    if report.exports or report.export_errors:
        console.print("\n[bold]Exports:[/bold]")
        for name, value in report.exports.items():
            text = str(value)
            if "\n" in text:
                text = text.splitlines()[0] + " ..."
            console.print(f"  [cyan]{name}[/cyan]: {escape(text)}", highlight=False)
        for name, error in report.export_errors.items():
            console.print(f"  [cyan]{name}[/cyan]: [red]unavailable[/red] ({escape(error)})")

    summary = report.summary()
    console.print(
        f"\n{summary['succeeded']}/{summary['total']} succeeded, "
        f"{summary['failed']} failed, {summary['skipped']} skipped"
    )
