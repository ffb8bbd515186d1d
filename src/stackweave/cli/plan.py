"""
stackweave plan - Show the resource graph without provisioning anything.
"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from stackweave.exceptions import StackweaveError
from stackweave.utils.logging import get_logger

logger = get_logger("stackweave.cli.plan")
console = Console()

app = typer.Typer(name="plan", help="Show the resource graph and execution order", invoke_without_command=True)


@app.callback()
def plan(
    ctx: typer.Context,
    targets: list[str] | None = typer.Argument(None, help="Resources to plan (default: all)"),
    env: str | None = typer.Option(None, help="Environment (dev, staging, prod)"),
    tree: bool = typer.Option(False, "--tree", "-t", help="Show the dependency tree instead of layers"),
    format: str = typer.Option("table", "--format", help="Output format: table, json"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """
    Declare the stack, validate it and print the execution plan.

    Examples:
        stackweave plan                     # Whole stack
        stackweave plan gke-nodepool        # A resource and its dependencies
        stackweave plan --tree              # Dependency tree
        stackweave plan --format json       # JSON output
    """
    if ctx.invoked_subcommand is not None:
        return

    from stackweave.core.initialization import initialize

    try:
        _config, stack, graph = initialize(project_dir, env=env)
        if targets:
            graph = graph.subgraph(targets)
    except StackweaveError as e:
        logger.error(f"Plan failed: {e}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    order = graph.topological_sort()
    layers = graph.get_layers()

    if format == "json":
        plan_data = {
            "stack": stack.name,
            "order": order,
            "resources": [
                {
                    "name": name,
                    "kind": graph.nodes[name].kind,
                    "layer": layers[name],
                    "depends_on": graph.get_dependencies(name),
                }
                for name in order
            ],
            "exports": list(stack.exports),
        }
        typer.echo(json.dumps(plan_data, indent=2))
        return

    table = Table(title=f"Plan: {stack.name}", title_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Resource", style="cyan")
    table.add_column("Kind")
    table.add_column("Layer", justify="right")
    table.add_column("Depends on", style="dim")
    for i, name in enumerate(order, 1):
        table.add_row(
            str(i),
            name,
            graph.nodes[name].kind,
            str(layers[name]),
            ", ".join(graph.get_dependencies(name)) or "-",
        )
    console.print(table)

    console.print()
    console.print(graph.visualize_tree() if tree else graph.visualize_layers(), markup=False, highlight=False)

    if stack.exports:
        console.print(f"\n[bold]Exports:[/bold] {', '.join(stack.exports)}")
    console.print(f"\n[dim]{len(order)} resources to provision[/dim]")
