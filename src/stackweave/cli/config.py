"""
stackweave config - Show the resolved configuration.
"""

from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from stackweave.config.loader import load_config
from stackweave.exceptions import StackweaveError

app = typer.Typer(name="config", help="Show Stackweave configuration", invoke_without_command=True)

console = Console()


@app.callback()
def config(
    ctx: typer.Context,
    env: str | None = typer.Option(None, help="Environment to resolve (dev, staging, prod)"),
    list_envs: bool = typer.Option(False, "--list", "-l", help="List available environments"),
    project_dir: Path = typer.Option(Path.cwd(), "--project-dir", "-d", help="Project directory"),
) -> None:
    """
    Show the configuration after merging config.{env}.yaml and substituting
    environment variables.
    """
    if ctx.invoked_subcommand is not None:
        return

    if list_envs:
        _list_environments(project_dir)
        return

    try:
        cfg = load_config(project_dir, env=env)
    except StackweaveError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e

    console.print(f"\n[bold]Configuration ({env or 'default'})[/bold]\n")
    content = yaml.safe_dump(cfg.to_dict(), sort_keys=False)
    console.print(Syntax(content, "yaml", theme="monokai", line_numbers=False))

    try:
        cfg.validate()
    except StackweaveError as e:
        console.print(f"[red]{escape(str(e))}[/red]", highlight=False)
        raise typer.Exit(1) from e


def _list_environments(project_dir: Path) -> None:
    config_files = sorted(project_dir.glob("config*.yaml"))
    if not config_files:
        console.print("[yellow]No configuration files found[/yellow]")
        return

    console.print("\n[bold]Available Environments:[/bold]\n")
    for config_file in config_files:
        env_name = "default" if config_file.name == "config.yaml" else config_file.stem.replace("config.", "")
        console.print(f"  [cyan]{env_name}[/cyan] ({config_file.name})")
    console.print("\n[dim]Use 'stackweave config --env <name>' to view details[/dim]")
