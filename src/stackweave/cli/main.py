"""
Main CLI entry point.
"""

import typer

from stackweave import __version__
from stackweave.cli import config, plan, up


def version_callback(value: bool):
    """Callback to display version and exit."""
    if value:
        typer.echo(f"stackweave version {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="stackweave",
    help="Stackweave - Declarative resource graphs, provisioned in dependency order",
    add_completion=True,
)

app.add_typer(plan.app, name="plan")
app.add_typer(up.app, name="up")
app.add_typer(config.app, name="config")


@app.callback(invoke_without_command=True)
def entrypoint(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
):
    """
    Stackweave - Declarative resource graphs, provisioned in dependency order.

    Run 'stackweave <command> --help' for help on a specific command.
    """
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
