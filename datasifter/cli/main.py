"""Main CLI entry point for datasifter."""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from datasifter import __version__
from datasifter.config import Settings, get_settings
from datasifter.exceptions import DataSifterError, get_exit_code
from datasifter.logging_config import get_logger, log_error, setup_logging

app = typer.Typer(
    name="datasifter",
    help="datasifter - load a CSV into a table, query it, export the result",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=False,
)

console = Console()
console_err = Console(stderr=True)
logger = get_logger(__name__)


class CLIState:
    """Global CLI state."""

    verbose: bool = False
    quiet: bool = False
    settings: Optional[Settings] = None


state = CLIState()


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"datasifter version: {__version__}")
        console.print(f"Python: {sys.version.split()[0]}")
        raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version information and exit",
        callback=version_callback,
        is_eager=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
) -> None:
    """
    datasifter - sift a CSV dataset with SQL

    Loads a delimited file into a database table, runs one SQL query
    against it, and exports the result to a new CSV file or the console.
    """
    state.verbose = verbose
    state.quiet = quiet

    if config:
        console_err.print(f"[yellow]Loading config from: {config}[/yellow]")

    state.settings = get_settings(config_path=config, reload=config is not None)

    if verbose:
        state.settings.log_level = "DEBUG"
    elif quiet:
        state.settings.log_level = "ERROR"

    setup_logging(state.settings)

    ctx.obj = state


def handle_error(error: Exception) -> None:
    """Handle CLI errors with user-friendly messages.

    Args:
        error: Exception to handle
    """
    raise typer.Exit(report_error(error))


def report_error(error: Exception) -> int:
    """Print a diagnostic for `error` and return the exit status."""
    if isinstance(error, DataSifterError):
        console_err.print(f"\n[red]Error:[/red] {error.message}")

        if state.verbose and error.context:
            console_err.print("\n[yellow]Context:[/yellow]")
            for key, value in error.context.items():
                console_err.print(f"  {key}: {value}")
    else:
        console_err.print(f"\n[red]Unexpected Error:[/red] {str(error)}")

        if state.verbose:
            import traceback

            console_err.print("\n[yellow]Traceback:[/yellow]")
            console_err.print(traceback.format_exc())

    return get_exit_code(error)


from datasifter.cli import config, sift  # noqa: E402

app.command(name="sift")(sift.sift)
app.add_typer(config.app, name="config", help="Configuration management")


def main_cli() -> None:
    """Entry point for CLI application with error handling."""
    try:
        app()
    except KeyboardInterrupt:
        console_err.print("\n[yellow]Operation cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        log_error(logger, e, "cli")
        sys.exit(report_error(e))


if __name__ == "__main__":
    main_cli()
