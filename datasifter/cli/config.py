"""Configuration management CLI commands."""

import json
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from datasifter.cli.output import print_error, print_info, print_panel, print_success
from datasifter.config import default_config_path, get_settings, settings_to_dict, write_default_config
from datasifter.exceptions import DataSifterError
from datasifter.logging_config import get_logger, redact_url

app = typer.Typer(help="Configuration management")
console = Console()
logger = get_logger(__name__)

SECTIONS = ["database", "ingestion", "export", "logging"]


@app.command("show")
def show_config(
    section: Optional[str] = typer.Option(
        None,
        "--section",
        "-s",
        help="Show specific section: database, ingestion, export, logging",
    ),
    format: str = typer.Option(
        "table",
        "--format",
        "-f",
        help="Output format: table, yaml, json",
    ),
) -> None:
    """
    Show current configuration.

    Displays all datasifter settings or a specific section. Credentials in
    the database URL are masked.
    """
    if section and section not in SECTIONS:
        print_error(f"Unknown section: {section}")
        print_info(f"Available sections: {', '.join(SECTIONS)}")
        raise typer.Exit(1)

    try:
        config_dict = settings_to_dict(get_settings())
    except Exception as e:
        logger.exception("Failed to load configuration")
        print_error(f"Failed to load configuration: {str(e)}")
        raise typer.Exit(1)

    config_dict["database"]["url"] = redact_url(config_dict["database"]["url"])
    if section:
        config_dict = {section: config_dict[section]}

    if format == "yaml":
        config_yaml = yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False)
        console.print(Syntax(config_yaml, "yaml", theme="monokai", line_numbers=True))
    elif format == "json":
        json_str = json.dumps(config_dict, indent=2)
        console.print(Syntax(json_str, "json", theme="monokai", line_numbers=True))
    elif format == "table":
        _show_config_table(config_dict)
    else:
        print_error(f"Invalid output format: {format}")
        print_info("Valid formats: table, yaml, json")
        raise typer.Exit(1)


def _show_config_table(config_dict: dict) -> None:
    """Display configuration in table format."""
    console.print()
    print_panel("datasifter Configuration", border_style="cyan")
    console.print()

    for section_name, values in config_dict.items():
        table = Table(
            title=f"{section_name.capitalize()} Settings",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")

        for key, value in values.items():
            table.add_row(key, str(value))

        console.print(table)
        console.print()


@app.command("init")
def init_config(
    path: Optional[Path] = typer.Option(
        None,
        "--path",
        "-p",
        help="Where to write the config file (default: ~/.datasifter/config.yaml)",
        dir_okay=False,
    ),
) -> None:
    """
    Write a config file holding the default settings.

    An existing file is left untouched.
    """
    from datasifter.cli.main import handle_error

    try:
        written = write_default_config(path)
    except DataSifterError as e:
        handle_error(e)

    print_success(f"Wrote default configuration: {written}")
    print_info("Set database.url before running 'datasifter sift'")


@app.command("path")
def config_path() -> None:
    """Print the default config file location."""
    console.print(str(default_config_path()))
