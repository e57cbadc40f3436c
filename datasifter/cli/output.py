"""Output formatting utilities for CLI."""

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

console = Console()
console_err = Console(stderr=True)


def print_success(message: str) -> None:
    """Print success message with checkmark.

    Args:
        message: Success message to display
    """
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print error message with X mark.

    Args:
        message: Error message to display
    """
    console_err.print(f"[red]✗[/red] {message}")


def print_info(message: str) -> None:
    """Print info message with info symbol.

    Status lines go to stderr so console exports on stdout stay parseable.

    Args:
        message: Info message to display
    """
    console_err.print(f"[blue]ℹ[/blue] {message}")


def prompt(message: str, default: str | None = None) -> str:
    """Prompt user for input.

    Args:
        message: Prompt message
        default: Default value if user presses enter

    Returns:
        User input string, stripped of surrounding whitespace
    """
    if default is None:
        return Prompt.ask(message, console=console_err).strip()
    return Prompt.ask(message, default=default, console=console_err).strip()


def print_panel(content: str, title: str | None = None, border_style: str = "cyan") -> None:
    """Print content in a bordered panel.

    Args:
        content: Content to display
        title: Optional panel title
        border_style: Border color style
    """
    panel = Panel(content, title=title, border_style=border_style)
    console.print(panel)
