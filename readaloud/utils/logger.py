"""
Rich logging utilities for the read-aloud system.
"""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

# Custom theme for read-aloud output
custom_theme = Theme(
    {
        "info": "cyan",
        "success": "green",
        "warning": "yellow",
        "error": "red bold",
        "step": "blue bold",
        "highlight": "magenta",
        "debug": "dim",
    }
)

# Global console instance
console = Console(theme=custom_theme)

_verbose = False


def set_verbose(enabled: bool = True) -> None:
    """Enable or disable debug output."""
    global _verbose
    _verbose = enabled


def is_verbose() -> bool:
    return _verbose


def debug(message: str) -> None:
    """Print a debug message (only in verbose mode)."""
    if _verbose:
        console.print(f"[debug]· {message}[/debug]")


def info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]ℹ[/info] {message}")


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]✓[/success] {message}")


def warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[warning]⚠[/warning] {message}")


def error(message: str) -> None:
    """Print an error message."""
    console.print(f"[error]✗[/error] {message}")


def step(message: str, step_num: Optional[int] = None, total: Optional[int] = None) -> None:
    """Print a step message."""
    if step_num and total:
        console.print(f"[step][{step_num}/{total}][/step] {message}")
    else:
        console.print(f"[step]→[/step] {message}")


def header(message: str) -> None:
    """Print a header message."""
    console.print()
    console.rule(f"[bold]{message}[/bold]")
    console.print()


def create_table(title: str, *columns: str) -> Table:
    """Create a table styled for sentence listings."""
    table = Table(title=title, show_lines=False, header_style="bold")
    for column in columns:
        table.add_column(column)
    return table


def sentence(text: str, index: int, total: int) -> None:
    """Print the sentence currently being read."""
    console.print(f"[step][{index + 1}/{total}][/step] [highlight]{escape(text)}[/highlight]")
