"""
CLI output helpers built on rich.

Respects NO_COLOR and FORCE_COLOR; falls back to plain text when stdout
is not a terminal.
"""

from __future__ import annotations

import os

from rich.console import Console
from rich.theme import Theme

CATALOG_THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "highlight": "#B48EAD",
        "muted": "#D8DEE9",
    }
)

console = Console(
    theme=CATALOG_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)

STATUS_STYLES = {
    "ACTIVE": "success",
    "UNREACHABLE": "warning",
    "NO_SPEC": "muted",
}


def success(message: str) -> None:
    console.print(f"[success]✓[/success] {message}")


def warning(message: str) -> None:
    console.print(f"[warning]![/warning] {message}")


def header(title: str) -> None:
    console.print()
    console.print(f"[bold]{title}[/bold]")
    console.print()
