"""Rich terminal output shared by every command."""
from __future__ import annotations

from typing import Iterable, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

console = Console(highlight=False)


def banner(title: str, subtitle: Optional[str] = None, style: str = "cyan") -> None:
    body = f"[bold]{title}[/bold]"
    if subtitle:
        body += f"\n{subtitle}"
    console.print(Panel(body, border_style=style, expand=False, padding=(1, 4)))


def step(index: int, total: int, message: str) -> None:
    console.print(f"[blue][{index}/{total}] {message}[/blue]")


def ok(message: str) -> None:
    console.print(f"[green]✓ {message}[/green]")


def warn(message: str) -> None:
    console.print(f"[yellow]⚠ {message}[/yellow]")


def fail(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")


def info(message: str) -> None:
    console.print(f"[blue]{message}[/blue]")


def key_values(title: str, rows: Iterable[Tuple[str, object]], style: str = "blue") -> None:
    table = Table(title=title, show_header=False, title_style=f"bold {style}", box=None)
    table.add_column(style="cyan", no_wrap=True)
    table.add_column()
    for key, value in rows:
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


def plain(markup: str) -> str:
    """Drop rich markup, for lines that go to the log instead of a terminal."""
    return Text.from_markup(markup).plain
