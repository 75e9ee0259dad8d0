"""Console output: status lines, prompts, tables, panels and progress displays."""

from contextlib import contextmanager
from typing import Iterator

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TransferSpeedColumn,
)
from rich.prompt import Confirm, Prompt
from rich.table import Table

console = Console()


def print_error(msg: str) -> None:
    """Print an error message to the console.

    Args:
        msg: The error message to display.
    """
    console.print(f"[bold red]Error:[/bold red] {msg}")


def print_success(msg: str) -> None:
    console.print(f"[bold green]✓[/bold green] {msg}")


def print_warning(msg: str) -> None:
    console.print(f"[bold yellow]Warning:[/bold yellow] {msg}")


def print_info(msg: str) -> None:
    console.print(f"[cyan]{msg}[/cyan]")


def print_cancelled(msg: str = "Cancelled") -> None:
    console.print(f"[yellow]{msg}[/yellow]")


def create_table(
    title: str | None = None,
    columns: list[tuple[str, str]] | None = None,
    rows: list[list[str]] | None = None,
) -> Table:
    """Create a Rich table.

    Args:
        title: Optional table title.
        columns: List of (column_name, column_style) tuples.
        rows: List of row data.

    Returns:
        A configured Rich Table instance.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")

    for col_name, col_style in columns or []:
        table.add_column(col_name, style=col_style)

    for row in rows or []:
        table.add_row(*row)

    return table


def key_value_panel(title: str, rows: list[tuple[str, str]], border_style: str = "blue") -> Panel:
    """Panel with aligned ``label: value`` lines."""
    width = max((len(label) for label, _ in rows), default=0) + 1
    lines = [f"[bold]{(label + ':').ljust(width)}[/bold]  {value}" for label, value in rows]
    return Panel("\n".join(lines), title=title, border_style=border_style)


@contextmanager
def spinner(description: str) -> Iterator[Progress]:
    """Show a transient spinner while a long remote or hypervisor step runs."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description=description, total=None)
        yield progress


def download_progress() -> Progress:
    """Progress display for the base image download."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    )


def confirm(message: str, default: bool = False) -> bool:
    return Confirm.ask(message, default=default)


def prompt(message: str, default: str | None = None, password: bool = False) -> str:
    """Prompt for text input; ``password`` hides what is typed."""
    if default is None:
        return Prompt.ask(message, password=password)
    return Prompt.ask(message, default=default, password=password)
