"""Rich-based display functions for IMAP Mail Reader."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from .constants import PREVIEW_ROWS, STATUS_FOUND
from .models import BatchSummary, Exchange, MessageDescriptor, ResultRow

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbosity: int = 0) -> None:
    """Route library logging to stderr through Rich."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG

    handler = RichHandler(console=err_console, show_path=False, show_time=verbosity > 1)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger("imap_mail_reader")
    root.handlers = [handler]
    root.setLevel(level)


def create_progress(description: str) -> Progress:
    """Create a configured Rich Progress bar."""
    return Progress(
        SpinnerColumn(),
        TextColumn(f"[bold blue]{description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )


def _header_lines(message: MessageDescriptor, with_recipient: bool) -> list[str]:
    lines = [f"[bold]From:[/bold] {escape(message.sender)}"]
    if with_recipient:
        lines.append(f"[bold]To:[/bold] {escape(message.recipient)}")
    lines.append(f"[bold]Subject:[/bold] {escape(message.subject)}")
    lines.append(f"[bold]Date:[/bold] {escape(message.date)}")
    return lines


def display_headers(message: MessageDescriptor) -> None:
    """Display From/Subject/Date of one message."""
    console.print(
        Panel("\n".join(_header_lines(message, with_recipient=False)), title=f"Email ID: {message.msg_id}")
    )


def display_message(message: MessageDescriptor) -> None:
    """Display full headers and the body of one message."""
    console.print(
        Panel("\n".join(_header_lines(message, with_recipient=True)), title=f"Email ID: {message.msg_id}")
    )
    console.rule("Email Body")
    console.print(Text(message.body or ""))
    console.print()


def display_ids(ids: list[int], description: str) -> None:
    if not ids:
        console.print(f"[yellow]No emails found {escape(description)}[/yellow]")
        return
    console.print(
        f"[green]Found {len(ids)} email{'s' if len(ids) != 1 else ''} {escape(description)}[/green] "
        f"[dim](IDs: {' '.join(str(i) for i in ids)})[/dim]"
    )


def display_read_hint() -> None:
    console.print("[dim]Use 'read <EMAIL_ID>' to read the full content of any email above.[/dim]")


def display_results_table(rows: list[ResultRow]) -> None:
    """Display the rows of a search results CSV."""
    table = Table(title="Search Results")
    table.add_column("Sender", max_width=24, no_wrap=True)
    table.add_column("Email ID", justify="right")
    table.add_column("Subject", max_width=40, no_wrap=True)
    table.add_column("Date", max_width=20, no_wrap=True)
    table.add_column("Status")

    for row in rows:
        color = "green" if row.status == STATUS_FOUND else "yellow"
        table.add_row(
            escape(row.sender_email),
            row.email_id,
            escape(row.subject),
            escape(row.date),
            f"[{color}]{row.status}[/{color}]",
        )

    console.print(table)


def display_batch_summary(summary: BatchSummary, title: str, found_label: str = "Emails found") -> None:
    """Display processed/succeeded/failed counters of a batch run."""
    lines = [
        f"[bold]Processed:[/bold] {summary.processed}",
        f"[bold]Succeeded:[/bold] [green]{summary.succeeded}[/green]",
        f"[bold]Failed:[/bold] [{'red' if summary.failed else 'green'}]{summary.failed}[/]",
        f"[bold]{found_label}:[/bold] {summary.found}",
    ]
    if summary.output_path:
        lines.append(f"[bold]Results file:[/bold] {escape(summary.output_path)}")
    if summary.failures:
        lines.append("[bold red]Failures:[/bold red]")
        lines.extend(f"  [red]-[/red] {escape(failure)}" for failure in summary.failures)
    console.print(Panel("\n".join(lines), title=title))


def display_file_preview(path: str, rows: int = PREVIEW_ROWS) -> None:
    """Print the first lines of an output file."""
    with open(path, encoding="utf-8") as f:
        head = [line.rstrip("\n") for _, line in zip(range(rows), f)]
    console.print("[bold]CSV content preview:[/bold]")
    console.print(Text("\n".join(head)))


def display_debug(exchange: Exchange, payload: bytes | None) -> None:
    """Display a raw transcript with line numbers and the literal that was read."""
    console.rule("Raw IMAP response")
    table = Table(show_header=False, box=None)
    table.add_column(justify="right", style="dim")
    table.add_column()
    for number, line in enumerate(exchange.lines, start=1):
        table.add_row(str(number), Text(line))
    console.print(table)

    console.rule("Literal")
    if payload is None:
        console.print("[yellow]No literal in the FETCH response.[/yellow]")
        return
    console.print(f"[bold]Declared size:[/bold] {len(payload)} bytes")
    console.print(Text(payload.decode("utf-8", errors="replace")))
