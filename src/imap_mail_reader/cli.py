"""CLI entry point for IMAP Mail Reader."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import click

from .batch import extract_urls, load_sender_input, pause, process_results, search_sender_batch
from .constants import (
    BATCH_THROTTLE,
    CONNECT_ATTEMPTS,
    DEFAULT_RESULTS_FILE,
    DEFAULT_URLS_FILE,
    EXIT_FAILURE,
    EXIT_TRANSPORT,
    EXIT_USAGE,
    LATEST_DEFAULT,
    LISTING_THROTTLE,
    PROCESS_ACTIONS,
    STEP_TIMEOUT,
)
from .criteria import (
    advanced_criteria,
    filtered_criteria,
    is_email,
    sender_criteria,
    since_criteria,
    subject_criteria,
    validate_email,
    validate_message_id,
)
from .display import (
    configure_logging,
    console,
    display_batch_summary,
    display_debug,
    display_file_preview,
    display_headers,
    display_ids,
    display_message,
    display_read_hint,
    display_results_table,
)
from .exceptions import EmptyBodyError, IMAPError, ReaderError, UsageError, ValidationError
from .export import read_results, read_senders
from .imap_client import Mailbox
from .models import Credentials, SessionConfig

logger = logging.getLogger(__name__)


class ReaderException(click.ClickException):
    """ClickException carrying one of the reader's exit codes."""

    def __init__(self, message: str, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class ReaderGroup(click.Group):
    """Group that reports click's own usage errors with the usage exit code."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as exc:
            exc.exit_code = EXIT_USAGE
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except click.UsageError as exc:
            exc.exit_code = EXIT_USAGE
            raise


@dataclass
class CliState:
    server: str | None
    username: str | None
    password: str | None
    config: SessionConfig
    reuse_connection: bool
    mailbox: Mailbox | None = None


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """Translate reader exceptions into click errors with the right exit code."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (UsageError, ValidationError) as e:
            raise ReaderException(str(e), EXIT_USAGE) from e
        except IMAPError as e:
            raise ReaderException(str(e), EXIT_TRANSPORT) from e
        except ReaderError as e:
            raise ReaderException(str(e), EXIT_FAILURE) from e

    return wrapper


def get_mailbox(ctx: click.Context) -> Mailbox:
    """Build the mailbox on first use; fails with a usage error if credentials are missing."""
    state: CliState = ctx.find_object(CliState)
    if state.mailbox is not None:
        return state.mailbox

    missing = [
        flag
        for flag, value in (
            ("-s/--server", state.server),
            ("-u/--username", state.username),
            ("-p/--password", state.password),
        )
        if not value
    ]
    if missing:
        raise UsageError(f"Missing required option(s): {', '.join(missing)}")

    state.mailbox = Mailbox(
        Credentials(host=state.server, username=state.username, password=state.password),
        state.config,
        reuse_connection=state.reuse_connection,
    )
    ctx.call_on_close(state.mailbox.close)
    return state.mailbox


def show_listing(mailbox: Mailbox, ids: list[int]) -> None:
    """Fetch and display the headers of each message, pacing the requests."""
    for index, msg_id in enumerate(ids):
        if index:
            pause(mailbox.config.listing_throttle)
        display_headers(mailbox.fetch_headers(msg_id))


def show_search(mailbox: Mailbox, ids: list[int], description: str, auto_read: bool = False) -> None:
    display_ids(ids, description)
    if not ids:
        return
    if auto_read and len(ids) == 1:
        console.print("[dim]Auto-reading the email...[/dim]")
        display_message(mailbox.read_message(ids[0]))
        return
    show_listing(mailbox, ids)
    display_read_hint()


@click.group(cls=ReaderGroup)
@click.version_option(version="0.1.0", prog_name="imap-mail-reader")
@click.option("-s", "--server", default=None, help="IMAP server (e.g. mail.yourdomain.com).")
@click.option("-u", "--username", default=None, help="Username / email used to log in.")
@click.option("-p", "--password", default=None, help="Password used to log in.")
@click.option(
    "--timeout",
    default=STEP_TIMEOUT,
    type=click.FloatRange(min=0, min_open=True),
    show_default=True,
    help="Seconds to wait for each protocol step.",
)
@click.option(
    "--throttle",
    default=BATCH_THROTTLE,
    type=click.FloatRange(min=0),
    show_default=True,
    help="Seconds to wait between batch items.",
)
@click.option(
    "--connect-attempts",
    default=CONNECT_ATTEMPTS,
    type=click.IntRange(min=1),
    show_default=True,
    help="Connection attempts before giving up.",
)
@click.option("--no-verify", is_flag=True, help="Do not verify the server TLS certificate.")
@click.option("--reuse-connection", is_flag=True, help="Use one connection for the whole run.")
@click.option("-v", "--verbose", count=True, help="Log progress (-v) or protocol traffic (-vv).")
@click.pass_context
def cli(
    ctx: click.Context,
    server: str | None,
    username: str | None,
    password: str | None,
    timeout: float,
    throttle: float,
    connect_attempts: int,
    no_verify: bool,
    reuse_connection: bool,
    verbose: int,
) -> None:
    """IMAP Mail Reader - read and search an IMAP INBOX over TLS."""
    configure_logging(verbose)
    ctx.obj = CliState(
        server=server,
        username=username,
        password=password,
        config=SessionConfig(
            timeout=timeout,
            connect_attempts=connect_attempts,
            verify_tls=not no_verify,
            throttle=throttle,
            listing_throttle=min(throttle, LISTING_THROTTLE),
        ),
        reuse_connection=reuse_connection,
    )


@cli.command()
@click.pass_context
@handle_errors
def check(ctx: click.Context) -> None:
    """Check that LOGIN and SELECT INBOX succeed."""
    get_mailbox(ctx).check()
    console.print("[green]Login and SELECT INBOX succeeded.[/green]")


@cli.command()
@click.pass_context
@handle_errors
def count(ctx: click.Context) -> None:
    """Count the emails in INBOX."""
    total = get_mailbox(ctx).count()
    console.print(f"[green]Total emails in INBOX: {total}[/green]")


@cli.command(name="list")
@click.pass_context
@handle_errors
def list_cmd(ctx: click.Context) -> None:
    """List all emails with From, Subject and Date."""
    mailbox = get_mailbox(ctx)
    ids = mailbox.all_ids()
    if not ids:
        console.print("[yellow]No emails found in INBOX[/yellow]")
        return
    console.print(f"Found {len(ids)} emails. Getting headers...")
    show_listing(mailbox, ids)


@cli.command()
@click.argument("n", required=False, default=LATEST_DEFAULT, type=click.IntRange(min=1))
@click.pass_context
@handle_errors
def latest(ctx: click.Context, n: int) -> None:
    """Show the latest N emails (default 5)."""
    mailbox = get_mailbox(ctx)
    ids = mailbox.latest_range(n)
    if not ids:
        console.print("[yellow]No emails found in INBOX[/yellow]")
        return
    console.print(f"Showing emails from ID {ids[0]} to {ids[-1]}")
    show_listing(mailbox, ids)


@cli.command()
@click.argument("email_id")
@click.pass_context
@handle_errors
def read(ctx: click.Context, email_id: str) -> None:
    """Read one email by ID."""
    msg_id = validate_message_id(email_id)
    display_message(get_mailbox(ctx).read_message(msg_id))


@cli.command()
@click.pass_context
@handle_errors
def unread(ctx: click.Context) -> None:
    """List unread emails."""
    mailbox = get_mailbox(ctx)
    show_search(mailbox, mailbox.search("UNSEEN"), "unread")


@cli.command(name="search-sender")
@click.argument("input_value", metavar="INPUT")
@click.argument("output", required=False, default=DEFAULT_RESULTS_FILE)
@click.pass_context
@handle_errors
def search_sender_cmd(ctx: click.Context, input_value: str, output: str) -> None:
    """Search emails from a sender, or from every sender of a CSV file."""
    if Path(input_value).is_file():
        senders = read_senders(input_value)
        summary = search_sender_batch(get_mailbox(ctx), senders, output)
        display_batch_summary(summary, "Batch search summary")
        return
    if not is_email(input_value):
        raise ValidationError(
            f"Input must be a valid email address or an existing CSV file, got {input_value!r}"
        )
    mailbox = get_mailbox(ctx)
    ids = mailbox.search(sender_criteria(input_value))
    show_search(mailbox, ids, f"from {input_value}", auto_read=True)


@cli.command(name="search-sender-batch")
@click.argument("csv_file")
@click.argument("output", required=False, default=DEFAULT_RESULTS_FILE)
@click.pass_context
@handle_errors
def search_sender_batch_cmd(ctx: click.Context, csv_file: str, output: str) -> None:
    """Search emails from every sender listed in CSV_FILE."""
    senders = read_senders(csv_file)
    summary = search_sender_batch(get_mailbox(ctx), senders, output)
    display_batch_summary(summary, "Batch search summary")


@cli.command(name="process-results")
@click.argument("csv_file")
@click.argument("action", type=click.Choice(PROCESS_ACTIONS))
@click.argument("sender", required=False)
@click.pass_context
@handle_errors
def process_results_cmd(ctx: click.Context, csv_file: str, action: str, sender: str | None) -> None:
    """List or read the emails of a batch search results file."""
    rows = read_results(csv_file)
    if action == "list":
        display_results_table(rows)
        return
    if action == "read-filtered" and not sender:
        raise UsageError("A sender is required for read-filtered")
    summary = process_results(
        get_mailbox(ctx),
        rows,
        sender_filter=sender if action == "read-filtered" else None,
    )
    display_batch_summary(summary, "Results processing summary", found_label="Emails read")


@cli.command(name="search-subject")
@click.argument("text")
@click.pass_context
@handle_errors
def search_subject_cmd(ctx: click.Context, text: str) -> None:
    """Search emails whose subject contains TEXT."""
    criteria = subject_criteria(text)
    mailbox = get_mailbox(ctx)
    show_search(mailbox, mailbox.search(criteria), f"with subject containing '{text}'")


@cli.command(name="search-date")
@click.argument("date")
@click.pass_context
@handle_errors
def search_date_cmd(ctx: click.Context, date: str) -> None:
    """Search emails since DATE (YYYY-MM-DD)."""
    criteria = since_criteria(date)
    mailbox = get_mailbox(ctx)
    show_search(mailbox, mailbox.search(criteria), f"since {date}")


@cli.command(name="read-from-sender")
@click.argument("email")
@click.pass_context
@handle_errors
def read_from_sender_cmd(ctx: click.Context, email: str) -> None:
    """Read the full content of every email from a sender."""
    sender = validate_email(email)
    mailbox = get_mailbox(ctx)
    ids = mailbox.search(sender_criteria(sender))
    display_ids(ids, f"from {sender}")
    for index, msg_id in enumerate(ids):
        if index:
            pause(mailbox.config.throttle)
        try:
            display_message(mailbox.read_message(msg_id))
        except EmptyBodyError as e:
            logger.warning("%s", e)
            console.print(f"[yellow]Could not retrieve the body of email {msg_id}[/yellow]")


@cli.command(name="search-sender-subject")
@click.argument("sender")
@click.argument("subject")
@click.pass_context
@handle_errors
def search_sender_subject_cmd(ctx: click.Context, sender: str, subject: str) -> None:
    """Search emails from SENDER whose subject contains SUBJECT."""
    sender = validate_email(sender)
    if not subject.strip():
        raise ValidationError("Subject text is required")
    mailbox = get_mailbox(ctx)
    ids = mailbox.search(sender_criteria(sender, subject))
    show_search(mailbox, ids, f"from {sender} with subject containing '{subject}'", auto_read=True)


@cli.command(name="search-advanced")
@click.argument("criteria")
@click.pass_context
@handle_errors
def search_advanced_cmd(ctx: click.Context, criteria: str) -> None:
    """Search with raw IMAP criteria, e.g. 'SUBJECT "verification" UNSEEN'."""
    criteria = advanced_criteria(criteria)
    mailbox = get_mailbox(ctx)
    show_search(mailbox, mailbox.search(criteria), f"with criteria: {criteria}")


@cli.command(name="search-filtered")
@click.argument("sender")
@click.argument("subject")
@click.argument("since")
@click.argument("status")
@click.pass_context
@handle_errors
def search_filtered_cmd(ctx: click.Context, sender: str, subject: str, since: str, status: str) -> None:
    """Multi-filter search; pass SKIP for any filter you do not need."""
    criteria = filtered_criteria(sender, subject, since, status)
    logger.info("Filtered search with criteria: %s", criteria)
    mailbox = get_mailbox(ctx)
    show_search(mailbox, mailbox.search(criteria), "matching the filters", auto_read=True)


@cli.command(name="extract-urls")
@click.argument("input_value", metavar="INPUT")
@click.argument("pattern")
@click.argument("subject", required=False)
@click.argument("output", required=False, default=DEFAULT_URLS_FILE)
@click.pass_context
@handle_errors
def extract_urls_cmd(
    ctx: click.Context,
    input_value: str,
    pattern: str,
    subject: str | None,
    output: str,
) -> None:
    """Extract the first URL starting with PATTERN from each sender's emails."""
    if not pattern.strip():
        raise ValidationError("URL pattern is required (example: https://domain.com/verify/)")
    senders = load_sender_input(input_value)
    summary = extract_urls(
        get_mailbox(ctx),
        senders,
        pattern.strip(),
        output,
        subject_filter=subject or None,
    )
    display_batch_summary(summary, "URL extraction summary", found_label="URLs found")
    display_file_preview(output)


@cli.command(name="debug-email")
@click.argument("email_id")
@click.pass_context
@handle_errors
def debug_email_cmd(ctx: click.Context, email_id: str) -> None:
    """Dump the raw IMAP exchange of a BODY[TEXT] fetch."""
    msg_id = validate_message_id(email_id)
    exchange, payload = get_mailbox(ctx).debug_fetch(msg_id)
    display_debug(exchange, payload)
