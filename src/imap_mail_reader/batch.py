"""Batch drivers: sender search, URL extraction and results processing.

Items are handled in input order.  A failure for one item is logged, written
to the output as a sentinel row and counted; the batch then moves on.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from .constants import (
    NO_DATE,
    NO_EMAILS_FOUND,
    NO_EMAILS_WITH_SUBJECT,
    NO_MATCHING_URL,
    NO_SUBJECT,
    NO_URL_MATCH,
    NO_URL_MATCH_WITH_SUBJECT,
    NOT_PRESENT,
    STATUS_FOUND,
    STATUS_NOT_FOUND,
)
from .criteria import is_email, sender_criteria, validate_email
from .display import console, create_progress, display_message
from .exceptions import EmptyBodyError, ReaderError, ValidationError
from .export import ResultsWriter, UrlsWriter, read_senders
from .imap_client import Mailbox
from .models import BatchSummary, MessageDescriptor, ResultRow, UrlRow
from .urls import extract_url

logger = logging.getLogger(__name__)


def pause(seconds: float) -> None:
    """Sleep between requests to go easy on the server."""
    if seconds > 0:
        time.sleep(seconds)


def _or(value: str, default: str) -> str:
    return default if not value or value == NOT_PRESENT else value


def load_sender_input(value: str) -> list[str]:
    """Turn a sender argument into a list: an existing CSV file or one address."""
    if Path(value).is_file():
        logger.info("Detected CSV file input: %s", value)
        return read_senders(value)
    if is_email(value.strip()):
        return [value.strip()]
    raise ValidationError(
        f"Input must be a valid email address or an existing CSV file, got {value!r}"
    )


# --- search-sender-batch ---


def search_sender(mailbox: Mailbox, sender: str) -> list[ResultRow]:
    """Result rows for one sender: one per message, or a single not_found row."""
    validate_email(sender)
    ids = mailbox.search(sender_criteria(sender))
    if not ids:
        logger.warning("No emails found from: %s", sender)
        return [ResultRow(sender, NOT_PRESENT, NO_EMAILS_FOUND, NOT_PRESENT, STATUS_NOT_FOUND)]

    rows: list[ResultRow] = []
    for index, msg_id in enumerate(ids):
        if index:
            pause(mailbox.config.listing_throttle)
        try:
            headers = mailbox.fetch_batch_headers(msg_id)
        except ReaderError as exc:
            logger.warning("Headers of email %d from %s unavailable: %s", msg_id, sender, exc)
            headers = MessageDescriptor(msg_id=msg_id)
        rows.append(
            ResultRow(
                sender_email=sender,
                email_id=str(msg_id),
                subject=_or(headers.subject, NO_SUBJECT),
                date=_or(headers.date, NO_DATE),
                status=STATUS_FOUND,
            )
        )
    return rows


def search_sender_batch(
    mailbox: Mailbox,
    senders: list[str],
    output_path: str | Path,
) -> BatchSummary:
    """Search every sender and write the results CSV."""
    summary = BatchSummary(output_path=str(output_path))
    console.print(f"[bold]Searching {len(senders)} senders[/bold], results go to {output_path}")

    with ResultsWriter(output_path) as writer, create_progress("Searching senders") as progress:
        task = progress.add_task("searching", total=len(senders))
        for index, sender in enumerate(senders):
            if index:
                pause(mailbox.config.throttle)
            summary.processed += 1
            try:
                rows = search_sender(mailbox, sender)
            except ReaderError as exc:
                logger.error("Search for %s failed: %s", sender, exc)
                summary.failed += 1
                summary.failures.append(f"{sender}: {exc}")
                rows = [
                    ResultRow(
                        sender,
                        NOT_PRESENT,
                        f"Search failed: {exc}",
                        NOT_PRESENT,
                        STATUS_NOT_FOUND,
                    )
                ]
            else:
                summary.succeeded += 1
                summary.found += sum(1 for row in rows if row.status == STATUS_FOUND)
            for row in rows:
                writer.write(row)
            progress.update(task, completed=index + 1)

    return summary


# --- extract-urls ---


def find_url(
    mailbox: Mailbox,
    sender: str,
    pattern: str,
    subject_filter: str | None = None,
) -> UrlRow:
    """Scan the sender's messages in server order; the first URL found wins."""
    validate_email(sender)
    ids = mailbox.search(sender_criteria(sender, subject_filter))
    if not ids:
        logger.warning("No emails found from: %s", sender)
        subject = NO_EMAILS_WITH_SUBJECT if subject_filter else NOT_PRESENT
        return UrlRow(sender, subject, NO_MATCHING_URL)

    logger.info("Found %d emails to check from %s", len(ids), sender)
    for index, msg_id in enumerate(ids):
        if index:
            pause(mailbox.config.listing_throttle)
        subject = _or(mailbox.fetch_subject(msg_id).subject, NO_SUBJECT)
        try:
            body = mailbox.read_body(msg_id)
        except EmptyBodyError:
            logger.warning("Email %d has no readable body, skipped", msg_id)
            continue
        url = extract_url(body, pattern)
        if url:
            logger.info("Found matching URL in email %d: %s", msg_id, url)
            return UrlRow(sender, subject, url)

    logger.warning("No matching URL found for: %s", sender)
    subject = NO_URL_MATCH_WITH_SUBJECT if subject_filter else NO_URL_MATCH
    return UrlRow(sender, subject, NO_MATCHING_URL)


def extract_urls(
    mailbox: Mailbox,
    senders: list[str],
    pattern: str,
    output_path: str | Path,
    subject_filter: str | None = None,
) -> BatchSummary:
    """Extract one URL per sender and write the URL CSV."""
    summary = BatchSummary(output_path=str(output_path))
    console.print(f"[bold]Extracting URLs starting with[/bold] {pattern}")

    with UrlsWriter(output_path) as writer, create_progress("Extracting URLs") as progress:
        task = progress.add_task("extracting", total=len(senders))
        for index, sender in enumerate(senders):
            if index:
                pause(mailbox.config.throttle)
            summary.processed += 1
            try:
                row = find_url(mailbox, sender, pattern, subject_filter)
            except ReaderError as exc:
                logger.error("URL extraction for %s failed: %s", sender, exc)
                summary.failed += 1
                summary.failures.append(f"{sender}: {exc}")
                row = UrlRow(sender, f"Error: {exc}", NO_MATCHING_URL)
            else:
                summary.succeeded += 1
                if row.match_url != NO_MATCHING_URL:
                    summary.found += 1
            writer.write(row)
            progress.update(task, completed=index + 1)

    return summary


# --- process-results ---


def process_results(
    mailbox: Mailbox,
    rows: list[ResultRow],
    sender_filter: str | None = None,
    show: Callable[[MessageDescriptor], None] = display_message,
) -> BatchSummary:
    """Read every found message of a results file, optionally for one sender."""
    summary = BatchSummary()
    selected = [
        row
        for row in rows
        if row.status == STATUS_FOUND
        and row.email_id != NOT_PRESENT
        and (sender_filter is None or row.sender_email == sender_filter)
    ]
    if not selected:
        console.print("[yellow]No found emails to read.[/yellow]")
        return summary

    for index, row in enumerate(selected):
        if index:
            pause(mailbox.config.throttle)
        summary.processed += 1
        console.rule(f"Email ID {row.email_id} from {row.sender_email}")
        try:
            message = mailbox.read_message(int(row.email_id))
        except (ReaderError, ValueError) as exc:
            logger.error("Reading email %s failed: %s", row.email_id, exc)
            summary.failed += 1
            summary.failures.append(f"{row.email_id}: {exc}")
            continue
        summary.succeeded += 1
        summary.found += 1
        show(message)

    return summary
