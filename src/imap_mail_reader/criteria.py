"""Argument validation and SEARCH criteria builders."""

from __future__ import annotations

import logging
from datetime import date, datetime

from .constants import (
    DATE_RE,
    EMAIL_RE,
    MONTH_ABBREVIATIONS,
    SEARCH_STATUS_KEYWORDS,
    SKIP,
)
from .exceptions import ValidationError
from .protocol import quote_string

logger = logging.getLogger(__name__)


def is_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value))


def validate_email(value: str) -> str:
    value = value.strip()
    if not is_email(value):
        raise ValidationError(f"Invalid email address: {value!r}")
    return value


def validate_message_id(value: str | int) -> int:
    """Return a positive sequence number or raise ValidationError."""
    text = str(value).strip()
    if not text.isascii() or not text.isdigit() or int(text) < 1:
        raise ValidationError(f"Email ID must be a positive number, got {value!r}")
    return int(text)


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD argument."""
    if not DATE_RE.match(value):
        raise ValidationError(
            f"Invalid date {value!r}. Use YYYY-MM-DD (example: 2025-05-29)"
        )
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date {value!r}: {exc}") from exc


def imap_date(day: date) -> str:
    """Format a date as DD-Mon-YYYY, independent of the locale."""
    return f"{day.day:02d}-{MONTH_ABBREVIATIONS[day.month - 1]}-{day.year}"


def _skipped(value: str | None) -> bool:
    return value is None or not value.strip() or value.strip().upper() == SKIP


def sender_criteria(sender: str, subject: str | None = None) -> str:
    criteria = f"FROM {quote_string(sender)}"
    if subject:
        criteria += f" SUBJECT {quote_string(subject)}"
    return criteria


def subject_criteria(subject: str) -> str:
    if not subject.strip():
        raise ValidationError("Subject text is required")
    return f"SUBJECT {quote_string(subject)}"


def since_criteria(value: str) -> str:
    return f"SINCE {quote_string(imap_date(parse_iso_date(value)))}"


def advanced_criteria(criteria: str) -> str:
    criteria = criteria.strip()
    if not criteria:
        raise ValidationError(
            "Search criteria is required, e.g. 'FROM \"admin@domain.com\" SUBJECT \"invoice\"'"
        )
    return criteria


def filtered_criteria(
    sender: str | None,
    subject: str | None,
    since: str | None,
    status: str | None,
) -> str:
    """Combine the four optional filters of search-filtered.

    Each filter may be SKIP or empty; at least one must be given.
    """
    parts: list[str] = []
    if not _skipped(sender):
        parts.append(f"FROM {quote_string(validate_email(sender))}")
    if not _skipped(subject):
        parts.append(f"SUBJECT {quote_string(subject.strip())}")
    if not _skipped(since):
        parts.append(since_criteria(since.strip()))
    if not _skipped(status):
        keyword = status.strip().upper()
        if keyword not in SEARCH_STATUS_KEYWORDS:
            logger.warning("Unknown status %s, using it anyway", keyword)
        parts.append(keyword)
    if not parts:
        raise ValidationError("At least one filter is required (use SKIP to skip a filter)")
    return " ".join(parts)
