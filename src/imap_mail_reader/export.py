"""CSV input validation and append-only CSV output for batch runs."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import TextIO

from .constants import (
    NOT_PRESENT,
    RESULT_STATUSES,
    RESULTS_HEADER,
    SENDERS_HEADER,
    STATUS_FOUND,
    URLS_HEADER,
)
from .exceptions import ValidationError
from .models import ResultRow, UrlRow

logger = logging.getLogger(__name__)

_NEEDS_QUOTES = (",", '"', "\r", "\n")


def csv_field(value: str, force_quote: bool = False) -> str:
    """Render one CSV field, doubling embedded quotes when quoting."""
    value = str(value)
    if force_quote or any(ch in value for ch in _NEEDS_QUOTES):
        return '"' + value.replace('"', '""') + '"'
    return value


def _open_csv(path: str | Path) -> tuple[TextIO, list[str]]:
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"CSV file not found: {path}")
    f = open(path, newline="", encoding="utf-8-sig")
    first = f.readline()
    header = [col.strip() for col in next(csv.reader([first]), [])]
    return f, header


def read_senders(path: str | Path) -> list[str]:
    """Read a sender list CSV whose header is exactly ``email``.

    Blank rows are skipped.  Addresses are returned as written, trimmed.
    """
    f, header = _open_csv(path)
    with f:
        if header != SENDERS_HEADER:
            raise ValidationError(
                f"Invalid CSV header in {path}: expected 'email', got {','.join(header)!r}"
            )
        senders: list[str] = []
        for line_num, row in enumerate(csv.reader(f), start=2):
            value = row[0].strip() if row else ""
            if not value:
                logger.warning("Line %d: empty email, skipped", line_num)
                continue
            senders.append(value)
    return senders


def read_results(path: str | Path) -> list[ResultRow]:
    """Read a results CSV produced by search-sender-batch."""
    f, header = _open_csv(path)
    with f:
        if header != RESULTS_HEADER:
            raise ValidationError(
                f"Invalid results CSV header in {path}: expected {','.join(RESULTS_HEADER)!r}"
            )
        rows: list[ResultRow] = []
        for line_num, record in enumerate(csv.reader(f), start=2):
            if not any(field.strip() for field in record):
                continue
            if len(record) != len(RESULTS_HEADER):
                raise ValidationError(
                    f"Line {line_num}: expected {len(RESULTS_HEADER)} fields, got {len(record)}"
                )
            row = ResultRow(*(field.strip() for field in record))
            if row.status not in RESULT_STATUSES:
                raise ValidationError(
                    f"Line {line_num}: status must be one of {', '.join(RESULT_STATUSES)}, "
                    f"got {row.status!r}"
                )
            rows.append(row)
    return rows


class CsvAppender:
    """Single writer for a batch output file.

    The file is truncated and given its header on open; rows are appended and
    flushed one at a time so a crash leaves every finished item on disk.
    """

    header: list[str] = []

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: TextIO | None = None

    def __enter__(self) -> "CsvAppender":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", newline="", encoding="utf-8") as f:
            f.write(",".join(self.header) + "\n")
        self._file = open(self.path, "a", newline="", encoding="utf-8")
        return self

    def __exit__(self, *exc: object) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    def _append(self, fields: list[str]) -> None:
        if self._file is None:
            raise RuntimeError("CsvAppender used outside of its context")
        self._file.write(",".join(fields) + "\n")
        self._file.flush()


class ResultsWriter(CsvAppender):
    header = RESULTS_HEADER

    def write(self, row: ResultRow) -> None:
        found = row.status == STATUS_FOUND
        self._append(
            [
                csv_field(row.sender_email),
                csv_field(row.email_id),
                csv_field(row.subject, force_quote=found),
                csv_field(row.date, force_quote=found),
                csv_field(row.status),
            ]
        )


class UrlsWriter(CsvAppender):
    header = URLS_HEADER

    def write(self, row: UrlRow) -> None:
        self._append(
            [
                csv_field(row.email),
                csv_field(row.subject, force_quote=row.subject != NOT_PRESENT),
                csv_field(row.match_url),
            ]
        )
