"""Tests for the criteria module."""

import logging
from datetime import date

import pytest

from imap_mail_reader.criteria import (
    advanced_criteria,
    filtered_criteria,
    imap_date,
    parse_iso_date,
    sender_criteria,
    since_criteria,
    subject_criteria,
    validate_email,
    validate_message_id,
)
from imap_mail_reader.exceptions import ValidationError


class TestValidation:
    @pytest.mark.parametrize("value", ["a@x.com", "first.last+tag@sub.example.org"])
    def test_valid_emails(self, value):
        """Well-formed addresses are returned unchanged."""
        assert validate_email(value) == value

    @pytest.mark.parametrize("value", ["", "plainaddress", "a@b", "a b@x.com"])
    def test_invalid_emails(self, value):
        """Malformed addresses are rejected."""
        with pytest.raises(ValidationError):
            validate_email(value)

    def test_message_id(self):
        """A positive decimal id is accepted."""
        assert validate_message_id("42") == 42

    @pytest.mark.parametrize("value", ["0", "-1", "abc", "1.5", "", "٣"])
    def test_bad_message_ids(self, value):
        """Zero, negatives and non-decimal text are rejected."""
        with pytest.raises(ValidationError):
            validate_message_id(value)


class TestDates:
    def test_parse(self):
        """ISO dates parse to date objects."""
        assert parse_iso_date("2025-05-29") == date(2025, 5, 29)

    @pytest.mark.parametrize("value", ["2025/05/29", "29-05-2025", "2025-02-30", "2025-13-01"])
    def test_rejects_bad_dates(self, value):
        """Other formats and impossible dates are rejected."""
        with pytest.raises(ValidationError):
            parse_iso_date(value)

    def test_imap_date(self):
        """Dates render as DD-Mon-YYYY."""
        assert imap_date(date(2025, 5, 29)) == "29-May-2025"
        assert imap_date(date(2024, 1, 3)) == "03-Jan-2024"

    def test_since_criteria(self):
        """SINCE takes a quoted IMAP date."""
        assert since_criteria("2025-05-29") == 'SINCE "29-May-2025"'


class TestCriteria:
    def test_sender(self):
        """A sender becomes a quoted FROM clause."""
        assert sender_criteria("a@x.com") == 'FROM "a@x.com"'

    def test_sender_with_subject(self):
        """An optional subject is appended to FROM."""
        assert sender_criteria("a@x.com", "Your code") == 'FROM "a@x.com" SUBJECT "Your code"'

    def test_subject_is_quoted(self):
        """Quotes inside a subject are escaped."""
        assert subject_criteria('say "hi"') == 'SUBJECT "say \\"hi\\""'

    def test_empty_subject(self):
        """A blank subject is rejected."""
        with pytest.raises(ValidationError):
            subject_criteria("  ")

    def test_advanced_passthrough(self):
        """Raw criteria are passed through trimmed."""
        assert advanced_criteria(' SUBJECT "x" UNSEEN ') == 'SUBJECT "x" UNSEEN'

    def test_advanced_empty(self):
        """Empty raw criteria are rejected."""
        with pytest.raises(ValidationError):
            advanced_criteria("")


class TestFilteredCriteria:
    def test_all_filters(self):
        """All filters combine in a fixed order."""
        criteria = filtered_criteria("a@x.com", "invoice", "2025-05-29", "unseen")
        assert criteria == 'FROM "a@x.com" SUBJECT "invoice" SINCE "29-May-2025" UNSEEN'

    def test_skipped_filters(self):
        """SKIP and blank filters are left out."""
        assert filtered_criteria("SKIP", "invoice", "skip", "") == 'SUBJECT "invoice"'

    def test_all_skipped(self):
        """At least one filter is required."""
        with pytest.raises(ValidationError):
            filtered_criteria("SKIP", "SKIP", "SKIP", "SKIP")

    def test_invalid_sender(self):
        """A bad sender filter is rejected."""
        with pytest.raises(ValidationError):
            filtered_criteria("not-an-email", "SKIP", "SKIP", "SKIP")

    def test_unknown_status_is_used_with_warning(self, caplog):
        """An unknown status keyword is sent upper-cased with a warning."""
        with caplog.at_level(logging.WARNING, logger="imap_mail_reader"):
            assert filtered_criteria("SKIP", "SKIP", "SKIP", "recent") == "RECENT"
        assert "Unknown status RECENT" in caplog.text
