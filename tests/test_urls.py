"""Tests for the urls module."""

import pytest

from imap_mail_reader.urls import decode_qp_escapes, extract_url, join_soft_breaks

PREFIX = "https://domain.com/verify/"


class TestSoftBreaks:
    def test_soft_break_joins_lines(self):
        """A trailing '=' joins the next line without a separator."""
        assert join_soft_breaks("abc=\r\ndef") == "abcdef"

    def test_hard_break_becomes_space(self):
        """Other line breaks become a single space."""
        assert join_soft_breaks("one\ntwo") == "one two"

    @pytest.mark.parametrize(
        "text",
        [
            "plain text",
            "abc=\r\ndef\r\nghi",
            "trailing =\n=\nline",
            "",
            "x=3D1=\n=20y",
        ],
    )
    def test_joining_twice_changes_nothing(self, text):
        """Joining an already joined text is a no-op."""
        once = join_soft_breaks(text)
        assert join_soft_breaks(once) == once

    def test_escapes(self):
        """=3D, =20 and =0A are decoded."""
        assert decode_qp_escapes("a=3Db=20c=0Ad") == "a=b cd"


class TestExtractUrl:
    def test_wrapped_url_in_angle_brackets(self):
        """A soft-wrapped URL in angle brackets is rejoined without whitespace."""
        body = "Please visit <https://domain.com/verify/abc123=\r\n def>"
        assert extract_url(body, PREFIX) == "https://domain.com/verify/abc123def"

    def test_href_attribute(self):
        """URLs in double-quoted href attributes are found and decoded."""
        body = 'Click <a href="https://domain.com/verify/tok?u=3D1">here</a>'
        assert extract_url(body, PREFIX) == "https://domain.com/verify/tok?u=1"

    def test_href_single_quotes(self):
        """Single-quoted href attributes work too."""
        body = "<a href='https://domain.com/verify/xyz'>go</a>"
        assert extract_url(body, PREFIX) == "https://domain.com/verify/xyz"

    def test_bare_url(self):
        """A bare URL ends at the first whitespace."""
        body = "Your link: https://domain.com/verify/bare123 (valid 24h)"
        assert extract_url(body, PREFIX) == "https://domain.com/verify/bare123"

    def test_angle_brackets_win_over_earlier_bare_url(self):
        """Angle-bracketed URLs take priority over bare ones."""
        body = "see https://domain.com/verify/bare or <https://domain.com/verify/angle>"
        assert extract_url(body, PREFIX) == "https://domain.com/verify/angle"

    def test_href_wins_over_bare_url(self):
        """href URLs take priority over bare ones."""
        body = 'https://domain.com/verify/bare <a href="https://domain.com/verify/href">x</a>'
        assert extract_url(body, PREFIX) == "https://domain.com/verify/href"

    def test_trailing_equals_removed(self):
        """Trailing '=' characters are stripped from the match."""
        body = "https://domain.com/verify/abc=\n"
        assert extract_url(body, PREFIX) == "https://domain.com/verify/abc"

    def test_prefix_is_literal_text(self):
        """Regex metacharacters in the prefix match only themselves."""
        body = "https://domainXcom/verify/nope"
        assert extract_url(body, PREFIX) is None

    def test_no_match(self):
        """A body without the prefix yields None."""
        assert extract_url("nothing to see here", PREFIX) is None

    def test_empty_inputs(self):
        """Empty body or prefix yields None."""
        assert extract_url("", PREFIX) is None
        assert extract_url("https://domain.com/verify/x", "") is None
