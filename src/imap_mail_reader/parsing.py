"""Parsers for the untagged data of SEARCH, STATUS and FETCH responses."""

from __future__ import annotations

import email.header
import logging
import re
from email.parser import HeaderParser

from .constants import NOT_PRESENT
from .exceptions import ParseError
from .models import MessageDescriptor, TaggedResponse

logger = logging.getLogger(__name__)

_DECIMAL_RE = re.compile(r"^[0-9]+$")
_MESSAGES_RE = re.compile(r"\bMESSAGES\s+([0-9]+)", re.IGNORECASE)
_FETCH_RE = re.compile(r"^([0-9]+) FETCH\b", re.IGNORECASE)
_QUOTED_ITEM_RE = re.compile(r'BODY\[[^\]]*\](?:<\d+>)?\s+"((?:[^"\\]|\\.)*)"', re.IGNORECASE)
_NIL_ITEM_RE = re.compile(r"BODY\[[^\]]*\](?:<\d+>)?\s+NIL\b", re.IGNORECASE)
_BLANK_LINE_RE = re.compile(r"\r?\n\r?\n")

_FIELD_NAMES = {
    "FROM": "sender",
    "TO": "recipient",
    "SUBJECT": "subject",
    "DATE": "date",
}


def parse_search(response: TaggedResponse) -> list[int]:
    """Return the message numbers of a SEARCH response in server order.

    ``* SEARCH`` without numbers is an empty result.  A response without any
    untagged SEARCH line cannot be interpreted and raises ParseError.
    """
    ids: list[int] = []
    seen_search = False
    for item in response.untagged:
        tokens = item.text.split()
        if not tokens or tokens[0].upper() != "SEARCH":
            continue
        seen_search = True
        for token in tokens[1:]:
            if _DECIMAL_RE.match(token):
                ids.append(int(token))
            else:
                logger.debug("Skipping non-numeric SEARCH token %r", token)
    if not seen_search:
        raise ParseError("SEARCH completed without an untagged SEARCH response")
    return ids


def parse_status_messages(response: TaggedResponse) -> int:
    """Return the MESSAGES count from a STATUS response."""
    for item in response.untagged:
        if not item.text.upper().startswith("STATUS"):
            continue
        match = _MESSAGES_RE.search(item.text)
        if match:
            return int(match.group(1))
    raise ParseError("STATUS response did not report MESSAGES")


def fetch_payload(response: TaggedResponse, msg_id: int) -> bytes | None:
    """Return the body section data of the FETCH response for *msg_id*.

    Literal data is returned as is.  A quoted string is unescaped, NIL or a
    missing section gives None.
    """
    for item in response.untagged:
        match = _FETCH_RE.match(item.text)
        if not match or int(match.group(1)) != msg_id:
            continue
        if item.literals:
            return item.literals[0]
        quoted = _QUOTED_ITEM_RE.search(item.text)
        if quoted:
            value = re.sub(r"\\(.)", r"\1", quoted.group(1))
            return value.encode("utf-8")
        if _NIL_ITEM_RE.search(item.text):
            return None
    return None


def decode_header_value(value: str) -> str:
    """Decode RFC 2047 encoded words and unfold the header."""
    if not value:
        return ""
    decoded = ""
    for part, charset in email.header.decode_header(value):
        if isinstance(part, bytes):
            try:
                decoded += part.decode(charset or "utf-8", errors="replace")
            except LookupError:
                decoded += part.decode("utf-8", errors="replace")
        else:
            decoded += part
    return " ".join(decoded.split())


def parse_header_fields(raw: bytes | None, msg_id: int) -> MessageDescriptor:
    """Build a descriptor from a HEADER.FIELDS literal.

    Missing fields keep the "N/A" placeholder.
    """
    descriptor = MessageDescriptor(msg_id=msg_id)
    if not raw:
        return descriptor
    headers = HeaderParser().parsestr(raw.decode("utf-8", errors="replace"))
    for name, attr in _FIELD_NAMES.items():
        value = headers.get(name)
        if value is None:
            continue
        value = decode_header_value(str(value))
        setattr(descriptor, attr, value or NOT_PRESENT)
    return descriptor


def normalize_body(raw: bytes | None) -> str:
    """Decode body bytes and normalize line endings."""
    if not raw:
        return ""
    text = raw.decode("utf-8", errors="replace")
    return text.replace("\r\n", "\n").strip("\n")


def split_headers_body(raw: bytes | None) -> str:
    """Return the part of a full message after the first blank line."""
    if not raw:
        return ""
    text = raw.decode("utf-8", errors="replace")
    parts = _BLANK_LINE_RE.split(text, maxsplit=1)
    if len(parts) < 2:
        return ""
    return parts[1].replace("\r\n", "\n").strip("\n")
