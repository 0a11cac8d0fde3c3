"""URL extraction from quoted-printable message bodies."""

from __future__ import annotations

import re

# Only the escapes that show up inside verification links are decoded.
_QP_ESCAPES = (
    ("=0A", ""),
    ("=20", " "),
    ("=3D", "="),
)
_WHITESPACE_RE = re.compile(r"\s+")


def join_soft_breaks(text: str) -> str:
    """Undo quoted-printable soft line breaks.

    A line ending in ``=`` continues on the next line; any other line break
    becomes a single space.  The result has no line breaks left, so calling
    this twice gives the same string as calling it once.
    """
    lines = text.splitlines()
    if len(lines) <= 1:
        return lines[0] if lines else ""
    pieces: list[str] = []
    last = len(lines) - 1
    for index, line in enumerate(lines):
        if index == last:
            pieces.append(line)
            break
        stripped = line.rstrip(" \t")
        if stripped.endswith("="):
            pieces.append(stripped[:-1])
        else:
            pieces.append(line + " ")
    return "".join(pieces)


def decode_qp_escapes(text: str) -> str:
    for escape, replacement in _QP_ESCAPES:
        text = text.replace(escape, replacement)
    return text


def normalize_body(body: str) -> str:
    return decode_qp_escapes(join_soft_breaks(body))


def _clean(url: str) -> str:
    return _WHITESPACE_RE.sub("", url).rstrip("=")


def extract_url(body: str, prefix: str) -> str | None:
    """Return the first URL in *body* starting with *prefix*, or None.

    Angle-bracketed URLs win over href attributes, which win over bare text.
    """
    if not body or not prefix:
        return None
    text = normalize_body(body)
    pattern = re.escape(prefix)
    searches = (
        re.compile(rf"<({pattern}[^>]*)>"),
        re.compile(rf"""href=["']({pattern}[^"']*)["']""", re.IGNORECASE),
        re.compile(rf"""({pattern}[^\s<>"']*)"""),
    )
    for regex in searches:
        match = regex.search(text)
        if match:
            url = _clean(match.group(1))
            if url:
                return url
    return None
