"""Line-driven IMAP response reader.

The reader turns the byte stream of one TLS connection into framed
responses.  It runs a small state machine:

  AWAITING_TAG        read a line and classify it (untagged, continuation,
                      tagged completion, or a line announcing a literal)
  READING_LITERAL     read exactly the announced number of bytes
  AWAITING_NEXT_LINE  read the rest of a response that carried a literal

Literal bytes are never inspected, so a body containing "A003 OK" cannot end
a response early.
"""

from __future__ import annotations

import logging
import re
import socket
import time
from enum import Enum
from typing import BinaryIO, Callable

from .constants import MAX_LINE_LENGTH, TAG_PREFIX
from .exceptions import IMAPConnectionError, IMAPTimeoutError, ProtocolError
from .models import TaggedResponse, UntaggedResponse

logger = logging.getLogger(__name__)

_LITERAL_RE = re.compile(rb"\{(\d+)\}\r?\n$")
_TAGGED_RE = re.compile(r"^(\S+) (OK|NO|BAD)\b ?(.*)$", re.IGNORECASE)


class ReaderState(Enum):
    AWAITING_TAG = "awaiting-tag"
    READING_LITERAL = "reading-literal"
    AWAITING_NEXT_LINE = "awaiting-next-line"


class TagGenerator:
    """Hands out A001, A002, ... for one session. Tags are never reused."""

    def __init__(self, prefix: str = TAG_PREFIX) -> None:
        self.prefix = prefix
        self._counter = 0

    def next(self) -> str:
        self._counter += 1
        return f"{self.prefix}{self._counter:03d}"


def quote_string(value: str) -> str:
    """Render *value* as an IMAP quoted string."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def mask_command(line: str) -> str:
    """Hide the password of a LOGIN line for logging."""
    parts = line.split(" ", 3)
    if len(parts) == 4 and parts[1].upper() == "LOGIN":
        return f"{parts[0]} LOGIN {parts[2]} ****"
    return line


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


class ResponseReader:
    """Read framed responses from a binary stream.

    Args:
        stream: File-like object exposing ``readline(limit)`` and
            ``read(size)``, typically ``socket.makefile("rb")``.
        set_timeout: Called with the remaining seconds before every blocking
            read so each read honours the step deadline.
        transcript: List receiving every decoded line, shared across the
            responses of one session.
    """

    def __init__(
        self,
        stream: BinaryIO,
        set_timeout: Callable[[float], None] | None = None,
        transcript: list[str] | None = None,
    ) -> None:
        self._stream = stream
        self._set_timeout = set_timeout
        self.transcript: list[str] = transcript if transcript is not None else []
        self.state = ReaderState.AWAITING_TAG

    # --- low level ---

    def _arm(self, deadline: float, step: str) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise IMAPTimeoutError(step, "no tagged completion before the timeout")
        if self._set_timeout is not None:
            self._set_timeout(remaining)

    def _readline(self, deadline: float, step: str) -> bytes:
        self._arm(deadline, step)
        try:
            line = self._stream.readline(MAX_LINE_LENGTH + 1)
        except socket.timeout as exc:
            raise IMAPTimeoutError(step, "timed out waiting for the server") from exc
        except OSError as exc:
            raise IMAPConnectionError(step, str(exc)) from exc
        if not line:
            raise IMAPConnectionError(step, "connection closed by server")
        if len(line) > MAX_LINE_LENGTH:
            raise ProtocolError(step, f"response line exceeds {MAX_LINE_LENGTH} bytes")
        self.transcript.append(_decode(line).rstrip("\r\n"))
        return line

    def _read_exact(self, size: int, deadline: float, step: str) -> bytes:
        chunks: list[bytes] = []
        remaining = size
        while remaining > 0:
            self._arm(deadline, step)
            try:
                chunk = self._stream.read(remaining)
            except socket.timeout as exc:
                raise IMAPTimeoutError(step, "timed out reading a literal") from exc
            except OSError as exc:
                raise IMAPConnectionError(step, str(exc)) from exc
            if not chunk:
                raise IMAPConnectionError(
                    step, f"connection closed inside a {size} byte literal"
                )
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        self.transcript.extend(_decode(data).splitlines())
        return data

    # --- framing ---

    def read_greeting(self, timeout: float) -> str:
        """Read the server greeting; a BYE greeting refuses the connection."""
        deadline = time.monotonic() + timeout
        text = _decode(self._readline(deadline, "CONNECT")).rstrip("\r\n")
        upper = text.upper()
        if upper.startswith("* OK") or upper.startswith("* PREAUTH"):
            return text
        if upper.startswith("* BYE"):
            raise IMAPConnectionError("CONNECT", f"server refused connection: {text}")
        raise ProtocolError("CONNECT", f"unexpected greeting: {text}")

    def read_response(self, tag: str, timeout: float, step: str) -> TaggedResponse:
        """Read lines until the tagged completion for *tag* arrives."""
        deadline = time.monotonic() + timeout
        untagged: list[UntaggedResponse] = []
        current: UntaggedResponse | None = None
        literal_size = 0
        self.state = ReaderState.AWAITING_TAG

        while True:
            if self.state is ReaderState.READING_LITERAL:
                data = self._read_exact(literal_size, deadline, step)
                if current is not None:
                    current.literals.append(data)
                self.state = ReaderState.AWAITING_NEXT_LINE
                continue

            line = self._readline(deadline, step)
            literal = _LITERAL_RE.search(line)
            text = _decode(line).rstrip("\r\n")

            if self.state is ReaderState.AWAITING_NEXT_LINE:
                if current is not None:
                    current.text += text
                if literal:
                    literal_size = int(literal.group(1))
                    self.state = ReaderState.READING_LITERAL
                else:
                    current = None
                    self.state = ReaderState.AWAITING_TAG
                continue

            if text.startswith("* ") or text == "*":
                current = UntaggedResponse(text=text[2:])
                untagged.append(current)
                if literal:
                    literal_size = int(literal.group(1))
                    self.state = ReaderState.READING_LITERAL
                else:
                    current = None
                continue

            if text.startswith("+"):
                # Continuation requests are never solicited by this client.
                logger.debug("Ignoring continuation request: %s", text)
                continue

            match = _TAGGED_RE.match(text)
            if match and match.group(1) == tag:
                return TaggedResponse(
                    tag=tag,
                    status=match.group(2).upper(),
                    text=match.group(3),
                    untagged=untagged,
                )
            if match:
                logger.warning("Ignoring completion for unknown tag: %s", text)
                continue

            raise ProtocolError(step, f"unexpected response line: {text[:120]}")
