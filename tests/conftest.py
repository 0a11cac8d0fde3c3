"""Shared fixtures for tests.

The network is replaced by FakeIMAPServer: every command line sent by the
client is matched against registered handlers and the handler's reply bytes
are queued for the client to read.
"""

from __future__ import annotations

import re
import socket
from typing import Callable

import pytest

from imap_mail_reader.imap_client import Mailbox
from imap_mail_reader.models import Credentials, SessionConfig

Handler = Callable[[str, "re.Match[str]"], bytes]


def ok(tag: str, text: str = "completed") -> bytes:
    return f"{tag} OK {text}\r\n".encode()


def literal_fetch(tag: str, msg_id: int, item: str, payload: bytes) -> bytes:
    """A FETCH response carrying *payload* as a literal."""
    return (
        f"* {msg_id} FETCH ({item} {{{len(payload)}}}\r\n".encode()
        + payload
        + b")\r\n"
        + ok(tag, "FETCH completed")
    )


class FakeConnection:
    """Socket stand-in; also serves as its own makefile() stream."""

    def __init__(self, server: "FakeIMAPServer") -> None:
        self.server = server
        self.buffer = bytearray(server.greeting)
        self.sent: list[str] = []
        self.timeouts: list[float] = []
        self.closed = False

    def makefile(self, mode: str = "rb") -> "FakeConnection":
        return self

    def settimeout(self, value: float) -> None:
        self.timeouts.append(value)

    def sendall(self, data: bytes) -> None:
        for raw in data.split(b"\r\n"):
            if not raw:
                continue
            line = raw.decode()
            self.sent.append(line)
            self.server.sent.append(line)
            self.buffer.extend(self.server.respond(line))

    def _starve(self) -> bytes:
        if self.server.hang_up:
            return b""
        raise socket.timeout("timed out")

    def readline(self, limit: int = -1) -> bytes:
        if not self.buffer:
            return self._starve()
        end = self.buffer.find(b"\n")
        end = len(self.buffer) if end == -1 else end + 1
        if limit is not None and limit >= 0:
            end = min(end, limit)
        data = bytes(self.buffer[:end])
        del self.buffer[:end]
        return data

    def read(self, size: int = -1) -> bytes:
        if not self.buffer:
            return self._starve()
        end = len(self.buffer) if size < 0 else min(size, len(self.buffer))
        data = bytes(self.buffer[:end])
        del self.buffer[:end]
        return data

    def close(self) -> None:
        self.closed = True


class FakeIMAPServer:
    """Scripted IMAP server. Later handlers take precedence over earlier ones."""

    def __init__(self) -> None:
        self.greeting = b"* OK IMAP4rev1 Service Ready\r\n"
        self.handlers: list[tuple[re.Pattern[str], Handler]] = []
        self.sent: list[str] = []
        self.connections: list[FakeConnection] = []
        self.hang_up = False
        self.on(r"LOGIN .*", lambda tag, m: ok(tag, "LOGIN completed"))
        self.reply(r"SELECT INBOX", "* 3 EXISTS\r\n* 0 RECENT\r\n{tag} OK [READ-WRITE] SELECT completed\r\n")
        self.reply(r"LOGOUT", "* BYE logging out\r\n{tag} OK LOGOUT completed\r\n")

    def on(self, pattern: str, handler: Handler) -> None:
        self.handlers.insert(0, (re.compile(pattern + "$", re.IGNORECASE), handler))

    def reply(self, pattern: str, template: str) -> None:
        self.on(pattern, lambda tag, m: template.replace("{tag}", tag).encode())

    def fetch_literal(self, msg_id: int, item: str, payload: bytes) -> None:
        self.on(
            rf"FETCH {msg_id} {re.escape(item)}",
            lambda tag, m: literal_fetch(tag, msg_id, item, payload),
        )

    def respond(self, line: str) -> bytes:
        tag, _, command = line.partition(" ")
        for regex, handler in self.handlers:
            match = regex.match(command)
            if match:
                return handler(tag, match)
        return f"{tag} BAD unknown command\r\n".encode()

    def factory(self, host: str, port: int, timeout: float, verify: bool = True) -> FakeConnection:
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection

    @property
    def commands(self) -> list[str]:
        return [line.partition(" ")[2] for line in self.sent]

    @property
    def tags(self) -> list[str]:
        return [line.partition(" ")[0] for line in self.sent]


@pytest.fixture
def imap_server() -> FakeIMAPServer:
    return FakeIMAPServer()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(host="mail.example.com", username="user@example.com", password="s3cret")


@pytest.fixture
def fast_config() -> SessionConfig:
    return SessionConfig(timeout=5, connect_attempts=1, throttle=0, listing_throttle=0)


@pytest.fixture
def mailbox(imap_server: FakeIMAPServer, credentials: Credentials, fast_config: SessionConfig) -> Mailbox:
    return Mailbox(credentials, fast_config, connection_factory=imap_server.factory)
