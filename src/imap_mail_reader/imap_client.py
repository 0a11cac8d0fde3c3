"""IMAP session client for the INBOX of one account.

Every operation follows the same cycle on a TLS connection to port 993:
LOGIN, SELECT INBOX, the operation command, LOGOUT.  Each line is sent only
after the tagged completion of the previous one has been read.
"""

from __future__ import annotations

import logging
import socket
import ssl
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from .constants import (
    BATCH_HEADER_FIELDS,
    CONNECT_BACKOFF_MAX,
    LIST_HEADER_FIELDS,
    MAILBOX,
    READ_HEADER_FIELDS,
)
from .exceptions import (
    AuthenticationError,
    CommandError,
    EmptyBodyError,
    IMAPConnectionError,
    IMAPError,
    MailboxError,
)
from .models import Credentials, Exchange, MessageDescriptor, SessionConfig, TaggedResponse
from .parsing import (
    fetch_payload,
    normalize_body,
    parse_header_fields,
    parse_search,
    parse_status_messages,
    split_headers_body,
)
from .protocol import ResponseReader, TagGenerator, mask_command, quote_string

logger = logging.getLogger(__name__)

ConnectionFactory = Callable[[str, int, float, bool], Any]


def _is_retryable_connect_error(exc: BaseException) -> bool:
    return isinstance(exc, OSError) and not isinstance(exc, ssl.SSLError)


def open_tls_connection(host: str, port: int, timeout: float, verify: bool = True) -> ssl.SSLSocket:
    """Open a TCP connection and complete the TLS handshake."""
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    sock = socket.create_connection((host, port), timeout=timeout)
    try:
        return context.wrap_socket(sock, server_hostname=host)
    except BaseException:
        sock.close()
        raise


class IMAPSession:
    """One TLS connection, used for a login/select/command(s)/logout cycle.

    Usage:
        >>> with IMAPSession(credentials) as session:
        ...     session.login()
        ...     session.select()
        ...     response = session.command("STATUS INBOX (MESSAGES)")
        ...     session.logout()
    """

    def __init__(
        self,
        credentials: Credentials,
        config: SessionConfig | None = None,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self.credentials = credentials
        self.config = config or SessionConfig()
        self._connection_factory = connection_factory or open_tls_connection
        self._sock: Any = None
        self._stream: Any = None
        self._reader: ResponseReader | None = None
        self.tags = TagGenerator()
        self.transcript: list[str] = []
        self.authenticated = False
        self.selected = False

    # --- connection ---

    def _connect_once(self) -> Any:
        return self._connection_factory(
            self.credentials.host,
            self.config.port,
            self.config.timeout,
            self.config.verify_tls,
        )

    def open(self) -> "IMAPSession":
        """Connect, retrying transient socket errors, and read the greeting."""
        host, port = self.credentials.host, self.config.port
        logger.info("Connecting to %s:%d", host, port)
        retrying = Retrying(
            retry=retry_if_exception(_is_retryable_connect_error),
            wait=wait_exponential(multiplier=1, min=1, max=CONNECT_BACKOFF_MAX),
            stop=stop_after_attempt(max(1, self.config.connect_attempts)),
            reraise=True,
        )
        try:
            self._sock = retrying(self._connect_once)
        except ssl.SSLError as exc:
            raise IMAPConnectionError("CONNECT", f"TLS handshake with {host}:{port} failed: {exc}") from exc
        except OSError as exc:
            raise IMAPConnectionError("CONNECT", f"cannot reach {host}:{port}: {exc}") from exc

        self._stream = self._sock.makefile("rb")
        self._reader = ResponseReader(
            self._stream,
            set_timeout=self._sock.settimeout,
            transcript=self.transcript,
        )
        try:
            greeting = self._reader.read_greeting(self.config.timeout)
        except IMAPError:
            self.close()
            raise
        logger.debug("Greeting: %s", greeting)
        return self

    def close(self) -> None:
        for resource in (self._stream, self._sock):
            if resource is None:
                continue
            try:
                resource.close()
            except OSError as exc:
                logger.debug("Error while closing connection: %s", exc)
        self._stream = None
        self._sock = None
        self._reader = None
        self.authenticated = False
        self.selected = False

    def __enter__(self) -> "IMAPSession":
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    # --- commands ---

    def _send(self, text: str, step: str) -> TaggedResponse:
        if self._reader is None:
            raise IMAPConnectionError(step, "session is not connected")
        tag = self.tags.next()
        line = f"{tag} {text}" if text else tag
        logger.debug("> %s", mask_command(line))
        try:
            self._sock.sendall(f"{line}\r\n".encode("utf-8"))
        except OSError as exc:
            raise IMAPConnectionError(step, str(exc)) from exc
        response = self._reader.read_response(tag, self.config.timeout, step)
        logger.debug("< %s %s %s", response.tag, response.status, response.text)
        return response

    def login(self) -> TaggedResponse:
        user = quote_string(self.credentials.username)
        password = quote_string(self.credentials.password)
        response = self._send(f"LOGIN {user} {password}", "LOGIN")
        if not response.ok:
            raise AuthenticationError("LOGIN", f"{response.status} {response.text}".strip())
        self.authenticated = True
        return response

    def select(self, mailbox: str = MAILBOX) -> TaggedResponse:
        response = self._send(f"SELECT {mailbox}", "SELECT")
        if not response.ok:
            raise MailboxError("SELECT", f"{response.status} {response.text}".strip())
        self.selected = True
        return response

    def command(self, text: str) -> TaggedResponse:
        step = text.split(" ", 1)[0].upper() if text else "COMMAND"
        response = self._send(text, step)
        if not response.ok:
            raise CommandError(step, f"{response.status} {response.text}".strip())
        return response

    def logout(self) -> None:
        """Send LOGOUT; failures here do not invalidate earlier results."""
        try:
            self._send("LOGOUT", "LOGOUT")
        except IMAPError as exc:
            logger.warning("LOGOUT did not complete cleanly: %s", exc)
        self.authenticated = False
        self.selected = False


def execute(
    credentials: Credentials,
    command: str,
    config: SessionConfig | None = None,
    connection_factory: ConnectionFactory | None = None,
) -> Exchange:
    """Run one full LOGIN/SELECT/command/LOGOUT cycle on a fresh connection.

    An empty *command* only checks that login and select succeed.
    """
    with IMAPSession(credentials, config, connection_factory) as session:
        session.login()
        session.select()
        response = session.command(command) if command else None
        session.logout()
        return Exchange(lines=list(session.transcript), response=response)


class Mailbox:
    """INBOX operations built on the session client.

    By default every call opens its own connection.  With
    ``reuse_connection=True`` a single logged-in session serves all calls
    until ``close()``.
    """

    def __init__(
        self,
        credentials: Credentials,
        config: SessionConfig | None = None,
        reuse_connection: bool = False,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self.credentials = credentials
        self.config = config or SessionConfig()
        self.reuse_connection = reuse_connection
        self._connection_factory = connection_factory or open_tls_connection
        self._shared: IMAPSession | None = None

    def __enter__(self) -> "Mailbox":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        if self._shared is not None:
            try:
                self._shared.logout()
            finally:
                self._shared.close()
                self._shared = None

    @contextmanager
    def _session(self) -> Iterator[IMAPSession]:
        if self.reuse_connection:
            if self._shared is None:
                session = IMAPSession(self.credentials, self.config, self._connection_factory)
                session.open()
                try:
                    session.login()
                    session.select()
                except IMAPError:
                    session.close()
                    raise
                self._shared = session
            try:
                yield self._shared
            except IMAPError:
                # The stream may be out of sync; reconnect on the next call.
                self._shared.close()
                self._shared = None
                raise
            return

        with IMAPSession(self.credentials, self.config, self._connection_factory) as session:
            session.login()
            session.select()
            yield session
            session.logout()

    def run(self, command: str) -> TaggedResponse:
        with self._session() as session:
            return session.command(command)

    # --- operations ---

    def check(self) -> bool:
        """LOGIN + SELECT INBOX + LOGOUT with no command in between."""
        with self._session():
            pass
        return True

    def count(self) -> int:
        return parse_status_messages(self.run(f"STATUS {MAILBOX} (MESSAGES)"))

    def search(self, criteria: str) -> list[int]:
        return parse_search(self.run(f"SEARCH {criteria}"))

    def fetch_headers(
        self,
        msg_id: int,
        fields: tuple[str, ...] = LIST_HEADER_FIELDS,
    ) -> MessageDescriptor:
        item = f"BODY[HEADER.FIELDS ({' '.join(fields)})]"
        response = self.run(f"FETCH {msg_id} {item}")
        return parse_header_fields(fetch_payload(response, msg_id), msg_id)

    def fetch_subject(self, msg_id: int) -> MessageDescriptor:
        return self.fetch_headers(msg_id, ("SUBJECT",))

    def fetch_batch_headers(self, msg_id: int) -> MessageDescriptor:
        return self.fetch_headers(msg_id, BATCH_HEADER_FIELDS)

    def read_body(self, msg_id: int) -> str:
        """Return the body text, falling back from BODY[TEXT] to BODY[]."""
        response = self.run(f"FETCH {msg_id} BODY[TEXT]")
        body = normalize_body(fetch_payload(response, msg_id))
        if body.strip():
            return body
        logger.warning("BODY[TEXT] of email %d is empty, trying BODY[]", msg_id)
        response = self.run(f"FETCH {msg_id} BODY[]")
        body = split_headers_body(fetch_payload(response, msg_id))
        if body.strip():
            return body
        raise EmptyBodyError(msg_id)

    def read_message(self, msg_id: int) -> MessageDescriptor:
        descriptor = self.fetch_headers(msg_id, READ_HEADER_FIELDS)
        descriptor.body = self.read_body(msg_id)
        return descriptor

    def latest_range(self, n: int) -> list[int]:
        """Sequence numbers of the latest *n* messages, oldest first."""
        total = self.count()
        if total <= 0 or n <= 0:
            return []
        return list(range(max(1, total - n + 1), total + 1))

    def all_ids(self) -> list[int]:
        return list(range(1, self.count() + 1))

    def debug_fetch(self, msg_id: int) -> tuple[Exchange, bytes | None]:
        """Fetch BODY[TEXT] on a fresh connection and keep the whole transcript."""
        exchange = execute(
            self.credentials,
            f"FETCH {msg_id} BODY[TEXT]",
            self.config,
            self._connection_factory,
        )
        return exchange, fetch_payload(exchange.response, msg_id)
