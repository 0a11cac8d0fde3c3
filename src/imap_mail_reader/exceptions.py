"""Exception hierarchy for IMAP Mail Reader."""


class ReaderError(Exception):
    """Base exception for everything the reader raises on purpose."""


class UsageError(ReaderError):
    """Raised when the command line is incomplete or inconsistent."""


class ValidationError(ReaderError):
    """Raised for a malformed email address, date, id or CSV file."""


class IMAPError(ReaderError):
    """Base exception for transport and protocol failures.

    ``step`` names the protocol step that failed (CONNECT, LOGIN, SELECT,
    the command verb, or LOGOUT).
    """

    def __init__(self, step: str, detail: str) -> None:
        super().__init__(f"{step} failed: {detail}")
        self.step = step
        self.detail = detail


class IMAPConnectionError(IMAPError):
    """Raised when the TLS connection cannot be established or is lost."""


class AuthenticationError(IMAPError):
    """Raised when LOGIN is answered with NO or BAD."""


class MailboxError(IMAPError):
    """Raised when SELECT is answered with NO or BAD."""


class CommandError(IMAPError):
    """Raised when the operation command is answered with NO or BAD."""


class IMAPTimeoutError(IMAPError, TimeoutError):
    """Raised when no tagged completion arrives within the step timeout."""


class ProtocolError(IMAPError):
    """Raised when the server sends something the reader cannot frame."""


class ParseError(ReaderError):
    """Raised when an essential payload is missing from a response."""


class EmptyBodyError(ReaderError):
    """Raised when neither BODY[TEXT] nor BODY[] yields any text."""

    def __init__(self, msg_id: int) -> None:
        super().__init__(f"No readable body for email {msg_id}")
        self.msg_id = msg_id
