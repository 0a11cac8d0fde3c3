"""Data models for IMAP Mail Reader."""

from __future__ import annotations

from dataclasses import dataclass, field

from .constants import (
    BATCH_THROTTLE,
    CONNECT_ATTEMPTS,
    IMAP_PORT,
    LISTING_THROTTLE,
    NOT_PRESENT,
    STEP_TIMEOUT,
)


@dataclass(frozen=True)
class Credentials:
    """Server and login details for one invocation."""

    host: str
    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class SessionConfig:
    """Tunables shared by every session of one invocation."""

    port: int = IMAP_PORT
    timeout: float = STEP_TIMEOUT  # per protocol step
    connect_attempts: int = CONNECT_ATTEMPTS
    verify_tls: bool = True
    throttle: float = BATCH_THROTTLE
    listing_throttle: float = LISTING_THROTTLE


@dataclass
class UntaggedResponse:
    """One `*` response line, with any literals it carried."""

    text: str
    literals: list[bytes] = field(default_factory=list)


@dataclass
class TaggedResponse:
    """Completion of one command plus the untagged data received for it."""

    tag: str
    status: str  # OK, NO or BAD
    text: str
    untagged: list[UntaggedResponse] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "OK"


@dataclass
class Exchange:
    """Everything received during one login/select/command/logout cycle."""

    lines: list[str]
    response: TaggedResponse | None = None


@dataclass
class MessageDescriptor:
    """Parsed view of one message in the INBOX."""

    msg_id: int  # sequence number, not stable across expunges
    sender: str = NOT_PRESENT
    recipient: str = NOT_PRESENT
    subject: str = NOT_PRESENT
    date: str = NOT_PRESENT
    body: str | None = None


@dataclass
class ResultRow:
    """One row of a sender search results file."""

    sender_email: str
    email_id: str
    subject: str
    date: str
    status: str


@dataclass
class UrlRow:
    """One row of a URL extraction file."""

    email: str
    subject: str
    match_url: str


@dataclass
class BatchSummary:
    """Counters reported at the end of a batch run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    found: int = 0
    output_path: str = ""
    failures: list[str] = field(default_factory=list)
