"""Mail relay domain models.

SmtpTransaction is the connection-local state of one SMTP exchange.
ParsedMessage and IncomingEmailPayload are produced once per DATA command.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple


class TransactionState(str, Enum):
    """SMTP transaction lifecycle.

    State flow:
    IDLE → HAS_SENDER → HAS_RECIPIENTS → COMPLETE, back to IDLE on reset
    """
    IDLE = "IDLE"
    HAS_SENDER = "HAS_SENDER"
    HAS_RECIPIENTS = "HAS_RECIPIENTS"
    COMPLETE = "COMPLETE"


@dataclass
class SmtpTransaction:
    """Mutable state for one connection's message exchange.

    One instance belongs to exactly one SMTP connection. The session handler
    never stores these on itself, so a single handler can serve many
    concurrent connections.

    Attributes:
        mail_from: Envelope sender, "" until MAIL FROM is seen
        rcpt_to: Accepted (normalized) recipients in call order
        completed: True once DATA was processed successfully
    """
    mail_from: str = ""
    rcpt_to: List[str] = field(default_factory=list)
    completed: bool = False

    @property
    def state(self) -> TransactionState:
        if self.completed:
            return TransactionState.COMPLETE
        if self.rcpt_to:
            return TransactionState.HAS_RECIPIENTS
        if self.mail_from:
            return TransactionState.HAS_SENDER
        return TransactionState.IDLE

    def reset(self) -> None:
        """Return to IDLE, dropping sender and recipients."""
        self.mail_from = ""
        self.rcpt_to.clear()
        self.completed = False


@dataclass(frozen=True)
class BodyParts:
    """Best-effort result of the MIME body walk.

    Attributes:
        text: First non-empty text/plain content found, or ""
        html: First non-empty text/html content found, or ""
        failed_parts: Number of parts that could not be decoded or were skipped
            because of traversal limits
    """
    text: str = ""
    html: str = ""
    failed_parts: int = 0

    @property
    def partially_failed(self) -> bool:
        return self.failed_parts > 0

    def merge(self, other: "BodyParts") -> "BodyParts":
        """Combine with a later sibling's result, keeping first-found values."""
        return BodyParts(
            text=self.text or other.text,
            html=self.html or other.html,
            failed_parts=self.failed_parts + other.failed_parts,
        )


@dataclass
class ParsedMessage:
    """Fields extracted from one raw message."""
    raw_bytes: bytes
    raw_base64: str
    subject: str = ""
    headers: Dict[str, List[str]] = field(default_factory=dict)
    text_body: str = ""
    html_body: str = ""
    failed_parts: int = 0


@dataclass(frozen=True)
class IncomingEmailPayload:
    """Immutable message handed to the forward client.

    Attributes:
        mail_from: Envelope sender ("" if MAIL FROM never set)
        rcpt_to: Accepted recipients in order
        subject: Decoded Subject header
        text_body: Plain-text body
        html_body: HTML body
        headers: Header name -> values in original order
        raw_base64: Base64 of the exact DATA bytes
    """
    mail_from: str
    rcpt_to: Tuple[str, ...]
    subject: str
    text_body: str
    html_body: str
    headers: Mapping[str, Tuple[str, ...]]
    raw_base64: str

    @classmethod
    def build(
        cls,
        transaction: SmtpTransaction,
        parsed: ParsedMessage,
    ) -> "IncomingEmailPayload":
        """Snapshot transaction state and parsed fields into a payload."""
        headers = {name: tuple(values) for name, values in parsed.headers.items()}
        return cls(
            mail_from=transaction.mail_from or "",
            rcpt_to=tuple(transaction.rcpt_to),
            subject=parsed.subject,
            text_body=parsed.text_body,
            html_body=parsed.html_body,
            headers=MappingProxyType(headers),
            raw_base64=parsed.raw_base64,
        )

    @property
    def first_recipient(self) -> str:
        return self.rcpt_to[0] if self.rcpt_to else ""

    def flattened_headers(self) -> str:
        """Render headers as 'Name: v1, v2' lines joined by newlines."""
        return "\n".join(
            f"{name}: {', '.join(values)}" for name, values in self.headers.items()
        )
