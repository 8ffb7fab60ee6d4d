"""Mail domain module - SMTP transaction state, parsed messages, relay errors."""

from .models import (
    BodyParts,
    IncomingEmailPayload,
    ParsedMessage,
    SmtpTransaction,
    TransactionState,
)
from .errors import (
    ForwardFailure,
    ParseFailure,
    PartExtractionFailure,
    PolicyRejection,
    RelayError,
)

__all__ = [
    "BodyParts",
    "IncomingEmailPayload",
    "ParsedMessage",
    "SmtpTransaction",
    "TransactionState",
    "ForwardFailure",
    "ParseFailure",
    "PartExtractionFailure",
    "PolicyRejection",
    "RelayError",
]
