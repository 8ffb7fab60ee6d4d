"""Session-scoped message handler for the inbound mail relay.

Implements the SMTP transaction callbacks (sender, recipient, data, done)
independently of the SMTP engine. All mutable state lives in the
SmtpTransaction passed to each call, so one handler instance can be shared
by every connection.

Architecture: Hexagonal - Application core, driven by the aiosmtpd adapter
"""

import logging
import time
from typing import BinaryIO, Union

from domain.mail.errors import ForwardFailure, ParseFailure, PolicyRejection
from domain.mail.models import IncomingEmailPayload, SmtpTransaction
from domain.mail.ports.forward_port import ForwardPort
from observability import metrics
from .mime_parser import DEFAULT_MAX_DEPTH, DEFAULT_MAX_PARTS, parse_message

logger = logging.getLogger(__name__)


class MessageSessionHandler:
    """SMTP transaction state machine with a single accepted domain.

    Transaction flow (driven by the SMTP engine):
    1. on_sender - record MAIL FROM (accept-all)
    2. on_recipient - accept RCPT TO only for the accepted domain
    3. on_data - parse the message, build the payload, forward it
    4. on_transaction_end - clear state (always called)

    Failures:
    - PolicyRejection (550) for recipients outside the accepted domain
    - ParseFailure (451) for messages that cannot be parsed at all
    - ForwardFailure (451) when the downstream endpoint fails; the message is
      not retained, the sending MTA is expected to retry
    """

    def __init__(
        self,
        accepted_domain: str,
        forwarder: ForwardPort,
        max_depth: int = DEFAULT_MAX_DEPTH,
        max_parts: int = DEFAULT_MAX_PARTS,
    ):
        """Initialize session handler.

        Args:
            accepted_domain: Domain recipients must belong to (case-insensitive)
            forwarder: Downstream delivery port
            max_depth: MIME nesting limit for body extraction
            max_parts: MIME part limit for body extraction
        """
        self.accepted_domain = accepted_domain.strip().lower().lstrip("@")
        self.forwarder = forwarder
        self.max_depth = max_depth
        self.max_parts = max_parts

    def new_transaction(self) -> SmtpTransaction:
        """Create connection-local transaction state."""
        return SmtpTransaction()

    def accepts(self, address: str) -> bool:
        """Check whether a normalized address belongs to the accepted domain."""
        return address.endswith("@" + self.accepted_domain)

    def on_sender(self, transaction: SmtpTransaction, address: str) -> None:
        """Record the envelope sender. No sender policy is applied."""
        transaction.mail_from = address
        logger.info(f"SMTP MAIL FROM: {address}")

    def on_recipient(self, transaction: SmtpTransaction, address: str) -> str:
        """Validate and record one recipient.

        Args:
            transaction: Connection-local state
            address: Address from RCPT TO

        Returns:
            str: Normalized (stripped, lower-cased) address that was recorded

        Raises:
            PolicyRejection: If the address is outside the accepted domain
        """
        normalized = address.strip().lower()
        logger.info(f"SMTP RCPT TO: {normalized}")

        if not self.accepts(normalized):
            logger.warning(
                f"SMTP RCPT TO rejected - not ending with @{self.accepted_domain}: {normalized}"
            )
            metrics.recipients_total.labels(result="rejected").inc()
            raise PolicyRejection(normalized)

        transaction.rcpt_to.append(normalized)
        metrics.recipients_total.labels(result="accepted").inc()
        logger.debug(f"SMTP RCPT TO accepted: {normalized}")
        return normalized

    async def on_data(
        self,
        transaction: SmtpTransaction,
        data: Union[bytes, BinaryIO],
    ) -> IncomingEmailPayload:
        """Parse the message and forward it downstream.

        Args:
            transaction: Connection-local state with sender and recipients
            data: Raw message bytes or a binary stream to read fully

        Returns:
            IncomingEmailPayload: The payload that was forwarded

        Raises:
            ParseFailure: If the message cannot be parsed
            ForwardFailure: If the downstream call fails or times out
        """
        raw_bytes = data if isinstance(data, (bytes, bytearray)) else data.read()
        raw_bytes = bytes(raw_bytes)

        logger.info(
            f"SMTP DATA received - FROM: {transaction.mail_from}, TO: {transaction.rcpt_to}"
        )
        logger.debug(f"SMTP DATA size: {len(raw_bytes)} bytes")
        metrics.message_size_bytes.observe(len(raw_bytes))

        try:
            parsed = parse_message(
                raw_bytes,
                max_depth=self.max_depth,
                max_parts=self.max_parts,
            )
        except ParseFailure:
            metrics.messages_total.labels(status="parse_error").inc()
            raise

        logger.info(f"SMTP EMAIL SUBJECT: {parsed.subject}")
        logger.debug(f"SMTP EMAIL HEADERS: {list(parsed.headers)}")
        logger.debug(
            f"SMTP EMAIL BODY - text length: {len(parsed.text_body)}, "
            f"html length: {len(parsed.html_body)}"
        )
        if parsed.failed_parts:
            metrics.mime_part_failures_total.inc(parsed.failed_parts)
            logger.warning(
                f"{parsed.failed_parts} MIME part(s) could not be decoded, "
                f"forwarding remaining content"
            )

        payload = IncomingEmailPayload.build(transaction, parsed)

        logger.info(
            f"Forwarding email - FROM: {payload.mail_from}, TO: {list(payload.rcpt_to)}, "
            f"SUBJECT: {payload.subject}"
        )
        start = time.monotonic()
        try:
            await self.forwarder.forward(payload)
        except ForwardFailure:
            metrics.messages_total.labels(status="forward_error").inc()
            raise
        except Exception as e:
            metrics.messages_total.labels(status="forward_error").inc()
            raise ForwardFailure(f"Forwarder raised {type(e).__name__}: {e}") from e
        finally:
            metrics.forward_duration_seconds.observe(time.monotonic() - start)

        transaction.completed = True
        metrics.messages_total.labels(status="forwarded").inc()
        logger.info(
            f"Email forwarded successfully - FROM: {payload.mail_from}, "
            f"TO: {list(payload.rcpt_to)}"
        )
        return payload

    def on_transaction_end(self, transaction: SmtpTransaction) -> None:
        """Clear sender and recipients, returning the transaction to IDLE."""
        logger.debug(
            f"SMTP transaction done - clearing FROM: {transaction.mail_from}, "
            f"TO: {transaction.rcpt_to}"
        )
        transaction.reset()
