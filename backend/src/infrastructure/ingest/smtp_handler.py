"""SMTP Handler for the inbound mail relay.

Implements the aiosmtpd handler hooks and translates them into calls on the
MessageSessionHandler. Transaction state is kept per aiosmtpd Session, so a
single handler instance serves all concurrent connections.

Architecture: Hexagonal - Infrastructure adapter for the SMTP engine
"""

import logging
from dataclasses import dataclass
from typing import List
from weakref import WeakKeyDictionary

from aiosmtpd.smtp import Envelope, Session, SMTP

from domain.mail.errors import PolicyRejection, RelayError
from domain.mail.models import SmtpTransaction
from observability import metrics
from observability.session_id import generate_session_id, set_session_id
from .session_handler import MessageSessionHandler

logger = logging.getLogger(__name__)

PROCESSING_ERROR_REPLY = "451 Processing error"


@dataclass
class _ConnectionState:
    session_id: str
    transaction: SmtpTransaction


class RelaySMTPHandler:
    """aiosmtpd handler for single-domain relaying.

    Hook mapping:
    - MAIL → on_sender (any stale transaction for the connection is ended first)
    - RCPT → on_recipient, '550 Relaying denied' outside the accepted domain
    - DATA → on_data, '451 Processing error' on parse or forward failure
    - RSET → on_transaction_end

    on_transaction_end always runs after DATA, whatever the outcome.
    """

    def __init__(self, session_handler: MessageSessionHandler):
        """Initialize SMTP handler.

        Args:
            session_handler: Core transaction handler
        """
        self.session_handler = session_handler
        # Entries disappear with the aiosmtpd Session when the connection closes
        self._connections: "WeakKeyDictionary[Session, _ConnectionState]" = WeakKeyDictionary()

    def connection_state(self, session: Session) -> _ConnectionState:
        """Return (creating on first use) the state for one connection.

        Also binds the connection's session ID to the logging context.
        """
        state = self._connections.get(session)
        if state is None:
            state = _ConnectionState(
                session_id=generate_session_id(),
                transaction=self.session_handler.new_transaction(),
            )
            self._connections[session] = state
            set_session_id(state.session_id)
            logger.debug(f"SMTP connection from {session.peer}", extra={"peer": session.peer})
        else:
            set_session_id(state.session_id)
        return state

    async def handle_MAIL(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
        address: str,
        mail_options: List[str],
    ) -> str:
        state = self.connection_state(session)
        # EHLO/HELO reset the envelope without an RSET hook
        if state.transaction.mail_from or state.transaction.rcpt_to:
            self.session_handler.on_transaction_end(state.transaction)

        self.session_handler.on_sender(state.transaction, address)
        envelope.mail_from = address
        envelope.mail_options.extend(mail_options)
        return "250 OK"

    async def handle_RCPT(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
        address: str,
        rcpt_options: List[str],
    ) -> str:
        state = self.connection_state(session)
        try:
            normalized = self.session_handler.on_recipient(state.transaction, address)
        except PolicyRejection as e:
            return e.smtp_reply

        envelope.rcpt_tos.append(normalized)
        envelope.rcpt_options.extend(rcpt_options)
        return "250 OK"

    async def handle_DATA(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        """Handle email DATA command (main SMTP handler entry point).

        Args:
            server: SMTP server instance
            session: SMTP session
            envelope: Email envelope (content, sender, recipients)

        Returns:
            str: SMTP response code and message
                '250 Message accepted for delivery' - Forwarded
                '451 Processing error' - Parse or forward failure
        """
        state = self.connection_state(session)
        transaction = state.transaction

        content = envelope.original_content
        if content is None:
            content = envelope.content or b""
        if isinstance(content, str):
            content = content.encode("utf-8", errors="surrogateescape")

        try:
            await self.session_handler.on_data(transaction, content)
            return "250 Message accepted for delivery"

        except RelayError as e:
            logger.error(
                f"Failed to process email - FROM: {transaction.mail_from}, "
                f"TO: {transaction.rcpt_to}, ERROR: {e.detail}",
                extra={"mail_from": transaction.mail_from, "smtp_code": e.smtp_code},
            )
            return e.smtp_reply

        except Exception as e:
            logger.error(
                f"Unexpected error processing email - FROM: {transaction.mail_from}, "
                f"TO: {transaction.rcpt_to}, ERROR: {e}",
                exc_info=True,
            )
            metrics.messages_total.labels(status="error").inc()
            return PROCESSING_ERROR_REPLY

        finally:
            self.session_handler.on_transaction_end(transaction)

    async def handle_RSET(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        state = self.connection_state(session)
        self.session_handler.on_transaction_end(state.transaction)
        return "250 OK"
