"""Pytest fixtures for mail relay testing.

Provides reusable test fixtures for:
- A recording forwarder standing in for the downstream endpoint
- A session handler bound to the tikrai.com domain
- Raw MIME messages (plain, alternative, nested)

Usage:
    @pytest.mark.asyncio
    async def test_forward(session_handler, forwarder, plain_message):
        txn = session_handler.new_transaction()
        await session_handler.on_data(txn, plain_message)
        assert forwarder.payloads
"""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Adjust imports based on your project structure
backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from domain.mail.models import IncomingEmailPayload
from domain.mail.ports.forward_port import ForwardPort
from infrastructure.ingest.session_handler import MessageSessionHandler


ACCEPTED_DOMAIN = "tikrai.com"


class RecordingForwarder(ForwardPort):
    """ForwardPort that records payloads and optionally fails."""

    def __init__(self, error: Optional[Exception] = None):
        self.payloads: List[IncomingEmailPayload] = []
        self.error = error

    async def forward(self, payload: IncomingEmailPayload) -> None:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error


@pytest.fixture
def forwarder() -> RecordingForwarder:
    return RecordingForwarder()


@pytest.fixture
def make_forwarder():
    """Factory for forwarders that fail with a given exception."""
    return RecordingForwarder


@pytest.fixture
def session_handler(forwarder: RecordingForwarder) -> MessageSessionHandler:
    return MessageSessionHandler(accepted_domain=ACCEPTED_DOMAIN, forwarder=forwarder)


@pytest.fixture
def plain_message() -> bytes:
    """Single-part text/plain message with subject 'Hi'."""
    return (
        b"From: Alice <a@ext.com>\r\n"
        b"To: user@tikrai.com\r\n"
        b"Subject: Hi\r\n"
        b"Message-ID: <plain-1@ext.com>\r\n"
        b"MIME-Version: 1.0\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"Content-Transfer-Encoding: 7bit\r\n"
        b"\r\n"
        b"Hello there\r\n"
    )


@pytest.fixture
def alternative_message() -> bytes:
    """multipart/alternative with text/plain listed before text/html."""
    return (
        b"From: a@ext.com\r\n"
        b"To: user@tikrai.com\r\n"
        b"Subject: Alternative\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/alternative; boundary="alt"\r\n'
        b"\r\n"
        b"--alt\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Plain version\r\n"
        b"--alt\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<p>HTML version</p>\r\n"
        b"--alt--\r\n"
    )


@pytest.fixture
def nested_message() -> bytes:
    """multipart/mixed holding an alternative part, a second text part and an attachment."""
    return (
        b"From: a@ext.com\r\n"
        b"To: user@tikrai.com\r\n"
        b"Subject: Nested\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="outer"\r\n'
        b"\r\n"
        b"--outer\r\n"
        b'Content-Type: multipart/alternative; boundary="inner"\r\n'
        b"\r\n"
        b"--inner\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"First text\r\n"
        b"--inner\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<p>First html</p>\r\n"
        b"--inner--\r\n"
        b"\r\n"
        b"--outer\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Second text\r\n"
        b"--outer\r\n"
        b"Content-Type: application/pdf\r\n"
        b'Content-Disposition: attachment; filename="order.pdf"\r\n'
        b"Content-Transfer-Encoding: base64\r\n"
        b"\r\n"
        b"JVBERi0xLjQK\r\n"
        b"--outer--\r\n"
    )
