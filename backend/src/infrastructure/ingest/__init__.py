"""Ingest infrastructure module - SMTP handling and MIME parsing."""

from .session_handler import MessageSessionHandler
from .smtp_handler import RelaySMTPHandler

__all__ = ["MessageSessionHandler", "RelaySMTPHandler"]
