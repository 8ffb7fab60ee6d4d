"""Observability module for the mail relay.

Provides structured logging, SMTP session correlation and metrics.
"""

from .logging_config import JSONFormatter, SessionIDFilter, configure_logging
from .metrics import (
    forward_duration_seconds,
    message_size_bytes,
    messages_total,
    mime_part_failures_total,
    recipients_total,
    start_metrics_server,
)
from .session_id import (
    generate_session_id,
    get_session_id,
    reset_session_id,
    session_id_var,
    set_session_id,
)

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "SessionIDFilter",
    # Metrics
    "forward_duration_seconds",
    "message_size_bytes",
    "messages_total",
    "mime_part_failures_total",
    "recipients_total",
    "start_metrics_server",
    # Session ID
    "session_id_var",
    "get_session_id",
    "set_session_id",
    "generate_session_id",
    "reset_session_id",
]
