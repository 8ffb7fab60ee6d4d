"""SMTP session IDs for log correlation.

One ID is issued per SMTP connection. aiosmtpd serves each connection in its
own task, so a value bound inside a hook is only visible to that connection.
"""

import uuid
from contextvars import ContextVar, Token
from typing import Optional

NO_SESSION_ID = "no-session-id"

session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)


def generate_session_id() -> str:
    """Return a short random ID, e.g. '3f9c2a7d41b0'."""
    return uuid.uuid4().hex[:12]


def get_session_id() -> str:
    return session_id_var.get() or NO_SESSION_ID


def set_session_id(session_id: str) -> Token:
    """Bind a session ID to the current context.

    Returns:
        Token: Pass to reset_session_id to restore the previous value
    """
    return session_id_var.set(session_id)


def reset_session_id(token: Token) -> None:
    session_id_var.reset(token)
