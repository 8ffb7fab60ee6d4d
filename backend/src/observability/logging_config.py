"""Structured logging for the mail relay.

Every record carries the SMTP session ID of the connection being served, so
all lines for one client conversation can be grouped. Output is one JSON
object per line by default, or a plain text line for local runs.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Tuple

from .session_id import get_session_id

# Optional attributes passed via `extra=` that are copied into JSON output
EXTRA_FIELDS: Tuple[str, ...] = ("peer", "mail_from", "smtp_code")

# Library loggers that are chatty at INFO
NOISY_LOGGERS: Tuple[str, ...] = ("mail.log", "httpx", "httpcore")

PLAIN_FORMAT = "%(asctime)s %(levelname)-8s [%(session_id)s] %(name)s: %(message)s"


class SessionIDFilter(logging.Filter):
    """Stamp each record with the current SMTP session ID."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = get_session_id()
        return True


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON objects.

    Fields: timestamp, level, logger, session_id, module, function, message,
    plus error/traceback when exc_info is set and any of EXTRA_FIELDS present
    on the record.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "session_id": getattr(record, "session_id", "no-session-id"),
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        for field in EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is None:
                continue
            # peer is an (host, port) tuple from aiosmtpd
            log_data[field] = value if isinstance(value, (int, str)) else str(value)

        return json.dumps(log_data, ensure_ascii=False)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter()
    return logging.Formatter(PLAIN_FORMAT)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Install a single stdout handler on the root logger.

    Calling it again replaces the previous handler, so it is safe to use from
    tests and from the process entry point alike.

    Args:
        level: Level name such as "INFO" or "DEBUG"
        json_format: JSON lines when True, plain text otherwise
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(build_formatter(json_format))
    handler.addFilter(SessionIDFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(numeric_level)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
