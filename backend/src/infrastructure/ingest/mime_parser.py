"""MIME Parser for inbound relay messages.

Handles parsing of raw DATA bytes, extraction of the subject and the full
header list, and the recursive walk that finds the plain-text and HTML bodies.
Supports RFC 2047 encoded headers and nested multipart messages.

The body walk is fault isolated: a part that cannot be decoded contributes
nothing and the walk continues with its siblings.
"""

import base64
import email
import email.policy
import logging
import re
from email.message import Message
from typing import Dict, List

from domain.mail.errors import ParseFailure, PartExtractionFailure
from domain.mail.models import BodyParts, ParsedMessage

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32
DEFAULT_MAX_PARTS = 500

_FOLDING_RE = re.compile(r"\r?\n(?=[ \t])")


def parse_mime_message(raw_mime: bytes) -> Message:
    """Parse raw MIME bytes into email.Message object.

    Args:
        raw_mime: Raw MIME message bytes

    Returns:
        email.Message: Parsed MIME message

    Raises:
        ParseFailure: If the bytes are empty or MIME parsing fails
    """
    if not raw_mime:
        raise ParseFailure("Empty message")

    try:
        return email.message_from_bytes(
            raw_mime,
            policy=email.policy.default
        )
    except Exception as e:
        logger.error(f"Failed to parse MIME message: {e}")
        raise ParseFailure(f"Invalid MIME message: {e}") from e


def extract_subject(msg: Message) -> str:
    """Return the decoded Subject header, or "" if absent or undecodable."""
    try:
        subject = msg.get("Subject")
    except Exception as e:
        logger.warning(f"Failed to decode Subject header: {e}")
        return ""
    if subject is None:
        return ""
    return str(subject)


def _header_value(msg: Message, name: str, raw_value: str) -> str:
    try:
        return str(msg.policy.header_fetch_parse(name, raw_value))
    except Exception as e:
        logger.debug(f"Keeping raw value for undecodable header {name}: {e}")
        return _FOLDING_RE.sub("", raw_value)


def extract_headers(msg: Message) -> Dict[str, List[str]]:
    """Collect every header in message order.

    Duplicate names are kept as multiple values under one key, in the order
    they appear. Values are decoded where possible, otherwise unfolded raw.

    Args:
        msg: Parsed email message

    Returns:
        Dict[str, List[str]]: Header name -> values
    """
    headers: Dict[str, List[str]] = {}
    for name, raw_value in msg.raw_items():
        headers.setdefault(name, []).append(_header_value(msg, name, raw_value))
    return headers


def _decode_text(part: Message) -> str:
    """Decode a text/* leaf using its declared charset.

    Unknown charsets fall back to UTF-8 with replacement characters.
    """
    try:
        content = part.get_content()
    except LookupError:
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")

    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    if not isinstance(content, str):
        raise PartExtractionFailure(
            f"Unexpected content {type(content).__name__} for {part.get_content_type()}"
        )
    return content


class _WalkBudget:
    """Shared counters for one extraction run."""

    def __init__(self, max_depth: int, max_parts: int):
        self.max_depth = max_depth
        self.remaining_parts = max_parts


def _walk(part: Message, depth: int, budget: _WalkBudget) -> BodyParts:
    budget.remaining_parts -= 1

    try:
        content_type = part.get_content_type()

        if content_type == "text/plain":
            return BodyParts(text=_decode_text(part))

        if content_type == "text/html":
            return BodyParts(html=_decode_text(part))

        if part.get_content_maintype() == "multipart":
            children = part.get_payload()
            if not isinstance(children, list):
                raise PartExtractionFailure(
                    f"Cannot handle multipart content for {content_type}"
                )

            if depth >= budget.max_depth:
                logger.warning(
                    f"MIME nesting deeper than {budget.max_depth}, "
                    f"skipping {len(children)} parts"
                )
                return BodyParts(failed_parts=len(children))

            result = BodyParts()
            for index, child in enumerate(children):
                if budget.remaining_parts <= 0:
                    skipped = len(children) - index
                    logger.warning(f"MIME part limit reached, skipping {skipped} parts")
                    return result.merge(BodyParts(failed_parts=skipped))
                result = result.merge(_walk(child, depth + 1, budget))
            return result

        # Attachments, inline images, message/rfc822 and unknown types
        return BodyParts()

    except Exception as e:
        logger.warning(
            f"Failed to extract body from part with MIME type {_describe(part)}: {e}"
        )
        return BodyParts(failed_parts=1)


def _describe(part: Message) -> str:
    try:
        return part.get_content_type()
    except Exception:
        return "unknown"


def extract_bodies(
    msg: Message,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_parts: int = DEFAULT_MAX_PARTS,
) -> BodyParts:
    """Find the first text/plain and first text/html content in a message.

    Walks the MIME tree depth-first, left to right. The first non-empty
    candidate of each kind wins, regardless of multipart/alternative
    ordering conventions. Never raises.

    Args:
        msg: Parsed email message (or any nested part)
        max_depth: Maximum multipart nesting to descend into
        max_parts: Maximum number of parts to visit

    Returns:
        BodyParts: Text, HTML and the count of parts that failed
    """
    return _walk(msg, 0, _WalkBudget(max_depth, max_parts))


def parse_message(
    raw_mime: bytes,
    max_depth: int = DEFAULT_MAX_DEPTH,
    max_parts: int = DEFAULT_MAX_PARTS,
) -> ParsedMessage:
    """Parse raw DATA bytes into a ParsedMessage.

    Args:
        raw_mime: Exact bytes delivered by the client
        max_depth: Body walk nesting limit
        max_parts: Body walk part limit

    Returns:
        ParsedMessage: Subject, headers, bodies and the raw base64 copy

    Raises:
        ParseFailure: If the message cannot be parsed at all
    """
    raw_base64 = base64.b64encode(raw_mime).decode("ascii")

    msg = parse_mime_message(raw_mime)
    subject = extract_subject(msg)
    headers = extract_headers(msg)
    bodies = extract_bodies(msg, max_depth=max_depth, max_parts=max_parts)

    return ParsedMessage(
        raw_bytes=raw_mime,
        raw_base64=raw_base64,
        subject=subject,
        headers=headers,
        text_body=bodies.text,
        html_body=bodies.html,
        failed_parts=bodies.failed_parts,
    )
