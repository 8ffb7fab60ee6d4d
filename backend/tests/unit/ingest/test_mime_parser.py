"""Unit tests for MIME parsing and body extraction.

Tests top-level parsing, subject/header extraction, and the fault-isolated
body walk (first-found-wins ordering, per-part failures, traversal limits).
"""

import base64
import email
import email.policy

import pytest

from domain.mail.errors import ParseFailure
from infrastructure.ingest.mime_parser import (
    extract_bodies,
    extract_headers,
    extract_subject,
    parse_message,
    parse_mime_message,
)


def _parse(raw: bytes):
    return email.message_from_bytes(raw, policy=email.policy.default)


class TestParseMimeMessage:
    """Test top-level parsing"""

    def test_parses_plain_message(self, plain_message):
        msg = parse_mime_message(plain_message)
        assert msg.get_content_type() == "text/plain"

    def test_empty_bytes_raise_parse_failure(self):
        with pytest.raises(ParseFailure) as exc:
            parse_mime_message(b"")

        assert exc.value.smtp_code == 451
        assert exc.value.smtp_reply == "451 Processing error"

    def test_parser_exception_becomes_parse_failure(self, monkeypatch):
        def broken_parser(*args, **kwargs):
            raise ValueError("boom")

        monkeypatch.setattr(email, "message_from_bytes", broken_parser)

        with pytest.raises(ParseFailure):
            parse_mime_message(b"Subject: x\r\n\r\nbody")


class TestExtractSubject:
    """Test Subject header decoding"""

    def test_plain_subject(self, plain_message):
        assert extract_subject(_parse(plain_message)) == "Hi"

    def test_missing_subject_is_empty(self):
        msg = _parse(b"From: a@ext.com\r\n\r\nbody\r\n")
        assert extract_subject(msg) == ""

    def test_encoded_word_subject_is_decoded(self):
        msg = _parse(
            b"Subject: =?utf-8?q?Gr=C3=BC=C3=9Fe?=\r\n"
            b"\r\n"
            b"body\r\n"
        )
        assert extract_subject(msg) == "Grüße"


class TestExtractHeaders:
    """Test header collection"""

    def test_preserves_order_and_duplicates(self):
        msg = _parse(
            b"Received: from a by b\r\n"
            b"From: a@ext.com\r\n"
            b"Received: from c by d\r\n"
            b"Subject: Hi\r\n"
            b"\r\n"
            b"body\r\n"
        )

        headers = extract_headers(msg)

        assert list(headers) == ["Received", "From", "Subject"]
        assert headers["Received"] == ["from a by b", "from c by d"]
        assert headers["From"] == ["a@ext.com"]

    def test_folded_header_is_unfolded(self):
        msg = _parse(
            b"Subject: a long\r\n"
            b" folded subject\r\n"
            b"\r\n"
            b"body\r\n"
        )

        assert extract_headers(msg)["Subject"] == ["a long folded subject"]


class TestExtractBodies:
    """Test the recursive body walk"""

    def test_plain_message(self, plain_message):
        bodies = extract_bodies(_parse(plain_message))

        assert bodies.text.strip() == "Hello there"
        assert bodies.html == ""
        assert bodies.partially_failed is False

    def test_html_only_message(self):
        msg = _parse(
            b"Content-Type: text/html; charset=utf-8\r\n"
            b"\r\n"
            b"<b>hi</b>\r\n"
        )

        bodies = extract_bodies(msg)

        assert bodies.text == ""
        assert bodies.html.strip() == "<b>hi</b>"

    def test_alternative_keeps_both_fields(self, alternative_message):
        """text/plain before text/html: both fields populated independently"""
        bodies = extract_bodies(_parse(alternative_message))

        assert bodies.text.strip() == "Plain version"
        assert bodies.html.strip() == "<p>HTML version</p>"

    def test_first_text_part_wins(self):
        msg = _parse(
            b'Content-Type: multipart/mixed; boundary="b"\r\n'
            b"\r\n"
            b"--b\r\n"
            b"Content-Type: text/plain\r\n"
            b"\r\n"
            b"first\r\n"
            b"--b\r\n"
            b"Content-Type: text/plain\r\n"
            b"\r\n"
            b"second\r\n"
            b"--b--\r\n"
        )

        assert extract_bodies(msg).text.strip() == "first"

    def test_traversal_order_is_depth_first(self, nested_message):
        """Nested alternative comes before the later sibling text part"""
        bodies = extract_bodies(_parse(nested_message))

        assert bodies.text.strip() == "First text"
        assert bodies.html.strip() == "<p>First html</p>"
        assert bodies.failed_parts == 0

    def test_attachments_are_skipped(self, nested_message):
        bodies = extract_bodies(_parse(nested_message))
        assert "JVBERi0" not in bodies.text

    def test_base64_part_is_decoded_with_charset(self):
        encoded = base64.b64encode("Grüße aus Vilnius".encode("utf-8"))
        msg = _parse(
            b"Content-Type: text/plain; charset=utf-8\r\n"
            b"Content-Transfer-Encoding: base64\r\n"
            b"\r\n" + encoded + b"\r\n"
        )

        assert extract_bodies(msg).text == "Grüße aus Vilnius"

    def test_declared_latin1_charset(self):
        msg = _parse(
            b"Content-Type: text/plain; charset=iso-8859-1\r\n"
            b"Content-Transfer-Encoding: 8bit\r\n"
            b"\r\n"
            b"caf\xe9\r\n"
        )

        assert extract_bodies(msg).text.strip() == "café"

    def test_unknown_charset_falls_back_to_utf8(self):
        msg = _parse(
            b"Content-Type: text/plain; charset=x-no-such-charset\r\n"
            b"\r\n"
            b"plain ascii\r\n"
        )

        bodies = extract_bodies(msg)

        assert bodies.text.strip() == "plain ascii"
        assert bodies.failed_parts == 0

    def test_failing_part_does_not_affect_siblings(self, nested_message):
        msg = _parse(nested_message)
        inner_plain = msg.get_payload()[0].get_payload()[0]

        def explode():
            raise RuntimeError("cannot decode")

        inner_plain.get_content = explode

        bodies = extract_bodies(msg)

        assert bodies.text.strip() == "Second text"
        assert bodies.html.strip() == "<p>First html</p>"
        assert bodies.failed_parts == 1
        assert bodies.partially_failed is True

    def test_multipart_without_boundary_is_isolated(self):
        msg = _parse(
            b'Content-Type: multipart/mixed; boundary="outer"\r\n'
            b"\r\n"
            b"--outer\r\n"
            b"Content-Type: multipart/alternative\r\n"
            b"\r\n"
            b"no boundary here\r\n"
            b"--outer\r\n"
            b"Content-Type: text/html\r\n"
            b"\r\n"
            b"<i>kept</i>\r\n"
            b"--outer--\r\n"
        )

        bodies = extract_bodies(msg)

        assert bodies.html.strip() == "<i>kept</i>"
        assert bodies.failed_parts == 1

    def test_depth_limit_skips_deep_parts(self):
        msg = _parse(
            b'Content-Type: multipart/mixed; boundary="b0"\r\n'
            b"\r\n"
            b"--b0\r\n"
            b'Content-Type: multipart/mixed; boundary="b1"\r\n'
            b"\r\n"
            b"--b1\r\n"
            b"Content-Type: text/plain\r\n"
            b"\r\n"
            b"too deep\r\n"
            b"--b1--\r\n"
            b"\r\n"
            b"--b0\r\n"
            b"Content-Type: text/html\r\n"
            b"\r\n"
            b"<p>shallow</p>\r\n"
            b"--b0--\r\n"
        )

        bodies = extract_bodies(msg, max_depth=1)

        assert bodies.text == ""
        assert bodies.html.strip() == "<p>shallow</p>"
        assert bodies.failed_parts == 1

    def test_part_limit_stops_traversal(self, alternative_message):
        bodies = extract_bodies(_parse(alternative_message), max_parts=2)

        assert bodies.text.strip() == "Plain version"
        assert bodies.html == ""
        assert bodies.failed_parts == 1

    def test_deeply_nested_message_does_not_raise(self):
        depth = 100
        raw = b""
        for level in range(depth):
            raw += (
                f'Content-Type: multipart/mixed; boundary="b{level}"\r\n\r\n--b{level}\r\n'
            ).encode()
        raw += b"Content-Type: text/plain\r\n\r\nbottom\r\n"
        for level in reversed(range(depth)):
            raw += f"--b{level}--\r\n".encode()

        bodies = extract_bodies(_parse(raw))

        assert bodies.text == ""
        assert bodies.partially_failed is True

    def test_extraction_is_idempotent(self, nested_message):
        first = extract_bodies(_parse(nested_message))
        second = extract_bodies(_parse(nested_message))

        assert (first.text, first.html) == (second.text, second.html)


class TestParseMessage:
    """Test the combined parse entry point"""

    def test_raw_base64_round_trip(self, nested_message):
        parsed = parse_message(nested_message)
        assert base64.b64decode(parsed.raw_base64) == nested_message

    def test_fields_populated(self, alternative_message):
        parsed = parse_message(alternative_message)

        assert parsed.subject == "Alternative"
        assert parsed.headers["To"] == ["user@tikrai.com"]
        assert parsed.text_body.strip() == "Plain version"
        assert parsed.html_body.strip() == "<p>HTML version</p>"
        assert parsed.raw_bytes == alternative_message
