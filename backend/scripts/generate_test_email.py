#!/usr/bin/env python3
"""Test Email Generator for the inbound mail relay.

Builds a test message (plain text, optional HTML alternative, optional file
attachments) and prints it or sends it to a running relay.

Usage:
    # Generate email to stdout
    python scripts/generate_test_email.py --to user@tikrai.com \
        --from sender@example.com --subject "Hi"

    # Plain text plus HTML alternative, sent via SMTP
    python scripts/generate_test_email.py --to user@tikrai.com \
        --from sender@example.com --subject "Hi" \
        --html "<p>Hello</p>" --send --smtp-host localhost --smtp-port 2525

    # Multiple attachments
    python scripts/generate_test_email.py --to user@tikrai.com \
        --from sender@example.com --attachment report.pdf --attachment data.csv
"""

import argparse
import mimetypes
import os
import smtplib
import sys
from email.message import EmailMessage
from pathlib import Path
from typing import List, Optional


def create_email(
    from_email: str,
    to_email: str,
    subject: str,
    body: Optional[str] = None,
    html: Optional[str] = None,
    attachments: Optional[List[str]] = None,
) -> EmailMessage:
    """Create MIME email message.

    Args:
        from_email: Sender email address
        to_email: Recipient email address
        subject: Email subject
        body: Plain-text body (optional)
        html: HTML alternative body (optional)
        attachments: List of file paths to attach

    Returns:
        EmailMessage: Email message
    """
    msg = EmailMessage()
    msg['From'] = from_email
    msg['To'] = to_email
    msg['Subject'] = subject
    msg['Message-ID'] = f"<test-{os.urandom(8).hex()}@mail-relay-test>"

    if body is None:
        body = f"Test message for the inbound mail relay.\n\nSubject: {subject}"

    msg.set_content(body)
    if html:
        msg.add_alternative(html, subtype='html')

    for filepath in attachments or []:
        path = Path(filepath)
        if not path.exists():
            print(f"WARNING: Attachment not found: {filepath}", file=sys.stderr)
            continue

        mime_type, _ = mimetypes.guess_type(filepath)
        if mime_type is None:
            mime_type = 'application/octet-stream'
        maintype, subtype = mime_type.split('/', 1)

        content = path.read_bytes()
        msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=path.name)
        print(f"Attached: {path.name} ({len(content)} bytes)", file=sys.stderr)

    return msg


def send_email(msg: EmailMessage, smtp_host: str = 'localhost', smtp_port: int = 2525):
    """Send email via SMTP.

    Args:
        msg: Email message to send
        smtp_host: SMTP server hostname
        smtp_port: SMTP server port
    """
    try:
        with smtplib.SMTP(smtp_host, smtp_port) as smtp:
            smtp.send_message(msg)
    except smtplib.SMTPRecipientsRefused as e:
        for address, (code, reason) in e.recipients.items():
            print(f"ERROR: {address} refused: {code} {reason.decode(errors='replace')}", file=sys.stderr)
        sys.exit(1)
    except (smtplib.SMTPException, OSError) as e:
        print(f"ERROR sending email: {e}", file=sys.stderr)
        sys.exit(1)

    print(
        f"Email sent successfully to {msg['To']} via {smtp_host}:{smtp_port}",
        file=sys.stderr
    )


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Generate test emails for the inbound mail relay',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('--from', dest='from_email', required=True,
                        help='Sender email address (e.g., sender@example.com)')
    parser.add_argument('--to', dest='to_email', required=True,
                        help='Recipient email address (e.g., user@tikrai.com)')
    parser.add_argument('--subject', default='Test message',
                        help='Email subject (default: "Test message")')
    parser.add_argument('--body', help='Plain-text body (optional)')
    parser.add_argument('--html', help='HTML alternative body (optional)')
    parser.add_argument('--attachment', action='append',
                        help='File to attach (can be specified multiple times)')

    parser.add_argument('--send', action='store_true',
                        help='Send email via SMTP (otherwise output to stdout)')
    parser.add_argument('--smtp-host', default='localhost',
                        help='SMTP server hostname (default: localhost)')
    parser.add_argument('--smtp-port', type=int, default=2525,
                        help='SMTP server port (default: 2525)')

    args = parser.parse_args()

    msg = create_email(
        from_email=args.from_email,
        to_email=args.to_email,
        subject=args.subject,
        body=args.body,
        html=args.html,
        attachments=args.attachment,
    )

    if args.send:
        send_email(msg, smtp_host=args.smtp_host, smtp_port=args.smtp_port)
    else:
        sys.stdout.write(msg.as_string())


if __name__ == '__main__':
    main()
