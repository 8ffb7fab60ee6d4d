"""Relay error taxonomy.

Transaction-level errors carry the SMTP reply code and text that the SMTP
adapter sends back to the client. Part-level errors never leave the MIME
body walk.
"""

from typing import Optional


class RelayError(Exception):
    """Base exception for failures surfaced to the SMTP client."""

    smtp_code: int = 451
    smtp_message: str = "Processing error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.smtp_message
        super().__init__(self.detail)

    @property
    def smtp_reply(self) -> str:
        """SMTP reply line, e.g. '550 Relaying denied'."""
        return f"{self.smtp_code} {self.smtp_message}"


class PolicyRejection(RelayError):
    """Recipient is outside the accepted domain (permanent failure)."""

    smtp_code = 550
    smtp_message = "Relaying denied"

    def __init__(self, address: str, detail: Optional[str] = None):
        self.address = address
        super().__init__(detail or f"Recipient not accepted: {address}")


class ParseFailure(RelayError):
    """Message could not be parsed as MIME at all (transient failure)."""
    pass


class ForwardFailure(RelayError):
    """Downstream HTTP delivery failed or timed out (transient failure)."""

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(detail)


class PartExtractionFailure(Exception):
    """A single MIME part could not be decoded.

    Raised and caught inside body extraction only.
    """
    pass
