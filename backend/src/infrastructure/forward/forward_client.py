"""HTTP forward client for parsed inbound mail.

Posts each IncomingEmailPayload to one downstream endpoint as a
form-urlencoded body. Exactly one attempt is made per message; a failure is
reported to the SMTP client as a transient error so the sending MTA retries.

Architecture: Hexagonal - Adapter implementing ForwardPort
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from domain.mail.errors import ForwardFailure
from domain.mail.models import IncomingEmailPayload
from domain.mail.ports.forward_port import ForwardPort

logger = logging.getLogger(__name__)


def redact_url(url: str) -> str:
    """Drop any user:password@ part so the URL is safe to log."""
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    return urlunsplit(parts._replace(netloc=parts.netloc.rsplit("@", 1)[-1]))


@dataclass
class ForwardConfig:
    """Downstream endpoint configuration.

    Attributes:
        url: Endpoint receiving the POST
        timeout_ms: Timeout for the whole request in milliseconds
        auth_header_name: Header carrying the API key
        api_key: Static API key (header omitted when blank)
        include_raw: Send the base64 raw message as the 'raw' field
    """
    url: str
    timeout_ms: int = 10_000
    auth_header_name: str = "X-API-Key"
    api_key: Optional[str] = None
    include_raw: bool = False


class ForwardClient(ForwardPort):
    """httpx-based implementation of ForwardPort.

    Form fields:
    - to: first recipient only (downstream expects a single address)
    - from, subject: always sent
    - text, html, headers: sent only when non-empty
    - raw: base64 message, only when include_raw is enabled

    Example:
        client = ForwardClient(ForwardConfig(url="https://app.example.com/inbound"))
        await client.forward(payload)
        await client.aclose()
    """

    def __init__(
        self,
        config: ForwardConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize forward client.

        Args:
            config: Endpoint configuration
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_ms / 1000),
            transport=transport,
        )

    @property
    def redacted_url(self) -> str:
        return redact_url(self.config.url)

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.config.api_key and self.config.api_key.strip():
            headers[self.config.auth_header_name] = self.config.api_key
        return headers

    def build_form(self, payload: IncomingEmailPayload) -> Dict[str, str]:
        """Render a payload as form fields.

        Args:
            payload: Parsed message

        Returns:
            Dict[str, str]: Ordered form fields
        """
        form = {
            "to": payload.first_recipient,
            "from": payload.mail_from or "",
            "subject": payload.subject or "",
        }
        if payload.text_body:
            form["text"] = payload.text_body
        if payload.html_body:
            form["html"] = payload.html_body

        headers = payload.flattened_headers()
        if headers:
            form["headers"] = headers

        if self.config.include_raw:
            form["raw"] = payload.raw_base64
        return form

    async def forward(self, payload: IncomingEmailPayload) -> None:
        """POST one payload to the configured URL.

        Args:
            payload: Parsed message

        Raises:
            ForwardFailure: On timeout, transport error or non-2xx status
        """
        to_email = payload.first_recipient
        if len(payload.rcpt_to) > 1:
            logger.warning(
                f"Only first recipient is forwarded, dropping {len(payload.rcpt_to) - 1}: "
                f"{list(payload.rcpt_to[1:])}"
            )

        form = self.build_form(payload)
        logger.info(
            f"HTTP POST request - URL: {self.redacted_url}, FROM: {payload.mail_from}, "
            f"TO: {to_email}, SUBJECT: {payload.subject}"
        )
        logger.debug(
            "HTTP POST form sizes: "
            + ", ".join(f"{key}={len(value)}" for key, value in form.items())
        )

        # httpx timeouts apply per connect/read/write step, the deadline covers the whole call
        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self.config.url,
                    data=form,
                    headers=self.build_headers(),
                ),
                timeout=self.config.timeout_ms / 1000,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error(
                f"HTTP POST timed out after {self.config.timeout_ms}ms - URL: {self.redacted_url}, "
                f"FROM: {payload.mail_from}, TO: {to_email}"
            )
            raise ForwardFailure("Forward request timed out") from e
        except httpx.HTTPError as e:
            logger.error(
                f"HTTP POST request failed - URL: {self.redacted_url}, FROM: {payload.mail_from}, "
                f"TO: {to_email}, ERROR: {e}"
            )
            raise ForwardFailure(f"Forward request failed: {e}") from e

        if not response.is_success:
            logger.error(
                f"HTTP POST rejected - Status: {response.status_code}, "
                f"Response body: {response.text[:500]}"
            )
            raise ForwardFailure(
                f"Forward endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(
            f"HTTP POST response - Status: {response.status_code}, "
            f"FROM: {payload.mail_from}, TO: {to_email}"
        )
