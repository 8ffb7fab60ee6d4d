"""Inbound mail relay - process wiring.

Builds the forward client, the session handler and the aiosmtpd Controller
from Settings and runs the SMTP server until interrupted.

Usage:
    mail-relay
    python backend/scripts/start_smtp_server.py
"""

import asyncio
import logging
import sys

from aiosmtpd.controller import Controller

from config import Settings, get_settings
from infrastructure.forward import ForwardClient, ForwardConfig, redact_url
from infrastructure.ingest.session_handler import MessageSessionHandler
from infrastructure.ingest.smtp_handler import RelaySMTPHandler
from observability.logging_config import configure_logging
from observability.metrics import start_metrics_server

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 5


def build_forward_client(settings: Settings) -> ForwardClient:
    """Create the downstream HTTP client from settings."""
    return ForwardClient(
        ForwardConfig(
            url=settings.FORWARD_URL,
            timeout_ms=settings.FORWARD_TIMEOUT_MS,
            auth_header_name=settings.FORWARD_AUTH_HEADER_NAME,
            api_key=settings.FORWARD_API_KEY,
            include_raw=settings.FORWARD_INCLUDE_RAW,
        )
    )


def build_smtp_handler(settings: Settings, forward_client: ForwardClient) -> RelaySMTPHandler:
    """Create the aiosmtpd handler around a shared session handler."""
    session_handler = MessageSessionHandler(
        accepted_domain=settings.SMTP_ACCEPTED_DOMAIN,
        forwarder=forward_client,
        max_depth=settings.MIME_MAX_DEPTH,
        max_parts=settings.MIME_MAX_PARTS,
    )
    return RelaySMTPHandler(session_handler)


def build_controller(settings: Settings, handler: RelaySMTPHandler) -> Controller:
    """Create (but do not start) the aiosmtpd Controller.

    STARTTLS and AUTH are not offered.
    """
    return Controller(
        handler,
        hostname=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        server_hostname=settings.SMTP_SERVER_HOSTNAME,
        data_size_limit=settings.SMTP_MAX_SIZE,
        # Enable SMTPUTF8 for international email addresses
        enable_SMTPUTF8=True,
        # Handler needs the exact bytes for base64 and MIME parsing
        decode_data=False,
    )


def log_configuration(settings: Settings) -> None:
    logger.info("=== Mail Relay Starting ===")
    logger.info(f"SMTP Bind: {settings.SMTP_HOST}:{settings.SMTP_PORT}")
    logger.info(f"Accepted Domain: {settings.SMTP_ACCEPTED_DOMAIN}")
    logger.info(f"Max Message Size: {settings.SMTP_MAX_SIZE} bytes")
    logger.info(f"Forward URL: {redact_url(settings.FORWARD_URL)}")
    logger.info(f"Forward Timeout: {settings.FORWARD_TIMEOUT_MS}ms")
    logger.info(
        f"Forward API Key: {'configured' if settings.FORWARD_API_KEY else 'not configured'}"
    )


def shutdown(controller: Controller, forward_client: ForwardClient) -> None:
    """Close the forward client on the controller loop, then stop the server."""
    logger.info("Shutting down SMTP relay...")
    loop = getattr(controller, "loop", None)
    if loop is not None and loop.is_running():
        future = asyncio.run_coroutine_threadsafe(forward_client.aclose(), loop)
        try:
            future.result(timeout=SHUTDOWN_TIMEOUT_SECONDS)
        except Exception as e:
            logger.warning(f"Forward client did not close cleanly: {e}")
    controller.stop()
    logger.info("SMTP relay stopped")


async def serve(settings: Settings) -> None:
    """Start the SMTP relay and keep it running until cancelled."""
    configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    log_configuration(settings)

    if settings.METRICS_PORT:
        start_metrics_server(settings.METRICS_PORT)

    forward_client = build_forward_client(settings)
    handler = build_smtp_handler(settings, forward_client)
    controller = build_controller(settings, handler)
    controller.start()

    logger.info(f"SMTP relay started on {settings.SMTP_HOST}:{settings.SMTP_PORT}")
    logger.info(f"Accepting emails to: *@{settings.SMTP_ACCEPTED_DOMAIN}")

    try:
        # Keep server running
        while True:
            await asyncio.sleep(3600)
    finally:
        shutdown(controller, forward_client)


def run() -> None:
    """Console entry point."""
    try:
        asyncio.run(serve(get_settings()))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, exiting")
        sys.exit(0)
    except Exception as e:
        logger.error(f"SMTP relay failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
