#!/usr/bin/env python3
"""SMTP Server Startup Script for the inbound mail relay.

Starts the aiosmtpd server with RelaySMTPHandler. Recipients at the accepted
domain are parsed and forwarded to FORWARD_URL; everything else is refused.

Usage:
    python scripts/start_smtp_server.py

Environment Variables:
    SMTP_HOST: Bind address (default: 0.0.0.0)
    SMTP_PORT: Listen port (default: 2525)
    SMTP_ACCEPTED_DOMAIN: Accepted recipient domain (default: tikrai.com)
    SMTP_MAX_SIZE: Max email size in bytes (default: 26214400 = 25MB)
    FORWARD_URL: Downstream endpoint
    FORWARD_TIMEOUT_MS: Downstream timeout (default: 10000)
    FORWARD_AUTH_HEADER_NAME: API key header (default: X-API-Key)
    FORWARD_API_KEY: API key (optional)
    LOG_LEVEL: Logging level (default: INFO)
"""

import os
import sys

# Add backend/src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from main import run


if __name__ == '__main__':
    run()
