"""Prometheus metrics for the mail relay.

Defines and exposes operational metrics for monitoring and alerting.
"""

import logging

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# SMTP policy metrics
recipients_total = Counter(
    "mailrelay_recipients_total",
    "RCPT TO addresses seen by the relay",
    ["result"]  # accepted|rejected
)

# Message processing metrics
messages_total = Counter(
    "mailrelay_messages_total",
    "Messages received via DATA",
    ["status"]  # forwarded|parse_error|forward_error|error
)

mime_part_failures_total = Counter(
    "mailrelay_mime_part_failures_total",
    "MIME parts that could not be decoded or were skipped by traversal limits"
)

message_size_bytes = Histogram(
    "mailrelay_message_size_bytes",
    "Raw DATA size in bytes",
    buckets=[1_000, 10_000, 100_000, 1_000_000, 5_000_000, 10_000_000, 26_214_400]
)

# Downstream metrics
forward_duration_seconds = Histogram(
    "mailrelay_forward_duration_seconds",
    "Time spent on the downstream HTTP call in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)


def start_metrics_server(port: int, host: str = "0.0.0.0") -> None:
    """Expose the default registry over HTTP on /metrics.

    Args:
        port: Listen port
        host: Bind address
    """
    start_http_server(port, addr=host)
    logger.info(f"Metrics exporter listening on {host}:{port}")
