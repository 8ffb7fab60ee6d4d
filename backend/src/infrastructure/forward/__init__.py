"""Forward infrastructure module - HTTP delivery of parsed mail."""

from .forward_client import ForwardClient, ForwardConfig, redact_url

__all__ = ["ForwardClient", "ForwardConfig", "redact_url"]
