"""Forward Port - Domain interface for delivering parsed mail downstream.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod

from ..models import IncomingEmailPayload


class ForwardPort(ABC):
    """Port interface for handing a parsed message to the downstream system.

    Implementations make exactly one delivery attempt. The session handler
    awaits the call, so implementations must enforce their own timeout.

    Example Usage:
        forwarder = ForwardClient(url="https://app.example.com/inbound")
        await forwarder.forward(payload)
    """

    @abstractmethod
    async def forward(self, payload: IncomingEmailPayload) -> None:
        """Deliver one payload.

        Args:
            payload: Parsed message with envelope data

        Raises:
            ForwardFailure: If delivery failed, timed out, or was refused
        """
        pass
