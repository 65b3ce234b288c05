from typing import Protocol


class AgentConnectError(RuntimeError):
    """Raised when the duplex connection to the agent cannot be opened."""


class AgentConnectionClosed(RuntimeError):
    """Raised by a connection once the agent side has closed it."""

    def __init__(self, code: int | None, reason: str = "") -> None:
        super().__init__(f"agent connection closed (code={code}, reason={reason or 'n/a'})")
        self.code = code
        self.reason = reason


class AgentConnection(Protocol):
    """One open, message-oriented duplex channel to the agent."""

    async def send(self, message: str) -> None:
        """Send a single text frame; raises ``AgentConnectionClosed`` once closed."""

    async def recv(self) -> str:
        """Wait for the next text frame; raises ``AgentConnectionClosed`` once closed."""

    async def close(self) -> None:
        """Close the channel. Calling it more than once is harmless."""


class AgentConnector(Protocol):
    """Factory for authenticated agent connections."""

    async def connect(self) -> AgentConnection:
        """Open a new connection or raise ``AgentConnectError``."""
