"""Transport abstraction: one bidirectional text channel to a router."""
from abc import ABC, abstractmethod


class Transport(ABC):
    """A single interactive shell channel.

    Implementations own the connect/disconnect lifecycle only. They know
    nothing about prompts, privilege or retries.
    """

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while the channel can carry data."""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """Open the channel. Raises RTXConnectionError or AuthenticationError."""
        pass

    @abstractmethod
    async def write(self, data: str) -> None:
        """Send raw text. Raises RTXConnectionError if the channel is gone."""
        pass

    @abstractmethod
    async def read(self, timeout: float) -> str:
        """Return whatever arrived within ``timeout`` seconds, possibly "".

        Raises RTXConnectionError if the remote side closed the channel.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Idempotent, never raises."""
        pass
