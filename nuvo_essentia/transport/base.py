"""Abstract base class for the byte channel to the amplifier.

The Channel interface is the only thing the command pipeline knows about
the physical link. Implementations can be RS-232, a TCP serial bridge or an
in-memory fake for tests.

Key principles:
- Raw bytes only (framing and parsing happen above this layer)
- Explicit failures (exceptions, not status flags)
- Pull-based reading through an iterator of chunks
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator


class Channel(ABC):
    """Abstract byte channel to the amplifier.

    Channels are responsible for:
    1. Managing connection lifecycle
    2. Writing raw bytes
    3. Yielding received bytes

    Channels should NOT interpret data. They are pure communication pipes.
    """

    @abstractmethod
    def open(self) -> None:
        """Open the connection.

        Raises:
            TransportOpenError: If the connection cannot be established
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the connection.

        Should be safe to call multiple times.
        """
        pass

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the channel is currently open."""
        pass

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write raw bytes to the amplifier.

        Args:
            data: Bytes to transmit

        Raises:
            TransportWriteError: If the bytes could not be written
        """
        pass

    @abstractmethod
    def chunks(self) -> Iterator[bytes]:
        """Iterate over received byte chunks.

        The iterator runs for as long as the channel is open and ends
        once it is closed.

        Raises:
            TransportReadError: If reading fails
        """
        pass

    def __enter__(self) -> Channel:
        """Context manager support - open on enter."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager support - close on exit."""
        self.close()
