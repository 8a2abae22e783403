"""Exception hierarchy for the amplifier pipeline."""
from __future__ import annotations

from typing import Optional


class AmplifierError(RuntimeError):
    """Base class for every failure raised by this package."""
    pass


class TransportError(AmplifierError):
    """Serial transport failure."""
    pass


class TransportOpenError(TransportError):
    """Raised when the serial connection cannot be established."""
    pass


class TransportWriteError(TransportError):
    """Raised when a physical write fails."""
    pass


class TransportReadError(TransportError):
    """Raised when reading from the serial connection fails."""
    pass


class ProtocolError(AmplifierError):
    """Received data does not follow the wire protocol."""
    pass


class ParseError(ProtocolError):
    """Raised when a reply line does not match the expected shape."""
    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message)
        self.line = line


class FramingError(ProtocolError):
    """Raised when an unterminated line exceeds the framer's limit."""
    pass


class StallError(AmplifierError):
    """Raised when no reply arrives for the in-flight command in time."""
    pass


class QueueError(AmplifierError):
    """Command queue refused a submission."""
    pass


class QueueFullError(QueueError):
    """Raised when the command queue has reached its maximum depth."""
    pass


class QueueClosedError(QueueError):
    """Raised when submitting to, or pending on, a stopped queue."""
    pass


class ConfigError(ValueError):
    """Raised for invalid configuration values."""
    pass
