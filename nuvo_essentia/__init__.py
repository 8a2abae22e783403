"""Nuvo Essentia amplifier control over RS-232."""

from .amplifier import AmplifierClient, CommandQueue
from .config import AmplifierConfig, ZoneDefaults
from .errors import (
    AmplifierError,
    ConfigError,
    FramingError,
    ParseError,
    QueueClosedError,
    QueueFullError,
    StallError,
    TransportError,
    TransportOpenError,
    TransportReadError,
    TransportWriteError,
)
from .models import (
    Command,
    PowerState,
    ReplyShape,
    Verb,
    ZoneStatus,
    ZoneToneStatus,
)
from .protocol import ProtocolParser, ProtocolSerializer
from .transport import Channel, LineFramer, SerialChannel

__all__ = [
    "AmplifierClient",
    "CommandQueue",
    "AmplifierConfig",
    "ZoneDefaults",
    "AmplifierError",
    "ConfigError",
    "FramingError",
    "ParseError",
    "QueueClosedError",
    "QueueFullError",
    "StallError",
    "TransportError",
    "TransportOpenError",
    "TransportReadError",
    "TransportWriteError",
    "Command",
    "PowerState",
    "ReplyShape",
    "Verb",
    "ZoneStatus",
    "ZoneToneStatus",
    "ProtocolParser",
    "ProtocolSerializer",
    "Channel",
    "LineFramer",
    "SerialChannel",
]
