"""Protocol layer: command encoding and reply decoding."""

from .parser import ProtocolParser
from .serializer import ProtocolSerializer

__all__ = [
    "ProtocolParser",
    "ProtocolSerializer",
]
