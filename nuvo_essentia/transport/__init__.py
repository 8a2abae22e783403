"""Transport layer for amplifier communication."""

from .base import Channel
from .framer import LineFramer
from .serial import SerialChannel

__all__ = ["Channel", "LineFramer", "SerialChannel"]
