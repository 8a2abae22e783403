"""RS-232 channel to the amplifier.

This module handles:
- Serial connection management
- Raw byte writes
- Raw byte chunk reads

Note: This is a RAW BYTE STREAM layer. It does not interpret
      messages. Use LineFramer to split the stream into replies.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterator, Optional

import serial

from ..errors import TransportOpenError, TransportReadError, TransportWriteError
from .base import Channel

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUD = 9600
READ_TIMEOUT = 0.1  # seconds
READ_CHUNK_SIZE = 256  # bytes


class SerialChannel(Channel):
    """Serial connection to the amplifier.

    Example:
        >>> channel = SerialChannel(port="/dev/ttyUSB0")
        >>> channel.open()
        >>> channel.write(b"*Z01CONSR\\r")
        >>> for chunk in channel.chunks():
        ...     print(chunk)
    """

    def __init__(self,
                 port: str = DEFAULT_PORT,
                 baudrate: int = DEFAULT_BAUD,
                 timeout: float = READ_TIMEOUT,
                 chunk_size: int = READ_CHUNK_SIZE):
        """Initialize serial channel.

        Args:
            port: Serial port path (e.g., '/dev/ttyUSB0')
            baudrate: Serial baud rate (default 9600)
            timeout: Read timeout in seconds
            chunk_size: Maximum bytes to read per chunk
        """
        self._port = port
        self._baudrate = baudrate
        self._timeout = timeout
        self._chunk_size = chunk_size

        self._serial: Optional[serial.Serial] = None
        self._write_lock = threading.Lock()

    @property
    def port(self) -> str:
        return self._port

    def open(self) -> None:
        """Open the serial port."""
        if self.is_open():
            logger.warning("Already open")
            return

        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=self._baudrate,
                timeout=self._timeout,
            )

            # Drop anything left over from a previous session
            self._serial.reset_input_buffer()
            self._serial.reset_output_buffer()
        except (serial.SerialException, ValueError, OSError) as e:
            self._serial = None
            logger.error(f"Failed to open {self._port}: {e}")
            raise TransportOpenError(f"Failed to open {self._port}: {e}") from e

        logger.info(f"Connected to amplifier on {self._port} @ {self._baudrate} baud")

    def close(self) -> None:
        """Close the serial port."""
        port = self._serial
        if port is None:
            return

        self._serial = None
        try:
            port.close()
        except serial.SerialException as e:
            logger.error(f"Error closing serial port: {e}")

        logger.info(f"Disconnected from {self._port}")

    def is_open(self) -> bool:
        return self._serial is not None

    def write(self, data: bytes) -> None:
        """Send raw bytes to the amplifier."""
        port = self._serial
        if port is None:
            raise TransportWriteError(f"Cannot write to {self._port}: not open")

        try:
            with self._write_lock:
                port.write(data)
                port.flush()
        except serial.SerialException as e:
            logger.error(f"Send error: {e}")
            raise TransportWriteError(f"Write to {self._port} failed: {e}") from e

    def chunks(self) -> Iterator[bytes]:
        """Yield raw byte chunks until the port is closed."""
        while True:
            port = self._serial
            if port is None:
                return

            try:
                chunk = port.read(self._chunk_size)
            except serial.SerialException as e:
                if self._serial is None:
                    # Closed underneath us
                    return
                logger.error(f"Serial read error: {e}")
                raise TransportReadError(f"Read from {self._port} failed: {e}") from e

            if chunk:
                yield chunk
