"""Line framing for the amplifier's reply stream.

Splits the raw byte stream into carriage-return terminated ASCII lines.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, List

from ..errors import FramingError

logger = logging.getLogger(__name__)

LINE_DELIMITER = b"\r"
MAX_LINE_LENGTH = 256  # bytes; replies are well under 64


class LineFramer:
    """Byte buffer that emits complete lines.

    Partial lines persist across calls to feed(). The buffer is bounded: an
    unterminated line longer than max_line_length is a framing error.
    """

    def __init__(self,
                 delimiter: bytes = LINE_DELIMITER,
                 max_line_length: int = MAX_LINE_LENGTH,
                 encoding: str = "ascii"):
        """Initialize framer.

        Args:
            delimiter: Byte sequence terminating each line
            max_line_length: Maximum bytes buffered without a delimiter
            encoding: Text encoding of the lines
        """
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._delimiter = delimiter
        self._max_line_length = max_line_length
        self._encoding = encoding
        self._buffer = bytearray()

    def feed(self, data: bytes) -> List[str]:
        """Append received bytes and return every completed line.

        Args:
            data: Raw bytes from the channel

        Returns:
            Decoded lines without delimiter, in arrival order.

        Raises:
            FramingError: If the unterminated remainder grows too long.
                The buffer is cleared before raising.
        """
        self._buffer.extend(data)

        lines = []
        while True:
            idx = self._buffer.find(self._delimiter)
            if idx == -1:
                break

            raw = bytes(self._buffer[:idx])
            del self._buffer[:idx + len(self._delimiter)]

            line = raw.decode(self._encoding, errors="replace").strip()
            if line:
                lines.append(line)

        if len(self._buffer) > self._max_line_length:
            size = len(self._buffer)
            self._buffer.clear()
            raise FramingError(
                f"No line delimiter within {self._max_line_length} bytes "
                f"({size} bytes discarded)"
            )

        return lines

    def lines(self, chunks: Iterable[bytes]) -> Iterator[str]:
        """Lazily frame an iterable of byte chunks into lines."""
        for chunk in chunks:
            for line in self.feed(chunk):
                logger.debug(f"Received line: {line!r}")
                yield line

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet terminated."""
        return len(self._buffer)

    def reset(self) -> None:
        """Discard any partial line."""
        self._buffer.clear()
