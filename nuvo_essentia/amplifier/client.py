"""Amplifier client facade.

Owns the channel, the line framer and the command queue for one amplifier
connection and exposes one blocking method per user-facing action.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

from ..config import AmplifierConfig
from ..errors import FramingError, ParseError, TransportError
from ..models import Command, ZoneStatus, ZoneToneStatus
from ..protocol import ProtocolParser, ProtocolSerializer
from ..transport import Channel, LineFramer, SerialChannel
from .command_queue import CommandQueue

logger = logging.getLogger(__name__)


class AmplifierClient:
    """High-level interface to the amplifier.

    This class acts as a facade, managing:
    1. The physical connection (Channel)
    2. Line framing of replies (LineFramer)
    3. Ordering of commands and replies (CommandQueue)

    Every method blocks until the amplifier has answered, or raises the
    error that prevented an answer (TransportWriteError, ParseError,
    StallError, ...). Methods are safe to call from multiple threads.

    Example:
        >>> with AmplifierClient(AmplifierConfig(port="/dev/ttyUSB0")) as amp:
        ...     amp.turn_on_zone(1)
        ...     amp.set_volume(1, 40)
        True
        True
    """

    def __init__(self,
                 config: Optional[AmplifierConfig] = None,
                 channel: Optional[Channel] = None,
                 framer: Optional[LineFramer] = None):
        """Initialize client.

        Args:
            config: Connection and zone settings (default: AmplifierConfig())
            channel: Existing channel, or None to open a SerialChannel from config
            framer: Line framer for replies (default: LineFramer())
        """
        self._config = config or AmplifierConfig()
        self._channel = channel or SerialChannel(
            port=self._config.port,
            baudrate=self._config.baudrate,
        )
        self._framer = framer or LineFramer()
        self._queue = CommandQueue(
            self._channel.write,
            command_delay=self._config.command_delay,
            reply_timeout=self._config.reply_timeout,
            max_depth=self._config.queue_limit,
        )

        self._active = False
        self._reader_thread: Optional[threading.Thread] = None

    @property
    def config(self) -> AmplifierConfig:
        return self._config

    # --- Lifecycle ---

    def connect(self) -> None:
        """Open the channel and start processing commands.

        Raises:
            TransportOpenError: If the channel cannot be opened
        """
        if self._active:
            return

        self._channel.open()
        self._framer.reset()
        self._active = True
        self._queue.start()
        self._start_reader_thread()
        logger.info("Amplifier client connected")

    def close(self) -> None:
        """Stop processing and close the channel."""
        if not self._active:
            return

        self._active = False
        self._queue.stop()
        self._channel.close()

        if self._reader_thread and self._reader_thread.is_alive():
            self._reader_thread.join(timeout=1.0)
        self._reader_thread = None
        logger.info("Amplifier client closed")

    @property
    def is_connected(self) -> bool:
        return self._active and self._channel.is_open()

    def __enter__(self) -> AmplifierClient:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # --- Raw command interface ---

    def execute(self, command: Command) -> str:
        """Send a command and wait for its reply line.

        Raises:
            The exception the queue rejected the command with.
        """
        future = self._queue.submit(command)
        return future.result()

    # --- Queries ---

    def get_zone_status(self, zone: int) -> ZoneStatus:
        """Query power, source, group and volume of a zone."""
        logger.debug(f"Getting zone status for {zone}")
        reply = self.execute(ProtocolSerializer.status_query(zone))
        return ProtocolParser.parse_status(reply)

    def get_zone_settings(self, zone: int) -> ZoneToneStatus:
        """Query bass, treble and source of a zone."""
        logger.debug(f"Getting zone settings for {zone}")
        reply = self.execute(ProtocolSerializer.settings_query(zone))
        return ProtocolParser.parse_tone(reply)

    def is_zone_on(self, zone: int) -> bool:
        return self.get_zone_status(zone).is_on

    def is_zone_muted(self, zone: int) -> bool:
        return self.get_zone_status(zone).muted

    # --- Setters ---

    def turn_on_zone(self, zone: int) -> bool:
        logger.debug(f"Turning on zone {zone}")
        return self._status_after(ProtocolSerializer.power(zone, True)).is_on

    def turn_off_zone(self, zone: int) -> bool:
        logger.debug(f"Turning off zone {zone}")
        return not self._status_after(ProtocolSerializer.power(zone, False)).is_on

    def mute_zone(self, zone: int) -> bool:
        logger.debug(f"Muting zone {zone}")
        return self._status_after(ProtocolSerializer.mute(zone, True)).muted

    def unmute_zone(self, zone: int) -> bool:
        logger.debug(f"Unmuting zone {zone}")
        return not self._status_after(ProtocolSerializer.mute(zone, False)).muted

    def set_volume(self, zone: int, volume: int) -> bool:
        logger.debug(f"Setting volume of zone {zone} to {volume}")
        return self._status_after(ProtocolSerializer.volume(zone, volume)).volume == volume

    def set_source(self, zone: int, source_id: int) -> bool:
        logger.debug(f"Setting source of zone {zone} to {source_id}")
        return self._status_after(ProtocolSerializer.source(zone, source_id)).source_id == source_id

    def set_bass(self, zone: int, bass: int) -> bool:
        logger.debug(f"Setting bass of zone {zone} to {bass}")
        return self._tone_after(ProtocolSerializer.bass(zone, bass)).bass == bass

    def set_treble(self, zone: int, treble: int) -> bool:
        logger.debug(f"Setting treble of zone {zone} to {treble}")
        return self._tone_after(ProtocolSerializer.treble(zone, treble)).treble == treble

    # --- Zone switching policy ---

    def switch_zone(self, zone: int, on: bool) -> bool:
        """Switch a zone on or off according to the configured policy.

        With mute_instead_of_relay the zone is muted/unmuted and its relay
        left alone; otherwise the relay is switched. Switching on also
        applies the zone's configured volume, treble and bass.
        """
        if self._config.mute_instead_of_relay:
            done = self.unmute_zone(zone) if on else self.mute_zone(zone)
        else:
            done = self.turn_on_zone(zone) if on else self.turn_off_zone(zone)

        if on:
            done = self.apply_zone_defaults(zone) and done
        return done

    def is_zone_switched_on(self, zone: int) -> bool:
        """Report the zone's on/off state under the configured policy."""
        status = self.get_zone_status(zone)
        if self._config.mute_instead_of_relay:
            return not status.muted
        return status.is_on

    def apply_zone_defaults(self, zone: int) -> bool:
        """Set the configured volume, treble and bass of a zone.

        Every level is sent even if an earlier one was not confirmed; an
        undecodable reply counts as not confirmed.
        """
        defaults = self._config.zone_defaults(zone)
        steps = (
            (self.set_volume, defaults.volume),
            (self.set_treble, defaults.treble),
            (self.set_bass, defaults.bass),
        )
        done = True
        for setter, level in steps:
            try:
                done = setter(zone, level) and done
            except ParseError as e:
                logger.warning(f"Zone {zone} {setter.__name__}({level}) not confirmed: {e}")
                done = False
        return done

    # --- Internal methods ---

    def _status_after(self, command: Command) -> ZoneStatus:
        return ProtocolParser.parse_status(self.execute(command))

    def _tone_after(self, command: Command) -> ZoneToneStatus:
        return ProtocolParser.parse_tone(self.execute(command))

    def _start_reader_thread(self) -> None:
        """Start background thread feeding received lines to the queue."""
        self._reader_thread = threading.Thread(
            target=self._reader_loop,
            daemon=True,
            name="AmplifierReader"
        )
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        """Read lines from the channel and hand them to the queue."""
        logger.debug("Reader thread started")

        while self._active:
            try:
                for line in self._framer.lines(self._channel.chunks()):
                    self._queue.on_line(line)
                # chunks() ends when the channel is closed
                break
            except FramingError as e:
                logger.error(f"Framing error: {e}")
                self._queue.reject_in_flight(e)
            except TransportError as e:
                if self._active:
                    logger.error(f"Reader error: {e}")
                    self._queue.reject_in_flight(e)
                    # Subsequent writes raise TransportWriteError
                    self._channel.close()
                break

        logger.debug("Reader thread exiting")
