"""Protocol serializer for amplifier commands.

Builds the fixed-grammar ASCII command strings the amplifier understands:

    *Z<zz><VERB>[<arg>]\\r

Pure functions with no side effects.
"""
from __future__ import annotations

from typing import Optional

from ..models import (
    ARGUMENT_VERBS,
    SOURCE_MAX,
    SOURCE_MIN,
    TONE_MAX,
    TONE_MIN,
    VOLUME_MAX,
    VOLUME_MIN,
    ZONE_MAX,
    ZONE_MIN,
    Command,
    Verb,
)

COMMAND_PREFIX = "*Z"
COMMAND_TERMINATOR = "\r"

_ARGUMENT_RANGES = {
    Verb.VOLUME: (VOLUME_MIN, VOLUME_MAX),
    Verb.BASS: (TONE_MIN, TONE_MAX),
    Verb.TREBLE: (TONE_MIN, TONE_MAX),
    Verb.SOURCE: (SOURCE_MIN, SOURCE_MAX),
}


class ProtocolSerializer:
    """Serializer for the amplifier command protocol.

    Converts logical operations into Command objects carrying the exact
    wire payload.
    """

    @staticmethod
    def build(zone: int, verb: Verb, argument: Optional[int] = None) -> Command:
        """Build a command for a zone.

        Args:
            zone: Zone number (1-12)
            verb: Command verb
            argument: Integer argument, required for VOL/BASS/TREB/SRC

        Returns:
            Command with its wire payload

        Raises:
            ValueError: If the zone or argument is out of range

        Examples:
            >>> ProtocolSerializer.build(1, Verb.ON).payload
            '*Z01ON\\r'
            >>> ProtocolSerializer.build(3, Verb.BASS, -2).payload
            '*Z03BASS-2\\r'
        """
        _check_range("zone", zone, ZONE_MIN, ZONE_MAX)

        if verb in ARGUMENT_VERBS:
            if argument is None:
                raise ValueError(f"{verb.value} requires an argument")
            low, high = _ARGUMENT_RANGES[verb]
            _check_range(verb.value, argument, low, high)
            suffix = str(argument)
        elif argument is not None:
            raise ValueError(f"{verb.value} does not take an argument")
        else:
            suffix = ""

        payload = f"{COMMAND_PREFIX}{zone:02d}{verb.value}{suffix}{COMMAND_TERMINATOR}"
        return Command(zone=zone, verb=verb, argument=argument, payload=payload)

    @staticmethod
    def power(zone: int, on: bool) -> Command:
        """Switch the zone relay on or off."""
        return ProtocolSerializer.build(zone, Verb.ON if on else Verb.OFF)

    @staticmethod
    def mute(zone: int, muted: bool) -> Command:
        """Mute or unmute the zone."""
        return ProtocolSerializer.build(zone, Verb.MUTE_ON if muted else Verb.MUTE_OFF)

    @staticmethod
    def volume(zone: int, level: int) -> Command:
        return ProtocolSerializer.build(zone, Verb.VOLUME, level)

    @staticmethod
    def bass(zone: int, level: int) -> Command:
        return ProtocolSerializer.build(zone, Verb.BASS, level)

    @staticmethod
    def treble(zone: int, level: int) -> Command:
        return ProtocolSerializer.build(zone, Verb.TREBLE, level)

    @staticmethod
    def source(zone: int, source_id: int) -> Command:
        return ProtocolSerializer.build(zone, Verb.SOURCE, source_id)

    @staticmethod
    def status_query(zone: int) -> Command:
        """Query power, source, group and volume."""
        return ProtocolSerializer.build(zone, Verb.STATUS)

    @staticmethod
    def settings_query(zone: int) -> Command:
        """Query bass, treble and source."""
        return ProtocolSerializer.build(zone, Verb.SETTINGS)


def _check_range(name: str, value: int, low: int, high: int) -> None:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")
