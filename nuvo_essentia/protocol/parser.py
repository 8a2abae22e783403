"""Protocol parser for amplifier replies.

Replies are comma-separated; fields sit at fixed character offsets within
each segment. Every segment is checked for presence and minimum length
before a field is sliced out, so a short or malformed reply raises
ParseError instead of yielding a truncated value.

Pure functions with no side effects.
"""
from __future__ import annotations

import re
from typing import List, Tuple, Union

from ..errors import ParseError
from ..models import (
    TONE_MAX,
    TONE_MIN,
    VOLUME_EXTERNAL_MUTE,
    VOLUME_MAX,
    VOLUME_MIN,
    VOLUME_MUTED,
    ZONE_MAX,
    ZONE_MIN,
    PowerState,
    ReplyShape,
    ZoneStatus,
    ZoneToneStatus,
)

SEGMENT_SEPARATOR = ","

_LEADING_DIGITS = re.compile(r"\d+")
_SIGNED_INT = re.compile(r"[+-]?\d+")


class ProtocolParser:
    """Parser for amplifier reply lines.

    Handles two reply shapes:
    - Status:   #Z01PWRON,SRC1,GRP0,VOL-45
    - Tone-set: <zone>,<treble digit><bass field>,<source>
    """

    @staticmethod
    def parse(line: str, shape: ReplyShape) -> Union[ZoneStatus, ZoneToneStatus]:
        """Decode a line with the decoder for the given reply shape."""
        if shape == ReplyShape.TONE:
            return ProtocolParser.parse_tone(line)
        return ProtocolParser.parse_status(line)

    @staticmethod
    def parse_status(line: str) -> ZoneStatus:
        """Parse a connection status reply.

        Offsets:
            segment 1 [2:5)  zone
            segment 1 [7:]   power, "ON" or "OFF"
            segment 2 [3]    source digit
            segment 3 [3]    group digit
            segment 4 [4:9)  volume, "00"-"79", "MT" or "XT"

        Examples:
            >>> status = ProtocolParser.parse_status("#Z01PWRON,SRC1,GRP0,VOL-45")
            >>> status.zone, status.power, status.volume_field
            (1, <PowerState.ON: 'ON'>, '45')

        Raises:
            ParseError: If the line does not match the status shape
        """
        head, source, group, volume = _segments(line, 4)

        _require_length(line, head, 8, "zone/power")
        zone = _zone(line, head[2:5])

        power_field = head[7:].strip()
        try:
            power = PowerState(power_field)
        except ValueError:
            raise ParseError(f"Unknown power state {power_field!r}", line) from None

        source_id = _digit(line, source, 3, "source")
        group_id = _digit(line, group, 3, "group")

        _require_length(line, volume, 6, "volume")
        volume_field = volume[4:9].strip()
        if volume_field not in (VOLUME_MUTED, VOLUME_EXTERNAL_MUTE):
            if len(volume_field) != 2 or not volume_field.isdigit():
                raise ParseError(f"Invalid volume field {volume_field!r}", line)
            if not VOLUME_MIN <= int(volume_field) <= VOLUME_MAX:
                raise ParseError(f"Volume {volume_field} out of range", line)

        return ZoneStatus(
            zone=zone,
            power=power,
            source_id=source_id,
            group_id=group_id,
            volume_field=volume_field,
        )

    @staticmethod
    def parse_tone(line: str) -> ZoneToneStatus:
        """Parse a tone-set reply.

        Offsets:
            segment 1 [2:5)  zone
            segment 2 [3]    treble digit, or its sign with the digit at [4]
            segment 2 [4:9)  bass, signed decimal, shifted one place right
                             when the treble carries a sign
            segment 3 [3]    source digit

        Raises:
            ParseError: If the line does not match the tone-set shape
        """
        head, tone, source = _segments(line, 3)

        _require_length(line, head, 4, "zone")
        zone = _zone(line, head[2:5])

        treble, bass_start = _treble(line, tone)

        _require_length(line, tone, bass_start + 1, "bass")
        bass_field = tone[bass_start:bass_start + 5].strip()
        if not _SIGNED_INT.fullmatch(bass_field):
            raise ParseError(f"Invalid bass field {bass_field!r}", line)
        bass = int(bass_field)

        for name, value in (("bass", bass), ("treble", treble)):
            if not TONE_MIN <= value <= TONE_MAX:
                raise ParseError(f"{name} {value} out of range", line)

        source_id = _digit(line, source, 3, "source")

        return ZoneToneStatus(zone=zone, bass=bass, treble=treble, source_id=source_id)


def _segments(line: str, count: int) -> List[str]:
    """Split a reply and return its first `count` segments."""
    segments = line.strip().split(SEGMENT_SEPARATOR)
    if len(segments) < count:
        raise ParseError(f"Expected {count} segments, got {len(segments)}", line)
    return segments[:count]


def _require_length(line: str, segment: str, length: int, field_name: str) -> None:
    if len(segment) < length:
        raise ParseError(
            f"Segment {segment!r} too short for {field_name} "
            f"(need {length} characters)",
            line,
        )


def _digit(line: str, segment: str, offset: int, field_name: str) -> int:
    _require_length(line, segment, offset + 1, field_name)
    char = segment[offset]
    if not char.isdigit():
        raise ParseError(f"Invalid {field_name} digit {char!r}", line)
    return int(char)


def _treble(line: str, tone: str) -> Tuple[int, int]:
    """Return the treble level and the offset at which the bass field starts."""
    _require_length(line, tone, 4, "treble")
    if tone[3] in "+-":
        magnitude = _digit(line, tone, 4, "treble")
        return (-magnitude if tone[3] == "-" else magnitude), 5
    return _digit(line, tone, 3, "treble"), 4


def _zone(line: str, field: str) -> int:
    match = _LEADING_DIGITS.match(field)
    if not match:
        raise ParseError(f"Invalid zone field {field!r}", line)
    zone = int(match.group())
    if not ZONE_MIN <= zone <= ZONE_MAX:
        raise ParseError(f"Zone {zone} out of range", line)
    return zone
