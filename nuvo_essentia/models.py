"""Immutable data models for amplifier commands and zone state.

All models are frozen dataclasses to ensure immutability and thread-safety.
These models serve as the contract between the protocol, queue and client layers.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

ZONE_MIN = 1
ZONE_MAX = 12

VOLUME_MIN = 0
VOLUME_MAX = 79

TONE_MIN = -8
TONE_MAX = 8

SOURCE_MIN = 1
SOURCE_MAX = 9

# Volume field sentinels reported in place of a numeric level
VOLUME_MUTED = "MT"
VOLUME_EXTERNAL_MUTE = "XT"

_command_ids = itertools.count(1)


class Verb(Enum):
    """Command verbs understood by the amplifier."""
    ON = "ON"
    OFF = "OFF"
    MUTE_ON = "MTON"
    MUTE_OFF = "MTOFF"
    VOLUME = "VOL"
    BASS = "BASS"
    TREBLE = "TREB"
    SOURCE = "SRC"
    STATUS = "CONSR"
    SETTINGS = "SETSR"


class ReplyShape(Enum):
    """Which reply format a command produces."""
    STATUS = "status"
    TONE = "tone"


TONE_VERBS = frozenset({Verb.BASS, Verb.TREBLE, Verb.SETTINGS})
ARGUMENT_VERBS = frozenset({Verb.VOLUME, Verb.BASS, Verb.TREBLE, Verb.SOURCE})


class PowerState(Enum):
    """Zone relay state."""
    ON = "ON"
    OFF = "OFF"


def next_command_id() -> int:
    """Return a process-unique command identifier."""
    return next(_command_ids)


@dataclass(frozen=True)
class Command:
    """A single wire command.

    The identifier never reaches the wire; it only correlates log lines
    and queue entries inside the process.

    Attributes:
        zone: Target zone (1-12)
        verb: Command verb
        argument: Integer argument for VOL/BASS/TREB/SRC, None otherwise
        payload: Exact ASCII string written to the serial line
        command_id: Process-unique identifier
    """
    zone: int
    verb: Verb
    payload: str
    argument: Optional[int] = None
    command_id: int = field(default_factory=next_command_id)

    @property
    def reply_shape(self) -> ReplyShape:
        """Reply format the amplifier answers this command with."""
        if self.verb in TONE_VERBS:
            return ReplyShape.TONE
        return ReplyShape.STATUS

    def __str__(self) -> str:
        return f"#{self.command_id} {self.payload.rstrip()}"


@dataclass(frozen=True)
class ZoneStatus:
    """Decoded connection status reply.

    Attributes:
        zone: Zone number (1-12)
        power: Relay state
        source_id: Selected source
        group_id: Source group
        volume_field: "00"-"79", "MT" (muted) or "XT" (externally muted)
    """
    zone: int
    power: PowerState
    source_id: int
    group_id: int
    volume_field: str

    @property
    def is_on(self) -> bool:
        return self.power == PowerState.ON

    @property
    def muted(self) -> bool:
        return self.volume_field == VOLUME_MUTED

    @property
    def externally_muted(self) -> bool:
        return self.volume_field == VOLUME_EXTERNAL_MUTE

    @property
    def volume(self) -> Optional[int]:
        """Numeric level, or None when a mute sentinel is reported."""
        if self.muted or self.externally_muted:
            return None
        return int(self.volume_field)


@dataclass(frozen=True)
class ZoneToneStatus:
    """Decoded tone-set reply.

    Attributes:
        zone: Zone number (1-12)
        bass: Bass level (-8 to +8)
        treble: Treble level (-8 to +8)
        source_id: Selected source
    """
    zone: int
    bass: int
    treble: int
    source_id: int
