"""Amplifier configuration.

Immutable settings for one amplifier connection plus per-zone defaults.
Loadable from a dict or JSON file using either snake_case keys or the
camelCase keys of the Homebridge plugin configuration (serialPortPath,
baudRate, cmdDelay, defaultVolume, muteInsteadOfRelay, zones).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ConfigError
from .models import TONE_MAX, TONE_MIN, VOLUME_MAX, VOLUME_MIN, ZONE_MAX, ZONE_MIN
from .transport.serial import DEFAULT_BAUD, DEFAULT_PORT

logger = logging.getLogger(__name__)

DEFAULT_COMMAND_DELAY_MS = 100
DEFAULT_REPLY_TIMEOUT_MS = 2000
DEFAULT_MAX_QUEUE_DEPTH = 64
DEFAULT_VOLUME = 40

_ALIASES = {
    "serialPortPath": "port",
    "baudRate": "baudrate",
    "cmdDelay": "command_delay_ms",
    "replyTimeout": "reply_timeout_ms",
    "maxQueueDepth": "max_queue_depth",
    "defaultVolume": "default_volume",
    "muteInsteadOfRelay": "mute_instead_of_relay",
}


@dataclass(frozen=True)
class ZoneDefaults:
    """Levels applied when a zone is switched on.

    Attributes:
        volume: Volume level (0-79), or None to use the amplifier-wide default
        bass: Bass level (-8 to +8)
        treble: Treble level (-8 to +8)
    """
    volume: Optional[int] = None
    bass: int = 0
    treble: int = 0


@dataclass(frozen=True)
class AmplifierConfig:
    """Settings for one amplifier connection.

    Attributes:
        port: Serial device path
        baudrate: Serial baud rate
        command_delay_ms: Pause before every write, in milliseconds
        reply_timeout_ms: Reply timeout in milliseconds, 0 or None to wait forever
        max_queue_depth: Maximum outstanding commands, 0 or None for unbounded
        default_volume: Volume for zones without their own
        mute_instead_of_relay: Switch zones by muting rather than the relay
        zones: Per-zone defaults keyed by zone number
    """
    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUD
    command_delay_ms: int = DEFAULT_COMMAND_DELAY_MS
    reply_timeout_ms: Optional[int] = DEFAULT_REPLY_TIMEOUT_MS
    max_queue_depth: Optional[int] = DEFAULT_MAX_QUEUE_DEPTH
    default_volume: int = DEFAULT_VOLUME
    mute_instead_of_relay: bool = False
    zones: Dict[int, ZoneDefaults] = field(default_factory=dict)

    def __post_init__(self):
        if not self.port:
            raise ConfigError("port must not be empty")
        if self.baudrate <= 0:
            raise ConfigError(f"baudrate must be positive, got {self.baudrate}")
        if self.command_delay_ms < 0:
            raise ConfigError(f"command_delay_ms must not be negative, got {self.command_delay_ms}")
        if self.reply_timeout_ms is not None and self.reply_timeout_ms < 0:
            raise ConfigError(f"reply_timeout_ms must not be negative, got {self.reply_timeout_ms}")
        if self.max_queue_depth is not None and self.max_queue_depth < 0:
            raise ConfigError(f"max_queue_depth must not be negative, got {self.max_queue_depth}")
        if not isinstance(self.mute_instead_of_relay, bool):
            raise ConfigError(f"mute_instead_of_relay must be a boolean, got {self.mute_instead_of_relay!r}")
        _check("default_volume", self.default_volume, VOLUME_MIN, VOLUME_MAX)

        for zone, defaults in self.zones.items():
            _check("zone", zone, ZONE_MIN, ZONE_MAX)
            if defaults.volume is not None:
                _check(f"zone {zone} volume", defaults.volume, VOLUME_MIN, VOLUME_MAX)
            _check(f"zone {zone} bass", defaults.bass, TONE_MIN, TONE_MAX)
            _check(f"zone {zone} treble", defaults.treble, TONE_MIN, TONE_MAX)

    @property
    def command_delay(self) -> float:
        """Inter-command delay in seconds."""
        return self.command_delay_ms / 1000.0

    @property
    def reply_timeout(self) -> Optional[float]:
        """Reply timeout in seconds, None if disabled."""
        if not self.reply_timeout_ms:
            return None
        return self.reply_timeout_ms / 1000.0

    @property
    def queue_limit(self) -> Optional[int]:
        """Maximum outstanding commands, None if unbounded."""
        return self.max_queue_depth or None

    def zone_defaults(self, zone: int) -> ZoneDefaults:
        """Resolve the levels for a zone, falling back to default_volume."""
        defaults = self.zones.get(zone, ZoneDefaults())
        if defaults.volume is None:
            return ZoneDefaults(volume=self.default_volume, bass=defaults.bass, treble=defaults.treble)
        return defaults

    def to_dict(self) -> Dict[str, Any]:
        """Convert to serializable dict for JSON persistence."""
        return {
            "port": self.port,
            "baudrate": self.baudrate,
            "command_delay_ms": self.command_delay_ms,
            "reply_timeout_ms": self.reply_timeout_ms,
            "max_queue_depth": self.max_queue_depth,
            "default_volume": self.default_volume,
            "mute_instead_of_relay": self.mute_instead_of_relay,
            "zones": [
                {
                    "id": zone,
                    "volume": defaults.volume,
                    "bass": defaults.bass,
                    "treble": defaults.treble,
                }
                for zone, defaults in sorted(self.zones.items())
            ],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AmplifierConfig:
        """Load from a deserialized dict.

        Unknown keys are ignored so the amplifier section can be read out of
        a larger configuration document.

        Raises:
            ConfigError: If a value has the wrong type or is out of range
        """
        values: Dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name in _FIELDS and value is not None:
                values[name] = value

        kwargs: Dict[str, Any] = {}
        try:
            if "port" in values:
                kwargs["port"] = str(values["port"])
            for name in ("baudrate", "command_delay_ms", "reply_timeout_ms",
                         "max_queue_depth", "default_volume"):
                if name in values:
                    kwargs[name] = int(values[name])
            if "mute_instead_of_relay" in values:
                kwargs["mute_instead_of_relay"] = _parse_flag(values["mute_instead_of_relay"])
            if "zones" in values:
                kwargs["zones"] = _parse_zones(values["zones"])
        except (TypeError, ValueError, KeyError) as e:
            raise ConfigError(f"Invalid amplifier configuration: {e}") from e

        return cls(**kwargs)

    @classmethod
    def load(cls, path: Union[str, Path]) -> AmplifierConfig:
        """Load from a JSON file."""
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read configuration {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration {path} must contain a JSON object")

        logger.info(f"Loaded amplifier configuration from {path}")
        return cls.from_dict(data)


_FIELDS = frozenset(AmplifierConfig.__dataclass_fields__)


def _parse_zones(zones: Any) -> Dict[int, ZoneDefaults]:
    """Accept a list of {id, volume, bass, treble} or a dict keyed by zone."""
    if isinstance(zones, Mapping):
        items = [dict(entry, id=zone) for zone, entry in zones.items()]
    else:
        items = list(zones)

    result: Dict[int, ZoneDefaults] = {}
    for entry in items:
        zone = int(entry["id"])
        volume = entry.get("volume")
        result[zone] = ZoneDefaults(
            volume=None if volume is None else int(volume),
            bass=int(entry.get("bass") or 0),
            treble=int(entry.get("treble") or 0),
        )
    return result


def _check(name: str, value: int, low: int, high: int) -> None:
    if not low <= value <= high:
        raise ConfigError(f"{name} must be between {low} and {high}, got {value}")


def _parse_flag(value: Any) -> bool:
    """Accept a JSON boolean or one of the usual string spellings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "yes", "on", "1"):
            return True
        if text in ("false", "no", "off", "0"):
            return False
    raise ValueError(f"expected a boolean, got {value!r}")
