"""Tests for AmplifierClient against an emulated amplifier."""

import queue
import re
import threading
import time
import unittest
from unittest.mock import patch

from nuvo_essentia.amplifier.client import AmplifierClient
from nuvo_essentia.config import AmplifierConfig, ZoneDefaults
from nuvo_essentia.errors import (
    FramingError,
    ParseError,
    StallError,
    TransportOpenError,
    TransportWriteError,
)
from nuvo_essentia.models import PowerState, ZoneStatus, ZoneToneStatus
from nuvo_essentia.protocol import ProtocolSerializer
from nuvo_essentia.transport.base import Channel

_COMMAND = re.compile(r"\*Z(\d\d)([A-Z]+)(-?\d+)?\r")


class EmulatedAmplifier:
    """Minimal amplifier model producing status and tone-set replies."""

    def __init__(self):
        self.zones = {
            zone: {"power": "OFF", "muted": False, "volume": 30, "bass": 0, "treble": 0, "source": 1}
            for zone in range(1, 13)
        }
        self.overrides = {}  # payload -> raw reply bytes

    def respond(self, payload: str):
        if payload in self.overrides:
            return self.overrides[payload]

        match = _COMMAND.fullmatch(payload)
        zone, verb, arg = int(match.group(1)), match.group(2), match.group(3)
        state = self.zones[zone]

        if verb in ("ON", "OFF"):
            state["power"] = verb
        elif verb == "MTON":
            state["muted"] = True
        elif verb == "MTOFF":
            state["muted"] = False
        elif verb == "VOL":
            state["volume"] = int(arg)
        elif verb == "SRC":
            state["source"] = int(arg)
        elif verb == "BASS":
            state["bass"] = int(arg)
        elif verb == "TREB":
            state["treble"] = int(arg)

        if verb in ("BASS", "TREB", "SETSR"):
            return self.tone_reply(zone).encode("ascii") + b"\r"
        return self.status_reply(zone).encode("ascii") + b"\r"

    def status_reply(self, zone):
        state = self.zones[zone]
        volume = "MT" if state["muted"] else f"{state['volume']:02d}"
        return f"#Z{zone:02d}PWR{state['power']},SRC{state['source']},GRP0,VOL-{volume}"

    def tone_reply(self, zone):
        state = self.zones[zone]
        return f"#Z{zone:02d}OR0,TRB{state['treble']}{state['bass']:+03d},SRC{state['source']}"


class FakeChannel(Channel):
    """In-memory channel wired to an EmulatedAmplifier."""

    def __init__(self, amplifier=None):
        self.amplifier = amplifier or EmulatedAmplifier()
        self.opened = False
        self.fail_open = False
        self.fail_writes = False
        self.writes = []
        self._incoming = queue.Queue()
        self._lock = threading.Lock()

    def open(self):
        if self.fail_open:
            raise TransportOpenError("no such device")
        self.opened = True

    def close(self):
        self.opened = False

    def is_open(self):
        return self.opened

    def write(self, data):
        if not self.opened or self.fail_writes:
            raise TransportWriteError("write failed")
        payload = data.decode("ascii")
        with self._lock:
            self.writes.append(payload)
        reply = self.amplifier.respond(payload)
        if reply is not None:
            self.feed(reply)

    def feed(self, data):
        self._incoming.put(data)

    def chunks(self):
        while self.opened:
            try:
                chunk = self._incoming.get(timeout=0.01)
            except queue.Empty:
                continue
            yield chunk


class ClientTestCase(unittest.TestCase):

    config = AmplifierConfig(command_delay_ms=1, reply_timeout_ms=500)

    def setUp(self):
        self.channel = FakeChannel()
        self.amplifier = self.channel.amplifier
        self.client = AmplifierClient(self.config, channel=self.channel)
        self.client.connect()

    def tearDown(self):
        self.client.close()


class TestLifecycle(unittest.TestCase):

    def test_connect_and_close(self):
        channel = FakeChannel()
        client = AmplifierClient(AmplifierConfig(command_delay_ms=1), channel=channel)

        client.connect()
        self.assertTrue(client.is_connected)
        self.assertTrue(channel.is_open())

        client.close()
        self.assertFalse(client.is_connected)
        self.assertFalse(channel.is_open())

    def test_open_failure_is_fatal(self):
        channel = FakeChannel()
        channel.fail_open = True
        client = AmplifierClient(channel=channel)

        with self.assertRaises(TransportOpenError):
            client.connect()
        self.assertFalse(client.is_connected)

    def test_context_manager(self):
        channel = FakeChannel()
        with AmplifierClient(AmplifierConfig(command_delay_ms=1), channel=channel) as client:
            self.assertTrue(client.turn_on_zone(1))
        self.assertFalse(channel.is_open())

    @patch('nuvo_essentia.amplifier.client.SerialChannel')
    def test_default_channel_from_config(self, mock_channel_class):
        config = AmplifierConfig(port="/dev/ttyS3", baudrate=19200)
        AmplifierClient(config)
        mock_channel_class.assert_called_once_with(port="/dev/ttyS3", baudrate=19200)


class TestQueries(ClientTestCase):

    def test_get_zone_status(self):
        self.amplifier.zones[2].update(power="ON", volume=45, source=3)

        status = self.client.get_zone_status(2)

        self.assertEqual(status, ZoneStatus(
            zone=2, power=PowerState.ON, source_id=3, group_id=0, volume_field="45",
        ))
        self.assertEqual(self.channel.writes, ["*Z02CONSR\r"])

    def test_get_zone_settings(self):
        self.amplifier.zones[4].update(bass=-3, treble=5, source=2)

        tone = self.client.get_zone_settings(4)

        self.assertEqual(tone, ZoneToneStatus(zone=4, bass=-3, treble=5, source_id=2))
        self.assertEqual(self.channel.writes, ["*Z04SETSR\r"])

    def test_is_zone_on(self):
        self.assertFalse(self.client.is_zone_on(1))
        self.amplifier.zones[1]["power"] = "ON"
        self.assertTrue(self.client.is_zone_on(1))

    def test_is_zone_muted(self):
        self.assertFalse(self.client.is_zone_muted(1))
        self.amplifier.zones[1]["muted"] = True
        self.assertTrue(self.client.is_zone_muted(1))


class TestSetters(ClientTestCase):

    def test_power(self):
        self.assertTrue(self.client.turn_on_zone(1))
        self.assertTrue(self.client.turn_off_zone(1))
        self.assertEqual(self.channel.writes, ["*Z01ON\r", "*Z01OFF\r"])

    def test_mute(self):
        self.assertTrue(self.client.mute_zone(3))
        self.assertTrue(self.client.unmute_zone(3))
        self.assertEqual(self.channel.writes, ["*Z03MTON\r", "*Z03MTOFF\r"])

    def test_volume(self):
        self.assertTrue(self.client.set_volume(1, 50))
        self.assertEqual(self.channel.writes, ["*Z01VOL50\r"])

    def test_volume_not_applied(self):
        self.amplifier.overrides["*Z01VOL50\r"] = b"#Z01PWRON,SRC1,GRP0,VOL-30\r"
        self.assertFalse(self.client.set_volume(1, 50))

    def test_volume_while_muted(self):
        self.amplifier.zones[1]["muted"] = True
        self.assertFalse(self.client.set_volume(1, 50))

    def test_source(self):
        self.assertTrue(self.client.set_source(5, 4))
        self.assertEqual(self.channel.writes, ["*Z05SRC4\r"])

    def test_bass(self):
        self.assertTrue(self.client.set_bass(1, -4))
        self.assertEqual(self.channel.writes, ["*Z01BASS-4\r"])

    def test_treble(self):
        self.assertTrue(self.client.set_treble(1, 6))
        self.assertEqual(self.channel.writes, ["*Z01TREB6\r"])

    def test_negative_treble(self):
        self.assertTrue(self.client.set_treble(1, -3))
        self.assertEqual(self.channel.writes, ["*Z01TREB-3\r"])
        self.assertEqual(self.client.get_zone_settings(1).treble, -3)

    def test_treble_not_applied(self):
        self.amplifier.overrides["*Z01TREB-3\r"] = b"#Z01OR0,TRB-2+00,SRC1\r"
        self.assertFalse(self.client.set_treble(1, -3))

    def test_invalid_argument_never_written(self):
        with self.assertRaises(ValueError):
            self.client.set_volume(1, 99)
        self.assertEqual(self.channel.writes, [])


class TestConcurrency(ClientTestCase):

    def test_concurrent_power_and_volume(self):
        """Two callers on the same zone each get their own reply."""
        results = {}

        def turn_on():
            results["on"] = self.client.turn_on_zone(1)

        def set_volume():
            results["volume"] = self.client.set_volume(1, 50)

        first = threading.Thread(target=turn_on)
        first.start()
        # Make submission order deterministic
        while not self.client._queue.depth and "on" not in results:
            time.sleep(0.001)
        second = threading.Thread(target=set_volume)
        second.start()
        first.join()
        second.join()

        self.assertEqual(results, {"on": True, "volume": True})
        self.assertEqual(self.channel.writes, ["*Z01ON\r", "*Z01VOL50\r"])

    def test_many_zones_in_parallel(self):
        results = {}

        def worker(zone):
            results[zone] = self.client.set_volume(zone, zone)

        threads = [threading.Thread(target=worker, args=(zone,)) for zone in range(1, 13)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(results, {zone: True for zone in range(1, 13)})
        self.assertEqual(len(self.channel.writes), 12)


class TestErrors(ClientTestCase):

    def test_malformed_reply_raises_parse_error(self):
        self.amplifier.overrides["*Z01ON\r"] = b"#Z01PWR\r"

        with self.assertRaises(ParseError):
            self.client.turn_on_zone(1)

        # The next command is unaffected
        self.assertTrue(self.client.turn_off_zone(1))

    def test_write_failure(self):
        self.channel.fail_writes = True
        with self.assertRaises(TransportWriteError):
            self.client.turn_on_zone(1)

        self.channel.fail_writes = False
        self.assertTrue(self.client.turn_on_zone(1))

    def test_framing_error_rejects_in_flight_command(self):
        self.amplifier.overrides["*Z01ON\r"] = b"x" * 300

        with self.assertRaises(FramingError):
            self.client.turn_on_zone(1)

        self.assertTrue(self.client.turn_off_zone(1))

    def test_execute_returns_raw_line(self):
        line = self.client.execute(ProtocolSerializer.status_query(1))
        self.assertEqual(line, "#Z01PWROFF,SRC1,GRP0,VOL-30")


class TestSwitchPolicy(unittest.TestCase):

    def _client(self, **config):
        channel = FakeChannel()
        client = AmplifierClient(AmplifierConfig(command_delay_ms=1, **config), channel=channel)
        client.connect()
        self.addCleanup(client.close)
        return client, channel

    def test_relay_switch_on_applies_defaults(self):
        client, channel = self._client(
            default_volume=35,
            zones={1: ZoneDefaults(bass=2, treble=3)},
        )

        self.assertTrue(client.switch_zone(1, True))
        self.assertEqual(channel.writes, ["*Z01ON\r", "*Z01VOL35\r", "*Z01TREB3\r", "*Z01BASS2\r"])
        self.assertTrue(client.is_zone_switched_on(1))

    def test_relay_switch_off(self):
        client, channel = self._client()

        self.assertTrue(client.switch_zone(1, False))
        self.assertEqual(channel.writes, ["*Z01OFF\r"])
        self.assertFalse(client.is_zone_switched_on(1))

    def test_mute_policy(self):
        client, channel = self._client(
            mute_instead_of_relay=True,
            zones={2: ZoneDefaults(volume=20)},
        )

        self.assertTrue(client.switch_zone(2, False))
        self.assertFalse(client.is_zone_switched_on(2))

        self.assertTrue(client.switch_zone(2, True))
        self.assertTrue(client.is_zone_switched_on(2))

        self.assertEqual(channel.writes, [
            "*Z02MTON\r",
            "*Z02CONSR\r",
            "*Z02MTOFF\r",
            "*Z02VOL20\r",
            "*Z02TREB0\r",
            "*Z02BASS0\r",
            "*Z02CONSR\r",
        ])

    def test_negative_treble_default(self):
        client, channel = self._client(zones={1: ZoneDefaults(volume=30, bass=2, treble=-3)})

        self.assertTrue(client.switch_zone(1, True))
        self.assertEqual(channel.writes, ["*Z01ON\r", "*Z01VOL30\r", "*Z01TREB-3\r", "*Z01BASS2\r"])
        self.assertEqual(client.get_zone_settings(1), ZoneToneStatus(zone=1, bass=2, treble=-3, source_id=1))

    def test_defaults_continue_after_bad_reply(self):
        client, channel = self._client(zones={1: ZoneDefaults(volume=30, bass=2, treble=5)})
        channel.amplifier.overrides["*Z01TREB5\r"] = b"#Z01OR0,TRBx,SRC1\r"

        self.assertFalse(client.switch_zone(1, True))
        self.assertEqual(channel.writes, ["*Z01ON\r", "*Z01VOL30\r", "*Z01TREB5\r", "*Z01BASS2\r"])
        self.assertEqual(channel.amplifier.zones[1]["bass"], 2)


class TestDisabledLimits(unittest.TestCase):
    """Zero values in the configuration disable the queue limits."""

    def _client(self, config):
        channel = FakeChannel()
        client = AmplifierClient(config, channel=channel)
        client.connect()
        self.addCleanup(client.close)
        return client, channel

    def test_unbounded_queue_depth(self):
        client, _ = self._client(AmplifierConfig.from_dict({"maxQueueDepth": 0, "cmdDelay": 0}))

        self.assertTrue(client.turn_on_zone(1))

        futures = [client._queue.submit(ProtocolSerializer.status_query(1)) for _ in range(100)]
        for future in futures:
            self.assertEqual(future.result(timeout=5), "#Z01PWRON,SRC1,GRP0,VOL-30")

    def test_reply_timeout_disabled(self):
        client, channel = self._client(AmplifierConfig.from_dict({"replyTimeout": 0, "cmdDelay": 0}))
        channel.amplifier.overrides["*Z01CONSR\r"] = None

        future = client._queue.submit(ProtocolSerializer.status_query(1))
        time.sleep(0.3)
        self.assertFalse(future.done())

        channel.feed(b"#Z01PWROFF,SRC1,GRP0,VOL-30\r")
        self.assertEqual(future.result(timeout=2), "#Z01PWROFF,SRC1,GRP0,VOL-30")

    def test_reply_timeout_enabled(self):
        client, channel = self._client(AmplifierConfig.from_dict({"replyTimeout": 50, "cmdDelay": 0}))
        channel.amplifier.overrides["*Z01CONSR\r"] = None

        with self.assertRaises(StallError):
            client.get_zone_status(1)


if __name__ == '__main__':
    unittest.main()
