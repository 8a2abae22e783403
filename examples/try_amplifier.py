#!/usr/bin/env python3
"""
Interactive Amplifier Test Script.

This script demonstrates the AmplifierClient API.
Run it to connect to an amplifier, read zone status and switch a zone.
"""

import argparse
import sys
import time
import logging
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from nuvo_essentia import AmplifierClient, AmplifierConfig, AmplifierError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def main():
    parser = argparse.ArgumentParser(description="Exercise a Nuvo Essentia amplifier")
    parser.add_argument("--port", default="/dev/ttyUSB0", help="Serial port")
    parser.add_argument("--config", help="JSON configuration file (overrides --port)")
    parser.add_argument("--zone", type=int, default=1, help="Zone to switch (1-12)")
    parser.add_argument("--zones", type=int, default=6, help="Number of zones to query")
    parser.add_argument("--debug", action="store_true", help="Log serial traffic")
    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    config = AmplifierConfig.load(args.config) if args.config else AmplifierConfig(port=args.port)

    print(f"Connecting to {config.port}...")
    client = AmplifierClient(config)
    try:
        client.connect()
    except AmplifierError as e:
        print(f"Failed to connect! {e}")
        return 1

    try:
        print("\nZone status:")
        for zone in range(1, args.zones + 1):
            try:
                status = client.get_zone_status(zone)
            except AmplifierError as e:
                print(f"  Zone {zone}: unresponsive ({e})")
                continue

            if status.muted:
                volume = "muted"
            elif status.externally_muted:
                volume = "muted (external)"
            else:
                volume = str(status.volume)
            print(f"  Zone {zone}: {status.power.value:<3} | Source {status.source_id} | Volume {volume}")

        print(f"\nSwitching zone {args.zone} on...")
        print(f"Result: {client.switch_zone(args.zone, True)}")
        time.sleep(2)

        settings = client.get_zone_settings(args.zone)
        print(f"Bass {settings.bass:+d} | Treble {settings.treble:+d}")

        print(f"\nSwitching zone {args.zone} off...")
        print(f"Result: {client.switch_zone(args.zone, False)}")

    except AmplifierError as e:
        print(f"\nAmplifier error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
    finally:
        print("\nDisconnecting...")
        client.close()
        print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
