#!/usr/bin/env python3
"""Single poll diagnostic.

Connects to the battery once, runs one full poll cycle and prints the
decoded snapshot as JSON.  Useful for checking the Modbus settings before
starting the bridge.

Usage:
    POLL_IP=192.168.1.50 marstek2mqtt-poll
    marstek2mqtt-poll --labels --timeout 20
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from marstek2mqtt.cli import configure_logging
from marstek2mqtt.codec import RegisterCodec
from marstek2mqtt.config import BridgeConfig
from marstek2mqtt.exceptions import ConfigError, MarstekError
from marstek2mqtt.poller import Poller
from marstek2mqtt.transports import ModbusTransport

DEFAULT_TIMEOUT = 10.0  # seconds


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="marstek2mqtt-poll",
        description="Read every Marstek Venus register block once and print the result.",
    )
    parser.add_argument("--env-file", help="Load settings from this .env file")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Give up if no data arrives within this many seconds (default: %(default)s)",
    )
    parser.add_argument(
        "--labels",
        action="store_true",
        help="Show enumerated values (modes, inverter state) as labels",
    )
    return parser


async def poll_once(
    config: BridgeConfig, timeout: float, *, labels: bool = False
) -> dict[str, Any]:
    """Connect, run one poll cycle and disconnect.

    Raises:
        TimeoutError: If the cycle did not finish within ``timeout`` seconds
        MarstekError: If connecting, reading or decoding failed
    """
    transport = ModbusTransport(
        host=config.poll_host,
        port=config.poll_port,
        unit_id=config.unit_id,
        timeout=config.timeout,
    )
    poller = Poller(transport, interval_ms=config.poll_interval_ms)

    try:
        async with asyncio.timeout(timeout):
            await transport.connect()
            snapshot = await poller.poll_once()
    finally:
        await transport.disconnect()

    data = snapshot.to_dict()
    if labels:
        codec = RegisterCodec()
        for key, value in data.items():
            label = codec.label_for_code(key, value) if codec.is_enumerated(key) else None
            if label is not None:
                data[key] = label
    return data


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = create_parser().parse_args(argv)

    try:
        config = BridgeConfig.from_env(env_file=args.env_file)
        config.validate()
    except ConfigError as err:
        print(f"Error: {err}", file=sys.stderr)
        print("Usage: POLL_IP=192.168.1.50 marstek2mqtt-poll", file=sys.stderr)
        return 1

    configure_logging(config.log_level_number)
    print(f"Starting single poll test for {config.poll_host}:{config.poll_port}...")

    try:
        data = asyncio.run(poll_once(config, args.timeout, labels=args.labels))
    except TimeoutError:
        print(f"Timeout: No data received within {args.timeout:g} seconds.", file=sys.stderr)
        return 1
    except MarstekError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1

    print("Data received:")
    print(json.dumps(data, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
