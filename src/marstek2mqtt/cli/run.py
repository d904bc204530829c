#!/usr/bin/env python3
"""Run the Modbus to MQTT bridge.

Polls a Marstek Venus over Modbus TCP, publishes its telemetry to MQTT and
applies commands received on the command topics.  Settings come from the
environment (see :mod:`marstek2mqtt.config`).

Usage:
    marstek2mqtt
    marstek2mqtt --env-file /etc/marstek2mqtt.env
    marstek2mqtt --log-level debug
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys

from marstek2mqtt import __version__
from marstek2mqtt.bridge import Bridge
from marstek2mqtt.cli import configure_logging
from marstek2mqtt.codec import RegisterCodec
from marstek2mqtt.config import BridgeConfig
from marstek2mqtt.constants import LOG_LEVELS
from marstek2mqtt.exceptions import ConfigError
from marstek2mqtt.poller import Poller
from marstek2mqtt.transports import ModbusTransport

_LOGGER = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="marstek2mqtt",
        description="Bridge a Marstek Venus battery between Modbus TCP and MQTT.",
    )
    parser.add_argument(
        "--env-file",
        help="Load settings from this .env file (default: ./.env if present)",
    )
    parser.add_argument(
        "--log-level",
        choices=list(LOG_LEVELS),
        help="Override LOGLEVEL",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(args: argparse.Namespace) -> BridgeConfig:
    """Resolve and validate configuration from the environment and CLI flags.

    Raises:
        ConfigError: If configuration is missing or invalid
    """
    config = BridgeConfig.from_env(env_file=args.env_file)
    if args.log_level:
        config = dataclasses.replace(config, log_level=args.log_level)
    config.validate()
    return config


async def run_bridge(config: BridgeConfig) -> int:
    """Run poller and bridge until cancelled."""
    transport = ModbusTransport(
        host=config.poll_host,
        port=config.poll_port,
        unit_id=config.unit_id,
        timeout=config.timeout,
    )
    poller = Poller(transport, interval_ms=config.poll_interval_ms)
    bridge = Bridge(poller, RegisterCodec(), config)

    _LOGGER.info(
        "Initializing Poller: %s:%s ID:%s Interval:%sms",
        config.poll_host,
        config.poll_port,
        config.unit_id,
        config.poll_interval_ms,
    )
    await asyncio.gather(poller.run(), bridge.run())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except ConfigError as err:
        configure_logging(logging.INFO)
        _LOGGER.error("%s", err)
        return 1

    configure_logging(config.log_level_number)

    try:
        return asyncio.run(run_bridge(config))
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted, shutting down")
        return 0


if __name__ == "__main__":
    sys.exit(main())
