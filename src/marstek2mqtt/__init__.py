"""Marstek Venus Modbus TCP to MQTT bridge.

Usage:
    Run the bridge (settings from environment / .env):
        $ marstek2mqtt

    Library usage:
        from marstek2mqtt import Bridge, BridgeConfig, ModbusTransport, Poller, RegisterCodec

        config = BridgeConfig.from_env()
        config.validate()
        transport = ModbusTransport(config.poll_host, config.poll_port, config.unit_id)
        poller = Poller(transport, interval_ms=config.poll_interval_ms)
        bridge = Bridge(poller, RegisterCodec(), config)
        await asyncio.gather(poller.run(), bridge.run())
"""

from __future__ import annotations

__version__ = "0.1.0"

from .bridge import Bridge
from .codec import RegisterCodec, decode_block, encode_block, encode_field
from .config import BridgeConfig
from .data import TelemetrySnapshot
from .exceptions import ConfigError, DecodeError, MarstekError
from .poller import Poller
from .transports import (
    LinkState,
    ModbusTransport,
    NotConnectedError,
    TransportConnectionError,
    TransportError,
    TransportIOError,
)

__all__ = [
    "Bridge",
    "BridgeConfig",
    "ConfigError",
    "DecodeError",
    "LinkState",
    "MarstekError",
    "ModbusTransport",
    "NotConnectedError",
    "Poller",
    "RegisterCodec",
    "TelemetrySnapshot",
    "TransportConnectionError",
    "TransportError",
    "TransportIOError",
    "decode_block",
    "encode_block",
    "encode_field",
]
