"""Transport layer for marstek2mqtt.

Usage:
    from marstek2mqtt.transports import ModbusTransport

    transport = ModbusTransport(host="192.168.1.100", port=502, unit_id=1)
    await transport.connect()
    raw = await transport.read_block(30100, 2)
"""

from __future__ import annotations

from .exceptions import (
    NotConnectedError,
    TransportConnectionError,
    TransportError,
    TransportIOError,
    TransportReadError,
    TransportTimeoutError,
    TransportWriteError,
)
from .modbus import LinkState, ModbusTransport

__all__ = [
    "LinkState",
    "ModbusTransport",
    "NotConnectedError",
    "TransportConnectionError",
    "TransportError",
    "TransportIOError",
    "TransportReadError",
    "TransportTimeoutError",
    "TransportWriteError",
]
