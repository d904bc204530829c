"""Modbus TCP transport implementation.

This module provides the ModbusTransport class, which owns the connection
to a Marstek Venus over Modbus TCP and exposes the two primitives the
bridge needs: a holding register block read and a single register write.

Connection state machine:

    DISCONNECTED --connect() succeeds--> CONNECTED
    CONNECTED --I/O error or timeout--> DISCONNECTED

The transport never retries on its own.  Whoever drives it (the poller)
decides when to call connect() again.

IMPORTANT: Single-Client Limitation
------------------------------------
Modbus TCP devices typically accept only ONE concurrent connection.
Running a second client against the same battery causes transaction ID
mismatches and intermittent timeouts.
"""

from __future__ import annotations

import asyncio
import logging
import struct
from enum import StrEnum
from typing import TYPE_CHECKING

from pymodbus.exceptions import ModbusException, ModbusIOException

from marstek2mqtt.constants import (
    DEFAULT_MODBUS_PORT,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_UNIT_ID,
    TRACE,
)

from .exceptions import (
    NotConnectedError,
    TransportConnectionError,
    TransportReadError,
    TransportTimeoutError,
    TransportWriteError,
)

if TYPE_CHECKING:
    from pymodbus.client import AsyncModbusTcpClient

_LOGGER = logging.getLogger(__name__)

__all__ = ["LinkState", "ModbusTransport"]


class LinkState(StrEnum):
    """Connection state of a :class:`ModbusTransport`."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class ModbusTransport:
    """Modbus TCP link to a single device.

    All reads and writes share one asyncio lock, so a command write can
    never interleave with a poll read on the same session.

    Example:
        transport = ModbusTransport(host="192.168.1.100")
        await transport.connect()
        raw = await transport.read_block(30100, 2)
        await transport.write_register(42010, 1)
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_MODBUS_PORT,
        unit_id: int = DEFAULT_UNIT_ID,
        timeout: float = DEFAULT_TIMEOUT_MS / 1000,
    ) -> None:
        """Initialize Modbus transport.

        Args:
            host: IP address or hostname of the device
            port: TCP port (default 502 for Modbus)
            unit_id: Modbus unit/slave ID (default 1)
            timeout: Per-request timeout in seconds
        """
        self._host = host
        self._port = port
        self._unit_id = unit_id
        self._timeout = timeout
        self._client: AsyncModbusTcpClient | None = None
        self._state = LinkState.DISCONNECTED
        self._lock = asyncio.Lock()

    @property
    def host(self) -> str:
        """Get the device host."""
        return self._host

    @property
    def port(self) -> int:
        """Get the device port."""
        return self._port

    @property
    def unit_id(self) -> int:
        """Get the Modbus unit/slave ID."""
        return self._unit_id

    @property
    def state(self) -> LinkState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True while the link is usable for reads and writes."""
        return self._state == LinkState.CONNECTED

    async def connect(self) -> None:
        """Open a new Modbus TCP session.

        Any existing session is closed first, so calling this while
        connected forces a fresh session.

        Raises:
            TransportConnectionError: If the device cannot be reached
        """
        from pymodbus.client import AsyncModbusTcpClient

        async with self._lock:
            self._close()

            client = AsyncModbusTcpClient(
                host=self._host,
                port=self._port,
                timeout=self._timeout,
            )
            try:
                connected = await client.connect()
            except (TimeoutError, OSError, ModbusException) as err:
                client.close()
                _LOGGER.error(
                    "Modbus connection to %s:%s failed: %s", self._host, self._port, err
                )
                raise TransportConnectionError(
                    f"Failed to connect to {self._host}:{self._port}: {err}"
                ) from err

            if not connected:
                client.close()
                _LOGGER.error("Modbus connection to %s:%s failed", self._host, self._port)
                raise TransportConnectionError(
                    f"Failed to connect to Modbus device at {self._host}:{self._port}"
                )

            self._client = client
            self._state = LinkState.CONNECTED
            _LOGGER.info(
                "Modbus connected to %s:%s (unit %s)", self._host, self._port, self._unit_id
            )

    async def disconnect(self) -> None:
        """Close the session and mark the link disconnected."""
        async with self._lock:
            if self._state == LinkState.CONNECTED:
                _LOGGER.debug("Disconnecting from %s:%s", self._host, self._port)
            self._close()

    def _close(self) -> None:
        """Drop the session. Caller must hold the lock."""
        if self._client is not None:
            self._client.close()
            self._client = None
        self._state = LinkState.DISCONNECTED

    async def read_block(self, start: int, count: int) -> bytes:
        """Read a block of holding registers.

        Args:
            start: First register address
            count: Number of 16-bit registers

        Returns:
            Exactly ``count * 2`` bytes, big-endian

        Raises:
            NotConnectedError: If the link is disconnected (no I/O attempted)
            TransportTimeoutError: If the device did not answer in time
            TransportReadError: On a transport fault or an error response
        """
        async with self._lock:
            if self._client is None or self._state != LinkState.CONNECTED:
                raise NotConnectedError(f"read {count} registers at {start}")

            try:
                result = await self._client.read_holding_registers(
                    address=start,
                    count=count,
                    device_id=self._unit_id,
                )
            except ModbusIOException as err:
                self._close()
                if "timeout" in str(err).lower():
                    raise TransportTimeoutError(
                        f"Timeout reading holding registers at {start}"
                    ) from err
                raise TransportReadError(
                    f"Failed to read holding registers at {start}: {err}"
                ) from err
            except TimeoutError as err:
                self._close()
                raise TransportTimeoutError(f"Timeout reading holding registers at {start}") from err
            except (OSError, ModbusException) as err:
                self._close()
                raise TransportReadError(
                    f"Failed to read holding registers at {start}: {err}"
                ) from err

            if result.isError():
                raise TransportReadError(f"Modbus read error at address {start}: {result}")

            registers = getattr(result, "registers", None)
            if registers is None or len(registers) != count:
                raise TransportReadError(
                    f"Invalid Modbus response at address {start}: "
                    f"expected {count} registers, got {0 if registers is None else len(registers)}"
                )

        raw = struct.pack(f">{count}H", *registers)
        _LOGGER.log(TRACE, "Read %d registers at %d: %s", count, start, raw.hex())
        return raw

    async def write_register(self, address: int, value: int) -> None:
        """Write a single holding register.

        Args:
            address: Register address
            value: Raw 16-bit value

        Raises:
            NotConnectedError: If the link is disconnected (no I/O attempted)
            TransportTimeoutError: If the device did not answer in time
            TransportWriteError: On a transport fault or an error response
        """
        async with self._lock:
            if self._client is None or self._state != LinkState.CONNECTED:
                raise NotConnectedError(f"write register {address}")

            _LOGGER.info("Writing %d to register %d", value, address)
            try:
                result = await self._client.write_register(
                    address=address,
                    value=value,
                    device_id=self._unit_id,
                )
            except ModbusIOException as err:
                self._close()
                if "timeout" in str(err).lower():
                    raise TransportTimeoutError(f"Timeout writing register {address}") from err
                raise TransportWriteError(f"Failed to write register {address}: {err}") from err
            except TimeoutError as err:
                self._close()
                raise TransportTimeoutError(f"Timeout writing register {address}") from err
            except (OSError, ModbusException) as err:
                self._close()
                raise TransportWriteError(f"Failed to write register {address}: {err}") from err

            if result.isError():
                raise TransportWriteError(f"Modbus write error at address {address}: {result}")
