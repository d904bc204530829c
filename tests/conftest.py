"""Pytest configuration and fixtures for marstek2mqtt tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from marstek2mqtt.codec import RegisterCodec, encode_block
from marstek2mqtt.config import BridgeConfig
from marstek2mqtt.registers import VENUS_POLL_BLOCKS
from marstek2mqtt.transports import (
    NotConnectedError,
    TransportConnectionError,
    TransportReadError,
)

# One realistic reading, in engineering units, for every polled key
SAMPLE_VALUES: dict[str, Any] = {
    "battery_power": -350,
    "ac_power": 340,
    "battery_voltage": 53.12,
    "battery_current": -6.5,
    "battery_design_capacity": 5.12,
    "ac_voltage": 230.4,
    "ac_frequency": 50.0,
    "ac_current": 1.5,
    "soc": 85,
    "max_cell_voltage": 3.325,
    "min_cell_voltage": 3.301,
    "total_energy_in": 1234.56,
    "total_energy_out": 1100.25,
    "internal_temperature": 31.5,
    "internal_mos1_temperature": 29.0,
    "internal_mos2_temperature": -2.5,
    "max_cell_temperature": 25.3,
    "min_cell_temperature": 22.1,
    "inverter_state": 3,
    "backup_function": 0,
    "force_mode": 1,
    "charge_to_soc": 95,
    "set_charge_power": 2500,
    "set_discharge_power": 800,
    "user_work_mode": 0,
}


def build_raw_blocks(values: dict[str, Any] | None = None) -> dict[int, bytes]:
    """Return raw block bytes keyed by start address for ``values``."""
    values = SAMPLE_VALUES if values is None else values
    return {block.start: encode_block(values, block) for block in VENUS_POLL_BLOCKS}


class FakeTransport:
    """In-memory stand-in for ModbusTransport.

    Serves raw blocks from a dict and records every call in ``calls`` so
    tests can check ordering.
    """

    def __init__(
        self,
        blocks: dict[int, bytes] | None = None,
        *,
        connect_error: Exception | None = None,
        read_errors: dict[int, Exception] | None = None,
    ) -> None:
        self.host = "192.168.1.100"
        self.port = 502
        self.unit_id = 1
        self.blocks = build_raw_blocks() if blocks is None else blocks
        self.connect_error = connect_error
        self.read_errors = read_errors or {}
        self.connected = False
        self.calls: list[tuple[Any, ...]] = []
        self.writes: list[tuple[int, int]] = []

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def connect(self) -> None:
        self.calls.append(("connect",))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def disconnect(self) -> None:
        self.calls.append(("disconnect",))
        self.connected = False

    async def read_block(self, start: int, count: int) -> bytes:
        if not self.connected:
            raise NotConnectedError(f"read {count} registers at {start}")
        self.calls.append(("read", start, count))
        await asyncio.sleep(0)
        if start in self.read_errors:
            raise self.read_errors[start]
        return self.blocks[start]

    async def write_register(self, address: int, value: int) -> None:
        if not self.connected:
            raise NotConnectedError(f"write register {address}")
        self.calls.append(("write", address, value))
        self.writes.append((address, value))


@pytest.fixture
def codec() -> RegisterCodec:
    """Codec built from the Venus tables."""
    return RegisterCodec()


@pytest.fixture
def bridge_config() -> BridgeConfig:
    """Minimal valid configuration."""
    return BridgeConfig(poll_host="192.168.1.100", identifier="One")


@pytest.fixture
def raw_blocks() -> dict[int, bytes]:
    """Raw bytes for every poll block, encoded from SAMPLE_VALUES."""
    return build_raw_blocks()


@pytest.fixture
def fake_transport(raw_blocks: dict[int, bytes]) -> FakeTransport:
    """Disconnected fake transport serving the sample blocks."""
    return FakeTransport(raw_blocks)


@pytest.fixture
def failing_transport() -> FakeTransport:
    """Fake transport whose connect always fails."""
    return FakeTransport(connect_error=TransportConnectionError("refused"))


@pytest.fixture
def read_error() -> TransportReadError:
    """A transport read error for block 35000."""
    return TransportReadError("Failed to read holding registers at 35000")
