"""Canonical Marstek Venus holding register map.

Single source of truth for every register block the poller reads and every
key the bridge can write.  All Venus telemetry lives in holding registers
(function code 0x03); there is no input register map.

Each poll block carries:
  start address → register count → fields (byte offset, width, sign, scale, key)

Byte offsets are relative to the start of the block, so a field at offset 4
is the third register of the block.  Multi-register values are big-endian
with the high word first.

Two kinds of key carry a code → label table:
  - Controls: writable, either enumerated (label table) or numeric.
  - Read-only lookups: published as labels but never written.

Unverified layouts (checked against one unit only, keep under review):
  - ac_current is scaled by 1/250; the factor was derived empirically.
  - min_cell_temperature is assumed to follow max_cell_temperature at
    offset 2 of block 35010.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, StrEnum
from types import MappingProxyType
from typing import Literal


class ScaleFactor(int, Enum):
    """Divisor applied to raw register value."""

    NONE = 1
    DIV_10 = 10
    DIV_100 = 100
    DIV_250 = 250
    DIV_1000 = 1000

    @property
    def multiplier(self) -> float:
        """Factor the raw value is multiplied by (e.g. 0.01 for DIV_100)."""
        return 1 / self.value


class ControlKind(StrEnum):
    """How a control's MQTT payload maps onto its register value."""

    ENUMERATED = "enumerated"
    NUMERIC = "numeric"


@dataclass(frozen=True)
class BlockField:
    """Single value extracted from a register block.

    Attributes:
        offset: Byte offset from the start of the block.
        key: Telemetry key the decoded value is stored under.
        bit_width: 16 (single register) or 32 (register pair, high word first).
        signed: True for two's-complement signed values.
        scale: Divisor to convert raw value to engineering units.
    """

    offset: int
    key: str
    bit_width: Literal[16, 32] = 16
    signed: bool = False
    scale: ScaleFactor = ScaleFactor.NONE

    @property
    def size(self) -> int:
        """Number of bytes this field occupies."""
        return self.bit_width // 8


@dataclass(frozen=True)
class RegisterBlock:
    """Contiguous run of holding registers fetched in one read.

    Attributes:
        start: First holding register address.
        count: Number of 16-bit registers to read.
        fields: Values decoded from the block, in output order.
    """

    start: int
    count: int
    fields: tuple[BlockField, ...]

    @property
    def byte_length(self) -> int:
        """Size in bytes of the raw block returned by the device."""
        return self.count * 2


@dataclass(frozen=True)
class ControlDefinition:
    """Writable key exposed as an MQTT command.

    For enumerated controls ``labels`` maps each register code to its display
    string.  Numeric controls leave ``labels`` empty and carry the range
    published in discovery metadata instead.
    """

    key: str
    name: str
    register: int
    kind: ControlKind
    labels: Mapping[int, str] = field(default_factory=dict)
    min_value: int | None = None
    max_value: int | None = None
    step: int | None = None
    unit: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))


@dataclass(frozen=True)
class LookupDefinition:
    """Read-only key whose numeric code is published as a label."""

    key: str
    name: str
    labels: Mapping[int, str]

    def __post_init__(self) -> None:
        object.__setattr__(self, "labels", MappingProxyType(dict(self.labels)))


@dataclass(frozen=True)
class SensorDefinition:
    """Display metadata for a read-only numeric telemetry key."""

    key: str
    name: str
    unit: str | None = None
    device_class: str | None = None
    state_class: str | None = None


# =============================================================================
# POLL BLOCKS (Function Code 0x03, read in this order every cycle)
# =============================================================================

VENUS_POLL_BLOCKS: tuple[RegisterBlock, ...] = (
    # Power (regs 30001-30006, only first and last used)
    RegisterBlock(
        30001,
        6,
        (
            BlockField(0, "battery_power", signed=True),
            BlockField(10, "ac_power", signed=True),
        ),
    ),
    # Battery DC side
    RegisterBlock(
        30100,
        2,
        (
            BlockField(0, "battery_voltage", scale=ScaleFactor.DIV_100),
            BlockField(2, "battery_current", signed=True, scale=ScaleFactor.DIV_10),
        ),
    ),
    RegisterBlock(
        32105,
        1,
        (BlockField(0, "battery_design_capacity", scale=ScaleFactor.DIV_1000),),
    ),
    # AC side
    RegisterBlock(
        32200,
        5,
        (
            BlockField(0, "ac_voltage", scale=ScaleFactor.DIV_10),
            BlockField(8, "ac_frequency", signed=True, scale=ScaleFactor.DIV_10),
        ),
    ),
    # AC current, SOC and cell voltage extremes
    RegisterBlock(
        37004,
        5,
        (
            BlockField(0, "ac_current", signed=True, scale=ScaleFactor.DIV_250),
            BlockField(2, "soc"),
            BlockField(6, "max_cell_voltage", scale=ScaleFactor.DIV_1000),
            BlockField(8, "min_cell_voltage", scale=ScaleFactor.DIV_1000),
        ),
    ),
    # Lifetime energy counters (32-bit)
    RegisterBlock(
        33000,
        4,
        (
            BlockField(0, "total_energy_in", bit_width=32, scale=ScaleFactor.DIV_100),
            BlockField(
                4, "total_energy_out", bit_width=32, signed=True, scale=ScaleFactor.DIV_100
            ),
        ),
    ),
    # Temperatures
    RegisterBlock(
        35000,
        3,
        (
            BlockField(0, "internal_temperature", signed=True, scale=ScaleFactor.DIV_10),
            BlockField(2, "internal_mos1_temperature", signed=True, scale=ScaleFactor.DIV_10),
            BlockField(4, "internal_mos2_temperature", signed=True, scale=ScaleFactor.DIV_10),
        ),
    ),
    RegisterBlock(
        35010,
        2,
        (
            BlockField(0, "max_cell_temperature", signed=True, scale=ScaleFactor.DIV_10),
            BlockField(2, "min_cell_temperature", signed=True, scale=ScaleFactor.DIV_10),
        ),
    ),
    # Status and control read-back
    RegisterBlock(35100, 1, (BlockField(0, "inverter_state"),)),
    RegisterBlock(41200, 1, (BlockField(0, "backup_function"),)),
    RegisterBlock(
        42010,
        2,
        (
            BlockField(0, "force_mode"),
            BlockField(2, "charge_to_soc"),
        ),
    ),
    RegisterBlock(
        42020,
        2,
        (
            BlockField(0, "set_charge_power"),
            BlockField(2, "set_discharge_power"),
        ),
    ),
    RegisterBlock(43000, 1, (BlockField(0, "user_work_mode"),)),
)

# =============================================================================
# CONTROLS (writable via MQTT command topic)
# =============================================================================

VENUS_CONTROLS: tuple[ControlDefinition, ...] = (
    ControlDefinition(
        key="user_work_mode",
        name="User Work Mode",
        register=43000,
        kind=ControlKind.ENUMERATED,
        labels={0: "Manual", 1: "Anti-Feed", 2: "Trade"},
    ),
    ControlDefinition(
        key="force_mode",
        name="Force Mode",
        register=42010,
        kind=ControlKind.ENUMERATED,
        labels={0: "Stop", 1: "Charge", 2: "Discharge"},
    ),
    ControlDefinition(
        key="backup_function",
        name="Backup Function",
        register=41200,
        kind=ControlKind.ENUMERATED,
        labels={0: "Enable", 1: "Disable"},
    ),
    ControlDefinition(
        key="set_charge_power",
        name="Set Charge Power",
        register=42020,
        kind=ControlKind.NUMERIC,
        min_value=0,
        max_value=2500,
        step=50,
        unit="W",
    ),
    ControlDefinition(
        key="set_discharge_power",
        name="Set Discharge Power",
        register=42021,
        kind=ControlKind.NUMERIC,
        min_value=0,
        max_value=2500,
        step=50,
        unit="W",
    ),
    ControlDefinition(
        key="charge_to_soc",
        name="Charge to SOC",
        register=42011,
        kind=ControlKind.NUMERIC,
        min_value=10,
        max_value=100,
        step=1,
        unit="%",
    ),
)

# =============================================================================
# READ-ONLY LOOKUPS
# =============================================================================

VENUS_READ_ONLY_LOOKUPS: tuple[LookupDefinition, ...] = (
    LookupDefinition(
        key="inverter_state",
        name="Inverter State",
        labels={
            0: "Sleep",
            1: "Standby",
            2: "Charge",
            3: "Discharge",
            4: "Backup",
            5: "OTA",
            6: "Bypass",
        },
    ),
)

# =============================================================================
# SENSORS (read-only numeric keys, discovery metadata only)
# =============================================================================

VENUS_SENSORS: tuple[SensorDefinition, ...] = (
    SensorDefinition("ac_power", "AC Power", "W", "power", "measurement"),
    SensorDefinition("battery_power", "Battery Power", "W", "power", "measurement"),
    SensorDefinition("battery_voltage", "Battery Voltage", "V", "voltage", "measurement"),
    SensorDefinition("battery_current", "Battery Current", "A", "current", "measurement"),
    SensorDefinition(
        "battery_design_capacity", "Battery Design Capacity", "kWh", "energy_storage", "measurement"
    ),
    SensorDefinition("ac_voltage", "AC Voltage", "V", "voltage", "measurement"),
    SensorDefinition("ac_current", "AC Current", "A", "current", "measurement"),
    SensorDefinition("ac_frequency", "AC Frequency", "Hz", "frequency", "measurement"),
    SensorDefinition("soc", "State of Charge", "%", "battery", "measurement"),
    SensorDefinition("max_cell_voltage", "Max Cell Voltage", "V", "voltage", "measurement"),
    SensorDefinition("min_cell_voltage", "Min Cell Voltage", "V", "voltage", "measurement"),
    SensorDefinition("total_energy_in", "Total Charge", "kWh", "energy", "total_increasing"),
    SensorDefinition("total_energy_out", "Total Discharge", "kWh", "energy", "total_increasing"),
    SensorDefinition(
        "internal_temperature", "Internal Temp", "°C", "temperature", "measurement"
    ),
    SensorDefinition(
        "internal_mos1_temperature", "MOS1 Temp", "°C", "temperature", "measurement"
    ),
    SensorDefinition(
        "internal_mos2_temperature", "MOS2 Temp", "°C", "temperature", "measurement"
    ),
    SensorDefinition(
        "max_cell_temperature", "Max Cell Temp", "°C", "temperature", "measurement"
    ),
    SensorDefinition(
        "min_cell_temperature", "Min Cell Temp", "°C", "temperature", "measurement"
    ),
)


# =============================================================================
# INDEXES
# =============================================================================

BY_KEY: dict[str, BlockField] = {f.key: f for b in VENUS_POLL_BLOCKS for f in b.fields}

CONTROLS_BY_KEY: dict[str, ControlDefinition] = {c.key: c for c in VENUS_CONTROLS}

LOOKUPS_BY_KEY: dict[str, LookupDefinition] = {lk.key: lk for lk in VENUS_READ_ONLY_LOOKUPS}

SENSORS_BY_KEY: dict[str, SensorDefinition] = {s.key: s for s in VENUS_SENSORS}


def telemetry_keys() -> tuple[str, ...]:
    """Return every key a poll cycle produces, in publish order."""
    return tuple(f.key for b in VENUS_POLL_BLOCKS for f in b.fields)
