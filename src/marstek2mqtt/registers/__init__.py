"""Canonical Modbus register maps.

This package is the single source of truth for register definitions:

- venus: Marstek Venus poll blocks, controls, read-only lookups and sensors
"""

from marstek2mqtt.registers.venus import (
    BY_KEY,
    CONTROLS_BY_KEY,
    LOOKUPS_BY_KEY,
    SENSORS_BY_KEY,
    VENUS_CONTROLS,
    VENUS_POLL_BLOCKS,
    VENUS_READ_ONLY_LOOKUPS,
    VENUS_SENSORS,
    BlockField,
    ControlDefinition,
    ControlKind,
    LookupDefinition,
    RegisterBlock,
    ScaleFactor,
    SensorDefinition,
    telemetry_keys,
)

__all__ = [
    "BY_KEY",
    "CONTROLS_BY_KEY",
    "LOOKUPS_BY_KEY",
    "SENSORS_BY_KEY",
    "VENUS_CONTROLS",
    "VENUS_POLL_BLOCKS",
    "VENUS_READ_ONLY_LOOKUPS",
    "VENUS_SENSORS",
    "BlockField",
    "ControlDefinition",
    "ControlKind",
    "LookupDefinition",
    "RegisterBlock",
    "ScaleFactor",
    "SensorDefinition",
    "telemetry_keys",
]
