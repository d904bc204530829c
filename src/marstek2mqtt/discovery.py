"""Home Assistant MQTT discovery payloads.

Builds one retained discovery message per published key so Home Assistant
can create sensor, number and select entities without manual setup.

Topic layout::

    homeassistant/<component>/marstek2mqtt_<id>/<key>/config

Components:
- ``sensor``: read-only numeric keys and read-only lookups (inverter state)
- ``number``: numeric controls (charge/discharge power, charge target)
- ``select``: enumerated controls (work mode, force mode, backup)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from marstek2mqtt.codec import RegisterCodec
from marstek2mqtt.constants import (
    COMMAND_SEGMENT,
    DEVICE_MANUFACTURER,
    DEVICE_MODEL,
    DISCOVERY_PREFIX,
    TOPIC_PREFIX,
)
from marstek2mqtt.registers import VENUS_SENSORS, ControlKind, SensorDefinition


@dataclass(frozen=True)
class DiscoveryMessage:
    """A single discovery config ready to publish (retained)."""

    topic: str
    payload: dict[str, Any]


def node_id(identifier: str) -> str:
    """Return the discovery node id / device identifier for a device."""
    return f"{TOPIC_PREFIX}_{identifier}"


def state_topic(identifier: str, key: str) -> str:
    """Topic a telemetry key is published on."""
    return f"{TOPIC_PREFIX}/{identifier}/{key}"


def command_topic(identifier: str, key: str) -> str:
    """Topic a control key accepts commands on."""
    return f"{TOPIC_PREFIX}/{identifier}/{COMMAND_SEGMENT}/{key}"


def expire_after(interval_ms: int) -> int:
    """Seconds after which Home Assistant marks a sensor unavailable.

    Two missed polls plus a grace period of five seconds.
    """
    return math.ceil(interval_ms / 1000) * 2 + 5


def device_info(identifier: str) -> dict[str, Any]:
    """Device block shared by every entity of one battery."""
    return {
        "manufacturer": DEVICE_MANUFACTURER,
        "model": DEVICE_MODEL,
        "name": f"{DEVICE_MANUFACTURER} {DEVICE_MODEL} {identifier}",
        "identifiers": [node_id(identifier)],
    }


def _base_payload(identifier: str, key: str, name: str) -> dict[str, Any]:
    return {
        "name": name,
        "unique_id": f"{node_id(identifier)}_{key}",
        "state_topic": state_topic(identifier, key),
        "device": device_info(identifier),
        "enabled_by_default": True,
    }


def _topic(component: str, identifier: str, key: str) -> str:
    return f"{DISCOVERY_PREFIX}/{component}/{node_id(identifier)}/{key}/config"


def build_discovery_messages(
    identifier: str,
    codec: RegisterCodec,
    interval_ms: int,
    sensors: tuple[SensorDefinition, ...] = VENUS_SENSORS,
) -> list[DiscoveryMessage]:
    """Build discovery messages for every sensor, lookup and control.

    Args:
        identifier: Device identifier used in topics
        codec: Codec holding the control and lookup tables
        interval_ms: Poll interval, used for ``expire_after``
        sensors: Display metadata for read-only numeric keys

    Returns:
        Messages in publish order: sensors, lookups, numbers, selects
    """
    messages: list[DiscoveryMessage] = []
    expiry = expire_after(interval_ms)

    for sensor in sensors:
        payload = _base_payload(identifier, sensor.key, sensor.name)
        if sensor.unit:
            payload["unit_of_measurement"] = sensor.unit
        if sensor.device_class:
            payload["device_class"] = sensor.device_class
        if sensor.state_class:
            payload["state_class"] = sensor.state_class
        payload["expire_after"] = expiry
        messages.append(DiscoveryMessage(_topic("sensor", identifier, sensor.key), payload))

    for lookup in codec.lookups.values():
        payload = _base_payload(identifier, lookup.key, lookup.name)
        payload["expire_after"] = expiry
        messages.append(DiscoveryMessage(_topic("sensor", identifier, lookup.key), payload))

    controls = list(codec.controls.values())
    for control in (c for c in controls if c.kind == ControlKind.NUMERIC):
        payload = _base_payload(identifier, control.key, control.name)
        payload["command_topic"] = command_topic(identifier, control.key)
        if control.min_value is not None:
            payload["min"] = control.min_value
        if control.max_value is not None:
            payload["max"] = control.max_value
        if control.step:
            payload["step"] = control.step
        if control.unit:
            payload["unit_of_measurement"] = control.unit
        messages.append(DiscoveryMessage(_topic("number", identifier, control.key), payload))

    for control in (c for c in controls if c.kind == ControlKind.ENUMERATED):
        payload = _base_payload(identifier, control.key, control.name)
        payload["command_topic"] = command_topic(identifier, control.key)
        payload["options"] = list(codec.labels_for(control.key))
        messages.append(DiscoveryMessage(_topic("select", identifier, control.key), payload))

    return messages
