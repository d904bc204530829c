"""Telemetry data models.

A :class:`TelemetrySnapshot` is the unit of exchange between the poller and
its listeners: one complete, decoded poll cycle with scaling already applied.

All values are in standard units:
- Voltage: Volts (V)
- Current: Amperes (A)
- Power: Watts (W)
- Energy: Kilowatt-hours (kWh)
- Temperature: Celsius (°C)
- Frequency: Hertz (Hz)
- Percentage: 0-100 (%)

Enumerated fields (modes, inverter state) hold their raw register code.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import datetime, timezone
from types import MappingProxyType

from marstek2mqtt.codec import TelemetryValue


class TelemetrySnapshot(Mapping[str, TelemetryValue]):
    """Read-only, ordered mapping of telemetry key to value.

    Iteration follows poll block order.  The underlying dict is copied on
    construction so later changes to the source never leak into a snapshot
    that has already been emitted.
    """

    __slots__ = ("_values", "_timestamp")

    def __init__(
        self,
        values: Mapping[str, TelemetryValue],
        timestamp: datetime | None = None,
    ) -> None:
        self._values: Mapping[str, TelemetryValue] = MappingProxyType(dict(values))
        self._timestamp = timestamp or datetime.now(timezone.utc)

    @property
    def timestamp(self) -> datetime:
        """Wall-clock time the poll cycle completed."""
        return self._timestamp

    def __getitem__(self, key: str) -> TelemetryValue:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"TelemetrySnapshot({dict(self._values)!r}, timestamp={self._timestamp.isoformat()})"

    def to_dict(self) -> dict[str, TelemetryValue]:
        """Return a plain dict copy, suitable for JSON serialization."""
        return dict(self._values)
