"""Register block codec.

Stateless translation between raw holding register bytes and telemetry
values, and between MQTT label strings and register codes.

Decoding works on the raw big-endian byte buffer of one block:

    >>> from marstek2mqtt.registers import BlockField, ScaleFactor
    >>> decode_block(b"\\x00\\x64", (BlockField(0, "v", signed=True, scale=ScaleFactor.DIV_100),))
    {'v': 1.0}

Label lookups go through a :class:`RegisterCodec` built once at startup from
the immutable control and lookup tables.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from marstek2mqtt.exceptions import DecodeError
from marstek2mqtt.registers import (
    VENUS_CONTROLS,
    VENUS_READ_ONLY_LOOKUPS,
    BlockField,
    ControlDefinition,
    ControlKind,
    LookupDefinition,
    RegisterBlock,
    ScaleFactor,
)

TelemetryValue = int | float


def decode_field(raw: bytes, field_def: BlockField) -> TelemetryValue:
    """Extract and scale a single field from a raw block.

    Args:
        raw: Raw block bytes, big-endian, two bytes per register
        field_def: Field layout to apply

    Returns:
        ``int`` for unscaled fields, ``float`` otherwise

    Raises:
        DecodeError: If the buffer ends before the field does
    """
    end = field_def.offset + field_def.size
    if field_def.offset < 0 or end > len(raw):
        raise DecodeError(field_def.key, end, len(raw))

    value = int.from_bytes(raw[field_def.offset : end], "big", signed=field_def.signed)

    if field_def.scale == ScaleFactor.NONE:
        return value
    return value / field_def.scale.value


def decode_block(raw: bytes, fields: Iterable[BlockField]) -> dict[str, TelemetryValue]:
    """Decode every field of one register block.

    Args:
        raw: Raw block bytes as returned by a holding register read
        fields: Field layouts, applied in order

    Returns:
        Dict mapping output key to decoded value, in field order

    Raises:
        DecodeError: If the buffer is shorter than the layout requires
    """
    return {f.key: decode_field(raw, f) for f in fields}


def encode_field(value: TelemetryValue, field_def: BlockField) -> int:
    """Convert an engineering value back to its raw register integer.

    The inverse of :func:`decode_field`: the value is scaled back, rounded
    to the nearest integer and returned in its unsigned on-the-wire form
    (two's complement for negative signed values).

    Raises:
        ValueError: If the value does not fit the field's width and sign
    """
    raw = round(value * field_def.scale.value)
    bits = field_def.bit_width
    if field_def.signed:
        low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    else:
        low, high = 0, (1 << bits) - 1
    if not low <= raw <= high:
        raise ValueError(f"{field_def.key}: raw value {raw} out of range [{low}, {high}]")
    return raw & ((1 << bits) - 1)


def encode_block(values: Mapping[str, TelemetryValue], block: RegisterBlock) -> bytes:
    """Build the raw bytes a device would return for ``values``.

    Registers not covered by a field are left as zero.
    """
    buf = bytearray(block.byte_length)
    for f in block.fields:
        raw = encode_field(values[f.key], f)
        buf[f.offset : f.offset + f.size] = raw.to_bytes(f.size, "big")
    return bytes(buf)


class RegisterCodec:
    """Code/label translation for controls and read-only lookups.

    Built once from immutable tables and passed by reference to the
    components that need it.  Lookups check controls first, then read-only
    lookups.

    Example:
        codec = RegisterCodec()
        codec.code_for_label("force_mode", "Charge")  # -> 1
        codec.label_for_code("inverter_state", 4)     # -> "Backup"
    """

    def __init__(
        self,
        controls: Iterable[ControlDefinition] = VENUS_CONTROLS,
        lookups: Iterable[LookupDefinition] = VENUS_READ_ONLY_LOOKUPS,
    ) -> None:
        """Index the tables and check their invariants.

        Raises:
            ValueError: If a key is defined twice, an enumerated control has
                no labels, or two codes share a label
        """
        control_map: dict[str, ControlDefinition] = {}
        lookup_map: dict[str, LookupDefinition] = {}

        for control in controls:
            self._check_unique(control.key, control_map, lookup_map)
            if control.kind == ControlKind.ENUMERATED:
                if not control.labels:
                    raise ValueError(f"Enumerated control '{control.key}' has no labels")
                self._check_injective(control.key, control.labels)
            control_map[control.key] = control

        for lookup in lookups:
            self._check_unique(lookup.key, control_map, lookup_map)
            self._check_injective(lookup.key, lookup.labels)
            lookup_map[lookup.key] = lookup

        self._controls = MappingProxyType(control_map)
        self._lookups = MappingProxyType(lookup_map)
        self._inverse: Mapping[str, Mapping[str, int]] = MappingProxyType(
            {
                key: MappingProxyType({label: code for code, label in labels.items()})
                for key, labels in self._label_tables().items()
            }
        )

    @staticmethod
    def _check_unique(
        key: str,
        controls: Mapping[str, ControlDefinition],
        lookups: Mapping[str, LookupDefinition],
    ) -> None:
        if key in controls or key in lookups:
            raise ValueError(f"Duplicate key '{key}'")

    @staticmethod
    def _check_injective(key: str, labels: Mapping[int, str]) -> None:
        if len(set(labels.values())) != len(labels):
            raise ValueError(f"Labels for '{key}' are not unique: {list(labels.values())}")

    def _label_tables(self) -> dict[str, Mapping[int, str]]:
        tables: dict[str, Mapping[int, str]] = {
            key: c.labels for key, c in self._controls.items() if c.kind == ControlKind.ENUMERATED
        }
        tables.update({key: lk.labels for key, lk in self._lookups.items()})
        return tables

    @property
    def controls(self) -> Mapping[str, ControlDefinition]:
        """Writable controls by key."""
        return self._controls

    @property
    def lookups(self) -> Mapping[str, LookupDefinition]:
        """Read-only lookups by key."""
        return self._lookups

    def control(self, key: str) -> ControlDefinition | None:
        """Return the control for ``key``, or None if it is not writable."""
        return self._controls.get(key)

    def lookup(self, key: str) -> LookupDefinition | None:
        """Return the read-only lookup for ``key``, if any."""
        return self._lookups.get(key)

    def is_enumerated(self, key: str) -> bool:
        """True if ``key`` is published as a label rather than a number."""
        return key in self._inverse

    def labels_for(self, key: str) -> tuple[str, ...]:
        """Return the valid labels for ``key`` in code order (empty if none)."""
        control = self._controls.get(key)
        if control is not None and control.kind == ControlKind.ENUMERATED:
            return tuple(control.labels[c] for c in sorted(control.labels))
        lookup = self._lookups.get(key)
        if lookup is not None:
            return tuple(lookup.labels[c] for c in sorted(lookup.labels))
        return ()

    def label_for_code(self, key: str, code: int) -> str | None:
        """Translate a register code to its display label.

        Returns:
            The label, or None if ``key`` has no label table or ``code`` is
            not in it.  Callers fall back to the raw number.
        """
        control = self._controls.get(key)
        if control is not None and control.kind == ControlKind.ENUMERATED:
            return control.labels.get(code)
        lookup = self._lookups.get(key)
        if lookup is not None:
            return lookup.labels.get(code)
        return None

    def code_for_label(self, key: str, label: str) -> int | None:
        """Translate a display label back to its register code.

        Matching is exact and case-sensitive.

        Returns:
            The code, or None if ``label`` is not one of the defined labels.
        """
        inverse = self._inverse.get(key)
        if inverse is None:
            return None
        return inverse.get(label)
