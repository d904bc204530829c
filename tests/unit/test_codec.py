"""Tests for the register block codec."""

from __future__ import annotations

import pytest

from conftest import SAMPLE_VALUES
from marstek2mqtt.codec import (
    RegisterCodec,
    decode_block,
    decode_field,
    encode_block,
    encode_field,
)
from marstek2mqtt.exceptions import DecodeError
from marstek2mqtt.registers import (
    VENUS_CONTROLS,
    VENUS_POLL_BLOCKS,
    BlockField,
    ControlDefinition,
    ControlKind,
    LookupDefinition,
    ScaleFactor,
)


class TestDecodeField:
    """Tests for single-field extraction and scaling."""

    def test_signed_16bit_centi_units(self) -> None:
        """100 with x0.01 decodes to 1.0."""
        field = BlockField(0, "v", signed=True, scale=ScaleFactor.DIV_100)

        assert decode_field(b"\x00\x64", field) == pytest.approx(1.0)

    def test_negative_signed_16bit(self) -> None:
        """0xFF9C is -100 when signed."""
        field = BlockField(0, "battery_power", signed=True)

        assert decode_field(b"\xff\x9c", field) == -100

    def test_unsigned_16bit_keeps_high_values(self) -> None:
        """0xFF9C stays 65436 when unsigned."""
        field = BlockField(0, "soc")

        assert decode_field(b"\xff\x9c", field) == 65436

    def test_unscaled_value_is_int(self) -> None:
        """Fields without a scale stay integers."""
        field = BlockField(0, "soc")

        value = decode_field(b"\x00\x55", field)

        assert value == 85
        assert isinstance(value, int)

    def test_scaled_value_is_float(self) -> None:
        """Scaled fields become floats."""
        field = BlockField(0, "ac_voltage", scale=ScaleFactor.DIV_10)

        value = decode_field(b"\x09\x00", field)

        assert value == pytest.approx(230.4)
        assert isinstance(value, float)

    def test_32bit_high_word_first(self) -> None:
        """32-bit values read the high word at the lower address."""
        field = BlockField(0, "total_energy_in", bit_width=32, scale=ScaleFactor.DIV_100)

        assert decode_field(b"\x00\x01\xe2\x40", field) == pytest.approx(1234.56)

    def test_signed_32bit(self) -> None:
        """Signed 32-bit values use two's complement across both words."""
        field = BlockField(0, "total_energy_out", bit_width=32, signed=True)

        assert decode_field(b"\xff\xff\xff\xfe", field) == -2

    def test_offset_inside_block(self) -> None:
        """Byte offsets select later registers of the block."""
        field = BlockField(4, "x")

        assert decode_field(b"\x00\x01\x00\x02\x00\x03", field) == 3

    def test_ac_current_quarter_milliamp_scale(self) -> None:
        """AC current is scaled by 1/250."""
        field = BlockField(0, "ac_current", signed=True, scale=ScaleFactor.DIV_250)

        assert decode_field((375).to_bytes(2, "big"), field) == pytest.approx(1.5)

    def test_short_buffer_raises_decode_error(self) -> None:
        """A buffer that ends inside the field is rejected."""
        field = BlockField(2, "battery_current", signed=True)

        with pytest.raises(DecodeError, match="battery_current") as exc_info:
            decode_field(b"\x00\x01\x00", field)

        assert exc_info.value.required == 4
        assert exc_info.value.available == 3

    def test_short_buffer_32bit(self) -> None:
        """A 32-bit field needs four bytes."""
        field = BlockField(0, "total_energy_in", bit_width=32)

        with pytest.raises(DecodeError):
            decode_field(b"\x00\x01", field)


class TestDecodeBlock:
    """Tests for whole-block decoding."""

    def test_decode_preserves_field_order(self) -> None:
        """Output keys follow the layout order."""
        block = next(b for b in VENUS_POLL_BLOCKS if b.start == 37004)
        raw = encode_block(SAMPLE_VALUES, block)

        result = decode_block(raw, block.fields)

        assert list(result) == ["ac_current", "soc", "max_cell_voltage", "min_cell_voltage"]
        assert result["soc"] == 85
        assert result["max_cell_voltage"] == pytest.approx(3.325)

    def test_decode_truncated_block_raises(self) -> None:
        """No partial result is returned for a truncated block."""
        block = next(b for b in VENUS_POLL_BLOCKS if b.start == 30001)

        with pytest.raises(DecodeError, match="ac_power"):
            decode_block(b"\x00" * 10, block.fields)

    def test_decode_longer_buffer_ignores_trailing_bytes(self) -> None:
        """Extra trailing bytes are ignored."""
        result = decode_block(b"\x00\x07\xff\xff", (BlockField(0, "a"),))

        assert result == {"a": 7}

    @pytest.mark.parametrize("block", VENUS_POLL_BLOCKS, ids=lambda b: str(b.start))
    def test_round_trip_recovers_registers(self, block) -> None:
        """Decoding then re-encoding gives back the original register bytes."""
        raw = encode_block(SAMPLE_VALUES, block)

        decoded = decode_block(raw, block.fields)

        assert encode_block(decoded, block) == raw

    def test_round_trip_engineering_values(self) -> None:
        """Encoding then decoding recovers the engineering values."""
        for block in VENUS_POLL_BLOCKS:
            decoded = decode_block(encode_block(SAMPLE_VALUES, block), block.fields)
            for key, value in decoded.items():
                assert value == pytest.approx(SAMPLE_VALUES[key]), key


class TestEncodeField:
    """Tests for the inverse scaling used by the round-trip."""

    def test_encode_negative_signed(self) -> None:
        """Negative values are returned in unsigned wire form."""
        field = BlockField(0, "battery_current", signed=True, scale=ScaleFactor.DIV_10)

        assert encode_field(-6.5, field) == 0xFFBF

    def test_encode_rounds_float_noise(self) -> None:
        """Float noise from scaling is rounded away."""
        field = BlockField(0, "battery_voltage", scale=ScaleFactor.DIV_100)

        assert encode_field(53.12, field) == 5312

    def test_encode_out_of_range(self) -> None:
        """Values that do not fit the field raise ValueError."""
        field = BlockField(0, "soc")

        with pytest.raises(ValueError, match="out of range"):
            encode_field(-1, field)


class TestRegisterCodec:
    """Tests for code/label translation."""

    def test_label_for_code_control(self, codec: RegisterCodec) -> None:
        """Enumerated controls translate codes to labels."""
        assert codec.label_for_code("force_mode", 2) == "Discharge"
        assert codec.label_for_code("user_work_mode", 1) == "Anti-Feed"

    def test_label_for_code_read_only_lookup(self, codec: RegisterCodec) -> None:
        """Read-only lookups translate codes too."""
        assert codec.label_for_code("inverter_state", 4) == "Backup"

    def test_label_for_unknown_code(self, codec: RegisterCodec) -> None:
        """Unmapped codes return None."""
        assert codec.label_for_code("inverter_state", 99) is None

    def test_label_for_numeric_key(self, codec: RegisterCodec) -> None:
        """Numeric controls and plain sensors have no labels."""
        assert codec.label_for_code("set_charge_power", 0) is None
        assert codec.label_for_code("soc", 0) is None

    def test_code_for_label(self, codec: RegisterCodec) -> None:
        """Labels resolve to their codes."""
        assert codec.code_for_label("force_mode", "Charge") == 1
        assert codec.code_for_label("backup_function", "Disable") == 1

    def test_code_for_label_is_case_sensitive(self, codec: RegisterCodec) -> None:
        """Only exact label matches resolve."""
        assert codec.code_for_label("force_mode", "charge") is None
        assert codec.code_for_label("force_mode", " Charge") is None
        assert codec.code_for_label("force_mode", "Bogus") is None

    def test_code_for_label_unknown_key(self, codec: RegisterCodec) -> None:
        """Keys without a label table never resolve."""
        assert codec.code_for_label("set_charge_power", "100") is None
        assert codec.code_for_label("nonexistent", "Charge") is None

    @pytest.mark.parametrize(
        "control",
        [c for c in VENUS_CONTROLS if c.kind == ControlKind.ENUMERATED],
        ids=lambda c: c.key,
    )
    def test_label_code_bijection(self, codec: RegisterCodec, control: ControlDefinition) -> None:
        """code_for_label(label_for_code(code)) returns the same code."""
        for code in control.labels:
            label = codec.label_for_code(control.key, code)
            assert label is not None
            assert codec.code_for_label(control.key, label) == code

    def test_labels_for_in_code_order(self, codec: RegisterCodec) -> None:
        """Valid labels are listed in code order."""
        assert codec.labels_for("force_mode") == ("Stop", "Charge", "Discharge")
        assert codec.labels_for("inverter_state")[0] == "Sleep"
        assert codec.labels_for("soc") == ()

    def test_is_enumerated(self, codec: RegisterCodec) -> None:
        """Controls with labels and read-only lookups are enumerated."""
        assert codec.is_enumerated("force_mode")
        assert codec.is_enumerated("inverter_state")
        assert not codec.is_enumerated("charge_to_soc")
        assert not codec.is_enumerated("battery_power")

    def test_control_and_lookup_accessors(self, codec: RegisterCodec) -> None:
        """Controls and lookups are exposed by key."""
        control = codec.control("charge_to_soc")

        assert control is not None
        assert control.register == 42011
        assert codec.control("inverter_state") is None
        assert codec.lookup("inverter_state") is not None

    def test_tables_are_read_only(self, codec: RegisterCodec) -> None:
        """The indexed tables cannot be mutated."""
        with pytest.raises(TypeError):
            codec.controls["new"] = VENUS_CONTROLS[0]  # type: ignore[index]

    def test_label_tables_cannot_be_mutated(self, codec: RegisterCodec) -> None:
        """Test label tables handed out by the codec are read-only."""
        control = codec.control("force_mode")
        lookup = codec.lookup("inverter_state")
        assert control is not None
        assert lookup is not None

        with pytest.raises(TypeError):
            control.labels[1] = "Hijacked"  # type: ignore[index]
        with pytest.raises(TypeError):
            lookup.labels[9] = "Other"  # type: ignore[index]

        assert codec.label_for_code("force_mode", 1) == "Charge"
        assert codec.code_for_label("force_mode", "Charge") == 1

    def test_label_source_dict_is_copied(self) -> None:
        """Test changing the dict a control was built from has no effect."""
        labels = {0: "Off", 1: "On"}
        control = ControlDefinition(
            key="mode", name="Mode", register=1, kind=ControlKind.ENUMERATED, labels=labels
        )
        codec = RegisterCodec(controls=[control], lookups=[])

        labels[1] = "Changed"

        assert codec.label_for_code("mode", 1) == "On"
        assert codec.code_for_label("mode", "On") == 1

    def test_duplicate_key_rejected(self) -> None:
        """A key defined as both control and lookup is rejected."""
        control = ControlDefinition(
            key="mode", name="Mode", register=1, kind=ControlKind.ENUMERATED, labels={0: "A"}
        )
        lookup = LookupDefinition(key="mode", name="Mode", labels={0: "A"})

        with pytest.raises(ValueError, match="Duplicate key"):
            RegisterCodec(controls=[control], lookups=[lookup])

    def test_non_injective_labels_rejected(self) -> None:
        """Two codes sharing a label are rejected."""
        control = ControlDefinition(
            key="mode",
            name="Mode",
            register=1,
            kind=ControlKind.ENUMERATED,
            labels={0: "Same", 1: "Same"},
        )

        with pytest.raises(ValueError, match="not unique"):
            RegisterCodec(controls=[control], lookups=[])

    def test_enumerated_without_labels_rejected(self) -> None:
        """Enumerated controls must define labels."""
        control = ControlDefinition(key="mode", name="Mode", register=1, kind=ControlKind.ENUMERATED)

        with pytest.raises(ValueError, match="no labels"):
            RegisterCodec(controls=[control], lookups=[])
