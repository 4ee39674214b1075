"""Tests for the batch accessor: planning, slicing and snapshot decoding."""

import pytest

from pysdm72_modbus import codec, registers
from pysdm72_modbus.batch import (
    MEASUREMENT_BATCHES,
    SETTINGS_BATCHES,
    RegisterBatch,
    decode_measurements,
    decode_settings,
)
from pysdm72_modbus.errors import WordsCountError
from pysdm72_modbus.types import RegisterParam, RegisterTable, WireType
from pysdm72_modbus.values import (
    KPPA,
    Address,
    BacklightTime,
    BaudRate,
    ParityAndStopBit,
    PulseEnergyType,
    SystemType,
)


def settings_block_words(overrides: dict[str, float] | None = None) -> list[int]:
    """Build a settings block response with device defaults, holes zero-filled."""
    values = {
        "system_type": 3.0,
        "pulse_width": 100.0,
        "kppa": 0.0,
        "parity_and_stop_bit": 0.0,
        "address": 1.0,
        "pulse_constant": 0.0,
        "password": 1000.0,
        "baud_rate": 2.0,
        "auto_scroll_time": 5.0,
        "backlight_time": 60.0,
        "pulse_energy_type": 2.0,
    }
    values.update(overrides or {})
    batch = SETTINGS_BATCHES[0]
    words = [0] * batch.quantity
    for param in batch.params:
        words[batch.register_range(param)] = codec.encode(param, values[param.name])
    return words


def measurement_responses(value_of: dict[str, float]) -> list[list[int]]:
    responses = []
    for batch in MEASUREMENT_BATCHES:
        words = [0] * batch.quantity
        for param in batch.params:
            words[batch.register_range(param)] = codec.encode(param, value_of.get(param.name, 0.0))
        responses.append(words)
    return responses


# ============================================================================
# Planning
# ============================================================================


class TestPlanning:
    """Batch spans and definition-time checks."""

    def test_settings_block_span(self) -> None:
        batch = SETTINGS_BATCHES[0]
        assert batch.offset == 0x000A
        assert batch.quantity == 0x0058 - 0x000A
        assert batch.table == RegisterTable.HOLDING_REGISTER

    def test_identity_reads_are_single_registers(self) -> None:
        assert [(b.offset, b.quantity) for b in SETTINGS_BATCHES[1:]] == [(0xFC00, 2), (0xFC02, 1), (0xFC84, 1)]

    def test_measurement_spans(self) -> None:
        spans = [(b.offset, b.offset + b.quantity) for b in MEASUREMENT_BATCHES]
        assert spans == [(0x0000, 0x004C), (0x00C8, 0x00E2), (0x0156, 0x018E), (0x0500, 0x0504)]

    def test_all_batches_within_limits(self) -> None:
        for batch in SETTINGS_BATCHES + MEASUREMENT_BATCHES:
            assert len(batch.params) <= registers.MAX_PARAMETERS_PER_REQUEST
            assert batch.quantity <= registers.MAX_WORDS_PER_REQUEST

    def test_empty_batch_rejected(self) -> None:
        with pytest.raises(ValueError):
            RegisterBatch(RegisterTable.HOLDING_REGISTER, ())

    def test_mixed_tables_rejected(self) -> None:
        with pytest.raises(ValueError):
            RegisterBatch(
                RegisterTable.HOLDING_REGISTER,
                (registers.SYSTEM_TYPE, registers.MEASUREMENTS[0].param),
            )

    def test_unordered_rejected(self) -> None:
        with pytest.raises(ValueError, match="overlaps or precedes"):
            RegisterBatch(RegisterTable.HOLDING_REGISTER, (registers.PULSE_WIDTH, registers.SYSTEM_TYPE))

    def test_too_many_parameters_rejected(self) -> None:
        params = tuple(
            RegisterParam(f"p{i}", i, 1, WireType.UINT16) for i in range(registers.MAX_PARAMETERS_PER_REQUEST + 1)
        )
        with pytest.raises(ValueError, match="at most 30 parameters"):
            RegisterBatch(RegisterTable.HOLDING_REGISTER, params)

    def test_too_many_words_rejected(self) -> None:
        first = RegisterParam("first", 0x0000, 1, WireType.UINT16)
        last = RegisterParam("last", 0x0080, 1, WireType.UINT16)
        with pytest.raises(ValueError, match="at most 125 words"):
            RegisterBatch(RegisterTable.HOLDING_REGISTER, (first, last))

    def test_register_range_of_foreign_param(self) -> None:
        with pytest.raises(ValueError):
            SETTINGS_BATCHES[0].register_range(registers.SERIAL_NUMBER)


# ============================================================================
# Slicing
# ============================================================================


class TestSplit:
    def test_slice_equals_isolated_decode(self) -> None:
        """Decoding each field from the combined buffer equals decoding it alone."""
        batch = SETTINGS_BATCHES[0]
        words = settings_block_words({"baud_rate": 5.0, "address": 17.0})
        split = batch.split(words)
        for param in batch.params:
            isolated = words[param.address - batch.offset : param.address - batch.offset + param.quantity]
            assert split[param.name] == isolated
            assert codec.decode(param, split[param.name]) == codec.decode(param, isolated)

    def test_short_response(self) -> None:
        batch = SETTINGS_BATCHES[0]
        with pytest.raises(WordsCountError) as exc_info:
            batch.split([0] * (batch.quantity - 1))
        assert exc_info.value.expected == batch.quantity


# ============================================================================
# Snapshots
# ============================================================================


class TestDecodeSettings:
    def test_defaults(self) -> None:
        responses = [settings_block_words(), [0x0001, 0xE240], [0x0089], [0x0102]]
        settings = decode_settings(responses)
        assert settings.system_type is SystemType.TYPE_3P4W
        assert settings.kppa is KPPA.NOT_AUTHORIZED
        assert settings.parity_and_stop_bit is ParityAndStopBit.NO_PARITY_ONE_STOP_BIT
        assert settings.address == Address(1)
        assert settings.baud_rate is BaudRate.B9600
        assert settings.backlight_time == BacklightTime.delayed(60)
        assert settings.pulse_energy_type is PulseEnergyType.TOTAL_ACTIVE_ENERGY
        assert settings.serial_number.value == 123456
        assert str(settings.meter_code) == "0089"
        assert str(settings.software_version) == "01.02"

    def test_to_dict(self) -> None:
        responses = [settings_block_words({"backlight_time": 0.0}), [0, 1], [0x0089], [0x0102]]
        data = decode_settings(responses).to_dict()
        assert data["system_type"] == "3p4w"
        assert data["baud_rate"] == 9600
        assert data["pulse_constant"] == 1000
        assert data["password"] == 1000
        assert data["backlight_time"] == "always_on"
        assert data["meter_code"] == "0089"
        assert data["serial_number"] == 1

    def test_text_form(self) -> None:
        responses = [settings_block_words(), [0, 1], [0x0089], [0x0102]]
        text = str(decode_settings(responses))
        assert "System type: 3 phase 4 wire" in text
        assert "Address: 0x01" in text

    def test_wrong_number_of_responses(self) -> None:
        with pytest.raises(ValueError):
            decode_settings([settings_block_words()])


class TestDecodeMeasurements:
    def test_values_and_keys(self) -> None:
        values = decode_measurements(
            measurement_responses({"l1_voltage": 230.125, "net_kwh": 12.5, "l1l2_voltage": 400.0})
        )
        assert values.l1_voltage == 230.125
        data = values.to_dict()
        assert data["l1_voltage"] == 230.13
        assert data["net_kwh_import_-_export"] == 12.5
        assert data["l1-l2_voltage"] == 400.0
        assert len(data) == len(registers.MEASUREMENTS)

    def test_text_form(self) -> None:
        values = decode_measurements(measurement_responses({"frequency": 50.0}))
        assert "Frequency: 50.0" in str(values)

    def test_short_batch(self) -> None:
        responses = measurement_responses({})
        responses[3] = responses[3][:-1]
        with pytest.raises(WordsCountError):
            decode_measurements(responses)
