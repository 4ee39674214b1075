"""Tests for the register codec: float32/uint16/uint32 big-endian words."""

import math

import pytest

from pysdm72_modbus import codec, registers
from pysdm72_modbus.errors import InvalidValueError, WordsCountError
from pysdm72_modbus.types import RegisterParam, RegisterTable, WireType

# ============================================================================
# Decode
# ============================================================================


class TestDecode:
    """Test decoding words into wire values."""

    def test_float32_known_words(self) -> None:
        """0x40900000 is 4.5 as IEEE-754 single precision."""
        assert codec.decode(registers.SYSTEM_TYPE, [0x4090, 0x0000]) == 4.5

    def test_float32_integer_code(self) -> None:
        assert codec.decode(registers.SYSTEM_TYPE, [0x4040, 0x0000]) == 3.0

    def test_float32_negative(self) -> None:
        assert codec.decode(registers.SYSTEM_TYPE, [0xC090, 0x0000]) == -4.5

    def test_float32_nan_is_decoded(self) -> None:
        """Non-finite values pass the codec; value types decide what to do with them."""
        assert math.isnan(codec.decode(registers.SYSTEM_TYPE, [0x7FC0, 0x0000]))

    def test_uint16(self) -> None:
        assert codec.decode(registers.METER_CODE, [0x0089]) == 0x89

    def test_uint32_high_word_first(self) -> None:
        assert codec.decode(registers.SERIAL_NUMBER, [0x0001, 0x0002]) == 0x00010002

    def test_too_few_words(self) -> None:
        with pytest.raises(WordsCountError) as exc_info:
            codec.decode(registers.SYSTEM_TYPE, [0x4090])
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 1

    def test_too_many_words(self) -> None:
        with pytest.raises(WordsCountError):
            codec.decode(registers.METER_CODE, [0x0089, 0x0000])

    def test_word_out_of_range(self) -> None:
        with pytest.raises(InvalidValueError):
            codec.decode(registers.METER_CODE, [0x10000])


# ============================================================================
# Encode
# ============================================================================


class TestEncode:
    """Test encoding wire values into words."""

    def test_float32_known_words(self) -> None:
        assert codec.encode(registers.SYSTEM_TYPE, 4.5) == [0x4090, 0x0000]

    def test_float32_from_int(self) -> None:
        """Integer codes are sent as floats."""
        assert codec.encode(registers.BAUD_RATE, 2) == [0x4000, 0x0000]

    def test_uint16(self) -> None:
        assert codec.encode(registers.RESET_HISTORICAL_DATA, 3) == [0x0003]

    def test_uint32(self) -> None:
        assert codec.encode(registers.SERIAL_NUMBER, 0x12345678) == [0x1234, 0x5678]

    @pytest.mark.parametrize(
        ("param", "value"),
        [
            (registers.RESET_HISTORICAL_DATA, 0x10000),
            (registers.RESET_HISTORICAL_DATA, -1),
            (registers.SERIAL_NUMBER, 0x100000000),
        ],
    )
    def test_unsigned_out_of_range(self, param: RegisterParam, value: int) -> None:
        with pytest.raises(InvalidValueError) as exc_info:
            codec.encode(param, value)
        assert exc_info.value.field == param.name
        assert exc_info.value.value == value

    def test_unsigned_limits(self) -> None:
        assert codec.encode(registers.RESET_HISTORICAL_DATA, 0xFFFF) == [0xFFFF]
        assert codec.encode(registers.SERIAL_NUMBER, 0xFFFFFFFF) == [0xFFFF, 0xFFFF]

    def test_encode_is_inverse_of_decode(self) -> None:
        for value in (0.0, 1.0, 230.5, -17.25, 9999.0):
            words = codec.encode(registers.PASSWORD, value)
            assert len(words) == registers.PASSWORD.quantity
            assert codec.decode(registers.PASSWORD, words) == value


# ============================================================================
# RegisterParam
# ============================================================================


class TestRegisterParam:
    """Test register descriptor invariants."""

    def test_byte_length(self) -> None:
        assert registers.SYSTEM_TYPE.byte_length == 4
        assert registers.METER_CODE.byte_length == 2

    def test_quantity_must_match_wire_type(self) -> None:
        with pytest.raises(ValueError, match="does not match"):
            RegisterParam("bad", 0x0000, 1, WireType.FLOAT32)

    def test_address_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            RegisterParam("bad", 0x10000, 1, WireType.UINT16)

    def test_range_exceeds_address_space(self) -> None:
        with pytest.raises(ValueError, match="address space"):
            RegisterParam("bad", 0xFFFF, 2, WireType.FLOAT32)

    def test_default_table_is_holding(self) -> None:
        param = RegisterParam("x", 0x0000, 1, WireType.UINT16)
        assert param.table == RegisterTable.HOLDING_REGISTER
