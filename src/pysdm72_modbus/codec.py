"""Register codec: raw 16-bit words <-> wire values (float32, uint16, uint32, big-endian)."""

from collections.abc import Sequence

from pymodbus.client.mixin import ModbusClientMixin

from .errors import InvalidValueError, WordsCountError
from .types import RegisterParam, WireType

_DATATYPES: dict[WireType, ModbusClientMixin.DATATYPE] = {
    WireType.FLOAT32: ModbusClientMixin.DATATYPE.FLOAT32,
    WireType.UINT16: ModbusClientMixin.DATATYPE.UINT16,
    WireType.UINT32: ModbusClientMixin.DATATYPE.UINT32,
}

_UINT_LIMITS: dict[WireType, int] = {WireType.UINT16: 1 << 16, WireType.UINT32: 1 << 32}


def decode(param: RegisterParam, words: Sequence[int]) -> float | int:
    """
    Decode the words of one register into its wire value.

    Words are concatenated in register order as big-endian bytes and
    reinterpreted as the register's wire type. Raises WordsCountError when the
    number of words does not match the register's quantity.
    """
    if len(words) != param.quantity:
        raise WordsCountError(param.name, param.quantity, len(words))
    for word in words:
        if not 0 <= word <= 0xFFFF:
            raise InvalidValueError(param.name, word, f"{param.name}: word {word!r} is not a 16-bit value")
    return ModbusClientMixin.convert_from_registers(
        list(words), _DATATYPES[param.wire_type], word_order="big"
    )


def encode(param: RegisterParam, value: float | int) -> list[int]:
    """Encode a wire value into the register's words (exact inverse of decode)."""
    if param.wire_type is WireType.FLOAT32:
        value = float(value)
    else:
        value = int(value)
        if not 0 <= value < _UINT_LIMITS[param.wire_type]:
            raise InvalidValueError(param.name, value, f"{param.name}: {value!r} does not fit in {param.wire_type.value}")
    return ModbusClientMixin.convert_to_registers(value, _DATATYPES[param.wire_type], word_order="big")
