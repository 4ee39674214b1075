"""FieldMap: name-addressable holding registers with O(1) lookup."""

import logging
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from . import registers
from .errors import ReadOnlyFieldError, UnknownFieldError
from .types import RegisterParam
from .values import (
    KPPA,
    Address,
    AutoScrollTime,
    BacklightTime,
    BaudRate,
    MeterCode,
    ParityAndStopBit,
    Password,
    PulseConstant,
    PulseEnergyType,
    PulseWidth,
    SerialNumber,
    SoftwareVersion,
    SystemType,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldDef:
    """
    One addressable setting: its register, the value type it decodes to and,
    for writable fields, the value type accepted on write.

    ``write_type`` differs from ``value_type`` for KPPA only: the register
    reads back an authorization state but is written with a Password.
    """

    name: str
    param: RegisterParam
    value_type: type
    write_type: type | None
    requires_authorization: bool
    description: str

    @property
    def writable(self) -> bool:
        return self.write_type is not None

    def decode(self, words: Sequence[int]) -> Any:
        return self.value_type.decode(words)

    def encode(self, value: Any) -> list[int]:
        if self.write_type is None:
            raise ReadOnlyFieldError(self.name)
        if not isinstance(value, self.write_type):
            raise TypeError(
                f"{self.name} expects {self.write_type.__name__}, got {type(value).__name__}"
            )
        if self.value_type is KPPA:
            return KPPA.grant_words(value)
        return value.encode()


def _field(
    param: RegisterParam,
    value_type: type,
    description: str,
    *,
    write_type: type | None = None,
    requires_authorization: bool = True,
) -> FieldDef:
    return FieldDef(
        name=param.name,
        param=param,
        value_type=value_type,
        write_type=write_type,
        requires_authorization=requires_authorization,
        description=description,
    )


DEFAULT_FIELDS: tuple[FieldDef, ...] = (
    _field(registers.SYSTEM_TYPE, SystemType, "System (wiring) type", write_type=SystemType),
    _field(registers.PULSE_WIDTH, PulseWidth, "Pulse width in ms", write_type=PulseWidth),
    _field(
        registers.KPPA,
        KPPA,
        "Key parameter programming authorization, written with the password",
        write_type=Password,
        requires_authorization=False,
    ),
    _field(
        registers.PARITY_AND_STOP_BIT,
        ParityAndStopBit,
        "Parity and stop bits of the RS485 port",
        write_type=ParityAndStopBit,
    ),
    _field(registers.ADDRESS, Address, "RS485 address", write_type=Address),
    _field(registers.PULSE_CONSTANT, PulseConstant, "Pulse constant in imp/kWh", write_type=PulseConstant),
    _field(registers.PASSWORD, Password, "Settings password", write_type=Password),
    _field(registers.BAUD_RATE, BaudRate, "Baud rate of the RS485 port", write_type=BaudRate),
    _field(registers.AUTO_SCROLL_TIME, AutoScrollTime, "Display auto scroll time in s", write_type=AutoScrollTime),
    _field(registers.BACKLIGHT_TIME, BacklightTime, "Display backlight time in min", write_type=BacklightTime),
    _field(
        registers.PULSE_ENERGY_TYPE,
        PulseEnergyType,
        "Energy quantity counted by the pulse output",
        write_type=PulseEnergyType,
    ),
    _field(registers.SERIAL_NUMBER, SerialNumber, "Serial number", requires_authorization=False),
    _field(registers.METER_CODE, MeterCode, "Meter code", requires_authorization=False),
    _field(registers.SOFTWARE_VERSION, SoftwareVersion, "Software version", requires_authorization=False),
)


class FieldMap:
    """
    In-memory map of normalized field names to FieldDef.
    Built from DEFAULT_FIELDS unless an override sequence is given.
    """

    def __init__(self, fields: Iterable[FieldDef] | None = None) -> None:
        self._by_name: dict[str, FieldDef] = {}
        for field in DEFAULT_FIELDS if fields is None else fields:
            if field.name in self._by_name:
                raise ValueError(f"Duplicate field in map: {field.name}")
            self._by_name[field.name] = field
        logger.debug("FieldMap loaded: %d entries", len(self._by_name))

    def lookup(self, name: str) -> FieldDef:
        """Return FieldDef for the normalized name; raise UnknownFieldError if not in map."""
        if name not in self._by_name:
            raise UnknownFieldError(name)
        return self._by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[FieldDef]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)


_DEFAULT_FIELDMAP: FieldMap | None = None


def get_default_fieldmap() -> FieldMap:
    """Return the shared FieldMap built from DEFAULT_FIELDS."""
    global _DEFAULT_FIELDMAP
    if _DEFAULT_FIELDMAP is None:
        _DEFAULT_FIELDMAP = FieldMap()
    return _DEFAULT_FIELDMAP
