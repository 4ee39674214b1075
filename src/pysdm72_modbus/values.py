"""
Typed SDM72 register values.

Every setting is stored on the meter as a float32, including codes and small
integers. Enumerated settings map their members to device codes through
explicit lookup tables: the codes are not the declaration order (baud rate
and pulse energy type in particular).

Settings marked as mutable need KPPA (key parameter programming
authorization) before the meter accepts a write; see ``auth.py``.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, TypeVar

from . import codec, registers
from .errors import InvalidBaudRateError, InvalidValueError, OutOfRangeError
from .registers import MeasurementRegister
from .types import RegisterParam

E = TypeVar("E", bound=Enum)


def _decode_code(param: RegisterParam, words: Sequence[int], by_code: dict[int, E]) -> E:
    """Decode a float-coded register and map the code through an exhaustive table."""
    raw = codec.decode(param, words)
    try:
        return by_code[raw]
    except KeyError:
        raise InvalidValueError(param.name, raw) from None


def _to_int(param: RegisterParam, raw: float | int) -> int:
    """Truncate a decoded wire value toward zero; non-finite floats are rejected."""
    if isinstance(raw, float) and not math.isfinite(raw):
        raise InvalidValueError(param.name, raw)
    return int(raw)


def round2(value: float) -> float:
    """Round to two decimals, halves away from zero (display/serialization convention)."""
    if not math.isfinite(value):
        return value
    return math.copysign(math.floor(abs(value) * 100.0 + 0.5) / 100.0, value)


# ============================================================================
# Enumerated settings
# ============================================================================


class SystemType(Enum):
    """System (wiring) type. Changing it needs KPPA."""

    TYPE_1P2W = "1p2w"
    TYPE_3P4W = "3p4w"

    @classmethod
    def decode(cls, words: Sequence[int]) -> "SystemType":
        return _decode_code(registers.SYSTEM_TYPE, words, _SYSTEM_TYPE_BY_CODE)

    def encode(self) -> list[int]:
        return codec.encode(registers.SYSTEM_TYPE, _SYSTEM_TYPE_CODES[self])

    @classmethod
    def default(cls) -> "SystemType":
        return cls.TYPE_3P4W

    def __str__(self) -> str:
        return _SYSTEM_TYPE_LABELS[self]


_SYSTEM_TYPE_CODES: dict[SystemType, int] = {SystemType.TYPE_1P2W: 1, SystemType.TYPE_3P4W: 3}
_SYSTEM_TYPE_BY_CODE = {code: member for member, code in _SYSTEM_TYPE_CODES.items()}
_SYSTEM_TYPE_LABELS = {SystemType.TYPE_1P2W: "1 phase 2 wire", SystemType.TYPE_3P4W: "3 phase 4 wire"}


class ParityAndStopBit(Enum):
    """Parity and stop bits of the RS485 port. Changing it needs KPPA."""

    NO_PARITY_ONE_STOP_BIT = "np1b"
    EVEN_PARITY_ONE_STOP_BIT = "ep1b"
    ODD_PARITY_ONE_STOP_BIT = "op1b"
    NO_PARITY_TWO_STOP_BITS = "np2b"

    @classmethod
    def decode(cls, words: Sequence[int]) -> "ParityAndStopBit":
        return _decode_code(registers.PARITY_AND_STOP_BIT, words, _PARITY_BY_CODE)

    def encode(self) -> list[int]:
        return codec.encode(registers.PARITY_AND_STOP_BIT, _PARITY_CODES[self])

    @classmethod
    def default(cls) -> "ParityAndStopBit":
        return cls.NO_PARITY_ONE_STOP_BIT

    @property
    def parity(self) -> str:
        """Parity letter as expected by pyserial/pymodbus ("N", "E", "O")."""
        return _SERIAL_FRAMING[self][0]

    @property
    def stopbits(self) -> int:
        return _SERIAL_FRAMING[self][1]

    def __str__(self) -> str:
        return _PARITY_LABELS[self]


_PARITY_CODES: dict[ParityAndStopBit, int] = {
    ParityAndStopBit.NO_PARITY_ONE_STOP_BIT: 0,
    ParityAndStopBit.EVEN_PARITY_ONE_STOP_BIT: 1,
    ParityAndStopBit.ODD_PARITY_ONE_STOP_BIT: 2,
    ParityAndStopBit.NO_PARITY_TWO_STOP_BITS: 3,
}
_PARITY_BY_CODE = {code: member for member, code in _PARITY_CODES.items()}
_PARITY_LABELS = {
    ParityAndStopBit.NO_PARITY_ONE_STOP_BIT: "no parity one stop bit",
    ParityAndStopBit.EVEN_PARITY_ONE_STOP_BIT: "even parity one stop bit",
    ParityAndStopBit.ODD_PARITY_ONE_STOP_BIT: "odd parity one stop bit",
    ParityAndStopBit.NO_PARITY_TWO_STOP_BITS: "no parity two stop bits",
}
_SERIAL_FRAMING: dict[ParityAndStopBit, tuple[str, int]] = {
    ParityAndStopBit.NO_PARITY_ONE_STOP_BIT: ("N", 1),
    ParityAndStopBit.EVEN_PARITY_ONE_STOP_BIT: ("E", 1),
    ParityAndStopBit.ODD_PARITY_ONE_STOP_BIT: ("O", 1),
    ParityAndStopBit.NO_PARITY_TWO_STOP_BITS: ("N", 2),
}


class PulseConstant(int, Enum):
    """
    Pulse constant of the pulse output in impulses per kWh.

    With 1000 imp/kWh the pulse width is fixed to 35 ms by the meter.
    """

    PC1000 = 1000
    PC100 = 100
    PC10 = 10
    PC1 = 1

    @classmethod
    def decode(cls, words: Sequence[int]) -> "PulseConstant":
        return _decode_code(registers.PULSE_CONSTANT, words, _PULSE_CONSTANT_BY_CODE)

    def encode(self) -> list[int]:
        return codec.encode(registers.PULSE_CONSTANT, _PULSE_CONSTANT_CODES[self])

    @classmethod
    def from_value(cls, impulses_per_kwh: int) -> "PulseConstant":
        try:
            return cls(impulses_per_kwh)
        except ValueError:
            raise InvalidValueError(
                "pulse_constant",
                impulses_per_kwh,
                f"Pulse constant must be any value of {', '.join(str(int(m)) for m in cls)} imp/kWh",
            ) from None

    @classmethod
    def default(cls) -> "PulseConstant":
        return cls.PC1000

    def __str__(self) -> str:
        return f"{self.value} imp/kWh"


_PULSE_CONSTANT_CODES: dict[PulseConstant, int] = {
    PulseConstant.PC1000: 0,
    PulseConstant.PC100: 1,
    PulseConstant.PC10: 2,
    PulseConstant.PC1: 3,
}
_PULSE_CONSTANT_BY_CODE = {code: member for member, code in _PULSE_CONSTANT_CODES.items()}


class PulseEnergyType(Enum):
    """Energy quantity the pulse output counts."""

    IMPORT_ACTIVE_ENERGY = "import"
    TOTAL_ACTIVE_ENERGY = "total"
    EXPORT_ACTIVE_ENERGY = "export"

    @classmethod
    def decode(cls, words: Sequence[int]) -> "PulseEnergyType":
        return _decode_code(registers.PULSE_ENERGY_TYPE, words, _PULSE_ENERGY_TYPE_BY_CODE)

    def encode(self) -> list[int]:
        return codec.encode(registers.PULSE_ENERGY_TYPE, _PULSE_ENERGY_TYPE_CODES[self])

    @classmethod
    def default(cls) -> "PulseEnergyType":
        return cls.TOTAL_ACTIVE_ENERGY

    def __str__(self) -> str:
        return f"{self.value} active energy"


_PULSE_ENERGY_TYPE_CODES: dict[PulseEnergyType, int] = {
    PulseEnergyType.IMPORT_ACTIVE_ENERGY: 1,
    PulseEnergyType.TOTAL_ACTIVE_ENERGY: 2,
    PulseEnergyType.EXPORT_ACTIVE_ENERGY: 4,
}
_PULSE_ENERGY_TYPE_BY_CODE = {code: member for member, code in _PULSE_ENERGY_TYPE_CODES.items()}


class BaudRate(int, Enum):
    """Baud rate of the RS485 port in bit/s. Changing it needs KPPA."""

    B1200 = 1200
    B2400 = 2400
    B4800 = 4800
    B9600 = 9600
    B19200 = 19200

    @classmethod
    def decode(cls, words: Sequence[int]) -> "BaudRate":
        return _decode_code(registers.BAUD_RATE, words, _BAUD_RATE_BY_CODE)

    def encode(self) -> list[int]:
        return codec.encode(registers.BAUD_RATE, _BAUD_RATE_CODES[self])

    @classmethod
    def from_value(cls, rate: int) -> "BaudRate":
        try:
            return cls(rate)
        except ValueError:
            raise InvalidBaudRateError(rate, tuple(int(m) for m in cls)) from None

    @classmethod
    def default(cls) -> "BaudRate":
        return cls.B9600

    def __str__(self) -> str:
        return str(self.value)


# Device-specific, must not be derived from the member order.
_BAUD_RATE_CODES: dict[BaudRate, int] = {
    BaudRate.B1200: 5,
    BaudRate.B2400: 0,
    BaudRate.B4800: 1,
    BaudRate.B9600: 2,
    BaudRate.B19200: 3,
}
_BAUD_RATE_BY_CODE = {code: member for member, code in _BAUD_RATE_CODES.items()}


class KPPA(Enum):
    """
    Key parameter programming authorization state.

    Read-only as a value: the register reports 0/1, and access is granted by
    writing a Password to the same register (see ``grant_words``).
    """

    NOT_AUTHORIZED = "not_authorized"
    AUTHORIZED = "authorized"

    @classmethod
    def decode(cls, words: Sequence[int]) -> "KPPA":
        return _decode_code(registers.KPPA, words, _KPPA_BY_CODE)

    @staticmethod
    def grant_words(password: "Password") -> list[int]:
        """Words to write to the KPPA register to request authorization."""
        return codec.encode(registers.KPPA, password.value)

    def __str__(self) -> str:
        return self.value.replace("_", " ")


_KPPA_BY_CODE = {0: KPPA.NOT_AUTHORIZED, 1: KPPA.AUTHORIZED}


# ============================================================================
# Range-bounded settings
# ============================================================================


@dataclass(frozen=True)
class _BoundedSetting:
    """Integer setting stored as float32 and validated against [MIN, MAX]."""

    value: int

    PARAM: ClassVar[RegisterParam]
    MIN: ClassVar[int]
    MAX: ClassVar[int]
    DEFAULT: ClassVar[int]

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise InvalidValueError(self.PARAM.name, self.value, f"{self.PARAM.name} must be an integer")
        if not self.MIN <= self.value <= self.MAX:
            raise OutOfRangeError(self.PARAM.name, self.value, self.MIN, self.MAX)

    @classmethod
    def decode(cls, words: Sequence[int]):
        return cls(_to_int(cls.PARAM, codec.decode(cls.PARAM, words)))

    def encode(self) -> list[int]:
        return codec.encode(self.PARAM, self.value)

    @classmethod
    def default(cls):
        return cls(cls.DEFAULT)

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


class PulseWidth(_BoundedSetting):
    """Pulse width of the pulse output in milliseconds."""

    PARAM = registers.PULSE_WIDTH
    MIN = 0
    MAX = 0xFFFF
    DEFAULT = 100

    def __str__(self) -> str:
        return f"{self.value} ms"


class Address(_BoundedSetting):
    """RS485 (Modbus device) address, 1 to 247. Changing it needs KPPA."""

    PARAM = registers.ADDRESS
    MIN = 1
    MAX = 247
    DEFAULT = 1

    def __str__(self) -> str:
        return f"{self.value:#04x}"


class Password(_BoundedSetting):
    """Settings password, 0 to 9999."""

    PARAM = registers.PASSWORD
    MIN = 0
    MAX = 9999
    DEFAULT = 1000

    def __str__(self) -> str:
        return f"{self.value:04d}"


class AutoScrollTime(_BoundedSetting):
    """Automatic display scroll time in seconds, 0 to 60."""

    PARAM = registers.AUTO_SCROLL_TIME
    MIN = 0
    MAX = 60
    DEFAULT = 5

    def __str__(self) -> str:
        return f"{self.value} sec"


class BacklightMode(str, Enum):
    ALWAYS_ON = "always_on"
    ALWAYS_OFF = "always_off"
    DELAYED = "delayed"


@dataclass(frozen=True)
class BacklightTime:
    """
    Backlight time of the display.

    The register is not a contiguous range: 0 means always on, 121 means
    always off, and 1 to 120 is a delay in minutes.
    """

    mode: BacklightMode
    minutes: int | None = None

    PARAM: ClassVar[RegisterParam] = registers.BACKLIGHT_TIME
    MIN: ClassVar[int] = 1
    MAX: ClassVar[int] = 120
    ALWAYS_ON_CODE: ClassVar[int] = 0
    ALWAYS_OFF_CODE: ClassVar[int] = 121

    def __post_init__(self) -> None:
        if self.mode is BacklightMode.DELAYED:
            if isinstance(self.minutes, bool) or not isinstance(self.minutes, int):
                raise InvalidValueError(self.PARAM.name, self.minutes, "Delayed backlight time needs minutes")
            if not self.MIN <= self.minutes <= self.MAX:
                raise OutOfRangeError(self.PARAM.name, self.minutes, self.MIN, self.MAX)
        elif self.minutes is not None:
            raise InvalidValueError(self.PARAM.name, self.minutes, f"{self.mode.value} takes no minutes")

    @classmethod
    def always_on(cls) -> "BacklightTime":
        return cls(BacklightMode.ALWAYS_ON)

    @classmethod
    def always_off(cls) -> "BacklightTime":
        return cls(BacklightMode.ALWAYS_OFF)

    @classmethod
    def delayed(cls, minutes: int) -> "BacklightTime":
        return cls(BacklightMode.DELAYED, minutes)

    @classmethod
    def from_value(cls, value: int) -> "BacklightTime":
        """Build from a minute count where 0 is always on and 121 is always off."""
        if value == cls.ALWAYS_ON_CODE:
            return cls.always_on()
        if value == cls.ALWAYS_OFF_CODE:
            return cls.always_off()
        return cls.delayed(value)

    @classmethod
    def decode(cls, words: Sequence[int]) -> "BacklightTime":
        return cls.from_value(_to_int(cls.PARAM, codec.decode(cls.PARAM, words)))

    def encode(self) -> list[int]:
        return codec.encode(self.PARAM, int(self))

    @classmethod
    def default(cls) -> "BacklightTime":
        return cls.delayed(60)

    def __int__(self) -> int:
        if self.mode is BacklightMode.ALWAYS_ON:
            return self.ALWAYS_ON_CODE
        if self.mode is BacklightMode.ALWAYS_OFF:
            return self.ALWAYS_OFF_CODE
        return self.minutes  # type: ignore[return-value]

    def __str__(self) -> str:
        if self.mode is BacklightMode.DELAYED:
            return f"{self.minutes} min"
        return self.mode.value.replace("_", " ")


# ============================================================================
# Read-only identity registers
# ============================================================================


@dataclass(frozen=True)
class _IdentityValue:
    value: int

    PARAM: ClassVar[RegisterParam]

    @classmethod
    def decode(cls, words: Sequence[int]):
        return cls(int(codec.decode(cls.PARAM, words)))

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


class SerialNumber(_IdentityValue):
    PARAM = registers.SERIAL_NUMBER


class MeterCode(_IdentityValue):
    """Meter code, e.g. 0089 for the SDM72D-M-2."""

    PARAM = registers.METER_CODE

    def __str__(self) -> str:
        return f"{self.value:04x}"


class SoftwareVersion(_IdentityValue):
    """Software version shown on the display; major in the high byte, minor in the low byte."""

    PARAM = registers.SOFTWARE_VERSION

    @property
    def major(self) -> int:
        return (self.value >> 8) & 0xFF

    @property
    def minor(self) -> int:
        return self.value & 0xFF

    def __str__(self) -> str:
        return f"{self.major:02x}.{self.minor:02x}"


def encode_reset_historical_data() -> list[int]:
    """Words for the reset historical data command register."""
    return codec.encode(registers.RESET_HISTORICAL_DATA, registers.RESET_HISTORICAL_DATA_COMMAND)


# ============================================================================
# Measurements
# ============================================================================


@dataclass(frozen=True)
class MeasurementValue:
    """A measured quantity at full sensor precision; display rounds to two decimals."""

    register: MeasurementRegister
    value: float

    @classmethod
    def decode(cls, register: MeasurementRegister, words: Sequence[int]) -> "MeasurementValue":
        return cls(register, float(codec.decode(register.param, words)))

    def encode(self) -> list[int]:
        return codec.encode(self.register.param, self.value)

    @property
    def rounded(self) -> float:
        return round2(self.value)

    def __float__(self) -> float:
        return self.value

    def __str__(self) -> str:
        return str(self.rounded)
