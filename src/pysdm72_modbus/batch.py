"""
Batch accessor: read a maximal contiguous register span in one request and
slice it per field.

A batch is planned once at import time. The slicing arithmetic is checked
when the batch is defined, so a response of the planned length can always be
sliced; a response of any other length is a WordsCountError.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from . import codec, registers
from .errors import WordsCountError
from .registers import MAX_PARAMETERS_PER_REQUEST, MAX_WORDS_PER_REQUEST, MeasurementRegister
from .snapshots import AllSettings, AllValues
from .types import RegisterParam, RegisterTable
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


@dataclass(frozen=True)
class RegisterBatch:
    """Contiguous (or near-contiguous) registers of one table read with a single request."""

    table: RegisterTable
    params: tuple[RegisterParam, ...]

    def __post_init__(self) -> None:
        if not self.params:
            raise ValueError("a batch needs at least one register")
        if len(self.params) > MAX_PARAMETERS_PER_REQUEST:
            raise ValueError(
                f"a batch may hold at most {MAX_PARAMETERS_PER_REQUEST} parameters, got {len(self.params)}"
            )
        prev: RegisterParam | None = None
        for param in self.params:
            if param.table != self.table:
                raise ValueError(f"{param.name} is a {param.table.value}, batch reads {self.table.value}")
            if prev is not None and param.address < prev.end:
                raise ValueError(f"{param.name} overlaps or precedes {prev.name}")
            prev = param
        if self.quantity > MAX_WORDS_PER_REQUEST:
            raise ValueError(f"a batch may span at most {MAX_WORDS_PER_REQUEST} words, got {self.quantity}")

    @property
    def offset(self) -> int:
        """Address of the first register in the batch."""
        return self.params[0].address

    @property
    def quantity(self) -> int:
        """Words spanned from the first register to the end of the last one."""
        last = self.params[-1]
        return (last.address - self.offset) + last.quantity

    def register_range(self, param: RegisterParam) -> slice:
        """Position of a register's words inside the batch response."""
        if param not in self.params:
            raise ValueError(f"{param.name} is not part of the batch at {self.offset:#06x}")
        start = param.address - self.offset
        return slice(start, start + param.quantity)

    def split(self, words: Sequence[int]) -> dict[str, list[int]]:
        """Slice a batch response into the words of each register, keyed by register name."""
        if len(words) != self.quantity:
            raise WordsCountError(f"batch {self.offset:#06x}", self.quantity, len(words))
        return {param.name: list(words[self.register_range(param)]) for param in self.params}


def _merge(batches: Sequence[RegisterBatch], responses: Sequence[Sequence[int]]) -> dict[str, list[int]]:
    if len(batches) != len(responses):
        raise ValueError(f"expected {len(batches)} responses, got {len(responses)}")
    words_by_name: dict[str, list[int]] = {}
    for batch, words in zip(batches, responses):
        words_by_name.update(batch.split(words))
    return words_by_name


def measurement_batch(measurements: Iterable[MeasurementRegister]) -> RegisterBatch:
    return RegisterBatch(RegisterTable.INPUT_REGISTER, tuple(m.param for m in measurements))


# One settings block plus the three identity registers, read one by one.
SETTINGS_BATCHES: tuple[RegisterBatch, ...] = (
    RegisterBatch(RegisterTable.HOLDING_REGISTER, registers.SETTINGS_BLOCK),
    *(RegisterBatch(RegisterTable.HOLDING_REGISTER, (param,)) for param in registers.IDENTITY_REGISTERS),
)

# The input registers are not contiguous across the address space.
MEASUREMENT_BATCHES: tuple[RegisterBatch, ...] = (
    measurement_batch(registers.PRIMARY_MEASUREMENTS),
    measurement_batch(registers.LINE_TO_LINE_MEASUREMENTS),
    measurement_batch(registers.ENERGY_TOTAL_MEASUREMENTS),
    measurement_batch(registers.IMPORT_EXPORT_MEASUREMENTS),
)


def decode_settings(responses: Sequence[Sequence[int]]) -> AllSettings:
    """Build AllSettings from the responses to SETTINGS_BATCHES, in order."""
    words = _merge(SETTINGS_BATCHES, responses)
    return AllSettings(
        system_type=SystemType.decode(words["system_type"]),
        pulse_width=PulseWidth.decode(words["pulse_width"]),
        kppa=KPPA.decode(words["kppa"]),
        parity_and_stop_bit=ParityAndStopBit.decode(words["parity_and_stop_bit"]),
        address=Address.decode(words["address"]),
        pulse_constant=PulseConstant.decode(words["pulse_constant"]),
        password=Password.decode(words["password"]),
        baud_rate=BaudRate.decode(words["baud_rate"]),
        auto_scroll_time=AutoScrollTime.decode(words["auto_scroll_time"]),
        backlight_time=BacklightTime.decode(words["backlight_time"]),
        pulse_energy_type=PulseEnergyType.decode(words["pulse_energy_type"]),
        serial_number=SerialNumber.decode(words["serial_number"]),
        meter_code=MeterCode.decode(words["meter_code"]),
        software_version=SoftwareVersion.decode(words["software_version"]),
    )


def decode_measurements(responses: Sequence[Sequence[int]]) -> AllValues:
    """Build AllValues from the responses to MEASUREMENT_BATCHES, in order."""
    words = _merge(MEASUREMENT_BATCHES, responses)
    return AllValues(
        **{m.name: float(codec.decode(m.param, words[m.name])) for m in registers.MEASUREMENTS}
    )
