"""Composite records returned by the batched reads: AllSettings and AllValues."""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from .registers import MEASUREMENTS
from .values import (
    KPPA,
    Address,
    AutoScrollTime,
    BacklightMode,
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
    round2,
)

_SETTINGS_LABELS: dict[str, str] = {
    "system_type": "System type",
    "pulse_width": "Pulse width",
    "kppa": "KPPA",
    "parity_and_stop_bit": "Parity and stop bit",
    "address": "Address",
    "pulse_constant": "Pulse constant",
    "password": "Password",
    "baud_rate": "Baud rate",
    "auto_scroll_time": "Auto scroll time",
    "backlight_time": "Backlight time",
    "pulse_energy_type": "Pulse energy type",
    "serial_number": "Serial number",
    "meter_code": "Meter code",
    "software_version": "Software version",
}


def jsonable(value: Any) -> Any:
    """Convert a typed setting into a JSON-friendly primitive."""
    if isinstance(value, BacklightTime):
        return value.minutes if value.mode is BacklightMode.DELAYED else value.mode.value
    if isinstance(value, (MeterCode, SoftwareVersion)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    return int(value)


@dataclass(frozen=True)
class AllSettings:
    """All settings of the meter as of one read_all_settings call."""

    system_type: SystemType
    pulse_width: PulseWidth
    kppa: KPPA
    parity_and_stop_bit: ParityAndStopBit
    address: Address
    pulse_constant: PulseConstant
    password: Password
    baud_rate: BaudRate
    auto_scroll_time: AutoScrollTime
    backlight_time: BacklightTime
    pulse_energy_type: PulseEnergyType
    serial_number: SerialNumber
    meter_code: MeterCode
    software_version: SoftwareVersion

    def to_dict(self) -> dict[str, Any]:
        return {f.name: jsonable(getattr(self, f.name)) for f in fields(self)}

    def __str__(self) -> str:
        return "\n".join(f"{_SETTINGS_LABELS[f.name]}: {getattr(self, f.name)}" for f in fields(self))


@dataclass(frozen=True)
class AllValues:
    """
    All measured and calculated quantities as of one read_all call.

    Attributes hold the full sensor precision; to_dict() and str() round to
    two decimals.
    """

    l1_voltage: float
    l2_voltage: float
    l3_voltage: float
    l1_current: float
    l2_current: float
    l3_current: float
    l1_power_active: float
    l2_power_active: float
    l3_power_active: float
    l1_power_apparent: float
    l2_power_apparent: float
    l3_power_apparent: float
    l1_power_reactive: float
    l2_power_reactive: float
    l3_power_reactive: float
    l1_power_factor: float
    l2_power_factor: float
    l3_power_factor: float
    ln_average_voltage: float
    ln_average_current: float
    total_line_current: float
    total_power: float
    total_power_apparent: float
    total_power_reactive: float
    total_power_factor: float
    frequency: float
    import_energy_active: float
    export_energy_active: float

    l1l2_voltage: float
    l2l3_voltage: float
    l3l1_voltage: float
    ll_average_voltage: float
    neutral_current: float

    total_energy_active: float
    total_energy_reactive: float
    resettable_total_energy_active: float
    resettable_total_energy_reactive: float
    resettable_import_energy_active: float
    resettable_export_energy_active: float
    net_kwh: float

    import_total_energy_active: float
    export_total_energy_active: float

    def to_dict(self) -> dict[str, float]:
        """Serialization keys mapped to values rounded to two decimals."""
        return {m.key: round2(getattr(self, m.name)) for m in MEASUREMENTS}

    def __str__(self) -> str:
        return "\n".join(f"{m.label}: {round2(getattr(self, m.name))}" for m in MEASUREMENTS)
