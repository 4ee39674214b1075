"""
SDM72 register map (Eastron SDM72D-M-v2 Modbus protocol).

Holding registers carry the meter configuration. Almost all of them are
transmitted as float32 even when the value is a small integer or a code.
Input registers carry the measured and calculated electrical quantities.
"""

from dataclasses import dataclass

from .types import RegisterParam, RegisterTable, WireType

# Each request for data must be restricted to 30 parameters or less; the
# meter answers larger requests with a Modbus exception.
MAX_PARAMETERS_PER_REQUEST = 30

# Modbus limit for a single read holding/input registers request.
MAX_WORDS_PER_REQUEST = 125

# ============================================================================
# Holding registers
# ============================================================================

SYSTEM_TYPE = RegisterParam("system_type", 0x000A, 2, WireType.FLOAT32)
PULSE_WIDTH = RegisterParam("pulse_width", 0x000C, 2, WireType.FLOAT32)
KPPA = RegisterParam("kppa", 0x000E, 2, WireType.FLOAT32)
PARITY_AND_STOP_BIT = RegisterParam("parity_and_stop_bit", 0x0012, 2, WireType.FLOAT32)
ADDRESS = RegisterParam("address", 0x0014, 2, WireType.FLOAT32)
PULSE_CONSTANT = RegisterParam("pulse_constant", 0x0016, 2, WireType.FLOAT32)
PASSWORD = RegisterParam("password", 0x0018, 2, WireType.FLOAT32)
BAUD_RATE = RegisterParam("baud_rate", 0x001C, 2, WireType.FLOAT32)
AUTO_SCROLL_TIME = RegisterParam("auto_scroll_time", 0x003A, 2, WireType.FLOAT32)
BACKLIGHT_TIME = RegisterParam("backlight_time", 0x003C, 2, WireType.FLOAT32)
PULSE_ENERGY_TYPE = RegisterParam("pulse_energy_type", 0x0056, 2, WireType.FLOAT32)
RESET_HISTORICAL_DATA = RegisterParam("reset_historical_data", 0xF010, 1, WireType.UINT16)
SERIAL_NUMBER = RegisterParam("serial_number", 0xFC00, 2, WireType.UINT32)
METER_CODE = RegisterParam("meter_code", 0xFC02, 1, WireType.UINT16)
SOFTWARE_VERSION = RegisterParam("software_version", 0xFC84, 1, WireType.UINT16)

# Value written to RESET_HISTORICAL_DATA to clear the saved history.
RESET_HISTORICAL_DATA_COMMAND = 0x0003

# Contiguous settings block read in one request by read_all_settings.
SETTINGS_BLOCK: tuple[RegisterParam, ...] = (
    SYSTEM_TYPE,
    PULSE_WIDTH,
    KPPA,
    PARITY_AND_STOP_BIT,
    ADDRESS,
    PULSE_CONSTANT,
    PASSWORD,
    BAUD_RATE,
    AUTO_SCROLL_TIME,
    BACKLIGHT_TIME,
    PULSE_ENERGY_TYPE,
)

# Identity registers lie far outside the settings block and are read one by one.
IDENTITY_REGISTERS: tuple[RegisterParam, ...] = (SERIAL_NUMBER, METER_CODE, SOFTWARE_VERSION)


# ============================================================================
# Input registers
# ============================================================================


@dataclass(frozen=True)
class MeasurementRegister:
    """One measured quantity: its register plus serialization key and display label."""

    param: RegisterParam
    key: str
    label: str

    @property
    def name(self) -> str:
        return self.param.name


def _measurement(name: str, address: int, label: str, key: str | None = None) -> MeasurementRegister:
    param = RegisterParam(name, address, 2, WireType.FLOAT32, RegisterTable.INPUT_REGISTER)
    return MeasurementRegister(param=param, key=key or name, label=label)


# (name, address, label, serialization key); grouped by the request batch they are read in.
PRIMARY_MEASUREMENTS: tuple[MeasurementRegister, ...] = (
    _measurement("l1_voltage", 0x0000, "L1 Voltage"),
    _measurement("l2_voltage", 0x0002, "L2 Voltage"),
    _measurement("l3_voltage", 0x0004, "L3 Voltage"),
    _measurement("l1_current", 0x0006, "L1 Current"),
    _measurement("l2_current", 0x0008, "L2 Current"),
    _measurement("l3_current", 0x000A, "L3 Current"),
    _measurement("l1_power_active", 0x000C, "L1 Power Active"),
    _measurement("l2_power_active", 0x000E, "L2 Power Active"),
    _measurement("l3_power_active", 0x0010, "L3 Power Active"),
    _measurement("l1_power_apparent", 0x0012, "L1 Power Apparent"),
    _measurement("l2_power_apparent", 0x0014, "L2 Power Apparent"),
    _measurement("l3_power_apparent", 0x0016, "L3 Power Apparent"),
    _measurement("l1_power_reactive", 0x0018, "L1 Power Reactive"),
    _measurement("l2_power_reactive", 0x001A, "L2 Power Reactive"),
    _measurement("l3_power_reactive", 0x001C, "L3 Power Reactive"),
    _measurement("l1_power_factor", 0x001E, "L1 Power Factor"),
    _measurement("l2_power_factor", 0x0020, "L2 Power Factor"),
    _measurement("l3_power_factor", 0x0022, "L3 Power Factor"),
    _measurement("ln_average_voltage", 0x002A, "L-N average Voltage", "l-n_average_voltage"),
    _measurement("ln_average_current", 0x002E, "L-N average Current", "l-n_average_current"),
    _measurement("total_line_current", 0x0030, "Total Line Current"),
    _measurement("total_power", 0x0034, "Total Power"),
    _measurement("total_power_apparent", 0x0038, "Total Power Apparent"),
    _measurement("total_power_reactive", 0x003C, "Total Power Reactive"),
    _measurement("total_power_factor", 0x003E, "Total Power Factor"),
    _measurement("frequency", 0x0046, "Frequency"),
    _measurement("import_energy_active", 0x0048, "Import Energy Active"),
    _measurement("export_energy_active", 0x004A, "Export Energy Active"),
)

LINE_TO_LINE_MEASUREMENTS: tuple[MeasurementRegister, ...] = (
    _measurement("l1l2_voltage", 0x00C8, "L1-L2 Voltage", "l1-l2_voltage"),
    _measurement("l2l3_voltage", 0x00CA, "L2-L3 Voltage", "l2-l3_voltage"),
    _measurement("l3l1_voltage", 0x00CC, "L3-L1 Voltage", "l3-l1_voltage"),
    _measurement("ll_average_voltage", 0x00CE, "L-L average Voltage", "l-l_average_voltage"),
    _measurement("neutral_current", 0x00E0, "Neutral Current"),
)

ENERGY_TOTAL_MEASUREMENTS: tuple[MeasurementRegister, ...] = (
    _measurement("total_energy_active", 0x0156, "Total Energy Active"),
    _measurement("total_energy_reactive", 0x0158, "Total Energy Reactive"),
    _measurement("resettable_total_energy_active", 0x0180, "Resettable Total Energy Active"),
    _measurement("resettable_total_energy_reactive", 0x0182, "Resettable Total Energy Reactive"),
    _measurement("resettable_import_energy_active", 0x0184, "Resettable Import Energy Active"),
    _measurement("resettable_export_energy_active", 0x0186, "Resettable Export Energy Active"),
    _measurement("net_kwh", 0x018C, "Net kWh (Import - Export)", "net_kwh_import_-_export"),
)

IMPORT_EXPORT_MEASUREMENTS: tuple[MeasurementRegister, ...] = (
    _measurement("import_total_energy_active", 0x0500, "Import Total Energy Active"),
    _measurement("export_total_energy_active", 0x0502, "Export Total Energy Active"),
)

MEASUREMENTS: tuple[MeasurementRegister, ...] = (
    PRIMARY_MEASUREMENTS
    + LINE_TO_LINE_MEASUREMENTS
    + ENERGY_TOTAL_MEASUREMENTS
    + IMPORT_EXPORT_MEASUREMENTS
)

MEASUREMENTS_BY_NAME: dict[str, MeasurementRegister] = {m.name: m for m in MEASUREMENTS}
