"""pysdm72-modbus: typed Modbus protocol layer for the Eastron SDM72 energy meter via pymodbus."""

__version__ = "0.1.0"

from .aio import AsyncSafeSDM72Client, AsyncSDM72Client
from .auth import ensure_authorization, ensure_authorization_async
from .batch import MEASUREMENT_BATCHES, SETTINGS_BATCHES, RegisterBatch
from .client import SafeSDM72Client, SDM72Client
from .errors import (
    AuthorizationError,
    ConfigError,
    InvalidBaudRateError,
    InvalidFieldError,
    InvalidValueError,
    ModbusDeviceError,
    ModbusIOError,
    OutOfRangeError,
    PublishError,
    PySDM72ModbusError,
    ReadOnlyFieldError,
    UnknownFieldError,
    ValueValidationError,
    WordsCountError,
)
from .fields import FieldDef, FieldMap, get_default_fieldmap
from .normalize import normalize_field_name
from .snapshots import AllSettings, AllValues
from .timing import check_rtu_delay, minimum_rtu_delay
from .transport import AsyncModbusTransport, ModbusTransport, connect_rtu, connect_tcp
from .types import RegisterParam, RegisterTable, WireType
from .values import (
    KPPA,
    Address,
    AutoScrollTime,
    BacklightMode,
    BacklightTime,
    BaudRate,
    MeasurementValue,
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

__all__ = [
    "__version__",
    "AsyncSDM72Client",
    "AsyncSafeSDM72Client",
    "SDM72Client",
    "SafeSDM72Client",
    "ensure_authorization",
    "ensure_authorization_async",
    "RegisterBatch",
    "MEASUREMENT_BATCHES",
    "SETTINGS_BATCHES",
    "AuthorizationError",
    "ConfigError",
    "InvalidBaudRateError",
    "InvalidFieldError",
    "InvalidValueError",
    "ModbusDeviceError",
    "ModbusIOError",
    "OutOfRangeError",
    "PublishError",
    "PySDM72ModbusError",
    "ReadOnlyFieldError",
    "UnknownFieldError",
    "ValueValidationError",
    "WordsCountError",
    "FieldDef",
    "FieldMap",
    "get_default_fieldmap",
    "normalize_field_name",
    "AllSettings",
    "AllValues",
    "check_rtu_delay",
    "minimum_rtu_delay",
    "AsyncModbusTransport",
    "ModbusTransport",
    "connect_rtu",
    "connect_tcp",
    "RegisterParam",
    "RegisterTable",
    "WireType",
    "KPPA",
    "Address",
    "AutoScrollTime",
    "BacklightMode",
    "BacklightTime",
    "BaudRate",
    "MeasurementValue",
    "MeterCode",
    "ParityAndStopBit",
    "Password",
    "PulseConstant",
    "PulseEnergyType",
    "PulseWidth",
    "SerialNumber",
    "SoftwareVersion",
    "SystemType",
]
