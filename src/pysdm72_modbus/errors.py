"""Clear exceptions for pysdm72-modbus: value validation, codec, transport and device errors."""


class PySDM72ModbusError(Exception):
    """Base exception for pysdm72-modbus."""

    pass


class ValueValidationError(PySDM72ModbusError, ValueError):
    """Raised when a domain value is rejected before it reaches the wire."""

    pass


class OutOfRangeError(ValueValidationError):
    """Raised when a bounded setting is constructed from a value outside its range."""

    def __init__(self, field: str, value: int, minimum: int, maximum: int) -> None:
        self.field = field
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"The {field} value {value} is outside the permissible range of {minimum} to {maximum}"
        )


class InvalidBaudRateError(ValueValidationError):
    """Raised when a baud rate is not one the device supports."""

    def __init__(self, value: int, supported: tuple[int, ...]) -> None:
        self.value = value
        self.supported = supported
        rates = ", ".join(str(rate) for rate in supported)
        super().__init__(f"Baud rate {value} is not supported, must be any value of {rates}")


class InvalidValueError(ValueValidationError):
    """Raised when the device reports a code that has no domain meaning."""

    def __init__(self, field: str, value: object, message: str | None = None) -> None:
        self.field = field
        self.value = value
        super().__init__(message or f"Unexpected {field} value: {value!r}")


class WordsCountError(PySDM72ModbusError):
    """Raised when a register response does not carry the expected number of words."""

    def __init__(self, field: str, expected: int, actual: int) -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(f"{field}: expected {expected} words, got {actual}")


class UnknownFieldError(PySDM72ModbusError):
    """Raised when a field name is well-formed but not in the register map."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        self._msg = message or f"Unknown field: {field!r}"
        super().__init__(self._msg)


class InvalidFieldError(PySDM72ModbusError):
    """Raised when a field name is malformed (syntax validation failed)."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        self._msg = message or f"Invalid field: {field!r}"
        super().__init__(self._msg)


class ReadOnlyFieldError(PySDM72ModbusError):
    """Raised when a write targets an identity register."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Field {field!r} is read-only")


class AuthorizationError(PySDM72ModbusError):
    """Raised when settings access (KPPA) could not be obtained."""

    pass


class ModbusIOError(PySDM72ModbusError):
    """Raised when a Modbus read/write fails (wraps pymodbus or connection errors)."""

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        table: str | None = None,
        address: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.field = field
        self.table = table
        self.address = address
        self.cause = cause
        super().__init__(message)


class ModbusDeviceError(PySDM72ModbusError):
    """Raised when the meter answers with a Modbus exception response."""

    def __init__(
        self,
        message: str,
        *,
        exception_code: int | None = None,
        table: str | None = None,
        address: int | None = None,
    ) -> None:
        self.exception_code = exception_code
        self.table = table
        self.address = address
        super().__init__(message)


class PublishError(PySDM72ModbusError):
    """Raised when the MQTT broker cannot be reached or refuses a publish."""

    def __init__(self, message: str, *, topic: str | None = None, cause: BaseException | None = None) -> None:
        self.topic = topic
        self.cause = cause
        super().__init__(message)


class ConfigError(PySDM72ModbusError):
    """Raised when a configuration file is missing, unreadable or invalid."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)
