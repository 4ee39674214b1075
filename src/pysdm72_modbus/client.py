"""SDM72Client: blocking facade over a register transport with a field-name API and batched reads."""

import logging
import threading
import time
from collections.abc import Iterator, Sequence
from typing import Any, Protocol

from . import registers
from .batch import MEASUREMENT_BATCHES, SETTINGS_BATCHES, RegisterBatch, decode_measurements, decode_settings
from .errors import UnknownFieldError
from .fields import FieldDef, FieldMap, get_default_fieldmap
from .normalize import normalize_field_name
from .snapshots import AllSettings, AllValues
from .types import RegisterParam, RegisterTable
from .values import KPPA, Address, MeasurementValue, Password, encode_reset_historical_data

logger = logging.getLogger(__name__)


class RegisterTransport(Protocol):
    """What the client needs from a transport; see transport.ModbusTransport."""

    device_id: int

    def read_holding_registers(self, address: int, count: int) -> list[int]: ...

    def read_input_registers(self, address: int, count: int) -> list[int]: ...

    def write_registers(self, address: int, words: Sequence[int]) -> None: ...


class SDM72Client:
    """
    High-level SDM72 client that reads/writes settings by field name (e.g. baud_rate,
    system_type) and reads all measurements or settings in batched requests.

    The client never authorizes on its own: settings writes need KPPA first
    (see ``auth.ensure_authorization``). Not safe for concurrent use; see
    SafeSDM72Client.
    """

    def __init__(self, transport: RegisterTransport, fieldmap: FieldMap | None = None) -> None:
        self._transport = transport
        self._fieldmap = fieldmap if fieldmap is not None else get_default_fieldmap()
        self._cache: dict[str, FieldDef] = {}

    @property
    def transport(self) -> RegisterTransport:
        return self._transport

    # ------------------------------------------------------------------
    # Private primitives; public methods only call these.
    # ------------------------------------------------------------------

    def _resolve(self, name: str) -> FieldDef:
        normalized = normalize_field_name(name)
        if normalized not in self._cache:
            self._cache[normalized] = self._fieldmap.lookup(normalized)
        return self._cache[normalized]

    def _read_words(self, table: RegisterTable, address: int, count: int) -> list[int]:
        if table == RegisterTable.HOLDING_REGISTER:
            return self._transport.read_holding_registers(address, count)
        return self._transport.read_input_registers(address, count)

    def _read_param(self, param: RegisterParam) -> list[int]:
        return self._read_words(param.table, param.address, param.quantity)

    def _write_param(self, param: RegisterParam, words: list[int]) -> None:
        self._transport.write_registers(param.address, words)

    def _read_value(self, defn: FieldDef) -> Any:
        return defn.decode(self._read_param(defn.param))

    def _write_value(self, defn: FieldDef, value: Any) -> None:
        words = defn.encode(value)
        logger.info("Write %s = %s", defn.name, value)
        self._write_param(defn.param, words)

    def _read_batches(self, batches: Sequence[RegisterBatch], delay: float) -> list[list[int]]:
        """Read each batch with one request, sleeping ``delay`` seconds between requests."""
        responses: list[list[int]] = []
        for i, batch in enumerate(batches):
            if i and delay > 0:
                time.sleep(delay)
            responses.append(self._read_words(batch.table, batch.offset, batch.quantity))
        return responses

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Connect the underlying transport, when it supports it."""
        connect = getattr(self._transport, "connect", None)
        if connect is not None:
            connect()

    def close(self) -> None:
        """Close the underlying transport."""
        close = getattr(self._transport, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            logger.warning("Error closing Modbus transport: %s", e)

    def __enter__(self) -> "SDM72Client":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self, name: str) -> Any:
        """Read a single setting by field name; returns its typed value."""
        return self._read_value(self._resolve(name))

    def write(self, name: str, value: Any) -> None:
        """Write a single setting by field name. Most settings need KPPA first."""
        self._write_value(self._resolve(name), value)

    def kppa(self) -> KPPA:
        """Read the key parameter programming authorization state."""
        return self._read_value(self._fieldmap.lookup(registers.KPPA.name))

    def set_kppa(self, password: Password) -> None:
        """Request settings authorization by writing the password to the KPPA register."""
        self._write_value(self._fieldmap.lookup(registers.KPPA.name), password)

    def set_address(self, address: Address) -> None:
        """Change the RS485 address of the meter. Needs KPPA."""
        self._write_value(self._fieldmap.lookup(registers.ADDRESS.name), address)

    def reset_historical_data(self) -> None:
        """Clear the meter's saved historical data. Needs KPPA."""
        logger.info("Reset historical data")
        self._write_param(registers.RESET_HISTORICAL_DATA, encode_reset_historical_data())

    def read_measurement(self, name: str) -> MeasurementValue:
        """Read a single measured quantity by name (e.g. l1_voltage)."""
        normalized = normalize_field_name(name)
        if normalized not in registers.MEASUREMENTS_BY_NAME:
            raise UnknownFieldError(normalized, f"Unknown measurement: {normalized!r}")
        register = registers.MEASUREMENTS_BY_NAME[normalized]
        return MeasurementValue.decode(register, self._read_param(register.param))

    def read_all_settings(self, delay: float = 0.0) -> AllSettings:
        """
        Read every setting: the settings block in one request, then the three
        identity registers one by one, sleeping ``delay`` seconds between requests.
        """
        return decode_settings(self._read_batches(SETTINGS_BATCHES, delay))

    def read_all(self, delay: float = 0.0) -> AllValues:
        """Read every measured quantity in four batched requests, ``delay`` seconds apart."""
        return decode_measurements(self._read_batches(MEASUREMENT_BATCHES, delay))

    def poll_iter(self, interval_s: float, delay: float = 0.0) -> Iterator[AllValues]:
        """
        Yield read_all(delay) indefinitely, waiting max(interval_s, delay)
        seconds between cycles.
        """
        while True:
            yield self.read_all(delay)
            time.sleep(max(interval_s, delay))

    def fields(self) -> list[FieldDef]:
        return list(self._fieldmap)

    def __getitem__(self, name: str) -> Any:
        return self.read(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.write(name, value)


class SafeSDM72Client(SDM72Client):
    """
    SDM72Client guarded by a lock held for each whole logical operation,
    including the delays between the requests of a batched read.

    Several instances may share one transport and lock (``from_shared`` /
    ``shared``). ``set_address`` also retargets the shared transport to the
    new address.
    """

    def __init__(
        self,
        transport: RegisterTransport,
        fieldmap: FieldMap | None = None,
        lock: "threading.RLock | None" = None,
    ) -> None:
        super().__init__(transport, fieldmap)
        self._lock = lock if lock is not None else threading.RLock()

    @classmethod
    def from_shared(
        cls,
        transport: RegisterTransport,
        lock: threading.RLock,
        fieldmap: FieldMap | None = None,
    ) -> "SafeSDM72Client":
        return cls(transport, fieldmap, lock)

    def shared(self) -> "SafeSDM72Client":
        """Return another client on the same transport and lock."""
        return type(self).from_shared(self._transport, self._lock, self._fieldmap)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __enter__(self) -> "SafeSDM72Client":
        return self

    def read(self, name: str) -> Any:
        with self._lock:
            return super().read(name)

    def _retarget(self, address: Address) -> None:
        self._transport.device_id = address.value
        logger.debug("Transport retargeted to device_id=%d", address.value)

    def write(self, name: str, value: Any) -> None:
        with self._lock:
            super().write(name, value)
            if self._resolve(name).name == registers.ADDRESS.name:
                self._retarget(value)

    def kppa(self) -> KPPA:
        with self._lock:
            return super().kppa()

    def set_kppa(self, password: Password) -> None:
        with self._lock:
            super().set_kppa(password)

    def set_address(self, address: Address) -> None:
        with self._lock:
            super().set_address(address)
            self._retarget(address)

    def reset_historical_data(self) -> None:
        with self._lock:
            super().reset_historical_data()

    def read_measurement(self, name: str) -> MeasurementValue:
        with self._lock:
            return super().read_measurement(name)

    def read_all_settings(self, delay: float = 0.0) -> AllSettings:
        with self._lock:
            return super().read_all_settings(delay)

    def read_all(self, delay: float = 0.0) -> AllValues:
        with self._lock:
            return super().read_all(delay)
