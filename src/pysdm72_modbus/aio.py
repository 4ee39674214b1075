"""AsyncSDM72Client: asyncio twin of SDM72Client for pymodbus asyncio transports."""

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
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


class AsyncRegisterTransport(Protocol):
    """What the asyncio client needs from a transport; see transport.AsyncModbusTransport."""

    device_id: int

    async def read_holding_registers(self, address: int, count: int) -> list[int]: ...

    async def read_input_registers(self, address: int, count: int) -> list[int]: ...

    async def write_registers(self, address: int, words: Sequence[int]) -> None: ...


class AsyncSDM72Client:
    """
    Cooperative SDM72 client. Same operations as SDM72Client, awaited, with
    asyncio.sleep between the requests of a batched read.
    """

    def __init__(self, transport: AsyncRegisterTransport, fieldmap: FieldMap | None = None) -> None:
        self._transport = transport
        self._fieldmap = fieldmap if fieldmap is not None else get_default_fieldmap()
        self._cache: dict[str, FieldDef] = {}

    @property
    def transport(self) -> AsyncRegisterTransport:
        return self._transport

    def _resolve(self, name: str) -> FieldDef:
        normalized = normalize_field_name(name)
        if normalized not in self._cache:
            self._cache[normalized] = self._fieldmap.lookup(normalized)
        return self._cache[normalized]

    async def _read_words(self, table: RegisterTable, address: int, count: int) -> list[int]:
        if table == RegisterTable.HOLDING_REGISTER:
            return await self._transport.read_holding_registers(address, count)
        return await self._transport.read_input_registers(address, count)

    async def _read_param(self, param: RegisterParam) -> list[int]:
        return await self._read_words(param.table, param.address, param.quantity)

    async def _write_param(self, param: RegisterParam, words: list[int]) -> None:
        await self._transport.write_registers(param.address, words)

    async def _read_value(self, defn: FieldDef) -> Any:
        return defn.decode(await self._read_param(defn.param))

    async def _write_value(self, defn: FieldDef, value: Any) -> None:
        words = defn.encode(value)
        logger.info("Write %s = %s", defn.name, value)
        await self._write_param(defn.param, words)

    async def _read_batches(self, batches: Sequence[RegisterBatch], delay: float) -> list[list[int]]:
        responses: list[list[int]] = []
        for i, batch in enumerate(batches):
            if i and delay > 0:
                await asyncio.sleep(delay)
            responses.append(await self._read_words(batch.table, batch.offset, batch.quantity))
        return responses

    async def connect(self) -> None:
        connect = getattr(self._transport, "connect", None)
        if connect is not None:
            await connect()

    def close(self) -> None:
        close = getattr(self._transport, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            logger.warning("Error closing Modbus transport: %s", e)

    async def __aenter__(self) -> "AsyncSDM72Client":
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()

    async def read(self, name: str) -> Any:
        return await self._read_value(self._resolve(name))

    async def write(self, name: str, value: Any) -> None:
        await self._write_value(self._resolve(name), value)

    async def kppa(self) -> KPPA:
        return await self._read_value(self._fieldmap.lookup(registers.KPPA.name))

    async def set_kppa(self, password: Password) -> None:
        await self._write_value(self._fieldmap.lookup(registers.KPPA.name), password)

    async def set_address(self, address: Address) -> None:
        await self._write_value(self._fieldmap.lookup(registers.ADDRESS.name), address)

    async def reset_historical_data(self) -> None:
        logger.info("Reset historical data")
        await self._write_param(registers.RESET_HISTORICAL_DATA, encode_reset_historical_data())

    async def read_measurement(self, name: str) -> MeasurementValue:
        normalized = normalize_field_name(name)
        if normalized not in registers.MEASUREMENTS_BY_NAME:
            raise UnknownFieldError(normalized, f"Unknown measurement: {normalized!r}")
        register = registers.MEASUREMENTS_BY_NAME[normalized]
        return MeasurementValue.decode(register, await self._read_param(register.param))

    async def read_all_settings(self, delay: float = 0.0) -> AllSettings:
        return decode_settings(await self._read_batches(SETTINGS_BATCHES, delay))

    async def read_all(self, delay: float = 0.0) -> AllValues:
        return decode_measurements(await self._read_batches(MEASUREMENT_BATCHES, delay))

    async def poll_iter(self, interval_s: float, delay: float = 0.0) -> AsyncIterator[AllValues]:
        """Yield read_all(delay) indefinitely, awaiting max(interval_s, delay) between cycles."""
        while True:
            yield await self.read_all(delay)
            await asyncio.sleep(max(interval_s, delay))

    def fields(self) -> list[FieldDef]:
        return list(self._fieldmap)


class AsyncSafeSDM72Client(AsyncSDM72Client):
    """
    AsyncSDM72Client guarded by an asyncio.Lock held for each whole logical
    operation. The lock is not reentrant: overrides delegate to the base
    public methods, which only await private primitives.
    """

    def __init__(
        self,
        transport: AsyncRegisterTransport,
        fieldmap: FieldMap | None = None,
        lock: asyncio.Lock | None = None,
    ) -> None:
        super().__init__(transport, fieldmap)
        self._lock = lock if lock is not None else asyncio.Lock()

    @classmethod
    def from_shared(
        cls,
        transport: AsyncRegisterTransport,
        lock: asyncio.Lock,
        fieldmap: FieldMap | None = None,
    ) -> "AsyncSafeSDM72Client":
        return cls(transport, fieldmap, lock)

    def shared(self) -> "AsyncSafeSDM72Client":
        return type(self).from_shared(self._transport, self._lock, self._fieldmap)

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    async def __aenter__(self) -> "AsyncSafeSDM72Client":
        return self

    async def read(self, name: str) -> Any:
        async with self._lock:
            return await super().read(name)

    def _retarget(self, address: Address) -> None:
        self._transport.device_id = address.value
        logger.debug("Transport retargeted to device_id=%d", address.value)

    async def write(self, name: str, value: Any) -> None:
        async with self._lock:
            await super().write(name, value)
            if self._resolve(name).name == registers.ADDRESS.name:
                self._retarget(value)

    async def kppa(self) -> KPPA:
        async with self._lock:
            return await super().kppa()

    async def set_kppa(self, password: Password) -> None:
        async with self._lock:
            await super().set_kppa(password)

    async def set_address(self, address: Address) -> None:
        async with self._lock:
            await super().set_address(address)
            self._retarget(address)

    async def reset_historical_data(self) -> None:
        async with self._lock:
            await super().reset_historical_data()

    async def read_measurement(self, name: str) -> MeasurementValue:
        async with self._lock:
            return await super().read_measurement(name)

    async def read_all_settings(self, delay: float = 0.0) -> AllSettings:
        async with self._lock:
            return await super().read_all_settings(delay)

    async def read_all(self, delay: float = 0.0) -> AllValues:
        async with self._lock:
            return await super().read_all(delay)
