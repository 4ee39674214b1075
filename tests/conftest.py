"""Shared fixtures: an in-memory register transport standing in for a meter."""

from collections.abc import Sequence
from unittest.mock import MagicMock

import pytest

from pysdm72_modbus import codec, registers
from pysdm72_modbus.types import RegisterTable


class FakeMeter:
    """
    Register store answering transport calls like an SDM72: holding and
    input registers keyed by address, KPPA granted when the password matches.
    """

    def __init__(self, password: int = 1000) -> None:
        self.device_id = 1
        self.password = password
        self.holding: dict[int, int] = {}
        self.input: dict[int, int] = {}
        self.requests: list[tuple[str, int, int]] = []
        for param, value in (
            (registers.SYSTEM_TYPE, 3),
            (registers.PULSE_WIDTH, 100),
            (registers.KPPA, 0),
            (registers.PARITY_AND_STOP_BIT, 0),
            (registers.ADDRESS, 1),
            (registers.PULSE_CONSTANT, 0),
            (registers.PASSWORD, password),
            (registers.BAUD_RATE, 2),
            (registers.AUTO_SCROLL_TIME, 5),
            (registers.BACKLIGHT_TIME, 60),
            (registers.PULSE_ENERGY_TYPE, 2),
            (registers.SERIAL_NUMBER, 123456),
            (registers.METER_CODE, 0x0089),
            (registers.SOFTWARE_VERSION, 0x0102),
        ):
            self.set(param.table, param.address, codec.encode(param, value))

    def set(self, table: RegisterTable, address: int, words: Sequence[int]) -> None:
        store = self.holding if table == RegisterTable.HOLDING_REGISTER else self.input
        for i, word in enumerate(words):
            store[address + i] = word

    def _get(self, store: dict[int, int], address: int, count: int) -> list[int]:
        return [store.get(address + i, 0) for i in range(count)]

    def read_holding_registers(self, address: int, count: int) -> list[int]:
        self.requests.append(("read_holding_registers", address, count))
        return self._get(self.holding, address, count)

    def read_input_registers(self, address: int, count: int) -> list[int]:
        self.requests.append(("read_input_registers", address, count))
        return self._get(self.input, address, count)

    def write_registers(self, address: int, words: Sequence[int]) -> None:
        self.requests.append(("write_registers", address, len(words)))
        if address == registers.KPPA.address:
            granted = codec.decode(registers.KPPA, list(words)) == self.password
            self.set(RegisterTable.HOLDING_REGISTER, address, codec.encode(registers.KPPA, 1 if granted else 0))
            return
        self.set(RegisterTable.HOLDING_REGISTER, address, words)


class AsyncFakeMeter:
    """Awaitable view of a FakeMeter."""

    def __init__(self, meter: FakeMeter) -> None:
        self.meter = meter

    @property
    def device_id(self) -> int:
        return self.meter.device_id

    @device_id.setter
    def device_id(self, value: int) -> None:
        self.meter.device_id = value

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        return self.meter.read_holding_registers(address, count)

    async def read_input_registers(self, address: int, count: int) -> list[int]:
        return self.meter.read_input_registers(address, count)

    async def write_registers(self, address: int, words: Sequence[int]) -> None:
        self.meter.write_registers(address, words)


@pytest.fixture
def meter() -> FakeMeter:
    return FakeMeter()


@pytest.fixture
def async_meter(meter: FakeMeter) -> AsyncFakeMeter:
    return AsyncFakeMeter(meter)


@pytest.fixture
def mock_modbus_client() -> MagicMock:
    """pymodbus client double returning successful responses."""
    client = MagicMock()
    client.connect.return_value = True
    client.read_holding_registers.return_value = MagicMock(isError=lambda: False, registers=[0x4040, 0x0000])
    client.read_input_registers.return_value = MagicMock(isError=lambda: False, registers=[0x4366, 0x2000])
    client.write_registers.return_value = MagicMock(isError=lambda: False)
    return client
