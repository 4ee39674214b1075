"""
Register transport over pymodbus.

The transport reads and writes raw register words for one device id and
maps every pymodbus failure into the package's error taxonomy. Connection
setup is left to pymodbus; ``connect_tcp`` / ``connect_rtu`` only call its
client constructors.
"""

import logging
from collections.abc import Sequence
from typing import Any

from pymodbus.client import (
    AsyncModbusSerialClient,
    AsyncModbusTcpClient,
    ModbusSerialClient,
    ModbusTcpClient,
)
from pymodbus.exceptions import ModbusException as PymodbusException
from pymodbus.pdu import ExceptionResponse

from .errors import ModbusDeviceError, ModbusIOError
from .types import RegisterTable
from .values import BaudRate, ParityAndStopBit

logger = logging.getLogger(__name__)

DEFAULT_TCP_PORT = 502
DEFAULT_TIMEOUT_S = 0.2


def _check_response(rr: Any, table: str, address: int) -> None:
    """Raise for an error response: device exception PDU or any other failure."""
    if isinstance(rr, ExceptionResponse):
        raise ModbusDeviceError(
            f"Device returned exception code {rr.exception_code} for {table} at {address:#06x}",
            exception_code=rr.exception_code,
            table=table,
            address=address,
        )
    if rr.isError():
        raise ModbusIOError(str(rr), table=table, address=address)


def _registers(rr: Any, table: str, address: int) -> list[int]:
    _check_response(rr, table, address)
    registers = getattr(rr, "registers", None)
    if registers is None:
        raise ModbusIOError("Empty register response", table=table, address=address)
    return [int(word) for word in registers]


class ModbusTransport:
    """
    Blocking register transport wrapping a pymodbus client.

    ``device_id`` is public and mutable: changing it retargets every later
    request.
    """

    def __init__(self, client: ModbusTcpClient | ModbusSerialClient, device_id: int = 1) -> None:
        self.client = client
        self.device_id = device_id

    def connect(self) -> None:
        if not self.client.connect():
            raise ModbusIOError(f"Failed to connect to {self.client}")

    def close(self) -> None:
        self.client.close()

    def read(self, table: RegisterTable, address: int, count: int) -> list[int]:
        """Read ``count`` words of ``table`` starting at ``address``."""
        logger.debug("read %s address=%#06x count=%d device_id=%d", table.value, address, count, self.device_id)
        try:
            if table == RegisterTable.HOLDING_REGISTER:
                rr = self.client.read_holding_registers(address, count=count, device_id=self.device_id)
            else:
                rr = self.client.read_input_registers(address, count=count, device_id=self.device_id)
        except PymodbusException as e:
            raise ModbusIOError(str(e), table=table.value, address=address, cause=e) from e
        return _registers(rr, table.value, address)

    def read_holding_registers(self, address: int, count: int) -> list[int]:
        return self.read(RegisterTable.HOLDING_REGISTER, address, count)

    def read_input_registers(self, address: int, count: int) -> list[int]:
        return self.read(RegisterTable.INPUT_REGISTER, address, count)

    def write_registers(self, address: int, words: Sequence[int]) -> None:
        """Write ``words`` to consecutive holding registers starting at ``address``."""
        table = RegisterTable.HOLDING_REGISTER.value
        logger.debug("write %s address=%#06x words=%s device_id=%d", table, address, list(words), self.device_id)
        try:
            rr = self.client.write_registers(address, list(words), device_id=self.device_id)
        except PymodbusException as e:
            raise ModbusIOError(str(e), table=table, address=address, cause=e) from e
        _check_response(rr, table, address)


class AsyncModbusTransport:
    """Cooperative twin of ModbusTransport wrapping a pymodbus asyncio client."""

    def __init__(self, client: AsyncModbusTcpClient | AsyncModbusSerialClient, device_id: int = 1) -> None:
        self.client = client
        self.device_id = device_id

    async def connect(self) -> None:
        if not await self.client.connect():
            raise ModbusIOError(f"Failed to connect to {self.client}")

    def close(self) -> None:
        self.client.close()

    async def read(self, table: RegisterTable, address: int, count: int) -> list[int]:
        logger.debug("read %s address=%#06x count=%d device_id=%d", table.value, address, count, self.device_id)
        try:
            if table == RegisterTable.HOLDING_REGISTER:
                rr = await self.client.read_holding_registers(address, count=count, device_id=self.device_id)
            else:
                rr = await self.client.read_input_registers(address, count=count, device_id=self.device_id)
        except PymodbusException as e:
            raise ModbusIOError(str(e), table=table.value, address=address, cause=e) from e
        return _registers(rr, table.value, address)

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        return await self.read(RegisterTable.HOLDING_REGISTER, address, count)

    async def read_input_registers(self, address: int, count: int) -> list[int]:
        return await self.read(RegisterTable.INPUT_REGISTER, address, count)

    async def write_registers(self, address: int, words: Sequence[int]) -> None:
        table = RegisterTable.HOLDING_REGISTER.value
        logger.debug("write %s address=%#06x words=%s device_id=%d", table, address, list(words), self.device_id)
        try:
            rr = await self.client.write_registers(address, list(words), device_id=self.device_id)
        except PymodbusException as e:
            raise ModbusIOError(str(e), table=table, address=address, cause=e) from e
        _check_response(rr, table, address)


# ============================================================================
# Connection helpers
# ============================================================================


def connect_tcp(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    device_id: int = 1,
    timeout: float = DEFAULT_TIMEOUT_S,
) -> ModbusTransport:
    """Create a Modbus/TCP transport and connect it."""
    logger.debug("Open TCP %s:%d device_id=%d", host, port, device_id)
    transport = ModbusTransport(ModbusTcpClient(host=host, port=port, timeout=timeout), device_id)
    transport.connect()
    return transport


def connect_rtu(
    port: str,
    baud_rate: BaudRate = BaudRate.B9600,
    parity_and_stop_bit: ParityAndStopBit = ParityAndStopBit.NO_PARITY_ONE_STOP_BIT,
    device_id: int = 1,
    timeout: float = DEFAULT_TIMEOUT_S,
) -> ModbusTransport:
    """Create a Modbus/RTU transport on a serial device and connect it."""
    logger.debug(
        "Open RTU %s baud_rate=%d parity_and_stop_bit=%s device_id=%d",
        port,
        int(baud_rate),
        parity_and_stop_bit.value,
        device_id,
    )
    client = ModbusSerialClient(
        port=port,
        baudrate=int(baud_rate),
        bytesize=8,
        parity=parity_and_stop_bit.parity,
        stopbits=parity_and_stop_bit.stopbits,
        timeout=timeout,
    )
    transport = ModbusTransport(client, device_id)
    transport.connect()
    return transport


async def connect_tcp_async(
    host: str,
    port: int = DEFAULT_TCP_PORT,
    device_id: int = 1,
    timeout: float = DEFAULT_TIMEOUT_S,
) -> AsyncModbusTransport:
    logger.debug("Open async TCP %s:%d device_id=%d", host, port, device_id)
    transport = AsyncModbusTransport(AsyncModbusTcpClient(host=host, port=port, timeout=timeout), device_id)
    await transport.connect()
    return transport


async def connect_rtu_async(
    port: str,
    baud_rate: BaudRate = BaudRate.B9600,
    parity_and_stop_bit: ParityAndStopBit = ParityAndStopBit.NO_PARITY_ONE_STOP_BIT,
    device_id: int = 1,
    timeout: float = DEFAULT_TIMEOUT_S,
) -> AsyncModbusTransport:
    logger.debug("Open async RTU %s baud_rate=%d device_id=%d", port, int(baud_rate), device_id)
    client = AsyncModbusSerialClient(
        port=port,
        baudrate=int(baud_rate),
        bytesize=8,
        parity=parity_and_stop_bit.parity,
        stopbits=parity_and_stop_bit.stopbits,
        timeout=timeout,
    )
    transport = AsyncModbusTransport(client, device_id)
    await transport.connect()
    return transport
