"""Tests for the asyncio clients, driven with asyncio.run."""

import asyncio
from unittest.mock import patch

from conftest import AsyncFakeMeter, FakeMeter
from pysdm72_modbus.aio import AsyncSafeSDM72Client, AsyncSDM72Client
from pysdm72_modbus.values import KPPA, Address, BaudRate, Password, SystemType


async def _no_sleep(_: float) -> None:
    return None


def test_read_and_write(async_meter: AsyncFakeMeter) -> None:
    async def scenario() -> tuple[BaudRate, SystemType]:
        client = AsyncSDM72Client(async_meter)
        await client.write("system_type", SystemType.TYPE_1P2W)
        return await client.read("baud_rate"), await client.read("system_type")

    assert asyncio.run(scenario()) == (BaudRate.B9600, SystemType.TYPE_1P2W)


def test_read_all_settings_sleeps_between_requests(async_meter: AsyncFakeMeter, meter: FakeMeter) -> None:
    with patch("pysdm72_modbus.aio.asyncio.sleep", side_effect=_no_sleep) as sleep:
        settings = asyncio.run(AsyncSDM72Client(async_meter).read_all_settings(delay=0.02))
    assert sleep.call_count == 3
    assert settings.meter_code.value == 0x0089
    assert len(meter.requests) == 4


def test_read_all(async_meter: AsyncFakeMeter, meter: FakeMeter) -> None:
    values = asyncio.run(AsyncSDM72Client(async_meter).read_all())
    assert values.l1_voltage == 0.0
    assert len(meter.requests) == 4


def test_kppa(async_meter: AsyncFakeMeter) -> None:
    async def scenario() -> tuple[KPPA, KPPA]:
        client = AsyncSDM72Client(async_meter)
        before = await client.kppa()
        await client.set_kppa(Password(1000))
        return before, await client.kppa()

    assert asyncio.run(scenario()) == (KPPA.NOT_AUTHORIZED, KPPA.AUTHORIZED)


def test_poll_iter(async_meter: AsyncFakeMeter, meter: FakeMeter) -> None:
    async def scenario() -> int:
        count = 0
        async for _ in AsyncSDM72Client(async_meter).poll_iter(interval_s=1.0):
            count += 1
            if count == 3:
                break
        return count

    with patch("pysdm72_modbus.aio.asyncio.sleep", side_effect=_no_sleep):
        assert asyncio.run(scenario()) == 3
    assert len(meter.requests) == 12


def test_safe_client_serializes_operations(async_meter: AsyncFakeMeter, meter: FakeMeter) -> None:
    async def scenario() -> None:
        first = AsyncSafeSDM72Client(async_meter)
        second = first.shared()
        assert second.lock is first.lock
        await asyncio.gather(*(c.read_all_settings(delay=0.001) for c in (first, second, first, second)))

    asyncio.run(scenario())
    assert len(meter.requests) == 16
    for i in range(0, 16, 4):
        assert [r[1] for r in meter.requests[i : i + 4]] == [0x000A, 0xFC00, 0xFC02, 0xFC84]


def test_safe_set_address_retargets_transport(async_meter: AsyncFakeMeter, meter: FakeMeter) -> None:
    async def scenario() -> Address:
        client = AsyncSafeSDM72Client(async_meter)
        await client.set_address(Address(5))
        return await client.read("address")

    assert asyncio.run(scenario()) == Address(5)
    assert meter.device_id == 5


def test_safe_write_address_retargets_transport(async_meter: AsyncFakeMeter, meter: FakeMeter) -> None:
    async def scenario() -> None:
        client = AsyncSafeSDM72Client(async_meter)
        await client.write("address", Address(17))
        await client.write("baud_rate", BaudRate.B19200)

    asyncio.run(scenario())
    assert meter.device_id == 17
    assert meter.requests[-1] == ("write_registers", 0x001C, 2)


def test_async_context_manager_closes() -> None:
    closed: list[bool] = []

    class Transport(AsyncFakeMeter):
        def close(self) -> None:
            closed.append(True)

    async def scenario() -> None:
        async with AsyncSDM72Client(Transport(FakeMeter())):
            pass

    asyncio.run(scenario())
    assert closed == [True]
