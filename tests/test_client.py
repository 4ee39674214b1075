"""Tests for SDM72Client over an in-memory meter."""

from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeMeter
from pysdm72_modbus import codec, registers
from pysdm72_modbus.client import SDM72Client
from pysdm72_modbus.errors import InvalidFieldError, ReadOnlyFieldError, UnknownFieldError
from pysdm72_modbus.types import RegisterTable
from pysdm72_modbus.values import (
    KPPA,
    Address,
    BacklightTime,
    BaudRate,
    MeterCode,
    Password,
    SystemType,
)

# ============================================================================
# Per-field access
# ============================================================================


class TestRead:
    def test_read_by_name(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        assert client.read("system_type") is SystemType.TYPE_3P4W
        assert meter.requests == [("read_holding_registers", 0x000A, 2)]

    def test_read_normalizes_name(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        assert client.read("Baud-Rate") is BaudRate.B9600
        assert client.read("wiring type") is SystemType.TYPE_3P4W

    def test_getitem(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        assert client["meter_code"] == MeterCode(0x0089)

    def test_unknown_field(self, meter: FakeMeter) -> None:
        with pytest.raises(UnknownFieldError):
            SDM72Client(meter).read("voltage_of_the_moon")
        assert meter.requests == []

    def test_invalid_field(self, meter: FakeMeter) -> None:
        with pytest.raises(InvalidFieldError):
            SDM72Client(meter).read("baud rate!")

    def test_read_measurement(self, meter: FakeMeter) -> None:
        param = registers.MEASUREMENTS_BY_NAME["frequency"].param
        meter.set(RegisterTable.INPUT_REGISTER, param.address, codec.encode(param, 49.98))
        value = SDM72Client(meter).read_measurement("frequency")
        assert value.rounded == 49.98
        assert meter.requests == [("read_input_registers", 0x0046, 2)]

    def test_read_unknown_measurement(self, meter: FakeMeter) -> None:
        with pytest.raises(UnknownFieldError):
            SDM72Client(meter).read_measurement("baud_rate")


class TestWrite:
    def test_write_by_name(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        client.write("backlight_time", BacklightTime.always_off())
        assert client.read("backlight_time") == BacklightTime.always_off()

    def test_setitem(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        client["baud_rate"] = BaudRate.B19200
        assert meter.holding[registers.BAUD_RATE.address] == codec.encode(registers.BAUD_RATE, 3)[0]

    def test_write_wrong_type(self, meter: FakeMeter) -> None:
        with pytest.raises(TypeError):
            SDM72Client(meter).write("baud_rate", 9600)
        assert meter.requests == []

    def test_write_read_only(self, meter: FakeMeter) -> None:
        with pytest.raises(ReadOnlyFieldError):
            SDM72Client(meter).write("serial_number", 1)

    def test_never_authorizes_on_its_own(self, meter: FakeMeter) -> None:
        SDM72Client(meter).write("system_type", SystemType.TYPE_1P2W)
        assert [r[0] for r in meter.requests] == ["write_registers"]


class TestCommands:
    def test_kppa_and_set_kppa(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        assert client.kppa() is KPPA.NOT_AUTHORIZED
        client.set_kppa(Password(1000))
        assert client.kppa() is KPPA.AUTHORIZED

    def test_set_kppa_wrong_password(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        client.set_kppa(Password(1234))
        assert client.kppa() is KPPA.NOT_AUTHORIZED

    def test_set_address_does_not_retarget_transport(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        client.set_address(Address(17))
        assert client.read("address") == Address(17)
        assert meter.device_id == 1

    def test_reset_historical_data(self) -> None:
        transport = MagicMock()
        SDM72Client(transport).reset_historical_data()
        transport.write_registers.assert_called_once_with(0xF010, [0x0003])


# ============================================================================
# Batched reads
# ============================================================================


class TestBatchedReads:
    def test_read_all_settings_requests(self, meter: FakeMeter) -> None:
        with patch("pysdm72_modbus.client.time.sleep") as sleep:
            settings = SDM72Client(meter).read_all_settings(delay=0.05)
        assert meter.requests == [
            ("read_holding_registers", 0x000A, 78),
            ("read_holding_registers", 0xFC00, 2),
            ("read_holding_registers", 0xFC02, 1),
            ("read_holding_registers", 0xFC84, 1),
        ]
        assert sleep.call_count == 3
        sleep.assert_called_with(0.05)
        assert settings.password == Password(1000)
        assert settings.serial_number.value == 123456

    def test_read_all_requests(self, meter: FakeMeter) -> None:
        param = registers.MEASUREMENTS_BY_NAME["export_total_energy_active"].param
        meter.set(RegisterTable.INPUT_REGISTER, param.address, codec.encode(param, 1234.5))
        with patch("pysdm72_modbus.client.time.sleep") as sleep:
            values = SDM72Client(meter).read_all(delay=0.01)
        assert [(r[1], r[2]) for r in meter.requests] == [(0x0000, 76), (0x00C8, 26), (0x0156, 56), (0x0500, 4)]
        assert sleep.call_count == 3
        assert values.export_total_energy_active == 1234.5

    def test_no_sleep_without_delay(self, meter: FakeMeter) -> None:
        with patch("pysdm72_modbus.client.time.sleep") as sleep:
            SDM72Client(meter).read_all()
        sleep.assert_not_called()

    def test_poll_iter(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        with patch("pysdm72_modbus.client.time.sleep") as sleep:
            it = client.poll_iter(interval_s=2.0, delay=0.05)
            next(it)
            next(it)
        assert len(meter.requests) == 8
        sleep.assert_any_call(2.0)

    def test_poll_iter_waits_at_least_delay(self, meter: FakeMeter) -> None:
        client = SDM72Client(meter)
        with patch("pysdm72_modbus.client.time.sleep") as sleep:
            it = client.poll_iter(interval_s=0.01, delay=0.5)
            next(it)
            next(it)
        assert sleep.call_args_list[3].args == (0.5,)


class TestLifecycle:
    def test_context_manager_closes_transport(self) -> None:
        transport = MagicMock()
        with SDM72Client(transport):
            pass
        transport.close.assert_called_once()

    def test_close_error_is_logged(self) -> None:
        transport = MagicMock()
        transport.close.side_effect = OSError("port gone")
        SDM72Client(transport).close()
