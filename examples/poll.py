#!/usr/bin/env python3
"""Example: poll all measured values of an RTU meter using poll_iter; graceful shutdown on Ctrl+C."""

import sys

from pysdm72_modbus import SDM72Client, connect_rtu
from pysdm72_modbus.errors import ModbusDeviceError, ModbusIOError, WordsCountError
from pysdm72_modbus.timing import check_rtu_delay
from pysdm72_modbus.values import BaudRate, ParityAndStopBit


def main() -> None:
    device = "/dev/ttyUSB0"  # change to your RS485 adapter
    baud_rate = BaudRate.B9600
    address = 1
    interval_s = 2.0
    delay = check_rtu_delay(0.0, baud_rate)

    try:
        transport = connect_rtu(device, baud_rate, ParityAndStopBit.NO_PARITY_ONE_STOP_BIT, device_id=address)
        with SDM72Client(transport) as meter:
            print(f"Polling {device} every {interval_s}s (Ctrl+C to stop)...")
            for values in meter.poll_iter(interval_s, delay):
                print(f"{values.total_power:.2f} W, {values.import_total_energy_active:.2f} kWh imported")
    except KeyboardInterrupt:
        print("\nStopped.")
    except (ModbusIOError, ModbusDeviceError, WordsCountError) as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
