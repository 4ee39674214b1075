#!/usr/bin/env python3
"""Example: connect to an SDM72 over Modbus/TCP, read settings and values, change one setting."""

import sys

from pysdm72_modbus import SDM72Client, connect_tcp, ensure_authorization
from pysdm72_modbus.errors import (
    AuthorizationError,
    InvalidFieldError,
    ModbusDeviceError,
    ModbusIOError,
    UnknownFieldError,
)
from pysdm72_modbus.values import AutoScrollTime, Password


def main() -> None:
    host = "192.168.1.10"  # change to your RS485 gateway IP
    port = 502
    address = 1
    password = Password(1000)  # factory default
    delay = 0.05

    try:
        with SDM72Client(connect_tcp(host, port, device_id=address)) as meter:
            # Single settings by name (alternate spellings are accepted)
            print(f"baud_rate = {meter.read('baud_rate')}")
            print(f"wiring type = {meter.read('wiring-type')}")

            # One measured quantity
            print(f"frequency = {meter.read_measurement('frequency')}")

            # Batched reads
            print(meter.read_all_settings(delay))
            print(meter.read_all(delay))

            # Changing a setting needs authorization; pass --write to try it
            if "--write" in sys.argv:
                ensure_authorization(meter, password, delay)
                meter.write("auto_scroll_time", AutoScrollTime(10))
                print(f"auto_scroll_time = {meter.read('auto_scroll_time')}")
    except (InvalidFieldError, UnknownFieldError) as e:
        print(f"Invalid field: {e}", file=sys.stderr)
        sys.exit(1)
    except AuthorizationError as e:
        print(f"Authorization failed: {e}", file=sys.stderr)
        sys.exit(1)
    except (ModbusIOError, ModbusDeviceError) as e:
        print(f"Modbus/connection error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
