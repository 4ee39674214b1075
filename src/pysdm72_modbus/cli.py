#!/usr/bin/env python3
"""Command line interface for pysdm72-modbus using Typer."""

import json
import logging
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__
from .auth import ensure_authorization
from .client import SafeSDM72Client
from .errors import (
    AuthorizationError,
    ConfigError,
    InvalidFieldError,
    ModbusDeviceError,
    ModbusIOError,
    PublishError,
    ReadOnlyFieldError,
    UnknownFieldError,
    ValueValidationError,
    WordsCountError,
)
from .fields import get_default_fieldmap
from .normalize import normalize_field_name
from .publisher import DEFAULT_CONFIG_FILE, MqttPublisher, load_mqtt_config
from .registers import MEASUREMENTS, MEASUREMENTS_BY_NAME
from .snapshots import jsonable
from .timing import check_rtu_delay
from .transport import DEFAULT_TCP_PORT, DEFAULT_TIMEOUT_S, connect_rtu, connect_tcp
from .values import (
    Address,
    AutoScrollTime,
    BacklightTime,
    BaudRate,
    MeasurementValue,
    ParityAndStopBit,
    Password,
    PulseConstant,
    PulseEnergyType,
    PulseWidth,
    SystemType,
)

app = typer.Typer(
    name="pysdm72",
    help="Read measurements and change settings of an Eastron SDM72 energy meter via Modbus RTU or TCP.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

DEFAULT_DEVICE = "COM1" if sys.platform == "win32" else "/dev/ttyUSB0"
DEFAULT_DELAY_S = 0.05
DEFAULT_POLL_INTERVAL_S = 2.0

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="Meter (or gateway) hostname for Modbus/TCP; RTU is used when omitted", envvar="PYSDM72_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port", envvar="PYSDM72_PORT"),
]
DeviceOption = Annotated[
    str,
    typer.Option("--device", "-d", help="Serial device for Modbus/RTU", envvar="PYSDM72_DEVICE"),
]
BaudRateOption = Annotated[
    int,
    typer.Option("--baud-rate", "-b", help="RTU baud rate, any of 1200, 2400, 4800, 9600, 19200", envvar="PYSDM72_BAUD_RATE"),
]
ParityOption = Annotated[
    ParityAndStopBit,
    typer.Option("--parity-and-stop-bit", help="RTU parity and stop bits", envvar="PYSDM72_PARITY"),
]
AddressOption = Annotated[
    int,
    typer.Option("--address", "-a", help="RS485 address (Modbus device id) from 1 to 247", envvar="PYSDM72_ADDRESS"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Request timeout in seconds", envvar="PYSDM72_TIMEOUT"),
]
DelayOption = Annotated[
    float,
    typer.Option("--delay", help="Delay between requests in seconds (raised to the RTU minimum)", envvar="PYSDM72_DELAY"),
]
PasswordOption = Annotated[
    Optional[int],
    typer.Option("--password", help="Password used when settings access is not yet authorized", envvar="PYSDM72_PASSWORD"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json/--no-json", help="Output as JSON or as human readable text"),
]


@dataclass(frozen=True)
class ConnectionOptions:
    """Global options shared by every command, collected by the app callback."""

    host: str | None = None
    port: int = DEFAULT_TCP_PORT
    device: str = DEFAULT_DEVICE
    baud_rate: int = int(BaudRate.B9600)
    parity_and_stop_bit: ParityAndStopBit = ParityAndStopBit.NO_PARITY_ONE_STOP_BIT
    address: int = 1
    timeout: float = DEFAULT_TIMEOUT_S
    delay: float = DEFAULT_DELAY_S
    password: int | None = None
    verbose: bool = False
    json_output: bool = True


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def parse_int(value: str) -> int:
    """Parse integer value from string, supporting 0x hex."""
    v = value.strip()
    if v.lower().startswith("0x"):
        return int(v, 16)
    return int(v)


def get_options(ctx: typer.Context) -> ConnectionOptions:
    return ctx.obj if isinstance(ctx.obj, ConnectionOptions) else ConnectionOptions()


def create_client(conn: ConnectionOptions) -> tuple[SafeSDM72Client, float]:
    """
    Open the transport and return the client plus the delay to use between
    requests. RTU delays are raised to the minimum for the baud rate.
    """
    address = Address(conn.address)
    if conn.host:
        transport = connect_tcp(conn.host, conn.port, address.value, conn.timeout)
        delay = conn.delay
    else:
        baud_rate = BaudRate.from_value(conn.baud_rate)
        transport = connect_rtu(conn.device, baud_rate, conn.parity_and_stop_bit, address.value, conn.timeout)
        delay = check_rtu_delay(conn.delay, baud_rate)
    return SafeSDM72Client(transport), delay


def password_of(conn: ConnectionOptions) -> Password | None:
    return Password(conn.password) if conn.password is not None else None


def emit(conn: ConnectionOptions, value: Any) -> None:
    """Print a snapshot or value as pretty JSON or as text."""
    if conn.json_output:
        typer.echo(json.dumps(value.to_dict() if hasattr(value, "to_dict") else value, indent=2))
    else:
        typer.echo(str(value))


@contextmanager
def handle_errors(conn: ConnectionOptions) -> Iterator[None]:
    """Map package errors to exit codes: 2 invalid input, 3 Modbus/device, 4 unexpected."""
    try:
        yield
    except typer.Exit:
        raise
    except (InvalidFieldError, UnknownFieldError, ReadOnlyFieldError) as e:
        typer.echo(f"Error: Invalid field: {e}", err=True)
        raise typer.Exit(2)
    except ValueValidationError as e:
        typer.echo(f"Error: Invalid value: {e}", err=True)
        raise typer.Exit(2)
    except AuthorizationError as e:
        typer.echo(f"Error: Authorization: {e}", err=True)
        raise typer.Exit(2)
    except ConfigError as e:
        typer.echo(f"Error: Configuration: {e}", err=True)
        raise typer.Exit(2)
    except ModbusDeviceError as e:
        typer.echo(f"Error: Device error: {e}", err=True)
        raise typer.Exit(3)
    except (ModbusIOError, WordsCountError) as e:
        typer.echo(f"Error: Connection/Modbus error: {e}", err=True)
        raise typer.Exit(3)
    except PublishError as e:
        typer.echo(f"Error: MQTT error: {e}", err=True)
        raise typer.Exit(3)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if conn.verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)


def change_setting(ctx: typer.Context, name: str, build: Any, label: str) -> None:
    """Authorize if needed, then write one setting and report the new value."""
    conn = get_options(ctx)
    with handle_errors(conn):
        value = build()
        client, delay = create_client(conn)
        with client:
            ensure_authorization(client, password_of(conn), delay)
            time.sleep(delay)
            client.write(name, value)
        typer.echo(f"{label} successfully changed to: {value}")


# ============================================================================
# Commands
# ============================================================================


@app.command()
def info(ctx: typer.Context) -> None:
    """
    Show package version and connection settings, then read the meter identity.
    """
    conn = get_options(ctx)
    info_data: dict[str, Any] = {"version": __version__}
    if conn.host:
        info_data["connection"] = {"type": "tcp", "host": conn.host, "port": conn.port, "address": conn.address}
    else:
        info_data["connection"] = {
            "type": "rtu",
            "device": conn.device,
            "baud_rate": conn.baud_rate,
            "parity_and_stop_bit": conn.parity_and_stop_bit.value,
            "address": conn.address,
        }

    try:
        client, delay = create_client(conn)
        with client:
            identity = {}
            for i, name in enumerate(("serial_number", "meter_code", "software_version")):
                if i:
                    time.sleep(delay)
                identity[name] = jsonable(client.read(name))
        info_data["meter"] = {"status": "connected", **identity}
    except (ModbusIOError, ModbusDeviceError, WordsCountError) as e:
        info_data["meter"] = {"status": "failed", "error": str(e)}
    except Exception as e:
        info_data["meter"] = {"status": "error", "error": str(e)}

    if conn.json_output:
        typer.echo(json.dumps(info_data, indent=2))
    else:
        typer.echo(f"pysdm72-modbus version: {info_data['version']}")
        typer.echo("Connection: " + ", ".join(f"{k}={v}" for k, v in info_data["connection"].items()))
        meter = info_data["meter"]
        if meter["status"] == "connected":
            typer.echo(f"Serial number: {meter['serial_number']}")
            typer.echo(f"Meter code: {meter['meter_code']}")
            typer.echo(f"Software version: {meter['software_version']}")
        else:
            typer.echo(f"Meter: {meter['status'].upper()} - {meter['error']}")


@app.command(name="read-all")
def read_all(ctx: typer.Context) -> None:
    """Read all values of the measured and calculated electrical quantities."""
    conn = get_options(ctx)
    with handle_errors(conn):
        client, delay = create_client(conn)
        with client:
            emit(conn, client.read_all(delay))


@app.command(name="read-all-settings")
def read_all_settings(ctx: typer.Context) -> None:
    """Read all settings."""
    conn = get_options(ctx)
    with handle_errors(conn):
        client, delay = create_client(conn)
        with client:
            emit(conn, client.read_all_settings(delay))


@app.command()
def read(
    ctx: typer.Context,
    field: Annotated[str, typer.Argument(help="Setting or measurement to read (e.g. baud_rate, l1_voltage)")],
) -> None:
    """Read a single setting or measured quantity."""
    conn = get_options(ctx)
    with handle_errors(conn):
        name = normalize_field_name(field)
        if name not in get_default_fieldmap() and name not in MEASUREMENTS_BY_NAME:
            raise UnknownFieldError(name)
        client, _ = create_client(conn)
        with client:
            if name in MEASUREMENTS_BY_NAME:
                value: Any = client.read_measurement(name)
            else:
                value = client.read(name)
        if conn.json_output:
            payload = value.rounded if isinstance(value, MeasurementValue) else jsonable(value)
            typer.echo(json.dumps({"field": name, "value": payload}))
        else:
            typer.echo(str(value))


@app.command()
def fields(ctx: typer.Context) -> None:
    """List the settings and measurements that can be read by name."""
    conn = get_options(ctx)
    rows: list[dict[str, Any]] = [
        {
            "name": f.name,
            "table": f.param.table.value,
            "address": f"{f.param.address:#06x}",
            "writable": f.writable,
            "description": f.description,
        }
        for f in get_default_fieldmap()
    ]
    rows += [
        {
            "name": m.name,
            "table": m.param.table.value,
            "address": f"{m.param.address:#06x}",
            "writable": False,
            "description": m.label,
        }
        for m in MEASUREMENTS
    ]
    if conn.json_output:
        typer.echo(json.dumps(rows, indent=2))
    else:
        for row in rows:
            mode = "rw" if row["writable"] else "r "
            typer.echo(f"{row['address']} {mode} {row['name']:<34} {row['description']}")


@app.command()
def password(
    ctx: typer.Context,
    value: Annotated[int, typer.Argument(help="Password from 0 to 9999", metavar="PASSWORD")],
) -> None:
    """Send the password to obtain authorization to change the settings."""
    conn = get_options(ctx)
    with handle_errors(conn):
        pwd = Password(value)
        client, _ = create_client(conn)
        with client:
            client.set_kppa(pwd)
        typer.echo("Password sent, settings access requested")


@app.command(name="set-wiring-type")
def set_wiring_type(
    ctx: typer.Context,
    wiring_type: Annotated[SystemType, typer.Argument(help="1p2w: 1 phase 2 wire, 3p4w: 3 phase 4 wire")],
) -> None:
    """Set the system (wiring) type."""
    change_setting(ctx, "system_type", lambda: wiring_type, "Wiring type")


@app.command(name="set-pulse-width")
def set_pulse_width(
    ctx: typer.Context,
    width: Annotated[int, typer.Argument(help="Pulse width in ms")],
) -> None:
    """Set the pulse width of the pulse output."""
    change_setting(ctx, "pulse_width", lambda: PulseWidth(width), "Pulse width")


@app.command(name="set-parity-and-stop-bit")
def set_parity_and_stop_bit(
    ctx: typer.Context,
    parity_and_stop_bit: Annotated[ParityAndStopBit, typer.Argument(help="np1b, ep1b, op1b or np2b")],
) -> None:
    """Set the parity and stop bits of the RS485 port."""
    change_setting(ctx, "parity_and_stop_bit", lambda: parity_and_stop_bit, "Parity and stop bit")


@app.command(name="set-baud-rate")
def set_baud_rate(
    ctx: typer.Context,
    baud_rate: Annotated[int, typer.Argument(help="Any of 1200, 2400, 4800, 9600, 19200")],
) -> None:
    """Set the baud rate of the RS485 port."""
    change_setting(ctx, "baud_rate", lambda: BaudRate.from_value(baud_rate), "Baud rate")


@app.command(name="set-address")
def set_address(
    ctx: typer.Context,
    address: Annotated[str, typer.Argument(help="New RS485 address from 1 to 247 (decimal or 0x hex)")],
) -> None:
    """Set the RS485 address."""
    conn = get_options(ctx)
    with handle_errors(conn):
        try:
            raw = parse_int(address)
        except ValueError as e:
            typer.echo(f"Error: Invalid value: {e}", err=True)
            raise typer.Exit(2)
        new_address = Address(raw)
        client, delay = create_client(conn)
        with client:
            ensure_authorization(client, password_of(conn), delay)
            time.sleep(delay)
            client.set_address(new_address)
        typer.echo(f"Address successfully changed to: {new_address}")


@app.command(name="set-pulse-constant")
def set_pulse_constant(
    ctx: typer.Context,
    pulse_constant: Annotated[int, typer.Argument(help="Impulses per kWh, any of 1000, 100, 10, 1")],
) -> None:
    """Set the pulse constant of the pulse output."""
    change_setting(ctx, "pulse_constant", lambda: PulseConstant.from_value(pulse_constant), "Pulse constant")


@app.command(name="set-password")
def set_password(
    ctx: typer.Context,
    new_password: Annotated[int, typer.Argument(help="New password from 0 to 9999", metavar="PASSWORD")],
) -> None:
    """Set a new settings password."""
    change_setting(ctx, "password", lambda: Password(new_password), "Password")


@app.command(name="set-auto-scroll-time")
def set_auto_scroll_time(
    ctx: typer.Context,
    seconds: Annotated[int, typer.Argument(help="Auto scroll time in seconds from 0 to 60")],
) -> None:
    """Set the display auto scroll time."""
    change_setting(ctx, "auto_scroll_time", lambda: AutoScrollTime(seconds), "Auto scroll time")


@app.command(name="set-backlight-time")
def set_backlight_time(
    ctx: typer.Context,
    minutes: Annotated[int, typer.Argument(help="Backlight time in minutes from 1 to 120, 0 = always on, 121 = always off")],
) -> None:
    """Set the display backlight time."""
    change_setting(ctx, "backlight_time", lambda: BacklightTime.from_value(minutes), "Backlight time")


@app.command(name="set-pulse-energy-type")
def set_pulse_energy_type(
    ctx: typer.Context,
    pulse_energy_type: Annotated[PulseEnergyType, typer.Argument(help="import, total or export")],
) -> None:
    """Set the energy quantity counted by the pulse output."""
    change_setting(ctx, "pulse_energy_type", lambda: pulse_energy_type, "Pulse energy type")


@app.command(name="reset-historical-data")
def reset_historical_data(ctx: typer.Context) -> None:
    """Reset the saved historical data of the meter."""
    conn = get_options(ctx)
    with handle_errors(conn):
        client, delay = create_client(conn)
        with client:
            ensure_authorization(client, password_of(conn), delay)
            time.sleep(delay)
            client.reset_historical_data()
        typer.echo("Historical data successfully reset")


@app.command()
def daemon(
    ctx: typer.Context,
    poll_interval: Annotated[float, typer.Option("--poll-interval", "-i", help="Polling interval in seconds")] = DEFAULT_POLL_INTERVAL_S,
    mqtt: Annotated[bool, typer.Option("--mqtt", help=f"Publish to MQTT using the config file (default {DEFAULT_CONFIG_FILE})")] = False,
    mqtt_config: Annotated[
        Optional[Path],
        typer.Option("--mqtt-config", envvar="PYSDM72_MQTT_CONFIG", help=f"MQTT YAML config file [default: {DEFAULT_CONFIG_FILE}]"),
    ] = None,
    mqtt_url: Annotated[
        Optional[str],
        typer.Option("--mqtt-url", envvar="PYSDM72_MQTT_URL", help="Publish to this MQTT broker (e.g. mqtt://localhost:1883) instead of stdout"),
    ] = None,
    mqtt_topic: Annotated[Optional[str], typer.Option("--mqtt-topic", envvar="PYSDM72_MQTT_TOPIC", help="MQTT base topic [default: sdm72]")] = None,
    mqtt_username: Annotated[Optional[str], typer.Option("--mqtt-username", envvar="PYSDM72_MQTT_USERNAME")] = None,
    mqtt_password: Annotated[Optional[str], typer.Option("--mqtt-password", envvar="PYSDM72_MQTT_PASSWORD")] = None,
    mqtt_qos: Annotated[Optional[int], typer.Option("--mqtt-qos", envvar="PYSDM72_MQTT_QOS", help="MQTT quality of service 0, 1 or 2 [default: 0]")] = None,
    once: Annotated[bool, typer.Option("--once", help="Poll once and exit")] = False,
) -> None:
    """
    Repeatedly read all measured values and print them or publish them to MQTT.

    MQTT settings come from the YAML config file; explicit --mqtt-* options
    override its values. Transport errors are logged and the next cycle is
    attempted. Press Ctrl+C to stop.
    """
    conn = get_options(ctx)

    if poll_interval <= 0:
        typer.echo(f"Error: Interval must be positive, got {poll_interval}", err=True)
        raise typer.Exit(2)

    publisher: MqttPublisher | None = None
    try:
        with handle_errors(conn):
            if mqtt or mqtt_config is not None or mqtt_url:
                config = load_mqtt_config(
                    mqtt_config,
                    url=mqtt_url,
                    username=mqtt_username,
                    password=mqtt_password,
                    topic=mqtt_topic,
                    qos=mqtt_qos,
                )
                connecting = MqttPublisher(config)
                connecting.connect()
                publisher = connecting

            client, delay = create_client(conn)
            with client:
                while True:
                    try:
                        values = client.read_all(delay)
                    except (ModbusIOError, ModbusDeviceError, WordsCountError) as e:
                        logger.error("Cannot read all values: %s", e)
                    else:
                        if publisher is not None:
                            publisher.publish_measurements(values, include_json=conn.json_output)
                        else:
                            emit(conn, values)
                    if once:
                        break
                    time.sleep(max(delay, poll_interval))
    except KeyboardInterrupt:
        typer.echo("\nStopped by user", err=True)
        raise typer.Exit(0)
    finally:
        if publisher is not None:
            publisher.close()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pysdm72-modbus {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    ctx: typer.Context,
    host: HostOption = None,
    port: PortOption = DEFAULT_TCP_PORT,
    device: DeviceOption = DEFAULT_DEVICE,
    baud_rate: BaudRateOption = int(BaudRate.B9600),
    parity_and_stop_bit: ParityOption = ParityAndStopBit.NO_PARITY_ONE_STOP_BIT,
    address: AddressOption = 1,
    timeout: TimeoutOption = DEFAULT_TIMEOUT_S,
    delay: DelayOption = DEFAULT_DELAY_S,
    password: PasswordOption = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = True,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """pysdm72 - Eastron SDM72 energy meter via Modbus RTU or TCP."""
    setup_logging(verbose)
    ctx.obj = ConnectionOptions(
        host=host,
        port=port,
        device=device,
        baud_rate=baud_rate,
        parity_and_stop_bit=parity_and_stop_bit,
        address=address,
        timeout=timeout,
        delay=delay,
        password=password,
        verbose=verbose,
        json_output=json_output,
    )


if __name__ == "__main__":
    app()
