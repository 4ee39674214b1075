"""MqttPublisher: publish measurement snapshots to an MQTT broker with paho-mqtt."""

import json
import logging
import random
import re
import string
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt
import yaml

from .errors import ConfigError, PublishError
from .registers import MEASUREMENTS
from .snapshots import AllValues
from .values import round2

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "sdm72"
DEFAULT_MQTT_PORT = 1883
DEFAULT_KEEP_ALIVE_S = 20
DEFAULT_MQTT_TIMEOUT_S = 5.0
DEFAULT_CONFIG_FILE = "mqtt_config.yml"

# Topic suffixes are the display labels with spaces replaced by underscores,
# except where the label holds characters that do not belong in a topic.
_TOPIC_OVERRIDES: dict[str, str] = {"net_kwh": "Net_kWh_Import_-_Export"}


def _default_client_id() -> str:
    suffix = "".join(random.choices(string.ascii_letters + string.digits, k=8))
    return f"sdm72-{suffix}"


def measurement_topic(name: str, label: str) -> str:
    """Topic suffix for one measured quantity, e.g. ``L1_Voltage``."""
    return _TOPIC_OVERRIDES.get(name, label.replace(" ", "_"))


@dataclass(frozen=True)
class MqttConfig:
    """Broker connection and publishing settings."""

    url: str
    username: str | None = None
    password: str | None = None
    topic: str = DEFAULT_TOPIC
    qos: int = 0
    client_id: str = field(default_factory=_default_client_id)
    keep_alive_s: int = DEFAULT_KEEP_ALIVE_S
    timeout_s: float = DEFAULT_MQTT_TIMEOUT_S

    def __post_init__(self) -> None:
        if self.qos not in (0, 1, 2):
            raise ValueError(f"MQTT QoS must be 0, 1 or 2, got {self.qos}")
        if self.timeout_s <= 0:
            raise ValueError(f"MQTT timeout must be positive, got {self.timeout_s}")

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or "localhost"

    @property
    def port(self) -> int:
        return urlsplit(self.url).port or DEFAULT_MQTT_PORT


# YAML keys of the config file and the MqttConfig fields they fill
_CONFIG_KEYS: dict[str, str] = {
    "url": "url",
    "username": "username",
    "password": "password",
    "topic": "topic",
    "qos": "qos",
    "client_id": "client_id",
    "keep_alive_interval": "keep_alive_s",
    "timeout": "timeout_s",
}

_DURATION_UNITS: dict[str, float] = {"ms": 0.001, "s": 1.0, "sec": 1.0, "m": 60.0, "min": 60.0, "h": 3600.0}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")


def parse_duration(value: Any) -> float:
    """Seconds from a number or a duration string such as ``5s``, ``500ms`` or ``1m 30s``."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower()
    parts = _DURATION_PART.findall(text)
    if not parts or _DURATION_PART.sub("", text).strip():
        raise ValueError(f"Invalid duration: {value!r}")
    total = 0.0
    for number, unit in parts:
        if unit not in _DURATION_UNITS:
            raise ValueError(f"Invalid duration unit {unit!r} in {value!r}")
        total += float(number) * _DURATION_UNITS[unit]
    return total


def _build_config(settings: dict[str, Any], source: str, path: str | None = None) -> MqttConfig:
    for key in ("url", "username", "password", "topic", "client_id"):
        if settings.get(key) is not None:
            settings[key] = str(settings[key])
    if not settings.get("url"):
        raise ConfigError(f"No MQTT broker url in {source}", path=path)
    try:
        if "keep_alive_s" in settings:
            settings["keep_alive_s"] = int(parse_duration(settings["keep_alive_s"]))
        if "timeout_s" in settings:
            settings["timeout_s"] = parse_duration(settings["timeout_s"])
        if "qos" in settings:
            settings["qos"] = int(settings["qos"])
        return MqttConfig(**settings)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid MQTT settings in {source}: {e}", path=path) from e


def load_mqtt_config(path: str | Path | None = None, **overrides: Any) -> MqttConfig:
    """
    Build an MqttConfig from a YAML file, with ``overrides`` (None values
    ignored) taking precedence over the file.

    Without ``path`` the default ``mqtt_config.yml`` is read when it exists;
    otherwise the overrides alone must name the broker url. Raises ConfigError
    for a missing, unreadable or invalid file.
    """
    explicit = {key: value for key, value in overrides.items() if value is not None}
    if path is None:
        if not Path(DEFAULT_CONFIG_FILE).exists():
            if not explicit.get("url"):
                raise ConfigError(
                    f"Cannot open config file '{DEFAULT_CONFIG_FILE}' and no broker url given",
                    path=DEFAULT_CONFIG_FILE,
                )
            return _build_config(explicit, "command line options")
        path = DEFAULT_CONFIG_FILE

    config_path = Path(path)
    logger.debug("Loading MQTT config file %s", config_path)
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot open config file '{config_path}': {e}", path=str(config_path)) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot read config file '{config_path}': {e}", path=str(config_path)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{config_path}' must hold a mapping", path=str(config_path))

    settings: dict[str, Any] = {}
    for key, value in data.items():
        if key not in _CONFIG_KEYS:
            logger.debug("Ignoring unknown key %r in %s", key, config_path)
            continue
        settings[_CONFIG_KEYS[key]] = value
    settings.update(explicit)
    return _build_config(settings, f"config file '{config_path}'", str(config_path))


class MqttPublisher:
    """
    Publishes each measured quantity to ``{topic}/{Label}`` and, unless
    disabled, the whole snapshot as JSON to ``{topic}/JSON``. Values are
    rounded to two decimals.
    """

    def __init__(self, config: MqttConfig, client: Any | None = None) -> None:
        self._config = config
        self._client = client if client is not None else self._create_client()

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self._config.client_id,
            protocol=mqtt.MQTTv311,
        )
        if self._config.username is not None:
            client.username_pw_set(self._config.username, self._config.password)
        client.connect_timeout = self._config.timeout_s
        return client

    @property
    def config(self) -> MqttConfig:
        return self._config

    def connect(self) -> None:
        """Connect to the broker and start the network loop."""
        logger.info(
            "Connecting to MQTT broker %s:%d with client_id %s",
            self._config.host,
            self._config.port,
            self._config.client_id,
        )
        try:
            self._client.connect(self._config.host, self._config.port, self._config.keep_alive_s)
        except OSError as e:
            raise PublishError(f"Cannot connect to MQTT broker {self._config.url}: {e}", cause=e) from e
        self._client.loop_start()
        logger.info("Connected to MQTT broker")

    def close(self) -> None:
        try:
            self._client.loop_stop()
            self._client.disconnect()
        except Exception as e:
            logger.warning("Error closing MQTT client: %s", e)

    def __enter__(self) -> "MqttPublisher":
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def publish(self, suffix: str, payload: str) -> None:
        topic = f"{self._config.topic}/{suffix}"
        info = self._client.publish(topic, payload, qos=self._config.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(f"Cannot publish MQTT message to {topic}: {mqtt.error_string(info.rc)}", topic=topic)
        try:
            info.wait_for_publish(self._config.timeout_s)
        except (RuntimeError, ValueError) as e:
            raise PublishError(f"Cannot publish MQTT message to {topic}: {e}", topic=topic, cause=e) from e
        if not info.is_published():
            raise PublishError(
                f"Timed out after {self._config.timeout_s}s publishing MQTT message to {topic}", topic=topic
            )

    def publish_measurements(self, values: AllValues, include_json: bool = True) -> None:
        """Publish one snapshot: one message per quantity, then the JSON document."""
        for m in MEASUREMENTS:
            self.publish(measurement_topic(m.name, m.label), str(round2(getattr(values, m.name))))
        if include_json:
            self.publish("JSON", json.dumps(values.to_dict()))
        logger.debug("Published %d measurements to %s", len(MEASUREMENTS), self._config.topic)
