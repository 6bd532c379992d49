"""Controller configuration for pyespresense."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pyespresense._constants import (
    DEFAULT_ERROR_INTERVAL_MS,
    DEFAULT_INTERVAL_MS,
    DEFAULT_PURGE_TIMEOUT_MS,
    DEFAULT_RSSI_FOR_HOME,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_TOPIC_PREFIX,
    DEFAULT_TRANSPORT,
)
from pyespresense.exceptions import PresenceConfigError


def _split_devices(value: str | Iterable[str] | None) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[str] = value.split(",")
    else:
        items = value
    return tuple(item.strip() for item in items if str(item).strip())


def _coerce(name: str, value: Any, cast: Callable[[Any], Any]) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise PresenceConfigError(f"{name} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class PresenceConfig:
    """Controller configuration.

    Parameters
    ----------
    devices : tuple of str
        Device ids (as published by ESPresense) to track. Reports for any
        other id are ignored.
    interval : int
        Milliseconds between staleness sweeps.
    timeout : int
        Milliseconds after which a room measurement is stale and a silent
        device is forced away.
    purge_timeout : int
        Milliseconds of silence after which a device is marked dead.
        Defaults to 5 days.
    rssi_for_home : float
        Minimum signal strength of the chosen room for the device to be
        considered home (inclusive).
    error_interval : int
        Base retry delay in milliseconds after a transport failure.
    transport : str
        Name of the transport collaborator providing reports.
    topic_prefix : str
        Topic prefix of per-device report topics.
    queue_size : int
        Capacity of the inbound report queue.
    mqtt_host, mqtt_port, mqtt_username, mqtt_password, mqtt_keepalive
        Broker settings for the bundled MQTT runtime.
    """

    devices: tuple[str, ...] = ()
    interval: int = DEFAULT_INTERVAL_MS
    timeout: int = DEFAULT_TIMEOUT_MS
    purge_timeout: int = DEFAULT_PURGE_TIMEOUT_MS
    rssi_for_home: float = DEFAULT_RSSI_FOR_HOME
    error_interval: int = DEFAULT_ERROR_INTERVAL_MS
    transport: str = DEFAULT_TRANSPORT
    topic_prefix: str = DEFAULT_TOPIC_PREFIX
    queue_size: int = 1000
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        object.__setattr__(self, "devices", _split_devices(self.devices))
        for name in ("interval", "timeout", "purge_timeout", "error_interval", "queue_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise PresenceConfigError(f"{name} must be a positive integer, got {value!r}")
        if not self.transport:
            raise PresenceConfigError("transport must be non-empty")

    def topic_for(self, device_id: str) -> str:
        """Wildcard subscription topic covering every room of *device_id*."""
        return f"{self.topic_prefix}/{device_id}/#"

    @classmethod
    def from_env(cls, **overrides: Any) -> PresenceConfig:
        """Create configuration from ``ESPRESENSE_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_INT_MAP = {
            "ESPRESENSE_INTERVAL": "interval",
            "ESPRESENSE_TIMEOUT": "timeout",
            "ESPRESENSE_PURGE_TIMEOUT": "purge_timeout",
            "ESPRESENSE_ERROR_INTERVAL": "error_interval",
            "ESPRESENSE_QUEUE_SIZE": "queue_size",
            "ESPRESENSE_MQTT_PORT": "mqtt_port",
            "ESPRESENSE_MQTT_KEEPALIVE": "mqtt_keepalive",
        }
        _ENV_STR_MAP = {
            "ESPRESENSE_TRANSPORT": "transport",
            "ESPRESENSE_TOPIC_PREFIX": "topic_prefix",
            "ESPRESENSE_MQTT_HOST": "mqtt_host",
            "ESPRESENSE_MQTT_USERNAME": "mqtt_username",
            "ESPRESENSE_MQTT_PASSWORD": "mqtt_password",
        }

        config_kwargs: dict[str, Any] = {}
        devices_env = env.get("ESPRESENSE_DEVICES")
        if devices_env is not None:
            config_kwargs["devices"] = _split_devices(devices_env)
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = _coerce(env_key, val, int)
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        rssi_env = env.get("ESPRESENSE_RSSI_FOR_HOME")
        if rssi_env is not None:
            config_kwargs["rssi_for_home"] = _coerce("ESPRESENSE_RSSI_FOR_HOME", rssi_env, float)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PresenceConfig:
        """Create configuration from a host controller config mapping.

        Accepts the host's key names (``purgeTimeout``, ``rssiForHome``,
        ``mqtt_controller``, ...) as well as the field names.
        """
        _HOST_KEY_MAP = {
            "purgeTimeout": "purge_timeout",
            "rssiForHome": "rssi_for_home",
            "mqtt_controller": "transport",
        }
        _NUMERIC = {
            "interval": int,
            "timeout": int,
            "purge_timeout": int,
            "error_interval": int,
            "queue_size": int,
            "mqtt_port": int,
            "mqtt_keepalive": int,
            "rssi_for_home": float,
        }
        field_names = {f.name for f in dataclasses.fields(cls)}

        config_kwargs: dict[str, Any] = {}
        for key, value in data.items():
            field_name = _HOST_KEY_MAP.get(key, key)
            if field_name not in field_names or value is None:
                continue
            cast = _NUMERIC.get(field_name)
            config_kwargs[field_name] = _coerce(key, value, cast) if cast is not None else value
        return cls(**config_kwargs)
