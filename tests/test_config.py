from __future__ import annotations

import pytest

from pyespresense.config import PresenceConfig
from pyespresense.exceptions import PresenceConfigError


def test_defaults() -> None:
    config = PresenceConfig()

    assert config.interval == 5_000
    assert config.timeout == 60_000
    assert config.purge_timeout == 432_000_000
    assert config.rssi_for_home == -120.0
    assert config.error_interval == 5_000
    assert config.transport == "mqtt"
    assert config.topic_for("irk:abc") == "espresense/devices/irk:abc/#"


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ESPRESENSE_DEVICES", "phone, watch ,")
    monkeypatch.setenv("ESPRESENSE_TIMEOUT", "30000")
    monkeypatch.setenv("ESPRESENSE_RSSI_FOR_HOME", "-95.5")
    monkeypatch.setenv("ESPRESENSE_MQTT_HOST", "broker.lan")

    config = PresenceConfig.from_env(timeout=45_000)

    assert config.devices == ("phone", "watch")
    assert config.timeout == 45_000
    assert config.rssi_for_home == -95.5
    assert config.mqtt_host == "broker.lan"


def test_from_env_rejects_non_numeric(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ESPRESENSE_INTERVAL", "soon")

    with pytest.raises(PresenceConfigError):
        PresenceConfig.from_env()


def test_from_mapping_accepts_host_keys() -> None:
    config = PresenceConfig.from_mapping(
        {
            "devices": ["phone"],
            "purgeTimeout": "86400000",
            "rssiForHome": -100,
            "mqtt_controller": "broker",
            "interval": 1_000,
            "unrelated": True,
        }
    )

    assert config.devices == ("phone",)
    assert config.purge_timeout == 86_400_000
    assert config.rssi_for_home == -100.0
    assert config.transport == "broker"
    assert config.interval == 1_000


@pytest.mark.parametrize("field", ["interval", "timeout", "purge_timeout", "error_interval", "queue_size"])
def test_non_positive_durations_rejected(field: str) -> None:
    with pytest.raises(PresenceConfigError):
        PresenceConfig(**{field: 0})  # type: ignore[arg-type]
