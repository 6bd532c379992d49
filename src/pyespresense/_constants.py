"""Internal constants shared across the library."""

from __future__ import annotations

import enum

NAMESPACE = "x_espresense"
NOT_HOME = "not_home"
RESTART_ACTION = "sys_system.restart"

# ------------------------------------------------------------------
# Defaults (milliseconds unless noted)
# ------------------------------------------------------------------

DEFAULT_INTERVAL_MS = 5_000
DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_PURGE_TIMEOUT_MS = 86_400_000 * 5
DEFAULT_RSSI_FOR_HOME = -120.0
DEFAULT_ERROR_INTERVAL_MS = 5_000
DEFAULT_TRANSPORT = "mqtt"
DEFAULT_TOPIC_PREFIX = "espresense/devices"

MAX_RETRY_DELAY_MS = 120_000
# Consecutive failures retried at the base interval before the delay grows.
RETRY_GRACE_FAILURES = 12
OFFLINE_AFTER_FAILURES = 3

# ------------------------------------------------------------------
# Device attributes
# ------------------------------------------------------------------

ATTR_PRESENCE = "presence_sensor.state"
ATTR_ROOM = "string_sensor.value"
ATTR_RAWDATA = f"{NAMESPACE}.rawdata"
ATTR_RSSI = f"{NAMESPACE}.rssi"
ATTR_RAW = f"{NAMESPACE}.raw"
ATTR_DISTANCE = f"{NAMESPACE}.distance"
ATTR_SPEED = f"{NAMESPACE}.speed"
ATTR_INTERVAL = f"{NAMESPACE}.interval"
ATTR_LASTUPDATE = f"{NAMESPACE}.lastupdate"
ATTR_IDTYPE = f"{NAMESPACE}.idtype"

DEVICE_CAPABILITIES: tuple[str, ...] = ("presence_sensor", "string_sensor", NAMESPACE)
PRIMARY_ATTRIBUTE = ATTR_ROOM

# Aggregate/system records that are never marked dead.
PSEUDO_ENTITY_IDS: frozenset[str] = frozenset({"controller_all", "system"})


class Ignored(enum.Enum):
    """Marker for attribute values that must not be written."""

    IGNORED = "@@IGNORED@@"


IGNORED = Ignored.IGNORED
