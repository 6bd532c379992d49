"""Presence state machine.

A device is either ``Home(room)`` or ``Away``; its state lives in the sink
as attributes. Transitions are computed as attribute diffs and written in a
single call so a device is never left half-updated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pyespresense._constants import (
    ATTR_DISTANCE,
    ATTR_INTERVAL,
    ATTR_LASTUPDATE,
    ATTR_PRESENCE,
    ATTR_RAW,
    ATTR_RAWDATA,
    ATTR_ROOM,
    ATTR_RSSI,
    ATTR_SPEED,
    IGNORED,
    NOT_HOME,
)
from pyespresense.models.measurement import PresenceDecision, RoomMeasurement
from pyespresense.sink import DeviceHandle, PresenceSink

_logger = logging.getLogger(__name__)

AttributeGetter = Callable[[str], Any]


def decision_attributes(
    decision: PresenceDecision,
    measurements: Iterable[RoomMeasurement] | None = None,
) -> dict[str, Any]:
    """Project a decision (and optionally the room cache) onto attributes."""
    attributes: dict[str, Any] = {}
    if measurements is not None:
        # Newest first, as exposed to the host.
        attributes[ATTR_RAWDATA] = [m.as_attribute() for m in reversed(list(measurements))]
    attributes.update(
        {
            ATTR_PRESENCE: decision.is_home,
            ATTR_ROOM: decision.room,
            ATTR_RSSI: decision.rssi,
            ATTR_RAW: decision.raw,
            ATTR_DISTANCE: decision.distance,
            ATTR_SPEED: decision.speed,
            ATTR_INTERVAL: decision.interval,
            ATTR_LASTUPDATE: decision.timestamp,
        }
    )
    return attributes


def stale_attributes() -> dict[str, Any]:
    """Forced ``Away`` projection for a device that stopped reporting."""
    return {ATTR_PRESENCE: False, ATTR_ROOM: NOT_HOME}


def diff_attributes(get_attribute: AttributeGetter, updates: Mapping[str, Any]) -> dict[str, Any]:
    """Return the subset of *updates* that differs from the current values.

    Values equal to ``IGNORED`` (or its string form) are skipped. Equality is structural, so a
    rebuilt list of dicts with the same content is not a change.
    """
    diff: dict[str, Any] = {}
    for key, new_value in updates.items():
        if new_value is IGNORED or (isinstance(new_value, str) and new_value == IGNORED.value):
            continue
        if get_attribute(key) == new_value:
            continue
        diff[key] = new_value
    return diff


def is_away(get_attribute: AttributeGetter) -> bool:
    return get_attribute(ATTR_PRESENCE) is False and get_attribute(ATTR_ROOM) == NOT_HOME


def is_expired(last_update: int | None, now: int, timeout: int) -> bool:
    """Whether a device silent since *last_update* has exceeded *timeout*."""
    if last_update is None:
        # Never reported since adoption: left as is until the dead sweep retires it.
        return False
    return now - last_update > timeout


def apply_diff(sink: PresenceSink, handle: DeviceHandle, updates: Mapping[str, Any]) -> dict[str, Any]:
    """Diff *updates* against *handle* and write the changes atomically.

    Returns the attributes actually written (empty when nothing changed).
    """
    diff = diff_attributes(lambda key: sink.get_attribute(handle, key), updates)
    if not diff:
        return {}
    for key, value in diff.items():
        _logger.debug("[%s] %s: %s => %s", handle.device_id, key, value, sink.get_attribute(handle, key))
    sink.set_attributes_if_changed(handle, diff)
    return diff
