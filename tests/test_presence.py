from __future__ import annotations

from typing import Any

from pyespresense._constants import (
    ATTR_LASTUPDATE,
    ATTR_PRESENCE,
    ATTR_RAWDATA,
    ATTR_ROOM,
    ATTR_RSSI,
    IGNORED,
)
from pyespresense.models.measurement import PresenceDecision, RoomMeasurement
from pyespresense.state.presence import (
    apply_diff,
    decision_attributes,
    diff_attributes,
    is_away,
    is_expired,
    stale_attributes,
)

from _sinks import FlakySink


def _decision(**overrides: Any) -> PresenceDecision:
    values: dict[str, Any] = {"is_home": True, "room": "kitchen", "rssi": -60.0, "timestamp": 1_000}
    values.update(overrides)
    return PresenceDecision(**values)


def test_decision_attributes_projects_telemetry_and_rawdata() -> None:
    measurements = [
        RoomMeasurement(room="kitchen", rssi=-60, timestamp=1_000),
        RoomMeasurement(room="office", rssi=-90, timestamp=1_100),
    ]

    attributes = decision_attributes(_decision(), measurements)

    assert attributes[ATTR_PRESENCE] is True
    assert attributes[ATTR_ROOM] == "kitchen"
    assert attributes[ATTR_RSSI] == -60.0
    assert attributes[ATTR_LASTUPDATE] == 1_000
    assert [entry["room"] for entry in attributes[ATTR_RAWDATA]] == ["office", "kitchen"]


def test_diff_skips_ignored_and_structurally_equal_values() -> None:
    current = {ATTR_RAWDATA: [{"room": "kitchen", "rssi": -60.0}], ATTR_ROOM: "kitchen"}

    diff = diff_attributes(
        current.get,
        {
            ATTR_RAWDATA: [{"room": "kitchen", "rssi": -60.0}],
            ATTR_ROOM: IGNORED,
            ATTR_PRESENCE: "@@IGNORED@@",
            ATTR_RSSI: -61.0,
        },
    )

    assert diff == {ATTR_RSSI: -61.0}


def test_apply_same_decision_twice_writes_once(sink: FlakySink) -> None:
    handle = sink.ensure("phone", name="ESPresense phone", capabilities=())
    attributes = decision_attributes(_decision())

    first = apply_diff(sink, handle, attributes)
    second = apply_diff(sink, handle, decision_attributes(_decision()))

    assert first[ATTR_ROOM] == "kitchen"
    assert second == {}
    assert len(sink.writes) == 1


def test_stale_projection_and_away_check() -> None:
    attributes = stale_attributes()

    assert attributes == {ATTR_PRESENCE: False, ATTR_ROOM: "not_home"}
    assert is_away(attributes.get) is True
    assert is_away({ATTR_PRESENCE: True, ATTR_ROOM: "kitchen"}.get) is False
    assert is_away({}.get) is False


def test_is_expired_is_strict_and_ignores_unknown() -> None:
    assert is_expired(0, 60_001, 60_000) is True
    assert is_expired(0, 60_000, 60_000) is False
    assert is_expired(None, 10**12, 60_000) is False
