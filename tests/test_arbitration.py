from __future__ import annotations

from pyespresense.models.measurement import RoomMeasurement
from pyespresense.state.arbitration import best_measurement, choose
from pyespresense.state.store import MeasurementStore


def _m(room: str, rssi: float, ts: int) -> RoomMeasurement:
    return RoomMeasurement(room=room, rssi=rssi, timestamp=ts, distance=1.0)


def test_stronger_but_older_reading_is_kept_over_weaker_newer_one() -> None:
    store = MeasurementStore()
    store.record("x", _m("kitchen", -60, 0))
    office = _m("office", -90, 100)
    store.record("x", office)

    fresh = store.fresh_measurements("x", now=200, ttl=60_000)
    decision = choose(fresh, office)

    assert len(fresh) == 2
    assert decision.room == "kitchen"
    assert decision.is_home is True
    assert decision.rssi == -60


def test_stronger_and_newer_reading_takes_over() -> None:
    fresh = [_m("kitchen", -80, 0), _m("office", -60, 100)]

    assert choose(fresh, fresh[-1]).room == "office"


def test_equal_timestamp_does_not_displace_best() -> None:
    fresh = [_m("kitchen", -80, 100), _m("office", -60, 100)]

    assert best_measurement(fresh) == fresh[0]


def test_below_threshold_is_not_home() -> None:
    incoming = _m("garage", -130, 0)

    decision = choose([incoming], incoming, rssi_for_home=-120)

    assert decision.is_home is False
    assert decision.room == "not_home"
    assert decision.rssi == -130


def test_threshold_boundary_is_home() -> None:
    incoming = _m("garage", -120, 0)

    assert choose([incoming], incoming, rssi_for_home=-120).is_home is True


def test_empty_fresh_set_falls_back_to_incoming() -> None:
    incoming = _m("hall", -70, 5)

    decision = choose([], incoming)

    assert decision.room == "hall"
    assert decision.timestamp == 5
    assert decision.distance == 1.0
