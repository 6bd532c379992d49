from __future__ import annotations

import logging

import pytest

from pyespresense._constants import ATTR_IDTYPE, ATTR_LASTUPDATE, DEFAULT_PURGE_TIMEOUT_MS
from pyespresense.state.lifecycle import LifecycleManager

from _sinks import FlakySink


def test_ensure_device_creates_once_with_normalized_id(sink: FlakySink) -> None:
    lifecycle = LifecycleManager(sink, ["AA:BB-CC"])

    device = lifecycle.ensure_device("AA:BB-CC", now=1_000, id_type="10")
    again = lifecycle.ensure_device("aa_bb_cc", now=2_000)

    assert device is not None
    assert again is device
    assert device.device_id == "aa_bb_cc"
    assert device.name == "ESPresense AA:BB-CC"
    handle = sink.find("aa_bb_cc")
    assert handle is not None
    assert handle.primary_attribute == "string_sensor.value"
    assert set(handle.capabilities) == {"presence_sensor", "string_sensor", "x_espresense"}
    assert handle.attributes[ATTR_IDTYPE] == "10"
    assert handle.attributes[ATTR_LASTUPDATE] == 1_000


def test_ensure_device_returns_none_when_sink_rejects(sink: FlakySink) -> None:
    sink.fail_creates = True
    lifecycle = LifecycleManager(sink, ["phone"])

    assert lifecycle.ensure_device("phone", now=0) is None
    assert sink.handles() == []
    assert lifecycle.devices == {}


def test_find_adopts_existing_sink_entity(sink: FlakySink) -> None:
    sink.ensure("phone", name="ESPresense phone", capabilities=(), attributes={ATTR_LASTUPDATE: 500})
    lifecycle = LifecycleManager(sink, ["phone"])

    device = lifecycle.find("PHONE")

    assert device is not None
    assert device.last_update == 500


def test_sweep_marks_long_silent_device_dead(sink: FlakySink) -> None:
    lifecycle = LifecycleManager(sink, ["z"])
    device = lifecycle.ensure_device("z", now=0)
    assert device is not None

    dead = lifecycle.sweep_dead(now=DEFAULT_PURGE_TIMEOUT_MS + 1, purge_timeout=DEFAULT_PURGE_TIMEOUT_MS)

    assert dead == ["z"]
    handle = sink.find("z")
    assert handle is not None and handle.dead is True
    assert sink.purge_dead() == ["z"]
    assert sink.find("z") is None


def test_sweep_keeps_recent_and_pseudo_entities(sink: FlakySink) -> None:
    lifecycle = LifecycleManager(sink, ["phone"])
    lifecycle.ensure_device("phone", now=DEFAULT_PURGE_TIMEOUT_MS)
    sink.add_pseudo_entity("system", "System")
    sink.add_pseudo_entity("controller_all", "All")
    sink.ensure("orphan", name="ESPresense orphan", capabilities=())

    dead = lifecycle.sweep_dead(now=DEFAULT_PURGE_TIMEOUT_MS + 1, purge_timeout=DEFAULT_PURGE_TIMEOUT_MS)

    # No recorded update at all counts as dead.
    assert dead == ["orphan"]
    assert sink.find("system") is not None and sink.find("system").dead is False
    assert sink.find("phone") is not None and sink.find("phone").dead is False


def test_unknown_device_logged_once(caplog: pytest.LogCaptureFixture, sink: FlakySink) -> None:
    lifecycle = LifecycleManager(sink, ["phone"])

    with caplog.at_level(logging.INFO, logger="pyespresense.state.lifecycle"):
        assert lifecycle.is_configured("watch") is False
        assert lifecycle.note_unknown("watch") is True
        assert lifecycle.note_unknown("watch") is False

    assert sum("watch not mapped" in r.getMessage() for r in caplog.records) == 1
