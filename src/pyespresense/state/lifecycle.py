"""Tracked-device lifecycle.

The lifecycle manager owns the tracked-device set: it creates devices on
first sighting, keeps their liveness, and marks long-silent entities dead
so the sink can purge them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pyespresense._constants import (
    ATTR_IDTYPE,
    ATTR_LASTUPDATE,
    DEFAULT_PURGE_TIMEOUT_MS,
    DEVICE_CAPABILITIES,
    PRIMARY_ATTRIBUTE,
    PSEUDO_ENTITY_IDS,
)
from pyespresense.exceptions import SinkError
from pyespresense.ingestion.normalize import normalize_id
from pyespresense.models.device import TrackedDevice
from pyespresense.sink import DeviceHandle, PresenceSink

_logger = logging.getLogger(__name__)


def _as_timestamp(value: object) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


class LifecycleManager:
    """Create, track and retire devices on top of a :class:`PresenceSink`."""

    def __init__(self, sink: PresenceSink, configured_ids: Iterable[str] = ()) -> None:
        self._sink = sink
        self._configured = frozenset(normalize_id(raw_id) for raw_id in configured_ids)
        self._devices: dict[str, TrackedDevice] = {}
        self._unknown_logged: set[str] = set()

    @property
    def devices(self) -> dict[str, TrackedDevice]:
        return dict(self._devices)

    def is_configured(self, raw_id: str) -> bool:
        return normalize_id(raw_id) in self._configured

    def note_unknown(self, raw_id: str) -> bool:
        """Log an unconfigured device id the first time it shows up."""
        if raw_id in self._unknown_logged:
            return False
        self._unknown_logged.add(raw_id)
        _logger.info(
            "%s not mapped as handled device. Please add it to config if you want to manage it.",
            raw_id,
        )
        return True

    def _adopt(self, handle: DeviceHandle) -> TrackedDevice:
        last_update = _as_timestamp(self._sink.get_attribute(handle, ATTR_LASTUPDATE))
        device = TrackedDevice(
            device_id=handle.device_id,
            name=handle.name,
            handle=handle,
            created_at=last_update or 0,
            last_update=last_update,
            alive=not handle.dead,
            capabilities=handle.capabilities or DEVICE_CAPABILITIES,
        )
        self._devices[handle.device_id] = device
        return device

    def find(self, raw_id: str) -> TrackedDevice | None:
        """Tracked device for *raw_id*, adopting an existing sink entity."""
        key = normalize_id(raw_id)
        device = self._devices.get(key)
        if device is not None:
            return device
        handle = self._sink.find(key)
        if handle is None:
            return None
        return self._adopt(handle)

    def ensure_device(self, raw_id: str, *, now: int, id_type: str | None = None) -> TrackedDevice | None:
        """Look up *raw_id*, creating the device when it is not known yet.

        Returns ``None`` when the sink refuses to create the device.
        """
        device = self.find(raw_id)
        if device is not None:
            if not device.alive:
                self._revive(device)
            return device

        key = normalize_id(raw_id)
        name = f"ESPresense {raw_id}"
        attributes: dict[str, object] = {ATTR_LASTUPDATE: now}
        if id_type is not None:
            attributes[ATTR_IDTYPE] = id_type
        try:
            handle = self._sink.ensure(
                key,
                name=name,
                capabilities=DEVICE_CAPABILITIES,
                primary_attribute=PRIMARY_ATTRIBUTE,
                attributes=attributes,
            )
        except SinkError:
            _logger.error("Failed to create device %s (%s)", raw_id, key, exc_info=True)
            return None

        _logger.info("%s MAPPED as handled device", raw_id)
        device = TrackedDevice(device_id=key, name=name, handle=handle, created_at=now, last_update=now)
        self._devices[key] = device
        return device

    def _revive(self, device: TrackedDevice) -> None:
        try:
            self._sink.mark_dead(device.handle, False)
        except SinkError:
            _logger.error("Failed to mark %s alive", device.device_id, exc_info=True)
            return
        device.alive = True

    def touch(self, device: TrackedDevice, now: int) -> None:
        device.last_update = now
        device.alive = True

    def sweep_dead(self, now: int, purge_timeout: int = DEFAULT_PURGE_TIMEOUT_MS) -> list[str]:
        """Mark every sink entity dead or alive by how long it has been silent.

        Pseudo-entities are always alive. An entity that never recorded an
        update is dead. Returns the ids marked dead; purging them is left to
        the sink.
        """
        dead_ids: list[str] = []
        for handle in self._sink.handles():
            device_id = handle.device_id
            mark_dead = True
            last_update = _as_timestamp(self._sink.get_attribute(handle, ATTR_LASTUPDATE))
            tracked = self._devices.get(device_id)
            if tracked is not None and tracked.last_update is not None:
                last_update = max(last_update or 0, tracked.last_update)
            if last_update is not None:
                mark_dead = now - last_update > purge_timeout

            if device_id in PSEUDO_ENTITY_IDS:
                mark_dead = False

            try:
                self._sink.mark_dead(handle, mark_dead)
            except SinkError:
                _logger.error("Failed to update liveness of %s", device_id, exc_info=True)
                continue
            _logger.debug("[MarkDead] %s - Dead: %s", device_id, mark_dead)

            if tracked is not None:
                tracked.alive = not mark_dead
            if mark_dead:
                _logger.warning("Device %s (%s) no longer available, marking for removal", device_id, handle.name)
                self._devices.pop(device_id, None)
                dead_ids.append(device_id)
        return dead_ids
