"""Per-device, per-room measurement cache.

This is the only component allowed to hold room measurements. Callers get
copies; arbitration never sees the live containers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pyespresense._constants import DEFAULT_TIMEOUT_MS
from pyespresense.models.measurement import RoomMeasurement


def is_fresh(measurement: RoomMeasurement, now: int, ttl: int) -> bool:
    return now - measurement.timestamp < ttl


@dataclass
class _DeviceMeasurements:
    # Insertion ordered by arrival: re-recording a room moves it to the end.
    rooms: dict[str, RoomMeasurement] = field(default_factory=dict)
    last_update: int | None = None


class MeasurementStore:
    """Latest measurement per (device, room), with time-to-live filtering.

    Device ids are expected to be normalized by the caller.
    """

    def __init__(self) -> None:
        self._devices: dict[str, _DeviceMeasurements] = {}

    def _entry(self, device_id: str) -> _DeviceMeasurements:
        entry = self._devices.get(device_id)
        if entry is None:
            entry = _DeviceMeasurements()
            self._devices[device_id] = entry
        return entry

    def record(self, device_id: str, measurement: RoomMeasurement) -> list[RoomMeasurement]:
        """Store *measurement*, replacing any previous one for the same room.

        Returns the updated measurement set, oldest arrival first.
        """
        entry = self._entry(device_id)
        entry.rooms.pop(measurement.room, None)
        entry.rooms[measurement.room] = measurement
        entry.last_update = measurement.timestamp
        return list(entry.rooms.values())

    def preview(self, device_id: str, measurement: RoomMeasurement) -> list[RoomMeasurement]:
        """Measurement set as :meth:`record` would leave it, without storing anything."""
        entry = self._devices.get(device_id)
        rooms = dict(entry.rooms) if entry is not None else {}
        rooms.pop(measurement.room, None)
        rooms[measurement.room] = measurement
        return list(rooms.values())

    def measurements(self, device_id: str) -> list[RoomMeasurement]:
        entry = self._devices.get(device_id)
        if entry is None:
            return []
        return list(entry.rooms.values())

    def fresh_measurements(
        self,
        device_id: str,
        now: int,
        ttl: int = DEFAULT_TIMEOUT_MS,
    ) -> list[RoomMeasurement]:
        """Measurements younger than *ttl* milliseconds at *now*."""
        return [m for m in self.measurements(device_id) if is_fresh(m, now, ttl)]

    def expire(self, device_id: str, now: int, ttl: int = DEFAULT_TIMEOUT_MS) -> int:
        """Drop stale room measurements. Returns how many were removed."""
        entry = self._devices.get(device_id)
        if entry is None:
            return 0
        stale = [room for room, m in entry.rooms.items() if not is_fresh(m, now, ttl)]
        for room in stale:
            del entry.rooms[room]
        return len(stale)

    def last_update(self, device_id: str) -> int | None:
        entry = self._devices.get(device_id)
        return entry.last_update if entry is not None else None

    def forget(self, device_id: str) -> None:
        self._devices.pop(device_id, None)

    def clear(self) -> None:
        self._devices.clear()
