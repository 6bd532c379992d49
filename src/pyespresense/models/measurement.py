"""Room measurement and presence decision models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from pyespresense.models.report import BeaconReport


class RoomMeasurement(BaseModel):
    """Latest observation of one device in one room."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    room: str
    rssi: float
    raw: float | None = None
    distance: float | None = None
    speed: float | None = None
    interval: float | None = None
    timestamp: int

    @classmethod
    def from_report(cls, report: BeaconReport, *, room: str, timestamp: int) -> RoomMeasurement:
        return cls(
            room=room,
            rssi=report.rssi,
            raw=report.raw,
            distance=report.distance,
            speed=report.speed,
            interval=report.interval,
            timestamp=timestamp,
        )

    def as_attribute(self) -> dict[str, Any]:
        """Plain dict stored in the device's ``rawdata`` attribute."""
        return {
            "room": self.room,
            "rssi": self.rssi,
            "raw": self.raw,
            "distance": self.distance,
            "speed": self.speed,
            "interval": self.interval,
            "lastupdate": self.timestamp,
        }


class PresenceDecision(BaseModel):
    """Outcome of room arbitration for one device.

    ``room`` is the chosen room label when ``is_home`` is true and the
    ``"not_home"`` sentinel otherwise. Telemetry fields and ``timestamp``
    are those of the chosen measurement.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_home: bool
    room: str
    rssi: float
    raw: float | None = None
    distance: float | None = None
    speed: float | None = None
    interval: float | None = None
    timestamp: int
