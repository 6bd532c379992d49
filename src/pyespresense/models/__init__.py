"""Data models for ESPresense reports and presence state."""

from pyespresense.models._base import PresenceBaseModel
from pyespresense.models.device import TrackedDevice
from pyespresense.models.measurement import PresenceDecision, RoomMeasurement
from pyespresense.models.report import BeaconReport

__all__ = [
    "BeaconReport",
    "PresenceBaseModel",
    "PresenceDecision",
    "RoomMeasurement",
    "TrackedDevice",
]
