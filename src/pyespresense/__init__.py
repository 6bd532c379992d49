"""pyespresense - Room-level presence fusion for ESPresense BLE reports."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyespresense")
except PackageNotFoundError:
    __version__ = "0+local"
from pyespresense._constants import IGNORED, NOT_HOME
from pyespresense._mqtt import EspresenseMqttRuntime, ReportTransport
from pyespresense.config import PresenceConfig
from pyespresense.controller import PresenceController, retry_delay_ms
from pyespresense.exceptions import (
    MalformedReportError,
    PresenceConfigError,
    PresenceError,
    SinkError,
    TransportUnavailableError,
    UnsupportedActionError,
)
from pyespresense.ingestion.normalize import normalize_id
from pyespresense.models import BeaconReport, PresenceDecision, RoomMeasurement, TrackedDevice
from pyespresense.sink import DeviceHandle, InMemoryPresenceSink, PresenceSink
from pyespresense.state.events import PresenceChange, ReportEvent

__all__ = [
    "__version__",
    "BeaconReport",
    "DeviceHandle",
    "EspresenseMqttRuntime",
    "IGNORED",
    "InMemoryPresenceSink",
    "MalformedReportError",
    "NOT_HOME",
    "PresenceChange",
    "PresenceConfig",
    "PresenceConfigError",
    "PresenceController",
    "PresenceDecision",
    "PresenceError",
    "PresenceSink",
    "ReportEvent",
    "ReportTransport",
    "RoomMeasurement",
    "SinkError",
    "TrackedDevice",
    "TransportUnavailableError",
    "UnsupportedActionError",
    "normalize_id",
    "retry_delay_ms",
]
