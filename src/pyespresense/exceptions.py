"""Custom exception hierarchy for pyespresense."""

from __future__ import annotations


class PresenceError(Exception):
    """Base exception for all pyespresense errors."""


class PresenceConfigError(PresenceError):
    """Invalid or missing configuration."""


class TransportUnavailableError(PresenceError):
    """The report transport cannot be located or is not ready."""

    def __init__(self, message: str, *, transport: str = "") -> None:
        self.transport = transport
        super().__init__(message)


class MalformedReportError(PresenceError):
    """A report payload failed to parse or lacks required fields."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class SinkError(PresenceError):
    """The presence sink failed to create or update a device.

    Sink adapters raise this when an attribute write or device setup cannot
    be completed. Adapters must leave the device untouched when raising.
    """

    def __init__(self, message: str, *, device_id: str = "") -> None:
        self.device_id = device_id
        super().__init__(message)


class UnsupportedActionError(PresenceError):
    """A lifecycle command the controller does not implement."""
