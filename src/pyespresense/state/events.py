"""Normalized report and state-change events.

Transports convert inbound messages into :class:`ReportEvent`s; the
controller emits :class:`PresenceChange`s after applying a diff.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyespresense.ingestion.normalize import now_ms
from pyespresense.models.report import BeaconReport


class ReportEvent(BaseModel):
    """A parsed report waiting to be fused."""

    model_config = ConfigDict(frozen=True)

    topic: str
    room: str
    report: BeaconReport
    received_at: int = Field(default_factory=now_ms, description="Epoch milliseconds at receipt")

    @field_validator("room")
    @classmethod
    def _normalize_room(cls, value: str) -> str:
        room = value.strip().lower()
        if not room:
            raise ValueError("room must be non-empty")
        return room

    @property
    def device_id(self) -> str:
        return self.report.device_id


class PresenceChange(BaseModel):
    """Attributes written to a device in one atomic update."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    changes: dict[str, Any] = Field(default_factory=dict)
    observed_at: int = Field(default_factory=now_ms)
    reason: str = "report"
