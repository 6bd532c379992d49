"""Inbound beacon report model."""

from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator

from pyespresense.ingestion.normalize import safe_str
from pyespresense.models._base import OptionalFloat, PresenceBaseModel, RequiredFloat


class BeaconReport(PresenceBaseModel):
    """One device observation published by a room node.

    Parameters
    ----------
    device_id : str
        Device id as published (``id`` in the payload).
    id_type : str or None
        Id classification reported by the node.
    rssi : float
        Filtered signal strength (dBm).
    raw : float or None
        Unfiltered signal strength.
    distance : float or None
        Estimated distance in meters.
    speed : float or None
        Estimated speed.
    interval : float or None
        Advertisement interval in milliseconds.
    """

    device_id: str = Field(validation_alias=AliasChoices("id", "device_id", "deviceId"))
    id_type: str | None = None
    rssi: RequiredFloat
    raw: OptionalFloat = None
    distance: OptionalFloat = None
    speed: OptionalFloat = None
    interval: OptionalFloat = None

    @field_validator("device_id", mode="before")
    @classmethod
    def _require_device_id(cls, value: object) -> str:
        text = safe_str(value)
        if text is None:
            raise ValueError("id must be non-empty")
        return text

    @field_validator("id_type", mode="before")
    @classmethod
    def _id_type_text(cls, value: object) -> str | None:
        return safe_str(value)
