"""Tracked device record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pyespresense._constants import DEVICE_CAPABILITIES

if TYPE_CHECKING:
    from pyespresense.sink import DeviceHandle


@dataclass(slots=True)
class TrackedDevice:
    """A device the lifecycle manager fuses presence for.

    ``device_id`` is always the normalized key; ``handle`` is the sink's
    representation of the same device.
    """

    device_id: str
    name: str
    handle: DeviceHandle
    created_at: int
    last_update: int | None = None
    alive: bool = True
    capabilities: tuple[str, ...] = field(default=DEVICE_CAPABILITIES)
