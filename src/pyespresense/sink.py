"""Presence sink: the seam between the fusion core and a host entity store.

The core only talks to a :class:`PresenceSink`. Hosts implement it on top
of their own object model; :class:`InMemoryPresenceSink` is the reference
adapter used by the bundled monitor script and the tests.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from pyespresense.exceptions import SinkError

_logger = logging.getLogger(__name__)


@dataclass
class DeviceHandle:
    """Sink-side representation of one device entity."""

    device_id: str
    name: str
    capabilities: tuple[str, ...] = ()
    primary_attribute: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    dead: bool = False


class PresenceSink(Protocol):
    """Structural interface of the external entity store.

    Every method must be all-or-nothing: on failure an implementation raises
    :class:`~pyespresense.exceptions.SinkError` and leaves the entity as it
    was.
    """

    def find(self, device_id: str) -> DeviceHandle | None: ...

    def ensure(
        self,
        device_id: str,
        *,
        name: str,
        capabilities: Iterable[str],
        primary_attribute: str | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> DeviceHandle: ...

    def handles(self) -> list[DeviceHandle]: ...

    def get_attribute(self, handle: DeviceHandle, key: str) -> Any: ...

    def set_attributes_if_changed(self, handle: DeviceHandle, attributes: Mapping[str, Any]) -> dict[str, Any]: ...

    def mark_dead(self, handle: DeviceHandle, dead: bool) -> None: ...

    def purge_dead(self) -> list[str]: ...


class InMemoryPresenceSink:
    """Dict-backed :class:`PresenceSink`."""

    def __init__(self) -> None:
        self._entities: dict[str, DeviceHandle] = {}

    def find(self, device_id: str) -> DeviceHandle | None:
        return self._entities.get(device_id)

    def ensure(
        self,
        device_id: str,
        *,
        name: str,
        capabilities: Iterable[str],
        primary_attribute: str | None = None,
        attributes: Mapping[str, Any] | None = None,
    ) -> DeviceHandle:
        if not device_id:
            raise SinkError("device id must be non-empty", device_id=device_id)

        handle = self._entities.get(device_id)
        if handle is None:
            handle = DeviceHandle(device_id=device_id, name=name)
            _logger.info("Creating new entity for %s", name)

        # Build the complete entity before publishing it.
        staged = copy.deepcopy(handle)
        staged.dead = False
        for capability in capabilities:
            if capability not in staged.capabilities:
                staged.capabilities = (*staged.capabilities, capability)
        if primary_attribute:
            staged.primary_attribute = primary_attribute
        if attributes:
            staged.attributes.update(copy.deepcopy(dict(attributes)))

        self._entities[device_id] = staged
        return staged

    def handles(self) -> list[DeviceHandle]:
        return list(self._entities.values())

    def get_attribute(self, handle: DeviceHandle, key: str) -> Any:
        return copy.deepcopy(self._current(handle).attributes.get(key))

    def set_attributes_if_changed(self, handle: DeviceHandle, attributes: Mapping[str, Any]) -> dict[str, Any]:
        current = self._current(handle)
        changed = {k: copy.deepcopy(v) for k, v in attributes.items() if current.attributes.get(k) != v}
        if changed:
            current.attributes.update(changed)
            if handle is not current:
                handle.attributes.update(copy.deepcopy(changed))
        return changed

    def mark_dead(self, handle: DeviceHandle, dead: bool) -> None:
        current = self._current(handle)
        current.dead = dead
        handle.dead = dead

    def purge_dead(self) -> list[str]:
        purged = [device_id for device_id, handle in self._entities.items() if handle.dead]
        for device_id in purged:
            del self._entities[device_id]
        return purged

    def add_pseudo_entity(self, device_id: str, name: str) -> DeviceHandle:
        """Register an aggregate/system record (``system``, ``controller_all``)."""
        handle = DeviceHandle(device_id=device_id, name=name)
        self._entities[device_id] = handle
        return handle

    def _current(self, handle: DeviceHandle) -> DeviceHandle:
        current = self._entities.get(handle.device_id)
        if current is None:
            raise SinkError(f"unknown entity {handle.device_id!r}", device_id=handle.device_id)
        return current
