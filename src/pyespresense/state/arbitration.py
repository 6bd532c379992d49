"""Best-room arbitration.

Pure functions: given a device's fresh room measurements, pick one and
classify it as home or away. Nothing here touches shared state.
"""

from __future__ import annotations

from collections.abc import Sequence
from functools import reduce

from pyespresense._constants import DEFAULT_RSSI_FOR_HOME, NOT_HOME
from pyespresense.models.measurement import PresenceDecision, RoomMeasurement


def _prefer(best: RoomMeasurement, candidate: RoomMeasurement) -> RoomMeasurement:
    # A candidate must be both stronger and newer to displace the current best.
    if candidate.rssi > best.rssi and candidate.timestamp > best.timestamp:
        return candidate
    return best


def best_measurement(fresh: Sequence[RoomMeasurement]) -> RoomMeasurement | None:
    """Reduce *fresh* (oldest first) to the retained best measurement."""
    if not fresh:
        return None
    return reduce(_prefer, fresh)


def classify(measurement: RoomMeasurement, *, rssi_for_home: float = DEFAULT_RSSI_FOR_HOME) -> PresenceDecision:
    is_home = measurement.rssi >= rssi_for_home
    return PresenceDecision(
        is_home=is_home,
        room=measurement.room if is_home else NOT_HOME,
        rssi=measurement.rssi,
        raw=measurement.raw,
        distance=measurement.distance,
        speed=measurement.speed,
        interval=measurement.interval,
        timestamp=measurement.timestamp,
    )


def choose(
    fresh: Sequence[RoomMeasurement],
    incoming: RoomMeasurement,
    *,
    rssi_for_home: float = DEFAULT_RSSI_FOR_HOME,
) -> PresenceDecision:
    """Decide presence from *fresh* measurements.

    Falls back to *incoming* when there is nothing fresh, so a device seen
    in a single room still gets a decision.
    """
    chosen = best_measurement(fresh) or incoming
    return classify(chosen, rssi_for_home=rssi_for_home)
