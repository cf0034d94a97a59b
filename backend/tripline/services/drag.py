from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from tripline.models.itinerary import Destination, destinations_for_day
from tripline.services.reorder_engine import (
    ReorderOutcome,
    move_to_day,
    reorder_within_day,
)


@dataclass(frozen=True, slots=True)
class DayDropTarget:
    """A drop onto a day container rather than onto another destination."""

    day: int


@dataclass(frozen=True, slots=True)
class DropIntent:
    kind: Literal["reorder", "move"]
    destination_id: str
    day: int
    position: int | None = None


def resolve_drop(
    destinations: Sequence[Destination],
    active_id: str,
    over: str | DayDropTarget | None,
) -> DropIntent | None:
    """Translate a finished drag into a discrete reorder or move."""

    active = next((item for item in destinations if item.id == active_id), None)
    if active is None or over is None:
        return None

    if isinstance(over, DayDropTarget):
        if over.day < 0:
            return None
        if over.day == active.day:
            members = destinations_for_day(destinations, over.day)
            return DropIntent("reorder", active_id, over.day, len(members) - 1)
        return DropIntent("move", active_id, over.day, None)

    if over == active_id:
        return None
    target = next((item for item in destinations if item.id == over), None)
    if target is None:
        return None
    members = destinations_for_day(destinations, target.day)
    slot = next(idx for idx, item in enumerate(members) if item.id == over)
    kind = "reorder" if target.day == active.day else "move"
    return DropIntent(kind, active_id, target.day, slot)


def apply_drop(
    destinations: Sequence[Destination], intent: DropIntent
) -> ReorderOutcome:
    if intent.kind == "reorder":
        return reorder_within_day(
            destinations, intent.destination_id, intent.position or 0
        )
    return move_to_day(destinations, intent.destination_id, intent.day, intent.position)


__all__ = ["DayDropTarget", "DropIntent", "resolve_drop", "apply_drop"]
