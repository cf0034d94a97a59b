"""Pure reordering and renumbering of a trip's destinations.

Every operation takes the full destination set of one trip and returns a
:class:`ReorderOutcome` holding a new set in which each touched day is
renumbered ``1..n``. Days that are not touched keep their destinations
untouched, including their ``order_index`` values. Nothing here performs
I/O; writing the outcome back is the caller's job (see ``persistence``).

Unknown destination ids are skipped and an operation with nothing left to
do returns the input unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
from typing import Callable, Iterable, Mapping, Sequence

from tripline.models.itinerary import (
    Destination,
    destinations_for_day,
    group_by_day,
    new_draft_id,
    sort_destinations,
)


@dataclass(frozen=True)
class ReorderOutcome:
    destinations: tuple[Destination, ...]
    touched_days: frozenset[int] = field(default_factory=frozenset)
    created: tuple[Destination, ...] = ()
    removed_ids: tuple[str, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.touched_days or self.removed_ids)

    def day(self, day: int) -> list[Destination]:
        return destinations_for_day(self.destinations, day)


def _unchanged(destinations: Sequence[Destination]) -> ReorderOutcome:
    return ReorderOutcome(destinations=tuple(destinations))


def _find(
    destinations: Sequence[Destination], destination_id: str
) -> Destination | None:
    return next((item for item in destinations if item.id == destination_id), None)


def _select(
    destinations: Sequence[Destination], destination_ids: Iterable[str]
) -> list[Destination]:
    """Known destinations in selection order, first occurrence wins."""
    by_id = {item.id: item for item in destinations}
    selected: list[Destination] = []
    seen: set[str] = set()
    for destination_id in destination_ids:
        if destination_id in seen or destination_id not in by_id:
            continue
        seen.add(destination_id)
        selected.append(by_id[destination_id])
    return selected


def _clamp(position: int, upper: int) -> int:
    return max(0, min(position, upper))


def _renumber(members: Sequence[Destination], day: int) -> list[Destination]:
    renumbered: list[Destination] = []
    for slot, item in enumerate(members):
        if item.day == day and item.order_index == slot + 1:
            renumbered.append(item)
        else:
            renumbered.append(
                item.model_copy(update={"day": day, "order_index": slot + 1})
            )
    return renumbered


def _assemble(
    destinations: Sequence[Destination],
    replacements: Mapping[int, list[Destination]],
    *,
    removed_ids: Sequence[str] = (),
    created: Sequence[Destination] = (),
) -> ReorderOutcome:
    before = group_by_day(destinations)
    removed = set(removed_ids)
    kept = [
        item
        for item in destinations
        if item.day not in replacements and item.id not in removed
    ]
    for members in replacements.values():
        kept.extend(members)

    touched = frozenset(
        day for day, members in replacements.items() if before.get(day, []) != members
    )
    if not touched and not removed:
        return _unchanged(destinations)
    return ReorderOutcome(
        destinations=sort_destinations(kept),
        touched_days=touched,
        created=tuple(created),
        removed_ids=tuple(removed_ids),
    )


def renumber_day(destinations: Sequence[Destination], day: int) -> ReorderOutcome:
    """Rewrite one day's indexes to ``1..n`` keeping its current relative order."""
    members = destinations_for_day(destinations, day)
    return _assemble(destinations, {day: _renumber(members, day)})


def reorder_within_day(
    destinations: Sequence[Destination],
    destination_id: str,
    new_position: int,
) -> ReorderOutcome:
    target = _find(destinations, destination_id)
    if target is None:
        return _unchanged(destinations)

    members = destinations_for_day(destinations, target.day)
    current = next(idx for idx, item in enumerate(members) if item.id == destination_id)
    slot = _clamp(new_position, len(members) - 1)
    if slot == current:
        return _unchanged(destinations)

    members.pop(current)
    members.insert(slot, target)
    return _assemble(destinations, {target.day: _renumber(members, target.day)})


def move_to_day(
    destinations: Sequence[Destination],
    destination_id: str,
    target_day: int,
    position: int | None = None,
) -> ReorderOutcome:
    """Move a destination to ``target_day`` at ``position`` or to its end."""
    target = _find(destinations, destination_id)
    if target is None or target_day < 0:
        return _unchanged(destinations)

    if target.day == target_day:
        day_size = sum(1 for item in destinations if item.day == target_day)
        slot = day_size - 1 if position is None else position
        return reorder_within_day(destinations, destination_id, slot)

    source_members = [
        item
        for item in destinations_for_day(destinations, target.day)
        if item.id != destination_id
    ]
    target_members = destinations_for_day(destinations, target_day)
    slot = (
        len(target_members)
        if position is None
        else _clamp(position, len(target_members))
    )
    target_members.insert(slot, target)
    return _assemble(
        destinations,
        {
            target.day: _renumber(source_members, target.day),
            target_day: _renumber(target_members, target_day),
        },
    )


def schedule_destination(
    destinations: Sequence[Destination],
    destination_id: str,
    target_day: int,
    start_time: time,
    end_time: time,
) -> ReorderOutcome:
    """Stamp a time window and move the destination to the end of ``target_day``."""
    if start_time >= end_time:
        msg = "start_time must be earlier than end_time"
        raise ValueError(msg)
    target = _find(destinations, destination_id)
    if target is None or target_day < 0:
        return _unchanged(destinations)

    stamped = target.model_copy(update={"start_time": start_time, "end_time": end_time})
    staged = [stamped if item.id == destination_id else item for item in destinations]
    if target.day == target_day:
        members = destinations_for_day(staged, target_day)
        return _assemble(destinations, {target_day: _renumber(members, target_day)})

    moved = move_to_day(staged, destination_id, target_day)
    return _assemble(
        destinations,
        {day: moved.day(day) for day in (target.day, target_day)},
    )


def bulk_copy(
    destinations: Sequence[Destination],
    destination_ids: Iterable[str],
    target_day: int,
    *,
    id_factory: Callable[[], str] = new_draft_id,
) -> ReorderOutcome:
    """Append duplicates of the selection to ``target_day`` under new identities."""
    selected = _select(destinations, destination_ids)
    if not selected or target_day < 0:
        return _unchanged(destinations)

    existing = destinations_for_day(destinations, target_day)
    base = max((item.order_index for item in existing), default=0)
    copies = [
        item.model_copy(
            update={
                "id": id_factory(),
                "day": target_day,
                "order_index": base + offset + 1,
                "created_at": None,
                "updated_at": None,
            }
        )
        for offset, item in enumerate(selected)
    ]
    return _assemble(
        destinations,
        {target_day: existing + copies},
        created=copies,
    )


def bulk_move(
    destinations: Sequence[Destination],
    destination_ids: Iterable[str],
    target_day: int,
) -> ReorderOutcome:
    """Append the selection, in selection order, to the end of ``target_day``."""
    selected = _select(destinations, destination_ids)
    if not selected or target_day < 0:
        return _unchanged(destinations)

    selected_ids = {item.id for item in selected}
    replacements: dict[int, list[Destination]] = {}
    for day in {item.day for item in selected} - {target_day}:
        remaining = [
            item
            for item in destinations_for_day(destinations, day)
            if item.id not in selected_ids
        ]
        replacements[day] = _renumber(remaining, day)

    staying = [
        item
        for item in destinations_for_day(destinations, target_day)
        if item.id not in selected_ids
    ]
    replacements[target_day] = _renumber(staying + selected, target_day)
    return _assemble(destinations, replacements)


def bulk_delete(
    destinations: Sequence[Destination],
    destination_ids: Iterable[str],
) -> ReorderOutcome:
    """Drop the selection and close the gaps it leaves in every affected day."""
    selected = _select(destinations, destination_ids)
    if not selected:
        return _unchanged(destinations)

    selected_ids = {item.id for item in selected}
    replacements: dict[int, list[Destination]] = {}
    for day in {item.day for item in selected}:
        remaining = [
            item
            for item in destinations_for_day(destinations, day)
            if item.id not in selected_ids
        ]
        replacements[day] = _renumber(remaining, day)
    return _assemble(
        destinations,
        replacements,
        removed_ids=[item.id for item in selected],
    )


__all__ = [
    "ReorderOutcome",
    "renumber_day",
    "reorder_within_day",
    "move_to_day",
    "schedule_destination",
    "bulk_copy",
    "bulk_move",
    "bulk_delete",
]
