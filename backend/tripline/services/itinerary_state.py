from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, Mapping

from tripline.models.itinerary import Destination

Snapshot = tuple[Destination, ...]


def remap_snapshot(snapshot: Snapshot, id_map: Mapping[str, str]) -> Snapshot:
    if not id_map:
        return snapshot
    return tuple(
        item.model_copy(update={"id": id_map[item.id]}) if item.id in id_map else item
        for item in snapshot
    )


@dataclass(slots=True)
class SelectionState:
    """Checked destinations, kept in the order they were checked."""

    ids: list[str] = field(default_factory=list)

    def __contains__(self, destination_id: object) -> bool:
        return destination_id in self.ids

    def __len__(self) -> int:
        return len(self.ids)

    def select(self, destination_id: str) -> None:
        if destination_id not in self.ids:
            self.ids.append(destination_id)

    def deselect(self, destination_id: str) -> None:
        if destination_id in self.ids:
            self.ids.remove(destination_id)

    def toggle(self, destination_id: str, checked: bool) -> None:
        if checked:
            self.select(destination_id)
        else:
            self.deselect(destination_id)

    def clear(self) -> None:
        self.ids.clear()

    def ordered(self) -> tuple[str, ...]:
        return tuple(self.ids)

    def prune(self, valid_ids: Iterable[str]) -> None:
        valid = set(valid_ids)
        self.ids[:] = [item for item in self.ids if item in valid]

    def remap(self, id_map: Mapping[str, str]) -> None:
        self.ids[:] = [id_map.get(item, item) for item in self.ids]


@dataclass
class ItineraryHistory:
    """Bounded undo/redo stacks of destination snapshots."""

    limit: int = 50
    _undo: Deque[Snapshot] = field(init=False)
    _redo: Deque[Snapshot] = field(init=False)

    def __post_init__(self) -> None:
        self._undo = deque(maxlen=max(self.limit, 0))
        self._redo = deque(maxlen=max(self.limit, 0))

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def record(self, snapshot: Snapshot) -> None:
        self._undo.append(snapshot)
        self._redo.clear()

    def undo(self, current: Snapshot) -> Snapshot | None:
        if not self._undo:
            return None
        self._redo.append(current)
        return self._undo.pop()

    def redo(self, current: Snapshot) -> Snapshot | None:
        if not self._redo:
            return None
        self._undo.append(current)
        return self._redo.pop()

    def remap(self, id_map: Mapping[str, str]) -> None:
        if not id_map:
            return
        for stack in (self._undo, self._redo):
            remapped = [remap_snapshot(snapshot, id_map) for snapshot in stack]
            stack.clear()
            stack.extend(remapped)


__all__ = [
    "Snapshot",
    "SelectionState",
    "ItineraryHistory",
    "remap_snapshot",
]
