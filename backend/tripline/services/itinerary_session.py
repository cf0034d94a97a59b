"""Client-side itinerary state and its optimistic write-back.

An :class:`ItinerarySession` owns one trip's destination set together with
the checkbox selection and the undo/redo history. Each operation installs
the engine's outcome immediately, then issues the planned store calls. When
a call fails the session reports a user facing message and, unless
disabled, reloads the trip from the store so the view matches what was
actually saved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date as dt_date
from datetime import time
from typing import Iterable, Sequence

from tripline.core.logging import get_logger
from tripline.core.settings import settings
from tripline.models.itinerary import (
    Destination,
    TripDay,
    assert_dense,
    build_trip_days,
    group_by_day,
)
from tripline.models.schemas import TripPermission
from tripline.services import reorder_engine
from tripline.services.drag import DayDropTarget, apply_drop, resolve_drop
from tripline.services.exceptions import PermissionDeniedError, PersistenceError
from tripline.services.itinerary_state import (
    ItineraryHistory,
    SelectionState,
    Snapshot,
    remap_snapshot,
)
from tripline.services.persistence import (
    DestinationStore,
    execute_writes,
    plan_writes,
)
from tripline.services.reorder_engine import ReorderOutcome

FAILURE_MESSAGES = {
    "reorder": "Failed to save the new order",
    "move": "Failed to move destination",
    "schedule": "Failed to schedule destination",
    "bulk_copy": "Failed to copy destinations",
    "bulk_move": "Failed to move destinations",
    "bulk_delete": "Failed to delete destinations",
    "undo": "Failed to undo the last change",
    "redo": "Failed to redo the last change",
}


@dataclass
class OperationReport:
    operation: str
    outcome: ReorderOutcome
    ok: bool = True
    error: str | None = None
    reconciled: bool = False
    id_map: dict[str, str] = field(default_factory=dict)

    @property
    def touched_days(self) -> list[int]:
        return sorted(self.outcome.touched_days)

    @property
    def created_ids(self) -> list[str]:
        return [self.id_map.get(item.id, item.id) for item in self.outcome.created]


def snapshot_outcome(before: Snapshot, after: Snapshot) -> ReorderOutcome:
    """Describe a jump between two arbitrary snapshots as an outcome."""
    old = group_by_day(before)
    new = group_by_day(after)
    touched = frozenset(
        day for day in old.keys() | new.keys() if old.get(day) != new.get(day)
    )
    after_ids = {item.id for item in after}
    before_ids = {item.id for item in before}
    return ReorderOutcome(
        destinations=after,
        touched_days=touched,
        created=tuple(item for item in after if item.id not in before_ids),
        removed_ids=tuple(item.id for item in before if item.id not in after_ids),
    )


class ItinerarySession:
    def __init__(
        self,
        trip_id: str,
        store: DestinationStore,
        *,
        destinations: Iterable[Destination] = (),
        permission: TripPermission = TripPermission.OWNER,
        start_date: dt_date | None = None,
        day_count: int = 0,
        history_limit: int | None = None,
        reconcile_on_failure: bool | None = None,
        strict_invariants: bool | None = None,
    ) -> None:
        self.trip_id = trip_id
        self.store = store
        self.permission = permission
        self.start_date = start_date
        self.day_count = day_count
        self.selection = SelectionState()
        self.history = ItineraryHistory(
            limit=(
                settings.itinerary_history_limit
                if history_limit is None
                else history_limit
            )
        )
        self.reconcile_on_failure = (
            settings.itinerary_reconcile_on_failure
            if reconcile_on_failure is None
            else reconcile_on_failure
        )
        self.strict_invariants = (
            settings.itinerary_strict_invariants
            if strict_invariants is None
            else strict_invariants
        )
        self.logger = get_logger(self.__class__.__name__)
        self._destinations: Snapshot = ()
        self._install(tuple(destinations))

    @property
    def destinations(self) -> Snapshot:
        return self._destinations

    @property
    def days(self) -> list[TripDay]:
        return build_trip_days(
            self._destinations, start_date=self.start_date, day_count=self.day_count
        )

    def _install(self, snapshot: Snapshot) -> None:
        if self.strict_invariants:
            assert_dense(snapshot)
        self._destinations = snapshot
        self.selection.prune(item.id for item in snapshot)

    def _ensure_can_edit(self) -> None:
        if not self.permission.can_edit:
            raise PermissionDeniedError(
                "Insufficient permissions to edit this itinerary"
            )

    def _apply_id_map(self, id_map: dict[str, str]) -> None:
        if not id_map:
            return
        self._destinations = remap_snapshot(self._destinations, id_map)
        self.selection.remap(id_map)
        self.history.remap(id_map)

    async def load(self) -> Snapshot:
        """Replace the in-memory model with the stored destinations."""
        stored = await self.store.list_for_trip(self.trip_id)
        self._install(tuple(stored))
        return self._destinations

    async def _commit(
        self,
        operation: str,
        outcome: ReorderOutcome,
        *,
        record_history: bool = True,
    ) -> OperationReport:
        if not outcome.changed:
            return OperationReport(operation, outcome)

        before = self._destinations
        self._install(outcome.destinations)
        if record_history:
            self.history.record(before)

        writes = await execute_writes(
            self.store, plan_writes(before, outcome.destinations)
        )
        self._apply_id_map(writes.id_map)
        if writes.ok:
            self.logger.info(
                f"itinerary.{operation}",
                extra={
                    "trip_id": self.trip_id,
                    "touched_days": sorted(outcome.touched_days),
                },
            )
            return OperationReport(operation, outcome, id_map=writes.id_map)

        label = FAILURE_MESSAGES.get(operation, "Failed to save changes")
        error = f"{label}: {writes.failures[0].message}"
        reconciled = False
        if self.reconcile_on_failure:
            try:
                await self.load()
                reconciled = True
            except PersistenceError as exc:
                self.logger.error(
                    "itinerary.reconcile_failed",
                    extra={"trip_id": self.trip_id, "error": exc.message},
                )
        self.logger.warning(
            "itinerary.partial_failure",
            extra={
                "trip_id": self.trip_id,
                "operation": operation,
                "failures": len(writes.failures),
                "reconciled": reconciled,
            },
        )
        return OperationReport(
            operation,
            outcome,
            ok=False,
            error=error,
            reconciled=reconciled,
            id_map=writes.id_map,
        )

    async def reorder(self, destination_id: str, new_position: int) -> OperationReport:
        self._ensure_can_edit()
        outcome = reorder_engine.reorder_within_day(
            self._destinations, destination_id, new_position
        )
        return await self._commit("reorder", outcome)

    async def move(
        self, destination_id: str, day: int, position: int | None = None
    ) -> OperationReport:
        self._ensure_can_edit()
        outcome = reorder_engine.move_to_day(
            self._destinations, destination_id, day, position
        )
        return await self._commit("move", outcome)

    async def schedule(
        self,
        destination_id: str,
        day: int,
        start_time: time,
        end_time: time,
    ) -> OperationReport:
        self._ensure_can_edit()
        outcome = reorder_engine.schedule_destination(
            self._destinations, destination_id, day, start_time, end_time
        )
        return await self._commit("schedule", outcome)

    async def bulk_copy(
        self, destination_ids: Sequence[str], day: int
    ) -> OperationReport:
        self._ensure_can_edit()
        outcome = reorder_engine.bulk_copy(self._destinations, destination_ids, day)
        return await self._commit("bulk_copy", outcome)

    async def bulk_move(
        self, destination_ids: Sequence[str], day: int
    ) -> OperationReport:
        self._ensure_can_edit()
        outcome = reorder_engine.bulk_move(self._destinations, destination_ids, day)
        return await self._commit("bulk_move", outcome)

    async def bulk_delete(self, destination_ids: Sequence[str]) -> OperationReport:
        self._ensure_can_edit()
        outcome = reorder_engine.bulk_delete(self._destinations, destination_ids)
        return await self._commit("bulk_delete", outcome)

    async def copy_selected(self, day: int) -> OperationReport:
        report = await self.bulk_copy(self.selection.ordered(), day)
        self.selection.clear()
        return report

    async def move_selected(self, day: int) -> OperationReport:
        report = await self.bulk_move(self.selection.ordered(), day)
        self.selection.clear()
        return report

    async def delete_selected(self) -> OperationReport:
        report = await self.bulk_delete(self.selection.ordered())
        self.selection.clear()
        return report

    async def handle_drop(
        self, active_id: str, over: str | DayDropTarget | None
    ) -> OperationReport | None:
        intent = resolve_drop(self._destinations, active_id, over)
        if intent is None:
            return None
        self._ensure_can_edit()
        outcome = apply_drop(self._destinations, intent)
        return await self._commit(intent.kind, outcome)

    async def undo(self) -> OperationReport | None:
        self._ensure_can_edit()
        previous = self.history.undo(self._destinations)
        if previous is None:
            return None
        outcome = snapshot_outcome(self._destinations, previous)
        return await self._commit("undo", outcome, record_history=False)

    async def redo(self) -> OperationReport | None:
        self._ensure_can_edit()
        following = self.history.redo(self._destinations)
        if following is None:
            return None
        outcome = snapshot_outcome(self._destinations, following)
        return await self._commit("redo", outcome, record_history=False)


__all__ = ["ItinerarySession", "OperationReport", "snapshot_outcome"]
