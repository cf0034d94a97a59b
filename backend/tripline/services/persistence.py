"""Persistence adapter contract and write planning.

The itinerary session never writes records itself: it diffs the snapshot it
had before an operation against the one it installed afterwards and hands
the resulting :class:`WriteCall` list to a :class:`DestinationStore`. Calls
are independent of each other; a failed call does not stop the rest.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence

from tripline.core.logging import get_logger
from tripline.models.itinerary import Destination, destinations_for_day
from tripline.services.exceptions import PersistenceError

logger = get_logger(__name__)

POSITION_FIELDS = frozenset({"id", "day", "order_index", "created_at", "updated_at"})


class DestinationStore(Protocol):
    async def list_for_trip(self, trip_id: str) -> list[Destination]: ...

    async def apply_order(
        self, trip_id: str, day: int, ordered_ids: Sequence[str]
    ) -> None: ...

    async def move_to_day(
        self, destination_id: str, day: int, order_index: int
    ) -> None: ...

    async def create(self, destination: Destination) -> str: ...

    async def update(
        self,
        destination_id: str,
        fields: Mapping[str, Any],
        *,
        client_updated_at: datetime | None = None,
    ) -> None: ...

    async def remove(self, destination_id: str) -> None: ...


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_stale_write(
    client_updated_at: datetime | None, stored_updated_at: datetime | None
) -> bool:
    """True when the client edited an older version than the stored one."""
    if client_updated_at is None or stored_updated_at is None:
        return False
    return as_utc(client_updated_at) < as_utc(stored_updated_at)


@dataclass(frozen=True)
class WriteCall:
    operation: str
    destination_id: str | None = None
    trip_id: str | None = None
    day: int | None = None
    order_index: int | None = None
    ordered_ids: tuple[str, ...] = ()
    fields: Mapping[str, Any] = field(default_factory=dict)
    destination: Destination | None = None

    @classmethod
    def remove(cls, destination_id: str) -> "WriteCall":
        return cls("remove", destination_id=destination_id)

    @classmethod
    def create(cls, destination: Destination) -> "WriteCall":
        return cls("create", destination_id=destination.id, destination=destination)

    @classmethod
    def move_to_day(
        cls, destination_id: str, day: int, order_index: int
    ) -> "WriteCall":
        return cls(
            "move_to_day",
            destination_id=destination_id,
            day=day,
            order_index=order_index,
        )

    @classmethod
    def apply_order(
        cls, trip_id: str, day: int, ordered_ids: Sequence[str]
    ) -> "WriteCall":
        return cls(
            "apply_order", trip_id=trip_id, day=day, ordered_ids=tuple(ordered_ids)
        )

    @classmethod
    def update(cls, destination_id: str, fields: Mapping[str, Any]) -> "WriteCall":
        return cls("update", destination_id=destination_id, fields=dict(fields))

    async def run(
        self, store: DestinationStore, id_map: Mapping[str, str]
    ) -> str | None:
        """Issue the call, translating ids the store has already replaced."""

        def resolve(destination_id: str) -> str:
            return id_map.get(destination_id, destination_id)

        if self.operation == "create":
            assert self.destination is not None
            return await store.create(self.destination)
        if self.operation == "apply_order":
            await store.apply_order(
                self.trip_id, self.day, [resolve(item) for item in self.ordered_ids]
            )
        elif self.operation == "move_to_day":
            await store.move_to_day(
                resolve(self.destination_id), self.day, self.order_index
            )
        elif self.operation == "update":
            await store.update(resolve(self.destination_id), self.fields)
        elif self.operation == "remove":
            await store.remove(resolve(self.destination_id))
        else:
            raise ValueError(f"unknown write operation {self.operation!r}")
        return None


@dataclass
class WriteReport:
    id_map: dict[str, str] = field(default_factory=dict)
    failures: list[PersistenceError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _field_changes(before: Destination, after: Destination) -> dict[str, Any]:
    old = before.model_dump(exclude=POSITION_FIELDS)
    new = after.model_dump(exclude=POSITION_FIELDS)
    return {key: value for key, value in new.items() if old.get(key) != value}


def plan_writes(
    before: Sequence[Destination], after: Sequence[Destination]
) -> list[WriteCall]:
    """Calls that take the stored state from ``before`` to ``after``.

    Removes run first so freed slots can be reused. New records are created
    at the tail of their day. A day whose remaining members keep their
    indexes only receives ``move_to_day`` calls for its arrivals; any other
    changed day is rewritten with ``apply_order``. Days that gain members are
    written before days that only lose them.
    """

    before_by_id = {item.id: item for item in before}
    after_by_id = {item.id: item for item in after}
    trip_ids = {item.trip_id for item in (*before, *after)}
    if len(trip_ids) > 1:
        raise ValueError("write planning spans more than one trip")

    calls = [
        WriteCall.remove(item.id) for item in before if item.id not in after_by_id
    ]

    tails: dict[int, int] = {}
    for item in before:
        if item.id in after_by_id:
            tails[item.day] = max(tails.get(item.day, 0), item.order_index)
    created_at: dict[str, int] = {}
    for item in after:
        if item.id in before_by_id:
            continue
        tails[item.day] = tails.get(item.day, 0) + 1
        created_at[item.id] = tails[item.day]
        calls.append(
            WriteCall.create(item.model_copy(update={"order_index": tails[item.day]}))
        )

    gaining: list[WriteCall] = []
    losing: list[WriteCall] = []
    days = sorted({item.day for item in (*before, *after)})
    for day in days:
        members = destinations_for_day(after, day)
        arrivals = [
            item
            for item in members
            if item.id in before_by_id and before_by_id[item.id].day != day
        ]
        departures = [
            item
            for item in before
            if item.day == day
            and item.id in after_by_id
            and after_by_id[item.id].day != day
        ]
        staying_unchanged = all(
            before_by_id[item.id].order_index == item.order_index
            for item in members
            if item.id in before_by_id and before_by_id[item.id].day == day
        )
        creates_in_place = all(
            created_at[item.id] == item.order_index
            for item in members
            if item.id in created_at
        )
        has_creates = any(item.id in created_at for item in members)
        bucket = gaining if arrivals or has_creates else losing

        if staying_unchanged and creates_in_place and not departures:
            bucket.extend(
                WriteCall.move_to_day(item.id, day, item.order_index)
                for item in arrivals
            )
            continue
        if staying_unchanged and creates_in_place and not arrivals:
            # departures only ever leave a tail here, nothing to rewrite
            if _is_prefix(day, members, before_by_id):
                continue
        bucket.append(
            WriteCall.apply_order(
                next(iter(trip_ids)), day, [item.id for item in members]
            )
        )

    calls.extend(gaining)
    calls.extend(losing)

    for item in after:
        previous = before_by_id.get(item.id)
        if previous is None:
            continue
        changes = _field_changes(previous, item)
        if changes:
            calls.append(WriteCall.update(item.id, changes))
    return calls


def _is_prefix(
    day: int,
    members: Sequence[Destination],
    before_by_id: Mapping[str, Destination],
) -> bool:
    return [item.order_index for item in members] == list(
        range(1, len(members) + 1)
    ) and all(before_by_id[item.id].day == day for item in members)


async def execute_writes(
    store: DestinationStore, calls: Sequence[WriteCall]
) -> WriteReport:
    report = WriteReport()
    for call in calls:
        try:
            created_id = await call.run(store, report.id_map)
        except PersistenceError as exc:
            logger.error(
                "itinerary.write_failed",
                extra={
                    "operation": call.operation,
                    "destination_id": call.destination_id,
                    "error": exc.message,
                },
            )
            report.failures.append(exc)
            continue
        if created_id is not None and call.destination_id:
            report.id_map[call.destination_id] = created_id
    return report


class InMemoryDestinationStore:
    """Dict backed store for tests and offline sessions.

    ``fail_on`` names operations that should be rejected, ``fail_ids``
    destination ids whose writes should be rejected. Every call that reaches
    the store is appended to ``journal``.
    """

    def __init__(self, destinations: Sequence[Destination] = ()) -> None:
        self._records: dict[str, Destination] = {}
        self._sequence = itertools.count(1)
        self.journal: list[tuple[str, Any]] = []
        self.fail_on: set[str] = set()
        self.fail_ids: set[str] = set()
        for item in destinations:
            if not item.id:
                item = item.model_copy(update={"id": self._next_id()})
            self._records[item.id] = item

    def _next_id(self) -> str:
        return f"dest-{next(self._sequence)}"

    def _guard(self, operation: str, destination_id: str | None = None) -> None:
        if operation in self.fail_on or (
            destination_id is not None and destination_id in self.fail_ids
        ):
            raise PersistenceError(
                f"{operation} rejected",
                operation=operation,
                destination_id=destination_id,
            )

    def _get(self, operation: str, destination_id: str) -> Destination:
        record = self._records.get(destination_id)
        if record is None:
            raise PersistenceError(
                "Destination not found",
                operation=operation,
                destination_id=destination_id,
            )
        return record

    def snapshot(self, trip_id: str | None = None) -> list[Destination]:
        items = [
            item
            for item in self._records.values()
            if trip_id is None or item.trip_id == trip_id
        ]
        return sorted(items, key=lambda item: (item.day, item.order_index))

    async def list_for_trip(self, trip_id: str) -> list[Destination]:
        self.journal.append(("list_for_trip", trip_id))
        self._guard("list_for_trip")
        return self.snapshot(trip_id)

    async def apply_order(
        self, trip_id: str, day: int, ordered_ids: Sequence[str]
    ) -> None:
        self.journal.append(("apply_order", (day, tuple(ordered_ids))))
        self._guard("apply_order")
        records = [self._get("apply_order", item) for item in ordered_ids]
        for position, record in enumerate(records, start=1):
            self._guard("apply_order", record.id)
            self._records[record.id] = record.model_copy(
                update={
                    "day": day,
                    "order_index": position,
                    "updated_at": datetime.now(timezone.utc),
                }
            )

    async def move_to_day(
        self, destination_id: str, day: int, order_index: int
    ) -> None:
        self.journal.append(("move_to_day", (destination_id, day, order_index)))
        self._guard("move_to_day", destination_id)
        record = self._get("move_to_day", destination_id)
        self._records[destination_id] = record.model_copy(
            update={
                "day": day,
                "order_index": order_index,
                "updated_at": datetime.now(timezone.utc),
            }
        )

    async def create(self, destination: Destination) -> str:
        self.journal.append(("create", destination.location_name))
        self._guard("create", destination.id)
        new_id = self._next_id()
        now = datetime.now(timezone.utc)
        self._records[new_id] = destination.model_copy(
            update={"id": new_id, "created_at": now, "updated_at": now}
        )
        return new_id

    async def update(
        self,
        destination_id: str,
        fields: Mapping[str, Any],
        *,
        client_updated_at: datetime | None = None,
    ) -> None:
        self.journal.append(("update", (destination_id, dict(fields))))
        self._guard("update", destination_id)
        record = self._get("update", destination_id)
        if is_stale_write(client_updated_at, record.updated_at):
            logger.warning(
                "destination.update_conflict",
                extra={"destination_id": destination_id},
            )
        self._records[destination_id] = record.model_copy(
            update={**fields, "updated_at": datetime.now(timezone.utc)}
        )

    async def remove(self, destination_id: str) -> None:
        self.journal.append(("remove", destination_id))
        self._guard("remove", destination_id)
        self._get("remove", destination_id)
        del self._records[destination_id]


__all__ = [
    "DestinationStore",
    "WriteCall",
    "WriteReport",
    "plan_writes",
    "execute_writes",
    "as_utc",
    "is_stale_write",
    "InMemoryDestinationStore",
]
