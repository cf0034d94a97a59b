from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Sequence, TypeVar

from anyio import to_thread
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripline.core.db import session_scope
from tripline.core.logging import get_logger
from tripline.models import orm
from tripline.models.itinerary import Destination
from tripline.repositories import DestinationRepository
from tripline.services.exceptions import PersistenceError
from tripline.services.persistence import is_stale_write

T = TypeVar("T")

UPDATABLE_FIELDS = frozenset(
    {
        "location_name",
        "address",
        "lat",
        "lng",
        "start_time",
        "end_time",
        "notes",
        "place_id",
        "category",
        "rating",
        "price_level",
        "photos",
    }
)


def to_domain(row: orm.Destination) -> Destination:
    return Destination.model_validate(row)


def build_row(destination: Destination) -> orm.Destination:
    payload = destination.model_dump(exclude={"id", "created_at", "updated_at"})
    payload["photos"] = list(payload.get("photos") or [])
    return orm.Destination(**payload)


class SqlDestinationStore:
    """Destination store backed by the relational database.

    Each call opens its own transaction in a worker thread, so calls stay
    independent of each other the same way remote document writes are.
    """

    def __init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)

    async def _run(
        self,
        operation: str,
        work: Callable[[Session], T],
        *,
        destination_id: str | None = None,
    ) -> T:
        def _call() -> T:
            with session_scope() as session:
                return work(session)

        try:
            return await to_thread.run_sync(_call)
        except SQLAlchemyError as exc:
            self.logger.error(
                "destination_store.failed",
                extra={"operation": operation, "destination_id": destination_id},
            )
            raise PersistenceError(
                f"{operation} failed: {exc.__class__.__name__}",
                operation=operation,
                destination_id=destination_id,
            ) from exc

    @staticmethod
    def _require(
        repo: DestinationRepository, operation: str, destination_id: str
    ) -> orm.Destination:
        row = repo.get(destination_id)
        if row is None:
            raise PersistenceError(
                "Destination not found",
                operation=operation,
                destination_id=destination_id,
            )
        return row

    async def list_for_trip(self, trip_id: str) -> list[Destination]:
        def work(session: Session) -> list[Destination]:
            rows = DestinationRepository(session).list_for_trip(trip_id)
            return [to_domain(row) for row in rows]

        return await self._run("list_for_trip", work)

    async def apply_order(
        self, trip_id: str, day: int, ordered_ids: Sequence[str]
    ) -> None:
        def work(session: Session) -> None:
            repo = DestinationRepository(session)
            rows = repo.get_many(ordered_ids)
            missing = [item for item in ordered_ids if item not in rows]
            if missing:
                raise PersistenceError(
                    "Destination not found",
                    operation="apply_order",
                    destination_id=missing[0],
                )
            if any(row.trip_id != trip_id for row in rows.values()):
                raise PersistenceError(
                    "Destination belongs to another trip", operation="apply_order"
                )
            repo.reindex([rows[item] for item in ordered_ids], day)

        await self._run("apply_order", work)

    async def move_to_day(
        self, destination_id: str, day: int, order_index: int
    ) -> None:
        def work(session: Session) -> None:
            repo = DestinationRepository(session)
            self._require(repo, "move_to_day", destination_id)
            repo.assign_position(destination_id, day, order_index)

        await self._run("move_to_day", work, destination_id=destination_id)

    async def create(self, destination: Destination) -> str:
        def work(session: Session) -> str:
            row = DestinationRepository(session).add(build_row(destination))
            return row.id

        return await self._run("create", work, destination_id=destination.id)

    async def update(
        self,
        destination_id: str,
        fields: Mapping[str, Any],
        *,
        client_updated_at: datetime | None = None,
    ) -> None:
        def work(session: Session) -> None:
            repo = DestinationRepository(session)
            row = self._require(repo, "update", destination_id)
            if is_stale_write(client_updated_at, row.updated_at):
                # last writer wins, the conflict is only recorded
                self.logger.warning(
                    "destination.update_conflict",
                    extra={"destination_id": destination_id},
                )
            for key, value in fields.items():
                if key not in UPDATABLE_FIELDS:
                    continue
                if key == "photos":
                    value = list(value or [])
                setattr(row, key, value)
            session.flush()

        await self._run("update", work, destination_id=destination_id)

    async def remove(self, destination_id: str) -> None:
        def work(session: Session) -> None:
            repo = DestinationRepository(session)
            self._require(repo, "remove", destination_id)
            repo.delete(destination_id)

        await self._run("remove", work, destination_id=destination_id)


__all__ = ["SqlDestinationStore", "to_domain", "build_row"]
