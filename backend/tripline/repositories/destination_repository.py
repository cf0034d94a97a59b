from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.orm import attributes as orm_attributes

from tripline.models.orm import Destination

from .base import BaseRepository


class DestinationRepository(BaseRepository[Destination]):
    """Data access helpers for Destination records."""

    model = Destination

    def get_many(self, destination_ids: Sequence[str]) -> dict[str, Destination]:
        if not destination_ids:
            return {}
        rows = (
            self.session.query(Destination)
            .filter(Destination.id.in_(list(destination_ids)))
            .all()
        )
        return {row.id: row for row in rows}

    def delete(self, destination_id: str) -> int:
        return (
            self.session.query(Destination)
            .filter(Destination.id == destination_id)
            .delete()
        )

    def delete_for_trip(self, trip_id: str) -> int:
        return (
            self.session.query(Destination)
            .filter(Destination.trip_id == trip_id)
            .delete()
        )

    def list_for_trip(self, trip_id: str) -> list[Destination]:
        return (
            self.session.query(Destination)
            .filter(Destination.trip_id == trip_id)
            .order_by(Destination.day, Destination.order_index)
            .all()
        )

    def list_for_day(self, trip_id: str, day: int) -> list[Destination]:
        return (
            self.session.query(Destination)
            .filter(Destination.trip_id == trip_id, Destination.day == day)
            .order_by(Destination.order_index, Destination.created_at)
            .all()
        )

    def reindex(self, items: Sequence[Destination], day: int) -> None:
        """Give ``items`` day ``day`` and indexes ``1..n`` in sequence.

        Runs in two phases through negative placeholders so the unique
        (trip, day, order_index) constraint never sees a transient duplicate.
        """

        base = len(items) + 1
        for position, item in enumerate(items):
            temp_index = -(position + base)
            self.session.execute(
                sa.update(Destination)
                .where(Destination.id == item.id)
                .values(day=day, order_index=temp_index)
            )
            orm_attributes.set_committed_value(item, "order_index", temp_index)
        for position, item in enumerate(items, start=1):
            self.session.execute(
                sa.update(Destination)
                .where(Destination.id == item.id)
                .values(day=day, order_index=position)
            )
            orm_attributes.set_committed_value(item, "day", day)
            orm_attributes.set_committed_value(item, "order_index", position)

    def assign_position(self, destination_id: str, day: int, order_index: int) -> int:
        return self.session.execute(
            sa.update(Destination)
            .where(Destination.id == destination_id)
            .values(day=day, order_index=order_index)
        ).rowcount
