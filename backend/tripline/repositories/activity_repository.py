from __future__ import annotations

from tripline.models.orm import TripActivity

from .base import BaseRepository


class ActivityRepository(BaseRepository[TripActivity]):
    """Append-only trip activity history."""

    model = TripActivity

    def list_for_trip(
        self, trip_id: str, limit: int | None = None
    ) -> list[TripActivity]:
        query = (
            self.session.query(TripActivity)
            .filter(TripActivity.trip_id == trip_id)
            .order_by(TripActivity.created_at.desc(), TripActivity.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def delete_for_trip(self, trip_id: str) -> int:
        return (
            self.session.query(TripActivity)
            .filter(TripActivity.trip_id == trip_id)
            .delete()
        )
