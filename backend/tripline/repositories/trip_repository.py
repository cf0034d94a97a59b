from __future__ import annotations

from tripline.models.orm import Trip

from .base import BaseRepository


class TripRepository(BaseRepository[Trip]):
    """Encapsulates Trip level data operations."""

    model = Trip

    def list_for_user(self, user_id: str) -> list[Trip]:
        return (
            self.session.query(Trip)
            .filter(Trip.user_id == user_id)
            .order_by(Trip.created_at.desc())
            .all()
        )

    def delete(self, trip_id: str) -> int:
        return self.session.query(Trip).filter(Trip.id == trip_id).delete()

    def list_public(self, limit: int | None = None) -> list[Trip]:
        query = (
            self.session.query(Trip)
            .filter(Trip.is_public.is_(True))
            .order_by(Trip.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()
