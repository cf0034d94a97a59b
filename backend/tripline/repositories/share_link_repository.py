from __future__ import annotations

from tripline.models.orm import ShareLink

from .base import BaseRepository


class ShareLinkRepository(BaseRepository[ShareLink]):
    model = ShareLink

    def get_by_token(self, token: str) -> ShareLink | None:
        return self.session.query(ShareLink).filter(ShareLink.token == token).first()

    def list_for_trip(self, trip_id: str) -> list[ShareLink]:
        return (
            self.session.query(ShareLink)
            .filter(ShareLink.trip_id == trip_id)
            .order_by(ShareLink.created_at.desc())
            .all()
        )

    def delete_for_trip(self, trip_id: str) -> int:
        return (
            self.session.query(ShareLink).filter(ShareLink.trip_id == trip_id).delete()
        )
