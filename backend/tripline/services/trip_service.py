from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripline.core.db import session_scope
from tripline.core.logging import get_logger
from tripline.core.settings import settings
from tripline.models.itinerary import TripDay, build_trip_days, trip_day_count
from tripline.models.orm import Destination, ShareLink, Trip, TripActivity
from tripline.models.schemas import (
    DestinationCreate,
    DestinationSchema,
    DestinationUpdate,
    ShareLinkCreate,
    ShareLinkSchema,
    SharedTripSchema,
    TripActivitySchema,
    TripCreate,
    TripDaySchema,
    TripPermission,
    TripSchema,
    TripUpdate,
)
from tripline.repositories import (
    ActivityRepository,
    DestinationRepository,
    ShareLinkRepository,
    TripRepository,
)
from tripline.services.exceptions import (
    PermissionDeniedError,
    ResourceNotFoundError,
    TripValidationError,
)
from tripline.services.persistence import as_utc, is_stale_write
from tripline.services.sql_store import to_domain

NON_NULLABLE_FIELDS = frozenset({"location_name", "address", "lat", "lng"})

PERMISSION_RANK = {
    TripPermission.NONE: 0,
    TripPermission.VIEW: 1,
    TripPermission.EDIT: 2,
    TripPermission.OWNER: 3,
}


def share_link_active(link: ShareLink, now: datetime | None = None) -> bool:
    if link.expires_at is None:
        return True
    current = now or datetime.now(timezone.utc)
    return as_utc(link.expires_at) > as_utc(current)


def resolve_permission(
    trip: Trip,
    user_id: str | None,
    share_link: ShareLink | None = None,
) -> TripPermission:
    """Owner, then explicit collaborator level, then public view access.

    A share link for the same trip that has not expired raises the result to
    the level it grants; it never lowers what the user already has.
    """
    if user_id and user_id == trip.user_id:
        return TripPermission.OWNER
    permission = TripPermission.NONE
    level = (trip.collaborators or {}).get(user_id) if user_id else None
    if level in (TripPermission.EDIT, TripPermission.VIEW):
        permission = TripPermission(level)
    elif trip.is_public:
        permission = TripPermission.VIEW
    if (
        share_link is not None
        and share_link.trip_id == trip.id
        and share_link_active(share_link)
    ):
        granted = TripPermission(share_link.permission)
        if PERMISSION_RANK[granted] > PERMISSION_RANK[permission]:
            permission = granted
    return permission


class TripServiceBase:
    """Shared helpers used by specialized Trip services."""

    def __init__(self) -> None:
        self.logger = get_logger(self.__class__.__name__)

    def _require_trip(self, session: Session, trip_id: str) -> Trip:
        trip = TripRepository(session).get(trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip not found", code=15004)
        return trip

    def _require_destination(
        self, session: Session, destination_id: str
    ) -> Destination:
        destination = DestinationRepository(session).get(destination_id)
        if destination is None:
            raise ResourceNotFoundError("Destination not found", code=15005)
        return destination

    def _permission(
        self,
        session: Session,
        trip: Trip,
        user_id: str | None,
        share_token: str | None = None,
    ) -> TripPermission:
        link = None
        if share_token:
            link = ShareLinkRepository(session).get_by_token(share_token)
        return resolve_permission(trip, user_id, link)

    def _ensure_can_view(
        self,
        session: Session,
        trip: Trip,
        user_id: str | None,
        share_token: str | None = None,
    ) -> TripPermission:
        permission = self._permission(session, trip, user_id, share_token)
        if not permission.can_view:
            raise PermissionDeniedError("Insufficient permissions to view this trip")
        return permission

    def _ensure_can_edit(
        self,
        session: Session,
        trip: Trip,
        user_id: str | None,
        action: str,
        share_token: str | None = None,
    ) -> TripPermission:
        permission = self._permission(session, trip, user_id, share_token)
        if not permission.can_edit:
            raise PermissionDeniedError(f"Insufficient permissions to {action}")
        return permission

    def _ensure_owner(
        self, session: Session, trip: Trip, user_id: str | None, message: str
    ) -> None:
        if self._permission(session, trip, user_id) is not TripPermission.OWNER:
            raise PermissionDeniedError(message)

    def record_activity(
        self,
        trip_id: str,
        user_id: str | None,
        action: str,
        details: str,
    ) -> None:
        """Append to the trip's activity history; failures never surface."""
        self.logger.info(
            "trip.activity",
            extra={
                "trip_id": trip_id,
                "user_id": user_id,
                "action": action,
                "details": details,
            },
        )
        try:
            with session_scope() as session:
                ActivityRepository(session).add(
                    TripActivity(
                        trip_id=trip_id,
                        user_id=user_id,
                        action=action,
                        details=details,
                    )
                )
        except SQLAlchemyError as exc:
            self.logger.warning(
                "trip.activity_failed",
                extra={"trip_id": trip_id, "action": action, "error": str(exc)},
            )


class TripQueryService(TripServiceBase):
    def list_trips(self, user_id: str) -> list[TripSchema]:
        with session_scope() as session:
            trips = TripRepository(session).list_for_user(user_id)
            return [TripSchema.model_validate(trip) for trip in trips]

    def list_public_trips(self, limit: int | None = None) -> list[TripSchema]:
        with session_scope() as session:
            trips = TripRepository(session).list_public(limit)
            return [TripSchema.model_validate(trip) for trip in trips]

    def get_trip(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> TripSchema:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_can_view(session, trip, user_id, share_token)
            return TripSchema.model_validate(trip)

    def get_permission(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> TripPermission:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            return self._permission(session, trip, user_id, share_token)

    def list_destinations(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> list[DestinationSchema]:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_can_view(session, trip, user_id, share_token)
            rows = DestinationRepository(session).list_for_trip(trip_id)
            return [DestinationSchema.model_validate(row) for row in rows]

    def _trip_days(self, session: Session, trip: Trip) -> list[TripDay]:
        rows = DestinationRepository(session).list_for_trip(trip.id)
        return build_trip_days(
            [to_domain(row) for row in rows],
            start_date=trip.start_date,
            day_count=trip_day_count(trip.start_date, trip.end_date),
        )

    def list_days(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> list[TripDay]:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_can_view(session, trip, user_id, share_token)
            return self._trip_days(session, trip)

    def list_activity(
        self,
        trip_id: str,
        user_id: str | None,
        share_token: str | None = None,
        limit: int | None = None,
    ) -> list[TripActivitySchema]:
        """Activity history for the trip, newest first."""
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_can_view(session, trip, user_id, share_token)
            rows = ActivityRepository(session).list_for_trip(
                trip_id, limit or settings.trip_activity_limit
            )
            return [TripActivitySchema.model_validate(row) for row in rows]

    def get_shared_trip(self, token: str) -> SharedTripSchema:
        with session_scope() as session:
            link = ShareLinkRepository(session).get_by_token(token)
            trip = TripRepository(session).get(link.trip_id) if link else None
            if link is None or trip is None or not share_link_active(link):
                raise ResourceNotFoundError(
                    "This trip link is invalid or has expired", code=15006
                )
            days = self._trip_days(session, trip)
            return SharedTripSchema(
                trip=TripSchema.model_validate(trip),
                permission=TripPermission(link.permission),
                days=[TripDaySchema.model_validate(day) for day in days],
            )


class TripCommandService(TripServiceBase):
    def create_trip(self, payload: TripCreate) -> TripSchema:
        with session_scope() as session:
            trip = Trip(
                user_id=payload.user_id,
                name=payload.name,
                location=payload.location,
                start_date=payload.start_date,
                end_date=payload.end_date,
                is_public=payload.is_public,
                description=payload.description,
                collaborators={
                    user: level.value for user, level in payload.collaborators.items()
                },
            )
            TripRepository(session).add(trip)
            schema = TripSchema.model_validate(trip)
        self.record_activity(
            schema.id, payload.user_id, "created", f"Created trip: {schema.name}"
        )
        return schema

    def update_trip(
        self, trip_id: str, payload: TripUpdate, user_id: str | None
    ) -> TripSchema:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            permission = self._ensure_can_edit(session, trip, user_id, "edit this trip")
            owner = permission is TripPermission.OWNER
            if payload.collaborators is not None and not owner:
                raise PermissionDeniedError("Only the owner can change collaborators")

            if payload.name is not None:
                trip.name = payload.name
            if payload.location is not None:
                trip.location = payload.location
            if payload.start_date is not None:
                trip.start_date = payload.start_date
            if payload.end_date is not None:
                trip.end_date = payload.end_date
            if payload.is_public is not None:
                trip.is_public = payload.is_public
            if payload.description is not None:
                trip.description = payload.description
            if payload.collaborators is not None:
                trip.collaborators = {
                    user: level.value for user, level in payload.collaborators.items()
                }
            if trip.start_date > trip.end_date:
                raise TripValidationError(
                    "start_date must not be after end_date", code=15010
                )

            session.flush()
            schema = TripSchema.model_validate(trip)
        self.record_activity(trip_id, user_id, "updated", "Updated trip details")
        return schema

    def delete_trip(self, trip_id: str, user_id: str | None) -> None:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_owner(
                session, trip, user_id, "Only the owner can delete a trip"
            )
            removed = DestinationRepository(session).delete_for_trip(trip_id)
            ShareLinkRepository(session).delete_for_trip(trip_id)
            ActivityRepository(session).delete_for_trip(trip_id)
            TripRepository(session).delete(trip_id)
        self.logger.info(
            "trip.deleted",
            extra={"trip_id": trip_id, "destinations_removed": removed},
        )

    def create_share_link(
        self, trip_id: str, payload: ShareLinkCreate, user_id: str | None
    ) -> ShareLinkSchema:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_owner(
                session, trip, user_id, "Only the owner can share a trip"
            )
            link = ShareLink(
                trip_id=trip_id,
                token=secrets.token_urlsafe(settings.share_token_bytes),
                permission=payload.permission.value,
                expires_at=payload.expires_at,
            )
            ShareLinkRepository(session).add(link)
            schema = ShareLinkSchema.model_validate(link)
        self.record_activity(
            trip_id,
            user_id,
            "shared",
            f"Created {schema.permission.value} share link",
        )
        return schema

    def list_share_links(
        self, trip_id: str, user_id: str | None
    ) -> list[ShareLinkSchema]:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_owner(
                session, trip, user_id, "Only the owner can manage share links"
            )
            links = ShareLinkRepository(session).list_for_trip(trip_id)
            return [ShareLinkSchema.model_validate(link) for link in links]

    def delete_share_links(self, trip_id: str, user_id: str | None) -> int:
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_owner(
                session, trip, user_id, "Only the owner can manage share links"
            )
            removed = ShareLinkRepository(session).delete_for_trip(trip_id)
        if removed:
            self.record_activity(
                trip_id, user_id, "unshared", f"Revoked {removed} share link(s)"
            )
        return removed


class DestinationService(TripServiceBase):
    def _validate_create(self, payload: DestinationCreate) -> None:
        if not payload.location_name.strip():
            raise TripValidationError("Location name is required", code=15011)
        if not payload.address.strip():
            raise TripValidationError("Address is required", code=15012)
        if payload.day < 0:
            raise TripValidationError(
                "Valid day number is required (0 for ungrouped, 1+ for specific days)",
                code=15013,
            )
        if payload.order_index is not None and payload.order_index < 1:
            raise TripValidationError("Valid order index is required", code=15014)

    def create_destination(
        self,
        trip_id: str,
        payload: DestinationCreate,
        user_id: str | None,
        share_token: str | None = None,
    ) -> DestinationSchema:
        self._validate_create(payload)
        with session_scope() as session:
            trip = self._require_trip(session, trip_id)
            self._ensure_can_edit(
                session, trip, user_id, "add destinations", share_token
            )
            repo = DestinationRepository(session)
            existing = repo.list_for_day(trip_id, payload.day)
            destination = Destination(
                trip_id=trip_id,
                location_name=payload.location_name,
                address=payload.address,
                lat=payload.lat,
                lng=payload.lng,
                day=payload.day,
                order_index=len(existing) + 1,
                start_time=payload.start_time,
                end_time=payload.end_time,
                notes=payload.notes,
                place_id=payload.place_id,
                category=payload.category,
                rating=payload.rating,
                price_level=payload.price_level,
                photos=list(payload.photos),
            )
            repo.add(destination)
            if payload.order_index is not None and payload.order_index <= len(existing):
                existing.insert(payload.order_index - 1, destination)
                repo.reindex(existing, payload.day)
            session.flush()
            schema = DestinationSchema.model_validate(destination)
        self.record_activity(
            trip_id,
            user_id,
            "added_destination",
            f"Added destination: {schema.location_name}",
        )
        return schema

    def update_destination(
        self,
        destination_id: str,
        payload: DestinationUpdate,
        user_id: str | None,
        share_token: str | None = None,
    ) -> DestinationSchema:
        with session_scope() as session:
            destination = self._require_destination(session, destination_id)
            trip = self._require_trip(session, destination.trip_id)
            self._ensure_can_edit(
                session, trip, user_id, "edit destinations", share_token
            )
            if is_stale_write(payload.client_updated_at, destination.updated_at):
                # last writer wins, the conflict is only recorded
                self.logger.warning(
                    "destination.update_conflict",
                    extra={"destination_id": destination_id, "user_id": user_id},
                )
            changes: dict[str, Any] = payload.changed_fields()
            for key, value in changes.items():
                if value is None and key in NON_NULLABLE_FIELDS:
                    continue
                setattr(destination, key, value)
            merged_start, merged_end = destination.start_time, destination.end_time
            if merged_start and merged_end and merged_start >= merged_end:
                raise TripValidationError(
                    "start_time must be earlier than end_time", code=15015
                )
            session.flush()
            schema = DestinationSchema.model_validate(destination)
        self.record_activity(
            schema.trip_id,
            user_id,
            "updated_destination",
            f"Updated destination: {schema.location_name}",
        )
        return schema

    def delete_destination(
        self,
        destination_id: str,
        user_id: str | None,
        share_token: str | None = None,
    ) -> None:
        with session_scope() as session:
            destination = self._require_destination(session, destination_id)
            trip = self._require_trip(session, destination.trip_id)
            self._ensure_can_edit(
                session, trip, user_id, "delete destinations", share_token
            )
            trip_id, day, name = trip.id, destination.day, destination.location_name
            repo = DestinationRepository(session)
            repo.delete(destination_id)
            session.flush()
            repo.reindex(repo.list_for_day(trip_id, day), day)
        self.record_activity(
            trip_id, user_id, "removed_destination", f"Removed destination: {name}"
        )


class TripService:
    """Facade used by API layer to interact with specialized services."""

    def __init__(self) -> None:
        self.query_service = TripQueryService()
        self.command_service = TripCommandService()
        self.destination_service = DestinationService()

    def list_trips(self, user_id: str) -> list[TripSchema]:
        return self.query_service.list_trips(user_id)

    def list_public_trips(self, limit: int | None = None) -> list[TripSchema]:
        return self.query_service.list_public_trips(limit)

    def get_trip(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> TripSchema:
        return self.query_service.get_trip(trip_id, user_id, share_token)

    def get_permission(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> TripPermission:
        return self.query_service.get_permission(trip_id, user_id, share_token)

    def list_destinations(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> list[DestinationSchema]:
        return self.query_service.list_destinations(trip_id, user_id, share_token)

    def list_days(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> list[TripDay]:
        return self.query_service.list_days(trip_id, user_id, share_token)

    def list_activity(
        self,
        trip_id: str,
        user_id: str | None,
        share_token: str | None = None,
        limit: int | None = None,
    ) -> list[TripActivitySchema]:
        return self.query_service.list_activity(trip_id, user_id, share_token, limit)

    def get_shared_trip(self, token: str) -> SharedTripSchema:
        return self.query_service.get_shared_trip(token)

    def record_activity(
        self, trip_id: str, user_id: str | None, action: str, details: str
    ) -> None:
        self.command_service.record_activity(trip_id, user_id, action, details)

    def create_trip(self, payload: TripCreate) -> TripSchema:
        return self.command_service.create_trip(payload)

    def update_trip(
        self, trip_id: str, payload: TripUpdate, user_id: str | None
    ) -> TripSchema:
        return self.command_service.update_trip(trip_id, payload, user_id)

    def delete_trip(self, trip_id: str, user_id: str | None) -> None:
        self.command_service.delete_trip(trip_id, user_id)

    def create_share_link(
        self, trip_id: str, payload: ShareLinkCreate, user_id: str | None
    ) -> ShareLinkSchema:
        return self.command_service.create_share_link(trip_id, payload, user_id)

    def list_share_links(
        self, trip_id: str, user_id: str | None
    ) -> list[ShareLinkSchema]:
        return self.command_service.list_share_links(trip_id, user_id)

    def delete_share_links(self, trip_id: str, user_id: str | None) -> int:
        return self.command_service.delete_share_links(trip_id, user_id)

    def create_destination(
        self,
        trip_id: str,
        payload: DestinationCreate,
        user_id: str | None,
        share_token: str | None = None,
    ) -> DestinationSchema:
        return self.destination_service.create_destination(
            trip_id, payload, user_id, share_token
        )

    def update_destination(
        self,
        destination_id: str,
        payload: DestinationUpdate,
        user_id: str | None,
        share_token: str | None = None,
    ) -> DestinationSchema:
        return self.destination_service.update_destination(
            destination_id, payload, user_id, share_token
        )

    def delete_destination(
        self,
        destination_id: str,
        user_id: str | None,
        share_token: str | None = None,
    ) -> None:
        self.destination_service.delete_destination(
            destination_id, user_id, share_token
        )


__all__ = [
    "TripService",
    "TripQueryService",
    "TripCommandService",
    "DestinationService",
    "resolve_permission",
    "share_link_active",
]
