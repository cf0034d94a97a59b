"""Server-side entry point for itinerary operations.

Each request opens a fresh :class:`ItinerarySession` over the SQL store,
loads the trip's destinations, runs one operation and serializes the report
together with the resulting trip days. Operations that changed something are
recorded in the trip's activity history.
"""

from __future__ import annotations

from datetime import time
from typing import Awaitable, Callable

from anyio import to_thread

from tripline.models.schemas import (
    BulkPayload,
    BulkTargetPayload,
    MovePayload,
    OperationReportSchema,
    ReorderPayload,
    SchedulePayload,
    TripDaySchema,
    TripPermission,
    TripSchema,
)
from tripline.services.itinerary_session import ItinerarySession, OperationReport
from tripline.services.persistence import DestinationStore
from tripline.services.sql_store import SqlDestinationStore
from tripline.services.trip_service import TripService

SessionCall = Callable[[ItinerarySession], Awaitable[OperationReport]]
Activity = Callable[[ItinerarySession], tuple[str, str]]


def serialize_report(
    report: OperationReport, session: ItinerarySession
) -> OperationReportSchema:
    return OperationReportSchema(
        operation=report.operation,
        ok=report.ok,
        error=report.error,
        reconciled=report.reconciled,
        touched_days=report.touched_days,
        created_ids=report.created_ids,
        removed_ids=list(report.outcome.removed_ids),
        days=[TripDaySchema.model_validate(day) for day in session.days],
    )


def _location_name(session: ItinerarySession, destination_id: str) -> str:
    for item in session.destinations:
        if item.id == destination_id:
            return item.location_name
    return "destination"


class ItineraryService:
    def __init__(
        self,
        store: DestinationStore | None = None,
        trip_service: TripService | None = None,
    ) -> None:
        self.store = store or SqlDestinationStore()
        self.trip_service = trip_service or TripService()

    def _load_trip(
        self, trip_id: str, user_id: str | None, share_token: str | None
    ) -> tuple[TripSchema, TripPermission]:
        trip = self.trip_service.get_trip(trip_id, user_id, share_token)
        permission = self.trip_service.get_permission(trip_id, user_id, share_token)
        return trip, permission

    async def open_session(
        self, trip_id: str, user_id: str | None, share_token: str | None = None
    ) -> ItinerarySession:
        trip, permission = await to_thread.run_sync(
            self._load_trip, trip_id, user_id, share_token
        )
        session = ItinerarySession(
            trip_id,
            self.store,
            permission=permission,
            start_date=trip.start_date,
            day_count=trip.day_count,
        )
        await session.load()
        return session

    async def _run(
        self,
        trip_id: str,
        user_id: str | None,
        share_token: str | None,
        call: SessionCall,
        activity: Activity,
    ) -> OperationReportSchema:
        session = await self.open_session(trip_id, user_id, share_token)
        # described against the state before the operation runs
        action, details = activity(session)
        report = await call(session)
        if report.ok and report.outcome.changed:
            await to_thread.run_sync(
                self.trip_service.record_activity, trip_id, user_id, action, details
            )
        return serialize_report(report, session)

    async def reorder(
        self,
        trip_id: str,
        payload: ReorderPayload,
        user_id: str | None,
        share_token: str | None = None,
    ) -> OperationReportSchema:
        return await self._run(
            trip_id,
            user_id,
            share_token,
            lambda session: session.reorder(payload.destination_id, payload.position),
            lambda session: ("updated_destination", "Reordered destinations"),
        )

    async def move(
        self,
        trip_id: str,
        payload: MovePayload,
        user_id: str | None,
        share_token: str | None = None,
    ) -> OperationReportSchema:
        return await self._run(
            trip_id,
            user_id,
            share_token,
            lambda session: session.move(
                payload.destination_id, payload.day, payload.position
            ),
            lambda session: (
                "moved_destination",
                f"Moved {_location_name(session, payload.destination_id)} "
                f"to day {payload.day}",
            ),
        )

    async def schedule(
        self,
        trip_id: str,
        payload: SchedulePayload,
        user_id: str | None,
        share_token: str | None = None,
    ) -> OperationReportSchema:
        start: time = payload.start_time
        end: time = payload.end_time
        return await self._run(
            trip_id,
            user_id,
            share_token,
            lambda session: session.schedule(
                payload.destination_id, payload.day, start, end
            ),
            lambda session: (
                "moved_destination",
                f"Scheduled {_location_name(session, payload.destination_id)} "
                f"on day {payload.day} {start:%H:%M}-{end:%H:%M}",
            ),
        )

    async def bulk_copy(
        self,
        trip_id: str,
        payload: BulkTargetPayload,
        user_id: str | None,
        share_token: str | None = None,
    ) -> OperationReportSchema:
        return await self._run(
            trip_id,
            user_id,
            share_token,
            lambda session: session.bulk_copy(payload.destination_ids, payload.day),
            lambda session: (
                "added_destination",
                f"Copied {len(payload.destination_ids)} destinations "
                f"to day {payload.day}",
            ),
        )

    async def bulk_move(
        self,
        trip_id: str,
        payload: BulkTargetPayload,
        user_id: str | None,
        share_token: str | None = None,
    ) -> OperationReportSchema:
        return await self._run(
            trip_id,
            user_id,
            share_token,
            lambda session: session.bulk_move(payload.destination_ids, payload.day),
            lambda session: (
                "moved_destination",
                f"Moved {len(payload.destination_ids)} destinations "
                f"to day {payload.day}",
            ),
        )

    async def bulk_delete(
        self,
        trip_id: str,
        payload: BulkPayload,
        user_id: str | None,
        share_token: str | None = None,
    ) -> OperationReportSchema:
        return await self._run(
            trip_id,
            user_id,
            share_token,
            lambda session: session.bulk_delete(payload.destination_ids),
            lambda session: (
                "removed_destination",
                f"Removed {len(payload.destination_ids)} destinations",
            ),
        )


__all__ = ["ItineraryService", "serialize_report"]
