from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from tripline.models.schemas import (
    BulkPayload,
    BulkTargetPayload,
    MovePayload,
    OperationReportSchema,
    ReorderPayload,
    SchedulePayload,
)
from tripline.services.exceptions import TriplineError
from tripline.services.itinerary_service import ItineraryService
from tripline.utils.responses import (
    error_response,
    service_error_response,
    success_response,
)

router = APIRouter(prefix="/api/trips/{trip_id}/itinerary", tags=["itinerary"])

ACTING_USER = Query(default=None, description="User performing the request")
SHARE_TOKEN = Query(default=None, description="Share link token granting access")


def _service() -> ItineraryService:
    return ItineraryService()


def _format_report(report: OperationReportSchema) -> dict | JSONResponse:
    data = report.model_dump(mode="json")
    if not report.ok:
        # the view already holds the reconciled state, surface it with the error
        return JSONResponse(
            status_code=400,
            content=error_response(
                report.error or "Failed to save changes", code=15020, data=data
            ),
        )
    return success_response(data)


@router.post(
    "/reorder",
    summary="Reorder within a day",
    description="Move a destination to a 0-based slot within its current day.",
)
async def reorder(
    trip_id: str,
    payload: ReorderPayload,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        report = await _service().reorder(trip_id, payload, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return _format_report(report)


@router.post(
    "/move",
    summary="Move to another day",
    description="Move a destination to a day, appending when no slot is given.",
)
async def move(
    trip_id: str,
    payload: MovePayload,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        report = await _service().move(trip_id, payload, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return _format_report(report)


@router.post(
    "/schedule",
    summary="Schedule an ungrouped destination",
    description="Attach a time window and append the destination to a day.",
)
async def schedule(
    trip_id: str,
    payload: SchedulePayload,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        report = await _service().schedule(trip_id, payload, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return _format_report(report)


@router.post("/bulk_copy", summary="Copy selected destinations to a day")
async def bulk_copy(
    trip_id: str,
    payload: BulkTargetPayload,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        report = await _service().bulk_copy(trip_id, payload, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return _format_report(report)


@router.post("/bulk_move", summary="Move selected destinations to a day")
async def bulk_move(
    trip_id: str,
    payload: BulkTargetPayload,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        report = await _service().bulk_move(trip_id, payload, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return _format_report(report)


@router.post("/bulk_delete", summary="Delete selected destinations")
async def bulk_delete(
    trip_id: str,
    payload: BulkPayload,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        report = await _service().bulk_delete(trip_id, payload, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return _format_report(report)
