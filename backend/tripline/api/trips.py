from __future__ import annotations

from fastapi import APIRouter, Query

from tripline.models.schemas import (
    DestinationCreate,
    DestinationUpdate,
    ShareLinkCreate,
    TripCreate,
    TripDaySchema,
    TripUpdate,
)
from tripline.services.exceptions import TriplineError
from tripline.services.trip_service import TripService
from tripline.utils.responses import service_error_response, success_response

router = APIRouter(prefix="/api", tags=["trips"])

ACTING_USER = Query(default=None, description="User performing the request")
SHARE_TOKEN = Query(default=None, description="Share link token granting access")


def _service() -> TripService:
    return TripService()


@router.get(
    "/trips",
    summary="List trips",
    description="Return the trips owned by the given user, newest first.",
)
def list_trips(
    user_id: str = Query(..., min_length=1, description="Owner user id"),
) -> dict:
    trips = _service().list_trips(user_id)
    return success_response([trip.model_dump(mode="json") for trip in trips])


@router.get("/trips/public", summary="List public trips")
def list_public_trips(
    limit: int | None = Query(default=None, ge=1, le=200),
) -> dict:
    trips = _service().list_public_trips(limit)
    return success_response([trip.model_dump(mode="json") for trip in trips])


@router.get("/trips/{trip_id}", summary="Trip detail")
def get_trip(
    trip_id: str,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        trip = _service().get_trip(trip_id, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response(trip.model_dump(mode="json"))


@router.post("/trips", summary="Create trip")
def create_trip(payload: TripCreate) -> dict:
    try:
        trip = _service().create_trip(payload)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response({"trip_id": trip.id, "trip": trip.model_dump(mode="json")})


@router.put("/trips/{trip_id}", summary="Update trip")
def update_trip(
    trip_id: str, payload: TripUpdate, user_id: str | None = ACTING_USER
) -> dict:
    try:
        trip = _service().update_trip(trip_id, payload, user_id)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response(trip.model_dump(mode="json"))


@router.delete(
    "/trips/{trip_id}",
    summary="Delete trip",
    description="Delete the trip with its destinations, share links and activity.",
)
def delete_trip(trip_id: str, user_id: str | None = ACTING_USER) -> dict:
    try:
        _service().delete_trip(trip_id, user_id)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response({"deleted": True})


@router.get(
    "/trips/{trip_id}/days",
    summary="Trip days",
    description="Ungrouped destinations followed by days 1..N, each in order.",
)
def list_trip_days(
    trip_id: str,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        days = _service().list_days(trip_id, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response(
        [TripDaySchema.model_validate(day).model_dump(mode="json") for day in days]
    )


@router.get("/trips/{trip_id}/destinations", summary="List destinations")
def list_destinations(
    trip_id: str,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        destinations = _service().list_destinations(trip_id, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response([item.model_dump(mode="json") for item in destinations])


@router.get(
    "/trips/{trip_id}/activity",
    summary="Trip activity",
    description="Recorded changes to the trip, newest first.",
)
def list_activity(
    trip_id: str,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
    limit: int | None = Query(default=None, ge=1, le=500),
) -> dict:
    try:
        activity = _service().list_activity(trip_id, user_id, share_token, limit)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response([entry.model_dump(mode="json") for entry in activity])


@router.post("/trips/{trip_id}/share_links", summary="Create share link")
def create_share_link(
    trip_id: str, payload: ShareLinkCreate, user_id: str | None = ACTING_USER
) -> dict:
    try:
        link = _service().create_share_link(trip_id, payload, user_id)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response(link.model_dump(mode="json"))


@router.get("/trips/{trip_id}/share_links", summary="List share links")
def list_share_links(trip_id: str, user_id: str | None = ACTING_USER) -> dict:
    try:
        links = _service().list_share_links(trip_id, user_id)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response([link.model_dump(mode="json") for link in links])


@router.delete("/trips/{trip_id}/share_links", summary="Revoke share links")
def delete_share_links(trip_id: str, user_id: str | None = ACTING_USER) -> dict:
    try:
        removed = _service().delete_share_links(trip_id, user_id)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response({"deleted": removed})


@router.get(
    "/shared/{token}",
    summary="Open shared trip",
    description="Trip, granted permission and trip days for a valid share token.",
)
def get_shared_trip(token: str) -> dict:
    try:
        shared = _service().get_shared_trip(token)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response(shared.model_dump(mode="json"))


@router.post(
    "/trips/{trip_id}/destinations",
    summary="Add destination",
    description="Append to the day, or insert at order_index and renumber the day.",
)
def create_destination(
    trip_id: str,
    payload: DestinationCreate,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        destination = _service().create_destination(
            trip_id, payload, user_id, share_token
        )
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response(destination.model_dump(mode="json"))


@router.put("/destinations/{destination_id}", summary="Update destination")
def update_destination(
    destination_id: str,
    payload: DestinationUpdate,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        destination = _service().update_destination(
            destination_id, payload, user_id, share_token
        )
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response(destination.model_dump(mode="json"))


@router.delete("/destinations/{destination_id}", summary="Delete destination")
def delete_destination(
    destination_id: str,
    user_id: str | None = ACTING_USER,
    share_token: str | None = SHARE_TOKEN,
) -> dict:
    try:
        _service().delete_destination(destination_id, user_id, share_token)
    except TriplineError as exc:
        return service_error_response(exc)
    return success_response({"deleted": True})
