from __future__ import annotations

import uuid
from datetime import date

from tripline.models.schemas import DestinationCreate, TripCreate
from tripline.services.trip_service import TripService


def new_user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


def create_trip(owner: str, **overrides):
    payload = {
        "user_id": owner,
        "name": "Lisbon long weekend",
        "location": "Lisbon",
        "start_date": date(2025, 6, 1),
        "end_date": date(2025, 6, 3),
    }
    payload.update(overrides)
    return TripService().create_trip(TripCreate(**payload))


def add_destination(trip_id: str, owner: str, name: str, day: int = 0, **fields):
    payload = DestinationCreate(
        location_name=name,
        address=f"{name}, Lisbon",
        lat=38.72,
        lng=-9.14,
        day=day,
        **fields,
    )
    return TripService().create_destination(trip_id, payload, owner)
