from __future__ import annotations

from typing import Iterable

from tripline.models.itinerary import Destination


def make_destination(
    destination_id: str,
    day: int,
    order_index: int,
    *,
    trip_id: str = "trip-1",
    **fields,
) -> Destination:
    return Destination(
        id=destination_id,
        trip_id=trip_id,
        location_name=fields.pop("location_name", destination_id),
        address=fields.pop("address", f"{destination_id} street"),
        lat=fields.pop("lat", 48.85),
        lng=fields.pop("lng", 2.35),
        day=day,
        order_index=order_index,
        **fields,
    )


def layout(destinations: Iterable[Destination], day: int) -> list[tuple[str, int]]:
    """``(id, order_index)`` pairs of one day in display order."""
    members = sorted(
        (item for item in destinations if item.day == day),
        key=lambda item: item.order_index,
    )
    return [(item.id, item.order_index) for item in members]
