"""Itinerary domain model.

A trip's destinations are grouped by ``day``; day 0 holds the ungrouped
(unscheduled) destinations and days ``1..N`` follow the trip's date range.
Within one (trip, day) group the ``order_index`` values are always exactly
``1..n``. Day views are derived from the flat destination set and never
mutated directly.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date as dt_date
from datetime import datetime, time, timedelta
from typing import Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tripline.services.exceptions import InvariantViolation

UNGROUPED_DAY = 0
DRAFT_ID_PREFIX = "draft-"


class Destination(BaseModel):
    """A single itinerary stop as held by the client-side model."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = ""
    trip_id: str
    location_name: str
    address: str
    lat: float
    lng: float
    day: int = Field(default=UNGROUPED_DAY, ge=0)
    order_index: int = Field(default=1, ge=1)
    start_time: time | None = None
    end_time: time | None = None
    notes: str | None = None
    place_id: str | None = None
    category: str | None = None
    rating: float | None = None
    price_level: int | None = None
    photos: tuple[str, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def validate_time_window(self) -> "Destination":
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            msg = "start_time must be earlier than end_time"
            raise ValueError(msg)
        return self

    @property
    def is_scheduled(self) -> bool:
        return self.day != UNGROUPED_DAY

    @property
    def is_draft(self) -> bool:
        return is_draft_id(self.id)


def new_draft_id() -> str:
    """Provisional identity for a record the store has not created yet."""
    return f"{DRAFT_ID_PREFIX}{uuid.uuid4().hex}"


def is_draft_id(destination_id: str) -> bool:
    return not destination_id or destination_id.startswith(DRAFT_ID_PREFIX)


@dataclass(frozen=True, slots=True)
class DayColor:
    bg: str
    text: str
    border: str
    pin: str


DAY_COLORS: tuple[DayColor, ...] = (
    DayColor("bg-red-100", "text-red-700", "border-red-300", "#DC2626"),
    DayColor("bg-blue-100", "text-blue-700", "border-blue-300", "#2563EB"),
    DayColor("bg-green-100", "text-green-700", "border-green-300", "#16A34A"),
    DayColor("bg-yellow-100", "text-yellow-700", "border-yellow-300", "#CA8A04"),
    DayColor("bg-purple-100", "text-purple-700", "border-purple-300", "#9333EA"),
    DayColor("bg-pink-100", "text-pink-700", "border-pink-300", "#DB2777"),
    DayColor("bg-indigo-100", "text-indigo-700", "border-indigo-300", "#4F46E5"),
    DayColor("bg-orange-100", "text-orange-700", "border-orange-300", "#EA580C"),
    DayColor("bg-teal-100", "text-teal-700", "border-teal-300", "#0D9488"),
    DayColor("bg-cyan-100", "text-cyan-700", "border-cyan-300", "#0891B2"),
)


def day_color(day: int) -> DayColor | None:
    """Palette entry for a scheduled day; the ungrouped day has none."""
    if day <= UNGROUPED_DAY:
        return None
    return DAY_COLORS[(day - 1) % len(DAY_COLORS)]


@dataclass(frozen=True, slots=True)
class TripDay:
    day: int
    date: dt_date | None
    destinations: tuple[Destination, ...]
    color: DayColor | None

    @property
    def is_ungrouped(self) -> bool:
        return self.day == UNGROUPED_DAY


def trip_day_count(start_date: dt_date | None, end_date: dt_date | None) -> int:
    if start_date is None or end_date is None or end_date < start_date:
        return 0
    return (end_date - start_date).days + 1


def destinations_for_day(
    destinations: Iterable[Destination], day: int
) -> list[Destination]:
    # sorted() is stable, so equal indexes keep their array order
    members = [item for item in destinations if item.day == day]
    return sorted(members, key=lambda item: item.order_index)


def group_by_day(destinations: Iterable[Destination]) -> dict[int, list[Destination]]:
    grouped: dict[int, list[Destination]] = defaultdict(list)
    for item in destinations:
        grouped[item.day].append(item)
    return {
        day: sorted(items, key=lambda item: item.order_index)
        for day, items in sorted(grouped.items())
    }


def sort_destinations(destinations: Iterable[Destination]) -> tuple[Destination, ...]:
    return tuple(sorted(destinations, key=lambda item: (item.day, item.order_index)))


def next_order_index(destinations: Iterable[Destination], day: int) -> int:
    return sum(1 for item in destinations if item.day == day) + 1


def build_trip_days(
    destinations: Sequence[Destination],
    *,
    start_date: dt_date | None = None,
    day_count: int = 0,
) -> list[TripDay]:
    """Derive the day views: ungrouped first, then days 1..N.

    Days holding destinations beyond ``day_count`` (for example after the trip
    was shortened) are still listed so nothing disappears from the view.
    """

    grouped = group_by_day(destinations)
    days = {UNGROUPED_DAY, *range(1, day_count + 1), *grouped.keys()}
    views: list[TripDay] = []
    for day in sorted(days):
        calendar_date = None
        if start_date is not None and day > UNGROUPED_DAY:
            calendar_date = start_date + timedelta(days=day - 1)
        views.append(
            TripDay(
                day=day,
                date=calendar_date,
                destinations=tuple(grouped.get(day, ())),
                color=day_color(day),
            )
        )
    return views


def density_violations(
    destinations: Iterable[Destination],
) -> dict[tuple[str, int], list[int]]:
    by_group: dict[tuple[str, int], list[int]] = defaultdict(list)
    for item in destinations:
        by_group[(item.trip_id, item.day)].append(item.order_index)
    violations: dict[tuple[str, int], list[int]] = {}
    for key, indexes in by_group.items():
        ordered = sorted(indexes)
        if ordered != list(range(1, len(ordered) + 1)):
            violations[key] = ordered
    return violations


def assert_dense(destinations: Iterable[Destination]) -> None:
    violations = density_violations(destinations)
    if violations:
        (trip_id, day), indexes = next(iter(sorted(violations.items())))
        raise InvariantViolation(trip_id, day, indexes)


__all__ = [
    "UNGROUPED_DAY",
    "Destination",
    "DayColor",
    "DAY_COLORS",
    "TripDay",
    "day_color",
    "new_draft_id",
    "is_draft_id",
    "trip_day_count",
    "destinations_for_day",
    "group_by_day",
    "sort_destinations",
    "next_order_index",
    "build_trip_days",
    "density_violations",
    "assert_dense",
]
