from __future__ import annotations

from datetime import date as dt_date
from datetime import datetime, time
from enum import StrEnum
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from tripline.models.itinerary import trip_day_count


class ORMBaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TripPermission(StrEnum):
    OWNER = "owner"
    EDIT = "edit"
    VIEW = "view"
    NONE = "none"

    @property
    def can_edit(self) -> bool:
        return self in (TripPermission.OWNER, TripPermission.EDIT)

    @property
    def can_view(self) -> bool:
        return self is not TripPermission.NONE


def _shared_levels_only(
    value: dict[str, TripPermission],
) -> dict[str, TripPermission]:
    for level in value.values():
        if level not in (TripPermission.VIEW, TripPermission.EDIT):
            msg = "collaborators can only be granted view or edit access"
            raise ValueError(msg)
    return value


class TripBase(BaseModel):
    name: str = Field(min_length=1)
    location: str
    start_date: dt_date
    end_date: dt_date
    is_public: bool = False
    description: str | None = None

    @model_validator(mode="after")
    def validate_dates(self) -> "TripBase":
        if self.start_date > self.end_date:
            msg = "start_date must not be after end_date"
            raise ValueError(msg)
        return self


class TripCreate(TripBase):
    user_id: str = Field(min_length=1)
    collaborators: dict[str, TripPermission] = Field(default_factory=dict)

    @field_validator("collaborators")
    @classmethod
    def validate_collaborators(
        cls, value: dict[str, TripPermission]
    ) -> dict[str, TripPermission]:
        return _shared_levels_only(value)


class TripUpdate(BaseModel):
    name: str | None = None
    location: str | None = None
    start_date: dt_date | None = None
    end_date: dt_date | None = None
    is_public: bool | None = None
    description: str | None = None
    collaborators: dict[str, TripPermission] | None = None

    @field_validator("collaborators")
    @classmethod
    def validate_collaborators(
        cls, value: dict[str, TripPermission] | None
    ) -> dict[str, TripPermission] | None:
        return None if value is None else _shared_levels_only(value)

    @model_validator(mode="after")
    def validate_dates(self) -> "TripUpdate":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            msg = "start_date must not be after end_date"
            raise ValueError(msg)
        return self


class TripSchema(TripBase, ORMBaseSchema):
    id: str
    user_id: str
    collaborators: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @computed_field
    @property
    def day_count(self) -> int:
        return trip_day_count(self.start_date, self.end_date)


class DestinationFields(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    notes: str | None = None
    place_id: str | None = None
    category: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    price_level: int | None = Field(default=None, ge=0, le=4)
    photos: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_time_range(self) -> "DestinationFields":
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            msg = "start_time must be earlier than end_time"
            raise ValueError(msg)
        return self


class DestinationCreate(DestinationFields):
    location_name: str
    address: str
    lat: float
    lng: float
    day: int = 0
    order_index: int | None = None


class DestinationUpdate(BaseModel):
    location_name: str | None = None
    address: str | None = None
    lat: float | None = None
    lng: float | None = None
    start_time: time | None = None
    end_time: time | None = None
    notes: str | None = None
    place_id: str | None = None
    category: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)
    price_level: int | None = Field(default=None, ge=0, le=4)
    photos: list[str] | None = None
    client_updated_at: datetime | None = Field(
        default=None,
        description="Timestamp of the version the client edited, for conflict logging",
    )

    @model_validator(mode="after")
    def validate_time_range(self) -> "DestinationUpdate":
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            msg = "start_time must be earlier than end_time"
            raise ValueError(msg)
        provided = {"lat", "lng"} & self.model_fields_set
        if provided and provided != {"lat", "lng"}:
            msg = "lat and lng must be provided together"
            raise ValueError(msg)
        return self

    @field_validator("photos")
    @classmethod
    def null_photos_clear(cls, value: list[str] | None) -> list[str]:
        return [] if value is None else value

    def changed_fields(self) -> dict[str, Any]:
        return self.model_dump(
            exclude_unset=True,
            exclude={"client_updated_at"},
        )


class DestinationSchema(ORMBaseSchema):
    id: str
    trip_id: str
    location_name: str
    address: str
    lat: float
    lng: float
    day: int
    order_index: int
    start_time: time | None = None
    end_time: time | None = None
    notes: str | None = None
    place_id: str | None = None
    category: str | None = None
    rating: float | None = None
    price_level: int | None = None
    photos: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DayColorSchema(ORMBaseSchema):
    bg: str
    text: str
    border: str
    pin: str


class TripDaySchema(ORMBaseSchema):
    day: int
    date: dt_date | None = None
    destinations: list[DestinationSchema] = Field(default_factory=list)
    color: DayColorSchema | None = None


ActivityAction = Literal[
    "created",
    "updated",
    "added_destination",
    "removed_destination",
    "moved_destination",
    "updated_destination",
    "shared",
    "unshared",
]


class TripActivitySchema(ORMBaseSchema):
    id: int
    trip_id: str
    user_id: str | None = None
    action: ActivityAction
    details: str = ""
    created_at: datetime | None = None


class ShareLinkCreate(BaseModel):
    permission: TripPermission = TripPermission.VIEW
    expires_at: datetime | None = Field(
        default=None, description="Link stops granting access after this moment"
    )

    @field_validator("permission")
    @classmethod
    def validate_permission(cls, value: TripPermission) -> TripPermission:
        if value not in (TripPermission.VIEW, TripPermission.EDIT):
            msg = "share links can only grant view or edit access"
            raise ValueError(msg)
        return value


class ShareLinkSchema(ORMBaseSchema):
    trip_id: str
    token: str
    permission: TripPermission
    expires_at: datetime | None = None
    created_at: datetime | None = None


class SharedTripSchema(BaseModel):
    trip: TripSchema
    permission: TripPermission
    days: list[TripDaySchema] = Field(default_factory=list)


class ReorderPayload(BaseModel):
    destination_id: str
    position: int = Field(ge=0, description="0-based target slot within the day")


class MovePayload(BaseModel):
    destination_id: str
    day: int = Field(ge=0)
    position: int | None = Field(
        default=None, ge=0, description="0-based slot, omitted to append"
    )


class SchedulePayload(BaseModel):
    destination_id: str
    day: int = Field(ge=1)
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def validate_time_range(self) -> "SchedulePayload":
        if self.start_time >= self.end_time:
            msg = "start_time must be earlier than end_time"
            raise ValueError(msg)
        return self


class BulkPayload(BaseModel):
    destination_ids: list[str] = Field(min_length=1)


class BulkTargetPayload(BulkPayload):
    day: int = Field(ge=0)


class OperationReportSchema(BaseModel):
    operation: str
    ok: bool
    error: str | None = None
    reconciled: bool = False
    touched_days: list[int] = Field(default_factory=list)
    created_ids: list[str] = Field(default_factory=list)
    removed_ids: list[str] = Field(default_factory=list)
    days: list[TripDaySchema] = Field(default_factory=list)


__all__ = [
    "TripPermission",
    "TripCreate",
    "TripUpdate",
    "TripSchema",
    "DestinationCreate",
    "DestinationUpdate",
    "DestinationSchema",
    "DayColorSchema",
    "TripDaySchema",
    "ReorderPayload",
    "MovePayload",
    "SchedulePayload",
    "BulkPayload",
    "BulkTargetPayload",
    "OperationReportSchema",
    "ActivityAction",
    "TripActivitySchema",
    "ShareLinkCreate",
    "ShareLinkSchema",
    "SharedTripSchema",
]
