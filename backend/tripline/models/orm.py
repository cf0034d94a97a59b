from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tripline.models import Base

JSONType = sa.JSON().with_variant(
    postgresql.JSONB(astext_type=sa.Text()),
    "postgresql",
)


def _new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
        onupdate=utcnow,
    )


class Trip(TimestampMixin, Base):
    __tablename__ = "trips"

    id: Mapped[str] = mapped_column(sa.String(32), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(sa.String(64), index=True)
    name: Mapped[str] = mapped_column(sa.String(255))
    location: Mapped[str] = mapped_column(sa.String(255))
    start_date: Mapped[date] = mapped_column(sa.Date)
    end_date: Mapped[date] = mapped_column(sa.Date)
    is_public: Mapped[bool] = mapped_column(
        sa.Boolean,
        default=False,
        server_default=sa.false(),
    )
    description: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    # {user_id: "view" | "edit"}
    collaborators: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)

    destinations: Mapped[list["Destination"]] = relationship(
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by=lambda: [Destination.day, Destination.order_index],
    )


class Destination(TimestampMixin, Base):
    __tablename__ = "destinations"
    __table_args__ = (
        sa.UniqueConstraint(
            "trip_id", "day", "order_index", name="uq_destinations_trip_day_order"
        ),
    )

    id: Mapped[str] = mapped_column(sa.String(32), primary_key=True, default=_new_id)
    trip_id: Mapped[str] = mapped_column(
        sa.String(32),
        sa.ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    location_name: Mapped[str] = mapped_column(sa.String(255))
    address: Mapped[str] = mapped_column(sa.String(512))
    lat: Mapped[float] = mapped_column(sa.Float)
    lng: Mapped[float] = mapped_column(sa.Float)
    day: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    order_index: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    start_time: Mapped[time | None] = mapped_column(sa.Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(sa.Time, nullable=True)
    notes: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    place_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    category: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)
    rating: Mapped[float | None] = mapped_column(sa.Float, nullable=True)
    price_level: Mapped[int | None] = mapped_column(sa.Integer, nullable=True)
    photos: Mapped[list[str]] = mapped_column(JSONType, default=list)

    trip: Mapped["Trip"] = relationship(back_populates="destinations")


class TripActivity(Base):
    __tablename__ = "trip_activity"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    trip_id: Mapped[str] = mapped_column(
        sa.String(32),
        sa.ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    action: Mapped[str] = mapped_column(sa.String(32))
    details: Mapped[str] = mapped_column(sa.Text, default="")
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
    )


class ShareLink(Base):
    __tablename__ = "share_links"

    id: Mapped[str] = mapped_column(sa.String(32), primary_key=True, default=_new_id)
    trip_id: Mapped[str] = mapped_column(
        sa.String(32),
        sa.ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token: Mapped[str] = mapped_column(sa.String(64), unique=True, index=True)
    # "view" | "edit"
    permission: Mapped[str] = mapped_column(sa.String(16))
    expires_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=sa.func.now(),
    )
