"""Database models."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TrackedItem(Base):
    """A tracked parcel or merchant order."""

    __tablename__ = "tracked_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tracking_code: Mapped[str] = mapped_column(String(100), index=True)
    carrier: Mapped[str] = mapped_column(String(100))  # slug once resolved
    title: Mapped[str] = mapped_column(String(255))

    # Current canonical status (always normalised)
    status: Mapped[str] = mapped_column(Text)
    last_update: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    estimated_delivery: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # Last-mile carrier reported by the merchant
    sub_carrier_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Flags
    is_archived: Mapped[bool] = mapped_column(default=False, index=True)
    is_muted: Mapped[bool] = mapped_column(default=False)
    reminder_sent: Mapped[bool] = mapped_column(default=False)
    # Set the first time the item is archived for being delivered
    auto_archived: Mapped[bool] = mapped_column(default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    events: Mapped[list["TrackingEvent"]] = relationship(
        back_populates="item",
        order_by="desc(TrackingEvent.timestamp)",
        cascade="all, delete-orphan",
    )


class TrackingEvent(Base):
    """One timeline entry of a tracked item."""

    __tablename__ = "tracking_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    item_id: Mapped[str] = mapped_column(ForeignKey("tracked_items.id", ondelete="CASCADE"), index=True)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    description: Mapped[str] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    latitude: Mapped[float | None] = mapped_column(nullable=True)
    longitude: Mapped[float | None] = mapped_column(nullable=True)
    status: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Relationships
    item: Mapped["TrackedItem"] = relationship(back_populates="events")


class SyncRun(Base):
    """Metadata of one sync cycle."""

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    refreshed: Mapped[int] = mapped_column(Integer, default=0)
    failed: Mapped[int] = mapped_column(Integer, default=0)
    changed: Mapped[int] = mapped_column(Integer, default=0)
    notified: Mapped[int] = mapped_column(Integer, default=0)
    reminders: Mapped[int] = mapped_column(Integer, default=0)
