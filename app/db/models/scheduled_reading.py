from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.clock import ensure_utc
from app.db.base import Base


class ScheduledReadingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


NON_TERMINAL_STATUSES = frozenset(
    {
        ScheduledReadingStatus.PENDING.value,
        ScheduledReadingStatus.CONFIRMED.value,
        ScheduledReadingStatus.IN_PROGRESS.value,
    }
)
ACTIVE_STATUS_CLAUSE = text("status IN ('pending', 'confirmed', 'in_progress')")


class ScheduledReading(Base):
    __tablename__ = "scheduled_readings"
    __table_args__ = (
        Index("ix_scheduled_readings_reader_start", "reader_id", "scheduled_at"),
        Index(
            "uq_scheduled_readings_reader_active_start",
            "reader_id",
            "scheduled_at",
            unique=True,
            postgresql_where=ACTIVE_STATUS_CLAUSE,
            sqlite_where=ACTIVE_STATUS_CLAUSE,
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    reader_id: Mapped[int] = mapped_column(
        ForeignKey("reader_profiles.user_id", ondelete="RESTRICT"), nullable=False, index=True
    )
    package_id: Mapped[int | None] = mapped_column(
        ForeignKey("reading_packages.id", ondelete="SET NULL"), nullable=True
    )
    reading_type: Mapped[str] = mapped_column(String(10), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ScheduledReadingStatus.PENDING.value, index=True
    )
    time_zone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    special_requests: Mapped[str | None] = mapped_column(Text, nullable=True)
    recurring_pattern: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    series_parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("scheduled_readings.id", ondelete="SET NULL"), nullable=True
    )
    rescheduled_from_id: Mapped[int | None] = mapped_column(
        ForeignKey("scheduled_readings.id", ondelete="SET NULL"), nullable=True
    )
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reschedule_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    payment_intent_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    total_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    client = relationship("User", foreign_keys=[client_id])
    reader = relationship("ReaderProfile", foreign_keys=[reader_id])
    package = relationship("ReadingPackage")

    @property
    def start_at(self) -> datetime:
        return ensure_utc(self.scheduled_at)

    @property
    def end_at(self) -> datetime:
        return self.start_at + timedelta(minutes=self.duration)

    @property
    def is_active(self) -> bool:
        return self.status in NON_TERMINAL_STATUSES
