from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, SmallInteger, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class ReaderAvailability(Base):
    """One weekly window. ``day_of_week`` counts from Sunday = 0."""

    __tablename__ = "reader_availability"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    reader_id: Mapped[int] = mapped_column(
        ForeignKey("reader_profiles.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    time_zone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reading_types: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    max_concurrent_sessions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    break_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    reader = relationship("ReaderProfile", back_populates="availability")
