from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class ReadingType(str, Enum):
    CHAT = "chat"
    PHONE = "phone"
    VIDEO = "video"


class ReaderProfile(Base):
    __tablename__ = "reader_profiles"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    display_name: Mapped[str] = mapped_column(String(120), nullable=False)
    chat_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    phone_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    video_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0.00"))
    # bumped on every booking write; conditional updates on it serialise bookings per reader
    booking_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    user = relationship("User", back_populates="reader_profile")
    availability = relationship(
        "ReaderAvailability",
        back_populates="reader",
        cascade="all, delete-orphan",
    )
    packages = relationship("ReadingPackage", back_populates="reader", cascade="all, delete-orphan")

    def rate_for(self, reading_type: ReadingType | str) -> Decimal:
        rates = {
            ReadingType.CHAT: self.chat_rate,
            ReadingType.PHONE: self.phone_rate,
            ReadingType.VIDEO: self.video_rate,
        }
        return Decimal(rates[ReadingType(reading_type)])
