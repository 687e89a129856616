from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


class ReadingRequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class RequestUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ReadingRequest(Base):
    __tablename__ = "reading_requests"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reader_id: Mapped[int] = mapped_column(
        ForeignKey("reader_profiles.user_id", ondelete="CASCADE"), nullable=False, index=True
    )
    reading_type: Mapped[str] = mapped_column(String(10), nullable=False)
    session_type: Mapped[str] = mapped_column(String(10), nullable=False, default="instant")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ReadingRequestStatus.PENDING.value, index=True
    )
    urgency: Mapped[str] = mapped_column(String(10), nullable=False, default=RequestUrgency.MEDIUM.value)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    client = relationship("User")
    reader = relationship("ReaderProfile")
