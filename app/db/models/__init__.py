from app.db.models.reader_availability import ReaderAvailability
from app.db.models.reader_profile import ReaderProfile, ReadingType
from app.db.models.reading_package import ReadingPackage
from app.db.models.reading_request import ReadingRequest, ReadingRequestStatus, RequestUrgency
from app.db.models.scheduled_reading import NON_TERMINAL_STATUSES, ScheduledReading, ScheduledReadingStatus
from app.db.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "ReaderProfile",
    "ReadingType",
    "ReaderAvailability",
    "ReadingPackage",
    "ScheduledReading",
    "ScheduledReadingStatus",
    "NON_TERMINAL_STATUSES",
    "ReadingRequest",
    "ReadingRequestStatus",
    "RequestUrgency",
]
