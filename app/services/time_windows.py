import re
from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.db.models import ReaderAvailability

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> time:
    match = HHMM_PATTERN.match(value)
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def to_minutes(value: str) -> int:
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def format_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def sunday_weekday(day: date) -> int:
    """Day of week with Sunday = 0, the convention availability entries use."""
    return (day.weekday() + 1) % 7


def is_valid_zone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def localize(day: date, hhmm: str, zone_name: str) -> datetime:
    local = datetime.combine(day, parse_hhmm(hhmm), tzinfo=ZoneInfo(zone_name))
    return local.astimezone(UTC)


def local_date(instant: datetime, zone_name: str) -> date:
    return instant.astimezone(ZoneInfo(zone_name)).date()


def local_hhmm(instant: datetime, zone_name: str) -> str:
    return instant.astimezone(ZoneInfo(zone_name)).strftime("%H:%M")


def local_window(entry: ReaderAvailability, instant: datetime) -> tuple[datetime, datetime] | None:
    day = local_date(instant, entry.time_zone)
    if sunday_weekday(day) != entry.day_of_week:
        return None
    return localize(day, entry.start_time, entry.time_zone), localize(day, entry.end_time, entry.time_zone)


def wall_clock_exists(day: date, hhmm: str, zone_name: str) -> bool:
    """False for a local time skipped by a daylight-saving jump."""
    zone = ZoneInfo(zone_name)
    local = datetime.combine(day, parse_hhmm(hhmm), tzinfo=zone)
    return local.astimezone(UTC).astimezone(zone).replace(tzinfo=None) == local.replace(tzinfo=None)
