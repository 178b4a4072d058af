"""
Timezone-aware calendar helpers — pure functions, no DB access.

A "date key" is a plain `date`: the user's local day, with no time or zone.
Bad timezone or reminder strings never raise; they fall back to the
configured defaults and log a warning.
"""
import logging
import re
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import DEFAULT_REMINDER_TIME, DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)

REMINDER_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def resolve_timezone(tz: str | None) -> ZoneInfo:
    if tz:
        try:
            return ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError, OSError) as e:
            logger.warning("Invalid timezone %r, falling back to %s: %s", tz, DEFAULT_TIMEZONE, e)
    return ZoneInfo(DEFAULT_TIMEZONE)


def is_valid_timezone(tz: str) -> bool:
    try:
        ZoneInfo(tz)
        return True
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return False


def parse_reminder_time(value: str | None) -> time:
    """'HH:MM' -> time. Malformed input falls back to DEFAULT_REMINDER_TIME."""
    m = REMINDER_TIME_RE.match(value or "")
    if not m:
        logger.warning("Invalid reminder time %r, falling back to %s", value, DEFAULT_REMINDER_TIME)
        m = REMINDER_TIME_RE.match(DEFAULT_REMINDER_TIME)
    return time(int(m.group(1)), int(m.group(2)))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def local_now(tz: str | None, now: datetime | None = None) -> datetime:
    return (now or utcnow()).astimezone(resolve_timezone(tz))


def today_key(tz: str | None, now: datetime | None = None) -> date:
    """Calendar day of `now` as seen in `tz`."""
    return local_now(tz, now).date()


def deadline_instant(tz: str | None, reminder_time: str | None, date_key: date) -> datetime:
    """
    The UTC instant at which `date_key` reaches `reminder_time` in `tz`.
    """
    local = datetime.combine(date_key, parse_reminder_time(reminder_time), tzinfo=resolve_timezone(tz))
    return local.astimezone(timezone.utc)
