"""
Today's status and deadline — pure functions, no DB access.

A passed deadline is advisory only. The streak logic acts on calendar
rollover (clock.today_key), never on the deadline.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from .clock import local_now
from .streak import DayState, classify_day

# Local hours at which a pending day gets a reminder, and how urgent it is
REMINDER_SLOTS: dict[int, str] = {
    12: "gentle",
    18: "reminder",
    21: "urgent",
    23: "final",
}


@dataclass(frozen=True)
class DayStatus:
    date: date
    completed: bool
    frozen: bool
    deadline_at: datetime
    time_remaining: timedelta
    activity_count: int

    @property
    def deadline_missed(self) -> bool:
        return self.time_remaining == timedelta(0)

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "completed": self.completed,
            "frozen": self.frozen,
            "deadline_at": self.deadline_at.isoformat(),
            "time_remaining": format_time_remaining(self.time_remaining),
            "seconds_remaining": int(self.time_remaining.total_seconds()),
            "activity_count": self.activity_count,
        }


def time_remaining(deadline_at: datetime, now: datetime) -> timedelta:
    return max(timedelta(0), deadline_at - now)


def build_status(
    date_key: date,
    entry: dict | None,
    activity_count: int,
    deadline_at: datetime,
    now: datetime,
) -> DayStatus:
    state = classify_day(entry)
    return DayStatus(
        date=date_key,
        completed=state is DayState.COMPLETED,
        frozen=state is DayState.FROZEN,
        deadline_at=deadline_at,
        time_remaining=time_remaining(deadline_at, now),
        activity_count=activity_count,
    )


def format_time_remaining(remaining: timedelta) -> str:
    total_minutes = int(remaining.total_seconds() // 60)
    if remaining <= timedelta(0):
        return "Deadline passed"
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def due_reminder(tz: str | None, now: datetime, day_state: DayState) -> str | None:
    """Urgency label if a reminder is due at this local hour, else None."""
    if day_state is not DayState.PENDING:
        return None
    return REMINDER_SLOTS.get(local_now(tz, now).hour)
