"""
Streak tracking — pure functions, no DB access.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable

from ..errors import InvariantViolation


class DayState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FROZEN = "frozen"


@dataclass(frozen=True)
class StreakTransition:
    current_streak: int
    max_streak: int
    changed: bool


def classify_day(entry: dict | None) -> DayState:
    """
    Map a daily_logs row (or None) onto a DayState.
    Completion wins when both flags are set in storage.
    """
    if not entry:
        return DayState.PENDING
    if entry.get("completed"):
        return DayState.COMPLETED
    if entry.get("is_frozen"):
        return DayState.FROZEN
    return DayState.PENDING


def is_continuing(state: DayState) -> bool:
    return state in (DayState.COMPLETED, DayState.FROZEN)


def check_counters(current_streak: int, max_streak: int) -> None:
    if current_streak < 0 or max_streak < 0 or max_streak < current_streak:
        raise InvariantViolation(
            f"Corrupt streak counters: current={current_streak} max={max_streak}"
        )


def transition(
    previous_day_state: DayState,
    today_already_completed: bool,
    current_streak: int,
    max_streak: int,
) -> StreakTransition:
    """
    Counters after today is completed. Call on the event that completes the
    day; an already-completed day is a no-op.
    """
    check_counters(current_streak, max_streak)

    if today_already_completed:
        return StreakTransition(current_streak, max_streak, changed=False)

    if current_streak == 0 or is_continuing(previous_day_state):
        new_current = current_streak + 1
    else:
        new_current = 1

    return StreakTransition(new_current, max(max_streak, new_current), changed=True)


@dataclass(frozen=True)
class ReplayResult:
    current_streak: int
    max_streak: int
    days_completed: int


def replay_history(entries: Iterable[dict]) -> ReplayResult:
    """
    Rebuild counters from a user's full daily_logs history by applying
    `transition` to every completed day in ascending date order.
    """
    states: dict[date, DayState] = {}
    for entry in entries:
        states[as_date(entry["date"])] = classify_day(entry)

    current = best = completed = 0
    for day in sorted(states):
        if states[day] is not DayState.COMPLETED:
            continue
        previous = states.get(day - timedelta(days=1), DayState.PENDING)
        step = transition(previous, False, current, best)
        current, best = step.current_streak, step.max_streak
        completed += 1

    return ReplayResult(current, best, completed)


def streak_health(yesterday_state: DayState, today_state: DayState) -> str:
    """
    Display-only view of the stored streak:
    'active' when today is done or frozen, 'at_risk' when today is pending
    but yesterday continued, 'broken' otherwise.
    """
    if is_continuing(today_state):
        return "active"
    if is_continuing(yesterday_state):
        return "at_risk"
    return "broken"


def as_date(value) -> date:
    return value if isinstance(value, date) else date.fromisoformat(str(value)[:10])
