"""
Check-in orchestrator: the only code path that mutates streak state.

Every mutation for a (user, day) runs inside `day_locks.hold((user_id, day))`.
Within it the daily_logs compare-and-set on `completed` decides which caller
runs the streak transition, so a day is counted and rewarded at most once
even across worker processes.
"""
import logging
from datetime import date, datetime, timedelta

from .config import DEFAULT_DAILY_PROBLEM_LIMIT, FREEZE_COST_GEMS
from .db import (
    get_user, find_entry, upsert_entry, mark_entry_completed, mark_entry_incomplete,
    set_entry_frozen, append_activity, count_activities, get_activity,
    delete_activity, list_entries, update_user_counters, add_gems, spend_gems,
    claim_milestone,
)
from .engine.clock import deadline_instant, today_key, utcnow
from .engine.deadline import build_status
from .engine.rewards import Milestone, milestone_message, milestones_for
from .engine.streak import (
    DayState, as_date, check_counters, classify_day, replay_history,
    streak_health, transition,
)
from .errors import (
    ActivityLimitError, AlreadyCompletedError, AlreadyFrozenError,
    InsufficientGemsError, NotFoundError, ValidationError,
)
from .invalidation import emit
from .locks import day_locks

logger = logging.getLogger(__name__)


def _require_user(db, user_id: str) -> dict:
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("User")
    return user


def _counters(user: dict) -> tuple[int, int]:
    return user.get("current_streak") or 0, user.get("max_streak") or 0


def _snapshot(user: dict, **extra) -> dict:
    current, best = _counters(user)
    return {
        "completed_today": True,
        "current_streak": current,
        "max_streak": best,
        "gems_awarded": 0,
        "gems_refunded": 0,
        "milestone": None,
        "melted": False,
        **extra,
    }


# ── Completion ────────────────────────────────────────────────────────────────

def record_activity(db, user_id: str, activity: dict, now: datetime | None = None) -> dict:
    """Log one problem for the user's local today and complete the day."""
    now = now or utcnow()
    user = _require_user(db, user_id)
    check_counters(*_counters(user))
    today = today_key(user.get("timezone"), now)

    with day_locks.hold((user_id, today)):
        entry = upsert_entry(db, user_id, today)
        limit = user.get("daily_problem_limit") or DEFAULT_DAILY_PROBLEM_LIMIT
        if count_activities(db, entry["id"]) >= limit:
            raise ActivityLimitError(limit)
        problem = append_activity(db, entry["id"], activity)
        result = _complete_day(db, user_id, entry, today, now)

    emit(user_id, "activity_recorded")
    return {**result, "problem": problem}


def mark_day_complete(db, user_id: str, now: datetime | None = None) -> dict:
    """Explicit completion of today without logging a problem."""
    now = now or utcnow()
    user = _require_user(db, user_id)
    today = today_key(user.get("timezone"), now)

    with day_locks.hold((user_id, today)):
        entry = upsert_entry(db, user_id, today)
        result = _complete_day(db, user_id, entry, today, now)

    emit(user_id, "day_completed")
    return result


def _complete_day(db, user_id: str, entry: dict, today: date, now: datetime) -> dict:
    # Fresh read under the lock: counters may have moved since the caller loaded the user.
    user = _require_user(db, user_id)
    if entry.get("completed"):
        return _snapshot(user)

    current, best = _counters(user)
    check_counters(current, best)

    was_frozen = bool(entry.get("is_frozen"))
    if not mark_entry_completed(db, entry["id"], now):
        # Another worker completed the day between our read and our write.
        return _snapshot(_require_user(db, user_id))

    previous = classify_day(find_entry(db, user_id, today - timedelta(days=1)))
    step = transition(previous, False, current, best)
    days_completed = (user.get("days_completed") or 0) + 1
    update_user_counters(db, user_id, step.current_streak, step.max_streak, days_completed)

    granted = _grant_milestones(db, user_id, step.current_streak, days_completed, user.get("pledge_days") or 0)
    gems_awarded = sum(m.gems for m in granted)

    refund = 0
    if was_frozen and FREEZE_COST_GEMS:
        refund = FREEZE_COST_GEMS
        add_gems(db, user_id, refund)

    logger.info(
        "Day %s completed for %s...: streak %d -> %d (max %d), +%d gems%s",
        today, user_id[:8], current, step.current_streak, step.max_streak,
        gems_awarded, ", freeze melted" if was_frozen else "",
    )
    return {
        "completed_today": True,
        "current_streak": step.current_streak,
        "max_streak": step.max_streak,
        "gems_awarded": gems_awarded,
        "gems_refunded": refund,
        "milestone": milestone_message(granted[-1]) if granted else None,
        "melted": was_frozen,
    }


def _grant_milestones(db, user_id: str, streak: int, days_completed: int, pledge_days: int) -> list[Milestone]:
    granted = []
    for milestone in milestones_for(streak, days_completed, pledge_days):
        if claim_milestone(db, user_id, milestone.kind, milestone.value):
            add_gems(db, user_id, milestone.gems)
            granted.append(milestone)
    return granted


# ── Status ────────────────────────────────────────────────────────────────────

def get_status(db, user_id: str, now: datetime | None = None) -> dict:
    """Read-only; never takes the day lock."""
    now = now or utcnow()
    user = _require_user(db, user_id)
    tz = user.get("timezone")
    today = today_key(tz, now)

    entry = find_entry(db, user_id, today)
    activity_count = count_activities(db, entry["id"]) if entry else 0
    deadline_at = deadline_instant(tz, user.get("reminder_time"), today)
    status = build_status(today, entry, activity_count, deadline_at, now)

    yesterday = classify_day(find_entry(db, user_id, today - timedelta(days=1)))
    current, best = _counters(user)
    return {
        **status.to_dict(),
        "deadline_missed": status.deadline_missed,
        "current_streak": current,
        "max_streak": best,
        "streak_health": streak_health(yesterday, classify_day(entry)),
    }


# ── Freeze ────────────────────────────────────────────────────────────────────

def _future_day(user: dict, date_key: date | None, now: datetime) -> date:
    today = today_key(user.get("timezone"), now)
    date_key = date_key or today
    if date_key < today:
        # Past days are already baked into the stored counters.
        raise ValidationError("Cannot change the freeze on a day that has already passed")
    return date_key


def set_freeze(db, user_id: str, date_key: date | None = None, now: datetime | None = None) -> dict:
    now = now or utcnow()
    user = _require_user(db, user_id)
    day = _future_day(user, date_key, now)

    with day_locks.hold((user_id, day)):
        state = classify_day(find_entry(db, user_id, day))
        if state is DayState.COMPLETED:
            raise AlreadyCompletedError("You have already completed a problem on this day")
        if state is DayState.FROZEN:
            raise AlreadyFrozenError()
        # The day lock does not cover other days, so the debit itself must be conditional.
        if FREEZE_COST_GEMS and not spend_gems(db, user_id, FREEZE_COST_GEMS):
            balance = (get_user(db, user_id) or {}).get("gems") or 0
            raise InsufficientGemsError(FREEZE_COST_GEMS, balance)

        entry = upsert_entry(db, user_id, day)
        if not set_entry_frozen(db, entry["id"], True):
            if FREEZE_COST_GEMS:
                add_gems(db, user_id, FREEZE_COST_GEMS)
            if classify_day(find_entry(db, user_id, day)) is DayState.COMPLETED:
                raise AlreadyCompletedError("You have already completed a problem on this day")
            raise AlreadyFrozenError()

    logger.info("Freeze set for %s... on %s", user_id[:8], day)
    emit(user_id, "freeze_set")
    return {**entry, "is_frozen": True}


def clear_freeze(db, user_id: str, date_key: date | None = None, now: datetime | None = None) -> dict:
    now = now or utcnow()
    user = _require_user(db, user_id)
    day = _future_day(user, date_key, now)

    with day_locks.hold((user_id, day)):
        entry = find_entry(db, user_id, day)
        if classify_day(entry) is not DayState.FROZEN or not set_entry_frozen(db, entry["id"], False):
            raise NotFoundError("Freeze")
        if FREEZE_COST_GEMS:
            add_gems(db, user_id, FREEZE_COST_GEMS)

    logger.info("Freeze cleared for %s... on %s", user_id[:8], day)
    emit(user_id, "freeze_cleared")
    return {**entry, "is_frozen": False}


# ── Removal and recovery ──────────────────────────────────────────────────────

def remove_activity(db, user_id: str, activity_id: str) -> dict:
    """
    Delete one problem log. When it was the day's last one the day is
    un-completed and the counters are rebuilt from history.
    """
    problem = get_activity(db, activity_id)
    entry = (problem or {}).get("daily_logs")
    if not entry or entry.get("user_id") != user_id:
        raise NotFoundError("Problem")
    day = as_date(entry["date"])

    with day_locks.hold((user_id, day)):
        delete_activity(db, activity_id)
        remaining = count_activities(db, entry["id"])
        counters = None
        if remaining == 0 and entry.get("completed"):
            mark_entry_incomplete(db, entry["id"])
            counters = recompute_streak(db, user_id)

    emit(user_id, "activity_removed")
    result = {"deleted": True, "remaining": remaining}
    if counters:
        result.update(counters)
    return result


def recompute_streak(db, user_id: str) -> dict:
    """Rebuild current/max/days_completed from the full daily_logs history."""
    user = _require_user(db, user_id)
    replay = replay_history(list_entries(db, user_id))
    stored = (*_counters(user), user.get("days_completed") or 0)
    rebuilt = (replay.current_streak, replay.max_streak, replay.days_completed)
    if stored != rebuilt:
        logger.warning("Streak counters for %s... rebuilt %s -> %s", user_id[:8], stored, rebuilt)
    update_user_counters(db, user_id, *rebuilt)
    emit(user_id, "streak_recomputed")
    return {
        "current_streak": replay.current_streak,
        "max_streak": replay.max_streak,
        "days_completed": replay.days_completed,
    }
