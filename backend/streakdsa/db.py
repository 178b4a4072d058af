import logging
from datetime import date, datetime
from functools import lru_cache

from supabase import create_client, Client

from .config import SUPABASE_SERVICE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000  # Supabase row limit per request


@lru_cache(maxsize=1)
def get_client() -> Client:
    return create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)


def is_duplicate_error(e: Exception) -> bool:
    err_str = str(e).lower()
    return "duplicate" in err_str or "unique" in err_str or "23505" in err_str


# ── Users ─────────────────────────────────────────────────────────────────────

def get_user(db: Client, user_id: str) -> dict | None:
    res = db.table("users").select("*").eq("id", user_id).execute()
    return res.data[0] if res.data else None


def update_user(db: Client, user_id: str, updates: dict) -> None:
    db.table("users").update(updates).eq("id", user_id).execute()


def update_user_counters(db: Client, user_id: str, current_streak: int, max_streak: int, days_completed: int) -> None:
    update_user(db, user_id, {
        "current_streak": current_streak,
        "max_streak": max_streak,
        "days_completed": days_completed,
    })


def add_gems(db: Client, user_id: str, amount: int) -> None:
    """Atomic increment on the gem balance."""
    db.rpc("increment_gems", {"p_user_id": user_id, "p_amount": amount}).execute()


def spend_gems(db: Client, user_id: str, cost: int) -> bool:
    """Atomic conditional debit. False when the balance is below `cost`."""
    res = db.rpc("spend_gems", {"p_user_id": user_id, "p_cost": cost}).execute()
    return res.data is not None


def list_reminder_candidates(db: Client) -> list[dict]:
    res = (
        db.table("users")
        .select("id, email, timezone, reminder_time, current_streak")
        .gt("pledge_days", 0)
        .eq("email_notifications", True)
        .execute()
    )
    return res.data or []


# ── Daily logs ────────────────────────────────────────────────────────────────

def find_entry(db: Client, user_id: str, date_key: date) -> dict | None:
    res = (
        db.table("daily_logs")
        .select("*")
        .eq("user_id", user_id)
        .eq("date", date_key.isoformat())
        .execute()
    )
    return res.data[0] if res.data else None


def upsert_entry(db: Client, user_id: str, date_key: date, fields: dict | None = None) -> dict:
    """
    Create the (user_id, date) row if absent, otherwise merge `fields` into it.
    Relies on the unique (user_id, date) constraint, so concurrent callers
    converge on one row.
    """
    res = (
        db.table("daily_logs")
        .upsert({"user_id": user_id, "date": date_key.isoformat(), **(fields or {})}, on_conflict="user_id,date")
        .execute()
    )
    return res.data[0]


def mark_entry_completed(db: Client, entry_id: str, marked_at: datetime) -> bool:
    """
    Compare-and-set completed false -> true. Returns True only for the caller
    whose update actually flipped the flag. Completing melts any freeze.
    """
    res = (
        db.table("daily_logs")
        .update({"completed": True, "is_frozen": False, "marked_at": marked_at.isoformat()})
        .eq("id", entry_id)
        .eq("completed", False)
        .execute()
    )
    return bool(res.data)


def mark_entry_incomplete(db: Client, entry_id: str) -> None:
    db.table("daily_logs").update({"completed": False, "marked_at": None}).eq("id", entry_id).execute()


def set_entry_frozen(db: Client, entry_id: str, frozen: bool) -> bool:
    """Flip is_frozen on a day that is not completed. Returns True if a row changed."""
    res = (
        db.table("daily_logs")
        .update({"is_frozen": frozen})
        .eq("id", entry_id)
        .eq("completed", False)
        .eq("is_frozen", not frozen)
        .execute()
    )
    return bool(res.data)


def list_entries(db: Client, user_id: str) -> list[dict]:
    """Full daily_logs history for a user, oldest first, fetched in pages."""
    entries: list[dict] = []
    offset = 0
    while True:
        res = (
            db.table("daily_logs")
            .select("id, date, completed, is_frozen")
            .eq("user_id", user_id)
            .order("date")
            .range(offset, offset + PAGE_SIZE - 1)
            .execute()
        )
        batch = res.data or []
        entries.extend(batch)
        if len(batch) < PAGE_SIZE:
            return entries
        offset += PAGE_SIZE


# ── Problem logs ──────────────────────────────────────────────────────────────

def append_activity(db: Client, entry_id: str, activity: dict) -> dict:
    res = db.table("problem_logs").insert({"daily_log_id": entry_id, **activity}).execute()
    return res.data[0]


def count_activities(db: Client, entry_id: str) -> int:
    res = db.table("problem_logs").select("id", count="exact").eq("daily_log_id", entry_id).execute()
    return res.count or 0


def list_activities(db: Client, entry_id: str) -> list[dict]:
    res = db.table("problem_logs").select("*").eq("daily_log_id", entry_id).order("created_at").execute()
    return res.data or []


def get_activity(db: Client, activity_id: str) -> dict | None:
    """Problem log joined with its parent daily log (under the 'daily_logs' key)."""
    res = db.table("problem_logs").select("*, daily_logs(*)").eq("id", activity_id).execute()
    return res.data[0] if res.data else None


def delete_activity(db: Client, activity_id: str) -> None:
    db.table("problem_logs").delete().eq("id", activity_id).execute()


# ── Granted milestones ────────────────────────────────────────────────────────

def claim_milestone(db: Client, user_id: str, kind: str, value: int) -> bool:
    """
    Record a milestone grant. Returns False if it was already granted; the
    unique (user_id, kind, value) constraint is the guard.
    """
    try:
        db.table("granted_milestones").insert({"user_id": user_id, "kind": kind, "value": value}).execute()
        return True
    except Exception as e:
        if is_duplicate_error(e):
            logger.info("Milestone %s:%d already granted to %s...", kind, value, user_id[:8])
            return False
        raise
