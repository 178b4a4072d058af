"""
In-memory stand-in for the supabase repository functions used by
streakdsa.checkin. Every operation holds one lock so compare-and-set and
unique-insert behave atomically, like the real constraints.
"""
import itertools
import threading
import uuid
from datetime import date

import pytest

import streakdsa.checkin as checkin
from streakdsa import invalidation

REPO_FUNCTIONS = [
    "get_user", "find_entry", "upsert_entry", "mark_entry_completed",
    "mark_entry_incomplete", "set_entry_frozen", "append_activity",
    "count_activities", "get_activity", "delete_activity", "list_entries",
    "update_user_counters", "add_gems", "spend_gems", "claim_milestone",
]


class FakeLedger:
    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self.users: dict[str, dict] = {}
        self.logs: dict[tuple[str, date], dict] = {}
        self.problems: dict[str, dict] = {}
        self.milestones: set[tuple[str, str, int]] = set()
        self.gem_changes: list[tuple[str, int]] = []

    def add_user(self, user_id=None, **fields) -> str:
        user_id = user_id or str(uuid.uuid4())
        self.users[user_id] = {
            "id": user_id,
            "timezone": "UTC",
            "reminder_time": "23:00",
            "pledge_days": 0,
            "current_streak": 0,
            "max_streak": 0,
            "days_completed": 0,
            "gems": 1000,
            "daily_problem_limit": 2,
            **fields,
        }
        return user_id

    def _next_id(self) -> str:
        return f"id-{next(self._ids)}"

    # ── repository functions ──────────────────────────────────────────────────

    def get_user(self, db, user_id):
        with self._lock:
            user = self.users.get(user_id)
            return dict(user) if user else None

    def find_entry(self, db, user_id, date_key):
        with self._lock:
            entry = self.logs.get((user_id, date_key))
            return dict(entry) if entry else None

    def upsert_entry(self, db, user_id, date_key, fields=None):
        with self._lock:
            entry = self.logs.setdefault((user_id, date_key), {
                "id": self._next_id(),
                "user_id": user_id,
                "date": date_key.isoformat(),
                "completed": False,
                "is_frozen": False,
                "marked_at": None,
            })
            entry.update(fields or {})
            return dict(entry)

    def _entry_by_id(self, entry_id):
        return next(e for e in self.logs.values() if e["id"] == entry_id)

    def mark_entry_completed(self, db, entry_id, marked_at):
        with self._lock:
            entry = self._entry_by_id(entry_id)
            if entry["completed"]:
                return False
            entry.update(completed=True, is_frozen=False, marked_at=marked_at.isoformat())
            return True

    def mark_entry_incomplete(self, db, entry_id):
        with self._lock:
            self._entry_by_id(entry_id).update(completed=False, marked_at=None)

    def set_entry_frozen(self, db, entry_id, frozen):
        with self._lock:
            entry = self._entry_by_id(entry_id)
            if entry["completed"] or entry["is_frozen"] == frozen:
                return False
            entry["is_frozen"] = frozen
            return True

    def list_entries(self, db, user_id):
        with self._lock:
            rows = [dict(e) for (uid, _), e in self.logs.items() if uid == user_id]
            return sorted(rows, key=lambda e: e["date"])

    def append_activity(self, db, entry_id, activity):
        with self._lock:
            problem = {"id": self._next_id(), "daily_log_id": entry_id, **activity}
            self.problems[problem["id"]] = problem
            return dict(problem)

    def count_activities(self, db, entry_id):
        with self._lock:
            return sum(1 for p in self.problems.values() if p["daily_log_id"] == entry_id)

    def get_activity(self, db, activity_id):
        with self._lock:
            problem = self.problems.get(activity_id)
            if not problem:
                return None
            return {**problem, "daily_logs": dict(self._entry_by_id(problem["daily_log_id"]))}

    def delete_activity(self, db, activity_id):
        with self._lock:
            self.problems.pop(activity_id, None)

    def update_user_counters(self, db, user_id, current_streak, max_streak, days_completed):
        with self._lock:
            self.users[user_id].update(
                current_streak=current_streak, max_streak=max_streak, days_completed=days_completed,
            )

    def add_gems(self, db, user_id, amount):
        with self._lock:
            self.users[user_id]["gems"] = max(0, self.users[user_id]["gems"] + amount)
            self.gem_changes.append((user_id, amount))

    def spend_gems(self, db, user_id, cost):
        with self._lock:
            if self.users[user_id]["gems"] < cost:
                return False
            self.users[user_id]["gems"] -= cost
            self.gem_changes.append((user_id, -cost))
            return True

    def claim_milestone(self, db, user_id, kind, value):
        with self._lock:
            key = (user_id, kind, value)
            if key in self.milestones:
                return False
            self.milestones.add(key)
            return True

    # ── helpers for assertions ────────────────────────────────────────────────

    def state(self, user_id, date_key):
        return self.logs.get((user_id, date_key))

    def seed_day(self, user_id, date_key, completed=False, is_frozen=False):
        self.upsert_entry(None, user_id, date_key, {"completed": completed, "is_frozen": is_frozen})


@pytest.fixture
def ledger(monkeypatch):
    fake = FakeLedger()
    for name in REPO_FUNCTIONS:
        monkeypatch.setattr(checkin, name, getattr(fake, name))
    return fake


@pytest.fixture
def invalidations():
    seen = []

    def record(user_id, reason):
        seen.append((user_id, reason))

    invalidation.subscribe(record)
    yield seen
    invalidation.unsubscribe(record)