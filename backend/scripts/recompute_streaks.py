"""
Rebuild streak counters for a user from their daily_logs history.

Stored current_streak / max_streak / days_completed are a cache of the
replay rule in streakdsa.engine.streak. This recomputes them from scratch.
Safe to run multiple times (idempotent).

Usage:
    cd backend
    SUPABASE_URL=... SUPABASE_SERVICE_KEY=... python scripts/recompute_streaks.py <user_id> [--dry-run]

Or with a .env file in the working directory:
    python scripts/recompute_streaks.py <user_id>
"""
import os
import sys

# Add project root to path so we can import engine modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from streakdsa.checkin import recompute_streak
from streakdsa.db import get_client, get_user, list_entries
from streakdsa.engine.streak import replay_history

COUNTERS = ["current_streak", "max_streak", "days_completed"]


def run(user_id: str, dry_run: bool = False):
    print(f"\n🔍 Recomputing streak for user: {user_id[:8]}...\n")

    db = get_client()

    user = get_user(db, user_id)
    if not user:
        print(f"❌ User not found: {user_id}")
        sys.exit(1)

    print("  Current counters:")
    for k in COUNTERS:
        print(f"    {k}: {user.get(k, 0)}")

    print("\n  Fetching daily logs...")
    entries = list_entries(db, user_id)
    print(f"  fetched {len(entries)} daily logs")

    replay = replay_history(entries)
    computed = {
        "current_streak": replay.current_streak,
        "max_streak": replay.max_streak,
        "days_completed": replay.days_completed,
    }

    print("\n  Computed counters:")
    for k, v in computed.items():
        current_val = user.get(k, 0)
        marker = " ✅" if v == current_val else f" 📈 (was {current_val})"
        print(f"    {k}: {v}{marker}")

    if dry_run:
        print("\n  DRY RUN — no changes written.")
        return

    recompute_streak(db, user_id)
    print(f"\n✅ Counters updated for {user_id[:8]}!\n")


if __name__ == "__main__":
    args = [a for a in sys.argv[1:] if a != "--dry-run"]
    dry = "--dry-run" in sys.argv

    if not args:
        print("Usage: python scripts/recompute_streaks.py <user_id> [--dry-run]")
        sys.exit(1)

    run(args[0], dry_run=dry)
