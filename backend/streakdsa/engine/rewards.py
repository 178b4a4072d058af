"""
Gem reward rules — pure functions, no DB access.

These only say what a streak value is worth. Granting at most once per
(user, milestone) is enforced by the granted_milestones ledger in db.py.
"""
from dataclasses import dataclass

FIRST_DAY_GEMS = 10
MILESTONE_GEMS = 50
MILESTONE_EVERY = 10
PLEDGE_COMPLETE_GEMS = 500

STREAK = "streak"
PLEDGE = "pledge"


@dataclass(frozen=True)
class Milestone:
    kind: str       # STREAK | PLEDGE
    value: int      # streak length or pledge length in days
    gems: int


def reward(streak_value: int) -> int | None:
    """Gems for first reaching `streak_value`, or None."""
    if streak_value == 1:
        return FIRST_DAY_GEMS
    if streak_value > 1 and streak_value % MILESTONE_EVERY == 0:
        return MILESTONE_GEMS
    return None


def pledge_reward(days_completed: int, pledge_days: int) -> int | None:
    if pledge_days > 0 and days_completed == pledge_days:
        return PLEDGE_COMPLETE_GEMS
    return None


def milestones_for(streak_value: int, days_completed: int, pledge_days: int) -> list[Milestone]:
    found = []
    gems = reward(streak_value)
    if gems:
        found.append(Milestone(STREAK, streak_value, gems))
    gems = pledge_reward(days_completed, pledge_days)
    if gems:
        found.append(Milestone(PLEDGE, pledge_days, gems))
    return found


def milestone_message(milestone: Milestone) -> str:
    if milestone.kind == PLEDGE:
        return f"Pledge of {milestone.value} days completed! +{milestone.gems} gems!"
    if milestone.value == 1:
        return f"First day logged! +{milestone.gems} gems!"
    return f"{milestone.value}-day streak achieved! +{milestone.gems} gems!"
