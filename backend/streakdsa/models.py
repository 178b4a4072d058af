import re
from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .engine.clock import REMINDER_TIME_RE, is_valid_timezone

TOPICS = {
    "BASICS", "SORTING", "ARRAYS", "BINARY_SEARCH", "STRINGS", "LINKED_LISTS",
    "RECURSION", "BIT_MANIPULATION", "STACKS_QUEUES", "SLIDING_WINDOW", "HEAPS",
    "GREEDY", "BINARY_TREES", "BST", "GRAPHS", "DYNAMIC_PROGRAMMING", "TRIES", "OTHER",
}

URL_RE = re.compile(r"^https?://\S+$")


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


def normalize_topic(raw: str | None) -> str:
    """'Binary Search' -> 'BINARY_SEARCH'; anything unknown maps to OTHER."""
    if not raw:
        return "OTHER"
    candidate = re.sub(r"\s+", "_", raw.strip().upper())
    return candidate if candidate in TOPICS else "OTHER"


class ProblemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    difficulty: Difficulty
    topic: Optional[str] = None
    tags: list[str] = []
    external_url: Optional[str] = None
    notes: Optional[str] = None
    model_config = {"extra": "ignore"}

    @field_validator("external_url")
    @classmethod
    def validate_url(cls, v):
        if v and not URL_RE.match(v):
            raise ValueError("must be an http(s) URL")
        return v or None

    def to_activity(self) -> dict:
        """Row for problem_logs; the raw topic is always kept among the tags."""
        tags = list(self.tags)
        if self.topic and self.topic not in tags:
            tags.append(self.topic)
        return {
            "name": self.name,
            "topic": normalize_topic(self.topic),
            "difficulty": self.difficulty.value,
            "tags": tags,
            "external_url": self.external_url,
            "notes": self.notes,
        }


class FreezeRequest(BaseModel):
    day: Optional[date] = None


class SettingsPatch(BaseModel):
    reminder_time: Optional[str] = None
    timezone: Optional[str] = None
    daily_problem_limit: Optional[int] = Field(default=None, ge=1, le=10)

    @field_validator("reminder_time")
    @classmethod
    def validate_reminder_time(cls, v):
        if v is not None and not REMINDER_TIME_RE.match(v):
            raise ValueError("must be HH:MM (24h)")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is not None and not is_valid_timezone(v):
            raise ValueError("unknown IANA timezone")
        return v
