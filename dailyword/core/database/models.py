"""
Database models for the daily vocabulary core
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Generic, TypeVar

from ...streak import DayProgress

T = TypeVar("T")


class Level(str, Enum):
    """Learner level from the placement assessment"""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"

    @classmethod
    def parse(cls, value: str | None) -> "Level":
        """Parse a stored level, defaulting to Beginner"""
        for level in cls:
            if value and value.lower() == level.value.lower():
                return level
        return cls.BEGINNER


class InsertOutcome(str, Enum):
    """Result of an idempotent insert"""

    CREATED = "created"
    ALREADY_EXISTED = "already_existed"
    FAILED = "failed"


@dataclass
class UserProgress:
    """Progress record, one per user"""

    user_id: str | None
    words_learned: int = 0
    current_streak: int = 0
    last_learning_date: date | None = None
    weekly_progress: list[DayProgress] = field(default_factory=list)


@dataclass
class LearnedWord:
    """A word the user has completed"""

    user_id: str
    word: str
    meaning: str
    emoji: str
    learned_date: date
    created_at: datetime


@dataclass
class UserProfile:
    """User-level metadata used to personalize lessons"""

    user_id: str | None
    level: Level = Level.BEGINNER
    learning_goals: set[str] = field(default_factory=set)
    full_name: str = ""
    username: str = "User"
    email: str = ""
    join_date: datetime | None = None
    total_words: int = 0
    current_streak: int = 0
    is_new_user: bool = True

    @property
    def display_name(self) -> str:
        return self.full_name or self.username or "User"


@dataclass
class Fetched(Generic[T]):
    """
    Value returned by a store read

    degraded is True when value is a fallback substituted because the read
    failed, so callers can tell a real empty result from an outage.
    """

    value: T
    degraded: bool = False
    error: str | None = None
