"""
Placement assessment scoring

The learner ticks the words they already know from a mixed list; the average
difficulty of the ticked words decides the starting level.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from .core.database.models import Level
from .core.database.repositories.cache_repository import CacheRepository

logger = logging.getLogger(__name__)

PENDING_ASSESSMENT_KEY = "pending_assessment"

DIFFICULTY_SCORES = {"easy": 1, "medium": 2, "hard": 3}

ASSESSMENT_WORDS = [
    {"word": "happy", "difficulty": "easy"},
    {"word": "friend", "difficulty": "easy"},
    {"word": "journey", "difficulty": "easy"},
    {"word": "window", "difficulty": "easy"},
    {"word": "curious", "difficulty": "medium"},
    {"word": "reluctant", "difficulty": "medium"},
    {"word": "generous", "difficulty": "medium"},
    {"word": "ambiguous", "difficulty": "medium"},
    {"word": "ephemeral", "difficulty": "hard"},
    {"word": "ubiquitous", "difficulty": "hard"},
    {"word": "sycophant", "difficulty": "hard"},
    {"word": "perfunctory", "difficulty": "hard"},
]


@dataclass
class AssessmentResult:
    level: Level
    familiar_words: list[str] = field(default_factory=list)
    learning_goals: list[str] = field(default_factory=list)
    average_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["level"] = self.level.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssessmentResult":
        return cls(
            level=Level.parse(data.get("level")),
            familiar_words=list(data.get("familiar_words") or []),
            learning_goals=list(data.get("learning_goals") or []),
            average_score=float(data.get("average_score") or 0.0),
        )


def level_for_average(average: float) -> Level:
    """Map an average difficulty score to a level"""
    if average < 1.5:
        return Level.BEGINNER
    if average < 2.5:
        return Level.INTERMEDIATE
    return Level.ADVANCED


def assess(
    selected_words: list[str],
    learning_goals: list[str] | None = None,
    word_list: list[dict[str, str]] | None = None,
) -> AssessmentResult:
    """
    Score a placement assessment

    Args:
        selected_words: Words the learner marked as familiar
        learning_goals: Goal ids picked after the assessment
        word_list: Words with their difficulty, ASSESSMENT_WORDS by default

    Returns:
        AssessmentResult; an empty selection places the learner at Beginner
    """
    difficulties = {
        entry["word"].lower(): entry["difficulty"] for entry in word_list or ASSESSMENT_WORDS
    }
    familiar = [word.lower() for word in selected_words if word.lower() in difficulties]
    unknown = set(word.lower() for word in selected_words) - set(familiar)
    if unknown:
        logger.warning(f"Ignoring words outside the assessment list: {sorted(unknown)}")

    if not familiar:
        return AssessmentResult(Level.BEGINNER, [], list(learning_goals or []), 0.0)

    average = sum(DIFFICULTY_SCORES[difficulties[word]] for word in familiar) / len(familiar)
    level = level_for_average(average)
    logger.info(f"Assessment average {average:.2f} -> {level.value}")
    return AssessmentResult(level, familiar, list(learning_goals or []), average)


def save_pending_assessment(cache: CacheRepository, result: AssessmentResult) -> bool:
    """Keep a result taken before sign-in until a profile exists"""
    return cache.set(PENDING_ASSESSMENT_KEY, result.to_dict())


def load_pending_assessment(cache: CacheRepository) -> AssessmentResult | None:
    data = cache.get(PENDING_ASSESSMENT_KEY)
    if not isinstance(data, dict):
        return None
    return AssessmentResult.from_dict(data)
