"""
Lesson service driving one learning session

Starting a lesson checks the daily gate, asks the generator for a personalized
lesson under a timeout and normalizes whatever comes back. Completing a lesson
records the word and advances progress under a per-user lock.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from ...config import get_settings
from ...lesson_generator import LessonGenerator
from ...lesson_transformer import (
    STEP_DISCOVERY,
    STEP_MEANING,
    STEP_SPELLING,
    STEP_USAGE,
    ExerciseSet,
    LessonTransformer,
    build_fallback_lesson,
)
from ...streak import format_countdown
from ..database.models import UserProgress
from ..locks.user_lock_manager import UserLockedError, UserLockManager
from ..profile.profile_store import ProfileStore
from ..progress.daily_gate import DailyGate, GateStatus
from ..progress.learned_words import AddWordResult, LearnedWordsLedger
from ..progress.progress_store import ProgressStore
from ..session.session_coordinator import UserSession

logger = logging.getLogger(__name__)

ALL_STEPS = (STEP_DISCOVERY, STEP_MEANING, STEP_SPELLING, STEP_USAGE)


@dataclass
class LessonStart:
    gate: GateStatus
    exercise: ExerciseSet | None = None


@dataclass
class LessonAttempt:
    """Answers given so far for one ExerciseSet"""

    exercise: ExerciseSet
    results: dict[int, bool] = field(default_factory=dict)

    def answer_option(self, step: int, option_id: str) -> bool:
        """Check a multiple-choice answer; the latest answer per step counts"""
        options = self.exercise.options_for(step)
        correct = any(option.id == option_id and option.correct for option in options)
        self.results[step] = correct
        return correct

    def answer_spelling(self, letters: list[str] | str) -> bool:
        """Check the arranged letters against the target word"""
        spelled = "".join(letters).upper()
        correct = spelled == self.exercise.target_word
        self.results[STEP_SPELLING] = correct
        return correct

    @property
    def is_complete(self) -> bool:
        return all(self.results.get(step) for step in ALL_STEPS)


@dataclass
class CompletionResult:
    success: bool
    word_result: AddWordResult | None = None
    progress: UserProgress | None = None
    message: str = ""


class LessonService:
    """Coordinates the gate, generator, transformer and stores for lessons"""

    def __init__(
        self,
        gate: DailyGate,
        ledger: LearnedWordsLedger,
        progress_store: ProgressStore,
        profile_store: ProfileStore,
        generator: LessonGenerator,
        transformer: LessonTransformer | None = None,
        lock_manager: UserLockManager | None = None,
        lesson_timeout: float | None = None,
    ):
        settings = get_settings()
        self.gate = gate
        self.ledger = ledger
        self.progress_store = progress_store
        self.profile_store = profile_store
        self.generator = generator
        self.transformer = transformer or LessonTransformer()
        self.lock_manager = lock_manager or UserLockManager(settings.lock_timeout_minutes)
        self.lesson_timeout = lesson_timeout if lesson_timeout is not None else settings.lesson_timeout
        self.previous_words_limit = settings.previous_words_limit

    async def start_lesson(self, session: UserSession) -> LessonStart:
        """Check the gate and load a lesson if the user may learn now"""
        gate = await self.gate.can_learn_today(session.user_id)
        if not gate.can_learn:
            logger.info(f"User {session.user_id} already finished today's lesson")
            return LessonStart(gate=gate)
        return LessonStart(gate=gate, exercise=await self.get_new_lesson(session))

    async def get_new_lesson(self, session: UserSession) -> ExerciseSet:
        """
        Produce a lesson for the session's user

        Never raises: a timeout, a generator error or an unusable payload all
        end in a built-in lesson the user has not seen recently.
        """
        previous_words: list[str] = []
        try:
            profile = (await self.profile_store.get_profile(session.user_id)).value
            previous_words = await self.ledger.recent_words(
                session.user_id, self.previous_words_limit
            )

            payload = await asyncio.wait_for(
                self.generator.generate_lesson(
                    user_level=profile.level.value,
                    previous_words=previous_words,
                    learning_goals=sorted(profile.learning_goals),
                    user_name=profile.display_name,
                ),
                timeout=self.lesson_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Lesson generation timed out after {self.lesson_timeout}s")
            return build_fallback_lesson(previous_words)
        except Exception as e:
            logger.error(f"Error getting new lesson: {e}")
            return build_fallback_lesson(previous_words)

        if payload is None:
            logger.warning("Generator returned no lesson, using fallback")
            return build_fallback_lesson(previous_words)

        return self.transformer.transform(payload, avoid_words=previous_words)

    async def complete_lesson(
        self, session: UserSession, attempt: LessonAttempt
    ) -> CompletionResult:
        """
        Record a finished lesson

        A word learned on an earlier day still completes today's lesson, so
        the streak advances; repeating it again on the same day changes nothing.

        Args:
            session: Active session
            attempt: Attempt with all four steps answered

        Returns:
            CompletionResult with the ledger outcome and updated progress
        """
        if not attempt.is_complete:
            return CompletionResult(success=False, message="Finish all four steps first")

        user_id = session.user_id
        if user_id is None:
            return CompletionResult(success=False, message="Sign in to save your progress")

        exercise = attempt.exercise
        try:
            with self.lock_manager.locked(user_id, "complete_lesson"):
                word_result = await self.ledger.add_word(
                    user_id, exercise.word, exercise.definition, exercise.emoji
                )
                if not word_result.success:
                    return CompletionResult(
                        success=False, word_result=word_result, message=self._describe(word_result)
                    )

                if word_result.already_learned:
                    progress = await self.progress_store.update_after_learning(
                        user_id, repeated=True
                    )
                    return CompletionResult(
                        success=True,
                        word_result=word_result,
                        progress=progress,
                        message="You already learned this word",
                    )

                progress = await self.progress_store.update_after_learning(user_id)
                return CompletionResult(
                    success=True,
                    word_result=word_result,
                    progress=progress,
                    message=f"You learned '{exercise.word}'!",
                )
        except UserLockedError as e:
            logger.warning(str(e))
            return CompletionResult(success=False, message="Your lesson is already being saved")

    @staticmethod
    def _describe(result: AddWordResult) -> str:
        if result.error is None:
            return ""
        if result.countdown is not None:
            return f"Next word available in {format_countdown(result.countdown)}"
        return result.error.value.replace("_", " ").capitalize()
