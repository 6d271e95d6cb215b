"""
End-to-end tests through the wired application
"""

import random

import pytest
import pytest_asyncio

from dailyword.app import DailyWordApp
from dailyword.assessment import assess, save_pending_assessment
from dailyword.config import Settings
from dailyword.core.database.models import Level
from dailyword.core.learning.lesson_service import LessonAttempt
from dailyword.lesson_generator import MockLessonGenerator
from dailyword.lesson_transformer import STEP_DISCOVERY, STEP_MEANING, STEP_USAGE, LessonTransformer


@pytest_asyncio.fixture
async def app(temp_db, clock):
    application = DailyWordApp(
        settings=Settings(openai_api_key="", lesson_timeout=1.0),
        db_manager=temp_db,
        generator=MockLessonGenerator(rng=random.Random(1)),
        transformer=LessonTransformer(rng=random.Random(2)),
        clock=clock,
    )
    await application.start()
    yield application
    await application.stop()


def solve(exercise) -> LessonAttempt:
    attempt = LessonAttempt(exercise)
    for step in (STEP_DISCOVERY, STEP_MEANING, STEP_USAGE):
        attempt.answer_option(step, next(o.id for o in exercise.options_for(step) if o.correct))
    attempt.answer_spelling(exercise.target_word)
    return attempt


class TestDailyFlow:
    @pytest.mark.asyncio
    async def test_assessment_signup_and_two_days(self, app, temp_db, clock):
        assert app.session.is_guest

        save_pending_assessment(temp_db.cache_repo, assess(["ephemeral", "ubiquitous"], ["creative"]))
        signed_up = await app.auth.sign_up("Ana Diaz", "ana@example.com", "secret1", "secret1")
        assert signed_up.success

        profile = (await app.profile_store.get_profile(app.session.user_id)).value
        assert profile.level == Level.ADVANCED
        assert profile.learning_goals == {"creative"}

        # day one
        start = await app.lessons.start_lesson(app.session)
        assert start.exercise.target_word == "SERENDIPITY"
        done = await app.lessons.complete_lesson(app.session, solve(start.exercise))
        assert done.success
        assert not (await app.lessons.start_lesson(app.session)).gate.can_learn

        # day two, the generator is told what was learned
        clock.advance(days=1)
        start = await app.lessons.start_lesson(app.session)
        assert start.exercise.target_word == "RESILIENT"
        done = await app.lessons.complete_lesson(app.session, solve(start.exercise))

        assert done.progress.words_learned == 2
        assert done.progress.current_streak == 2
        stats = await app.profile_store.get_user_stats(app.session.user_id)
        assert stats["total_words"] == 2
        assert stats["display_name"] == "Ana Diaz"

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, app, temp_db):
        await app.auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")
        start = await app.lessons.start_lesson(app.session)
        await app.lessons.complete_lesson(app.session, solve(start.exercise))
        await app.auth.sign_out()

        await app.auth.sign_up("Bo", "bo@example.com", "secret1", "secret1")
        gate = await app.gate.can_learn_today(app.session.user_id)
        fetched = await app.ledger.get_all(app.session.user_id)

        assert gate.can_learn
        assert fetched.value == []

    @pytest.mark.asyncio
    async def test_delete_account_ends_in_guest_mode(self, app, temp_db):
        signed_up = await app.auth.sign_up("Ana", "ana@example.com", "secret1", "secret1")

        report = await app.coordinator.delete_account()

        assert report.completed
        assert app.session.is_guest
        assert temp_db.profile_repo.get_profile(signed_up.user_id) is None

        signed_in = await app.auth.sign_in("ana@example.com", "secret1")
        assert not signed_in.success
        assert app.session.is_guest
