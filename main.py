#!/usr/bin/env python3
"""
Daily vocabulary core
Main application entry point: prints today's status for the saved session
"""

import asyncio
import logging

from dailyword.app import DailyWordApp
from dailyword.config import get_settings
from dailyword.streak import format_countdown


async def main():
    """Main application entry point"""
    # Load configuration
    settings = get_settings()

    # Configure logging
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    logger = logging.getLogger(__name__)
    logger.info("Starting daily vocabulary core...")

    app = DailyWordApp(settings)

    try:
        await app.start()
        session = app.session

        stats = await app.profile_store.get_user_stats(session.user_id)
        gate = await app.gate.can_learn_today(session.user_id)

        who = "guest" if session.is_guest else stats["display_name"]
        print(f"Hello, {who}!")
        print(f"Level: {stats['level']}  Words: {stats['total_words']}  Streak: {stats['streak']}")

        if gate.can_learn:
            exercise = await app.lessons.get_new_lesson(session)
            print(f"Today's word: {exercise.emoji} {exercise.target_word}")
            print(exercise.story)
        else:
            print(f"Come back in {format_countdown(gate.countdown())} for your next word")
    except KeyboardInterrupt:
        logger.info("Shutdown requested")
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        raise
    finally:
        await app.stop()


if __name__ == "__main__":
    asyncio.run(main())
