"""
Progress repository for per-user streak and word count records
"""

import json
import logging
import sqlite3
from datetime import datetime

from ....streak import DayProgress
from ..connection import DatabaseConnection
from ..models import InsertOutcome, UserProgress

logger = logging.getLogger(__name__)


class ProgressRepository:
    """Repository for user_progress rows"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def get_progress(self, user_id: str) -> UserProgress | None:
        """Get the progress record for a user, None if absent

        Read errors propagate so callers can tell them apart from a missing row.
        """
        with self.db_connection.get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM user_progress WHERE user_id = ?",
                (user_id,),
            )
            row = cursor.fetchone()
            return self._row_to_progress(row) if row else None

    def create_progress(self, progress: UserProgress) -> InsertOutcome:
        """Insert a progress record unless one already exists"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO user_progress (
                        user_id, words_learned, current_streak,
                        last_learning_date, weekly_progress, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id) DO NOTHING
                    """,
                    (
                        progress.user_id,
                        progress.words_learned,
                        progress.current_streak,
                        progress.last_learning_date,
                        self._dump_week(progress.weekly_progress),
                        datetime.now(),
                    ),
                )
                conn.commit()

                if cursor.rowcount == 0:
                    logger.info(f"Progress for user {progress.user_id} already exists")
                    return InsertOutcome.ALREADY_EXISTED
                return InsertOutcome.CREATED
        except Exception as e:
            logger.error(f"Error creating progress: {e}")
            return InsertOutcome.FAILED

    def save_progress(self, progress: UserProgress) -> bool:
        """Upsert the full progress record"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO user_progress (
                        user_id, words_learned, current_streak,
                        last_learning_date, weekly_progress, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        words_learned = excluded.words_learned,
                        current_streak = excluded.current_streak,
                        last_learning_date = excluded.last_learning_date,
                        weekly_progress = excluded.weekly_progress,
                        updated_at = excluded.updated_at
                    """,
                    (
                        progress.user_id,
                        progress.words_learned,
                        progress.current_streak,
                        progress.last_learning_date,
                        self._dump_week(progress.weekly_progress),
                        datetime.now(),
                    ),
                )
                conn.commit()
                return True
        except Exception as e:
            logger.error(f"Error saving progress: {e}")
            return False

    def update_streak(self, user_id: str, current_streak: int) -> bool:
        """Overwrite only the streak column"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE user_progress
                    SET current_streak = ?, updated_at = ?
                    WHERE user_id = ?
                    """,
                    (current_streak, datetime.now(), user_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error updating streak: {e}")
            return False

    def delete_progress(self, user_id: str) -> bool:
        """Delete the progress record for a user"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute("DELETE FROM user_progress WHERE user_id = ?", (user_id,))
                conn.commit()
                return True
        except Exception as e:
            logger.error(f"Error deleting progress: {e}")
            return False

    @staticmethod
    def _dump_week(week: list[DayProgress]) -> str:
        return json.dumps([entry.to_dict() for entry in week], ensure_ascii=False)

    @staticmethod
    def _row_to_progress(row: sqlite3.Row) -> UserProgress:
        try:
            week = [DayProgress.from_dict(item) for item in json.loads(row["weekly_progress"])]
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(f"Discarding unreadable weekly progress: {e}")
            week = []

        return UserProgress(
            user_id=row["user_id"],
            words_learned=row["words_learned"] or 0,
            current_streak=row["current_streak"] or 0,
            last_learning_date=row["last_learning_date"],
            weekly_progress=week,
        )
