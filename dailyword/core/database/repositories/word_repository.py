"""
Learned word repository
"""

import logging
import sqlite3
from datetime import datetime

from ..connection import DatabaseConnection
from ..models import InsertOutcome, LearnedWord

logger = logging.getLogger(__name__)


class WordRepository:
    """Repository for learned_words rows"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def insert_word(
        self,
        user_id: str,
        word: str,
        meaning: str,
        emoji: str,
        created_at: datetime,
    ) -> InsertOutcome:
        """
        Insert a learned word once per (user, word)

        Args:
            user_id: Owner of the record
            word: Normalized (lowercase) word
            meaning: Definition shown in history
            emoji: Display emoji
            created_at: Local completion time

        Returns:
            CREATED, ALREADY_EXISTED when the pair is present, FAILED on error
        """
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO learned_words (
                        user_id, word, meaning, emoji, learned_date, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id, word) DO NOTHING
                    """,
                    (user_id, word, meaning, emoji, created_at.date(), created_at),
                )
                conn.commit()

                if cursor.rowcount == 0:
                    logger.info(f"Word '{word}' already learned by user {user_id}")
                    return InsertOutcome.ALREADY_EXISTED
                return InsertOutcome.CREATED
        except Exception as e:
            logger.error(f"Error inserting learned word: {e}")
            return InsertOutcome.FAILED

    def get_words_by_user(self, user_id: str) -> list[LearnedWord]:
        """Get all learned words for a user, newest first

        Read errors propagate so callers can tell them apart from an empty ledger.
        """
        with self.db_connection.get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM learned_words
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (user_id,),
            )
            return [self._row_to_word(row) for row in cursor.fetchall()]

    def delete_words_by_user(self, user_id: str) -> bool:
        """Delete every learned word of a user"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM learned_words WHERE user_id = ?", (user_id,)
                )
                conn.commit()
                logger.info(f"Deleted {cursor.rowcount} learned words for user {user_id}")
                return True
        except Exception as e:
            logger.error(f"Error deleting learned words: {e}")
            return False

    @staticmethod
    def _row_to_word(row: sqlite3.Row) -> LearnedWord:
        return LearnedWord(
            user_id=row["user_id"],
            word=row["word"],
            meaning=row["meaning"],
            emoji=row["emoji"],
            learned_date=row["learned_date"],
            created_at=row["created_at"],
        )
