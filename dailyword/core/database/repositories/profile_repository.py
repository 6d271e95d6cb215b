"""
Profile repository for user metadata
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any

from ..connection import DatabaseConnection
from ..models import InsertOutcome, Level, UserProfile

logger = logging.getLogger(__name__)

_UPDATABLE_COLUMNS = {
    "level",
    "learning_goals",
    "full_name",
    "username",
    "email",
    "total_words",
    "current_streak",
    "is_new_user",
}


class ProfileRepository:
    """Repository for profile rows"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def get_profile(self, user_id: str) -> UserProfile | None:
        """Get profile by user ID, None if absent; read errors propagate"""
        with self.db_connection.get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM profiles WHERE user_id = ?",
                (user_id,),
            )
            row = cursor.fetchone()
            return self._row_to_profile(row) if row else None

    def profile_exists(self, user_id: str) -> bool:
        """Check whether a profile row exists; read errors propagate"""
        with self.db_connection.get_connection() as conn:
            cursor = conn.execute(
                "SELECT 1 FROM profiles WHERE user_id = ?",
                (user_id,),
            )
            return cursor.fetchone() is not None

    def create_profile(self, profile: UserProfile) -> InsertOutcome:
        """Insert a profile unless one already exists"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO profiles (
                        user_id, level, learning_goals, full_name, username, email,
                        join_date, total_words, current_streak, is_new_user, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(user_id) DO NOTHING
                    """,
                    (
                        profile.user_id,
                        profile.level.value,
                        json.dumps(sorted(profile.learning_goals)),
                        profile.full_name,
                        profile.username,
                        profile.email,
                        profile.join_date or datetime.now(),
                        profile.total_words,
                        profile.current_streak,
                        profile.is_new_user,
                        datetime.now(),
                    ),
                )
                conn.commit()

                if cursor.rowcount == 0:
                    logger.info(f"Profile for user {profile.user_id} already exists")
                    return InsertOutcome.ALREADY_EXISTED
                return InsertOutcome.CREATED
        except Exception as e:
            logger.error(f"Error creating profile: {e}")
            return InsertOutcome.FAILED

    def update_profile(self, user_id: str, **fields: Any) -> bool:
        """Update selected profile columns"""
        try:
            updates = []
            params: list[Any] = []

            for column, value in fields.items():
                if column not in _UPDATABLE_COLUMNS:
                    raise ValueError(f"Unknown profile column: {column}")
                if column == "level":
                    value = Level.parse(value).value if isinstance(value, str) else value.value
                elif column == "learning_goals":
                    value = json.dumps(sorted(value))
                updates.append(f"{column} = ?")
                params.append(value)

            if not updates:
                return False

            updates.append("updated_at = ?")
            params.append(datetime.now())
            params.append(user_id)

            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    f"UPDATE profiles SET {', '.join(updates)} WHERE user_id = ?",  # noqa: S608
                    params,
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error updating profile: {e}")
            return False

    def delete_profile(self, user_id: str) -> bool:
        """Delete the profile of a user"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute("DELETE FROM profiles WHERE user_id = ?", (user_id,))
                conn.commit()
                return True
        except Exception as e:
            logger.error(f"Error deleting profile: {e}")
            return False

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> UserProfile:
        try:
            goals = set(json.loads(row["learning_goals"] or "[]"))
        except (TypeError, ValueError):
            goals = set()

        return UserProfile(
            user_id=row["user_id"],
            level=Level.parse(row["level"]),
            learning_goals=goals,
            full_name=row["full_name"] or "",
            username=row["username"] or "User",
            email=row["email"] or "",
            join_date=row["join_date"],
            total_words=row["total_words"] or 0,
            current_streak=row["current_streak"] or 0,
            is_new_user=bool(row["is_new_user"]),
        )
