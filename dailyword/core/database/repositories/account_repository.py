"""
Account repository backing the local identity provider
"""

import logging
import sqlite3

from ..connection import DatabaseConnection

logger = logging.getLogger(__name__)


class AccountRepository:
    """Repository for account rows"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def create_account(
        self,
        user_id: str,
        email: str,
        full_name: str,
        password_hash: str,
    ) -> bool:
        """Create an account; False if the email is already registered

        Other database errors propagate.
        """
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO accounts (user_id, email, full_name, password_hash)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user_id, email, full_name, password_hash),
                )
                conn.commit()
                return True
        except sqlite3.IntegrityError:
            logger.info(f"Account for {email} already exists")
            return False

    def get_account_by_email(self, email: str) -> dict | None:
        """Get account by email"""
        with self.db_connection.get_connection() as conn:
            cursor = conn.execute("SELECT * FROM accounts WHERE email = ?", (email,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def get_account(self, user_id: str) -> dict | None:
        """Get account by user ID"""
        with self.db_connection.get_connection() as conn:
            cursor = conn.execute("SELECT * FROM accounts WHERE user_id = ?", (user_id,))
            row = cursor.fetchone()
            return dict(row) if row else None

    def update_password(self, user_id: str, password_hash: str) -> bool:
        """Replace the stored password hash"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE accounts SET password_hash = ? WHERE user_id = ?",
                    (password_hash, user_id),
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error updating password: {e}")
            return False

    def delete_account(self, user_id: str) -> bool:
        """Delete an account; deleting a missing account also succeeds"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute("DELETE FROM accounts WHERE user_id = ?", (user_id,))
                conn.commit()
                return True
        except Exception as e:
            logger.error(f"Error deleting account: {e}")
            return False
