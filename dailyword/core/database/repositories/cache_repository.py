"""
Key-value cache repository

Best-effort storage for session tokens and pending assessment results. Nothing
read from here is needed for correctness, so every failure degrades to a miss.
"""

import json
import logging
from datetime import datetime
from typing import Any

from ..connection import DatabaseConnection

logger = logging.getLogger(__name__)


def user_cache_key(user_id: str, key_type: str) -> str:
    """Build a per-user cache key"""
    return f"user_{user_id}_{key_type}"


class CacheRepository:
    """Repository for cache rows, values stored as JSON"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def get(self, key: str) -> Any | None:
        """Get a cached value, None on miss or error"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT value FROM cache WHERE key = ?", (key,))
                row = cursor.fetchone()
                return json.loads(row["value"]) if row else None
        except Exception as e:
            logger.error(f"Error reading cache key {key}: {e}")
            return None

    def set(self, key: str, value: Any) -> bool:
        """Store a value under key"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO cache (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, json.dumps(value, ensure_ascii=False, default=str), datetime.now()),
                )
                conn.commit()
                return True
        except Exception as e:
            logger.error(f"Error writing cache key {key}: {e}")
            return False

    def remove(self, key: str) -> bool:
        """Remove a single key"""
        try:
            with self.db_connection.get_connection() as conn:
                conn.execute("DELETE FROM cache WHERE key = ?", (key,))
                conn.commit()
                return True
        except Exception as e:
            logger.error(f"Error removing cache key {key}: {e}")
            return False

    def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with prefix"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "SELECT key FROM cache WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                )
                return [row["key"] for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Error listing cache keys: {e}")
            return []

    def clear_prefix(self, prefix: str) -> int:
        """Remove every key starting with prefix, returning the number removed"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "DELETE FROM cache WHERE substr(key, 1, ?) = ?",
                    (len(prefix), prefix),
                )
                conn.commit()
                return cursor.rowcount
        except Exception as e:
            logger.error(f"Error clearing cache prefix {prefix}: {e}")
            return 0
