"""
Unified database manager that coordinates all repositories
"""

import logging

from .connection import DatabaseConnection
from .repositories.account_repository import AccountRepository
from .repositories.cache_repository import CacheRepository
from .repositories.profile_repository import ProfileRepository
from .repositories.progress_repository import ProgressRepository
from .repositories.word_repository import WordRepository

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the connection and exposes one repository per table"""

    def __init__(self, db_path: str | None = None):
        self.db_connection = DatabaseConnection(db_path)
        self.progress_repo = ProgressRepository(self.db_connection)
        self.word_repo = WordRepository(self.db_connection)
        self.profile_repo = ProfileRepository(self.db_connection)
        self.cache_repo = CacheRepository(self.db_connection)
        self.account_repo = AccountRepository(self.db_connection)

    def init_database(self) -> None:
        """Initialize database tables and indexes"""
        self.db_connection.init_database()

    def get_connection(self):
        """Get database connection for direct SQL access in tests"""
        return self.db_connection.get_connection()


# Global instance
_db_manager = None


def get_db_manager(db_path: str | None = None) -> DatabaseManager:
    """Get global database manager instance"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager(db_path)
        _db_manager.init_database()
    return _db_manager

