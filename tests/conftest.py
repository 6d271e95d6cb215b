"""
Shared fixtures: temporary database and a controllable clock
"""

import os
import tempfile
from datetime import datetime, timedelta

import pytest

from dailyword.core.database.database_manager import DatabaseManager


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


@pytest.fixture
def temp_db():
    """Create temporary database for testing"""
    temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    temp_file.close()

    db_manager = DatabaseManager(temp_file.name)
    db_manager.init_database()

    yield db_manager

    # Cleanup, including WAL side files
    for suffix in ("", "-wal", "-shm"):
        path = temp_file.name + suffix
        if os.path.exists(path):
            os.unlink(path)


@pytest.fixture
def clock():
    """Clock fixed at Wednesday 2024-05-15 10:00 local time"""
    return FakeClock(datetime(2024, 5, 15, 10, 0, 0))
