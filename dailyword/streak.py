"""
Date arithmetic for daily limits and learning streaks

Everything here works on local calendar dates: a lesson finished at 23:59 and
one finished at 00:01 belong to different days even if only two minutes apart.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

logger = logging.getLogger(__name__)

DAY_LABELS = ["M", "T", "W", "T", "F", "S", "S"]


@dataclass
class DayProgress:
    """One cell of the weekly completion grid"""

    day_label: str
    date_label: str
    completed: bool
    is_today: bool
    day: date

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["day"] = self.day.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DayProgress":
        return cls(
            day_label=data["day_label"],
            date_label=data["date_label"],
            completed=bool(data.get("completed", False)),
            is_today=bool(data.get("is_today", False)),
            day=date.fromisoformat(data["day"]),
        )


def is_yesterday(value: date | None, today: date) -> bool:
    """Check whether value is the calendar day before today"""
    if value is None:
        return False
    return value == today - timedelta(days=1)


def next_midnight(now: datetime) -> datetime:
    """Get the next local midnight after now"""
    return datetime.combine(now.date() + timedelta(days=1), time.min, tzinfo=now.tzinfo)


def countdown_to_midnight(now: datetime) -> timedelta:
    """Get the time left until the next local midnight"""
    return next_midnight(now) - now


def format_countdown(remaining: timedelta) -> str:
    """Format a countdown as 'Xh Ym'"""
    total_minutes = max(0, int(remaining.total_seconds()) // 60)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def effective_streak(
    last_learning_date: date | None, stored_streak: int, today: date
) -> int:
    """
    Get the streak that should be shown today

    A streak survives only while the last lesson happened today or yesterday.
    Reading never extends a streak, it can only expire it.

    Args:
        last_learning_date: Date of the most recent completed lesson
        stored_streak: Streak value currently persisted
        today: Local calendar date to evaluate against

    Returns:
        The stored streak, or 0 if it has expired
    """
    if stored_streak <= 0:
        return 0
    if last_learning_date == today or is_yesterday(last_learning_date, today):
        return stored_streak
    return 0


def next_streak(last_learning_date: date | None, current_streak: int, today: date) -> int:
    """
    Get the streak after completing a lesson today

    Args:
        last_learning_date: Date of the previous completed lesson
        current_streak: Streak before this lesson
        today: Local calendar date of this lesson

    Returns:
        New streak value
    """
    if last_learning_date is None:
        return 1
    if last_learning_date == today:
        return current_streak
    if is_yesterday(last_learning_date, today):
        return current_streak + 1
    # Gap of two or more days, or the streak was already reset
    return 1


def week_start(today: date) -> date:
    """Get the Monday of the week containing today"""
    return today - timedelta(days=today.weekday())


def generate_week(today: date) -> list[DayProgress]:
    """Generate an empty Monday-to-Sunday grid for the current week"""
    monday = week_start(today)
    week = []
    for offset in range(7):
        day = monday + timedelta(days=offset)
        week.append(
            DayProgress(
                day_label=DAY_LABELS[offset],
                date_label=str(day.day),
                completed=False,
                is_today=day == today,
                day=day,
            )
        )
    return week


def refresh_week(week: list[DayProgress] | None, today: date) -> list[DayProgress]:
    """
    Bring a stored grid up to date

    A grid from an earlier week is replaced by a fresh one; otherwise only the
    is_today flags move.
    """
    if not week or len(week) != 7 or week[0].day != week_start(today):
        logger.debug(f"Regenerating weekly progress for week of {week_start(today)}")
        return generate_week(today)

    return [
        DayProgress(
            day_label=entry.day_label,
            date_label=entry.date_label,
            completed=entry.completed,
            is_today=entry.day == today,
            day=entry.day,
        )
        for entry in week
    ]


def mark_completed(week: list[DayProgress], today: date) -> list[DayProgress]:
    """Mark today's cell as completed"""
    week = refresh_week(week, today)
    for entry in week:
        if entry.day == today:
            entry.completed = True
    return week
