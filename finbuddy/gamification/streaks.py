"""
Stats and Streak Tracker

Maintains the per-user counters that achievements are evaluated against.

Streaks are daily: logging on consecutive calendar days extends the
streak, logging twice on one day leaves it unchanged, and skipping a
day starts over at 1.
"""

from datetime import date, timedelta
from typing import Optional

import structlog

from finbuddy.models.records import Table, UserStats
from finbuddy.services.storage import RecordStorageInterface

logger = structlog.get_logger(__name__)


def next_streak(
    current_streak: int,
    last_date: Optional[date],
    today: date,
) -> int:
    """Streak after logging an expense on `today`."""
    if last_date is None:
        return 1
    if last_date == today - timedelta(days=1):
        return current_streak + 1
    if last_date < today - timedelta(days=1):
        return 1
    # Same day (or a clock that went backwards)
    return current_streak


class StatsTracker:
    """Reads and updates the single user_stats row of a user."""

    def __init__(self, storage: RecordStorageInterface):
        self._storage = storage

    async def get_or_create(self, user_id: str) -> UserStats:
        rows = await self._storage.list(Table.USER_STATS.value, user_id, limit=1)
        if rows:
            return UserStats.model_validate(rows[0])

        stats = UserStats(user_id=user_id)
        row = await self._storage.insert(Table.USER_STATS.value, user_id, stats.to_row())
        logger.info("stats_created", user_id=user_id)
        return UserStats.model_validate(row)

    async def _save(self, stats: UserStats, changes: dict) -> UserStats:
        row = await self._storage.update(
            Table.USER_STATS.value,
            stats.user_id,
            str(stats.id),
            changes,
        )
        return UserStats.model_validate(row)

    async def record_expense(self, user_id: str, on: Optional[date] = None) -> UserStats:
        """
        Count one new expense and advance the daily streak.

        Raises:
            StorageError: If the stats row cannot be read or written
        """
        today = on or date.today()
        stats = await self.get_or_create(user_id)

        streak = next_streak(stats.current_streak, stats.last_expense_date, today)
        changes = {
            "expenses_count": stats.expenses_count + 1,
            "current_streak": streak,
            "longest_streak": max(stats.longest_streak, streak),
            "last_expense_date": today.isoformat(),
        }
        updated = await self._save(stats, changes)
        logger.debug(
            "stats_expense_recorded",
            user_id=user_id,
            expenses_count=updated.expenses_count,
            current_streak=updated.current_streak,
        )
        return updated

    async def record_goal_completed(self, user_id: str) -> UserStats:
        """Count one newly completed goal."""
        stats = await self.get_or_create(user_id)
        return await self._save(stats, {"goals_completed": stats.goals_completed + 1})
