"""Achievement and stats stores (read side of gamification)."""

from typing import Optional

from finbuddy.gamification import (
    ACHIEVEMENTS,
    AchievementDefinition,
    AchievementService,
    LevelStatus,
    StatsTracker,
    level_for_points,
)
from finbuddy.models.records import Achievement, UserStats, achievement_key
from finbuddy.services.storage import StorageError
from finbuddy.stores.base import RecordStore
from finbuddy.stores.notifications import Notification


class AchievementStore(RecordStore[Achievement]):
    """Earned badges, most recent first."""

    model = Achievement
    order_by = "earned_at"
    descending = True

    @property
    def earned_ids(self) -> set[str]:
        return {achievement_key(a.achievement_type) for a in self.items}

    @property
    def locked(self) -> list[AchievementDefinition]:
        earned = self.earned_ids
        return [d for d in ACHIEVEMENTS if d.id not in earned]

    async def check(self, stats: UserStats) -> list[Achievement]:
        """Award anything newly earned for this snapshot."""
        service = AchievementService(self._storage, self._audit)
        awarded = await service.check_and_award(self.user_id, stats)
        for achievement in awarded:
            self._upsert(achievement)
            self.notify(Notification.celebration(
                "🏆 Achievement Unlocked!",
                f"{achievement.title} (+{achievement.points} points)",
            ))
        return awarded


class StatsStore(RecordStore[UserStats]):
    """The single user_stats row, created on first load."""

    model = UserStats

    @property
    def stats(self) -> Optional[UserStats]:
        return self.items[0] if self.items else None

    async def fetch(self) -> list[UserStats]:
        try:
            stats = await StatsTracker(self._storage).get_or_create(self.user_id)
        except StorageError as e:
            await self.report_failure("load", e, None)
            return self.items
        self.items = [stats]
        return self.items

    @property
    def level(self) -> LevelStatus:
        return level_for_points(self.stats.total_points if self.stats else 0)
