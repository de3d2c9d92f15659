"""
Achievement Evaluator

Badges are awarded when a counter in the user's stats reaches a threshold.
All definitions live in ACHIEVEMENTS; nothing else in the codebase knows
a threshold or a point value.

DESIGN DECISION: Evaluation is a pure function of (stats, already-earned
ids). Persisting the awards is a separate step, so re-running the
evaluator on the same snapshot is always safe.
"""

from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict

from finbuddy.audit import AuditLogger
from finbuddy.models.records import Achievement, Table, UserStats, achievement_key
from finbuddy.services.storage import RecordStorageInterface, StorageError

logger = structlog.get_logger(__name__)


class AchievementDefinition(BaseModel):
    """A badge and the condition that earns it."""
    model_config = ConfigDict(frozen=True)

    id: str
    metric: str
    threshold: int
    points: int
    title: str
    description: str
    icon: str = "🏆"

    def is_met(self, stats: UserStats) -> bool:
        return getattr(stats, self.metric) >= self.threshold


ACHIEVEMENTS: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        id="first_expense", metric="expenses_count", threshold=1, points=10,
        title="First Step", description="Added your first expense", icon="🎯",
    ),
    AchievementDefinition(
        id="expense_tracker", metric="expenses_count", threshold=10, points=25,
        title="Expense Tracker", description="Tracked 10 expenses", icon="📊",
    ),
    AchievementDefinition(
        id="expense_master", metric="expenses_count", threshold=50, points=100,
        title="Expense Master", description="Tracked 50 expenses", icon="🏅",
    ),
    AchievementDefinition(
        id="expense_legend", metric="expenses_count", threshold=100, points=250,
        title="Expense Legend", description="Tracked 100 expenses", icon="👑",
    ),
    AchievementDefinition(
        id="goal_setter", metric="goals_completed", threshold=1, points=50,
        title="Goal Setter", description="Completed your first financial goal", icon="🎯",
    ),
    AchievementDefinition(
        id="goal_achiever", metric="goals_completed", threshold=5, points=150,
        title="Goal Achiever", description="Completed 5 financial goals", icon="🏆",
    ),
    AchievementDefinition(
        id="streak_beginner", metric="current_streak", threshold=3, points=15,
        title="Getting Started", description="Maintained a 3-day streak", icon="🔥",
    ),
    AchievementDefinition(
        id="streak_champion", metric="current_streak", threshold=7, points=75,
        title="Consistency Champion", description="Maintained a 7-day streak", icon="⚡",
    ),
    AchievementDefinition(
        id="streak_legend", metric="current_streak", threshold=30, points=300,
        title="Streak Legend", description="Maintained a 30-day streak", icon="💎",
    ),
)

ACHIEVEMENTS_BY_ID: dict[str, AchievementDefinition] = {a.id: a for a in ACHIEVEMENTS}


def evaluate_achievements(
    stats: UserStats,
    earned_ids: set[str],
) -> list[AchievementDefinition]:
    """
    Definitions whose threshold is met and that are not yet earned.

    Returned in table order.
    """
    return [
        definition for definition in ACHIEVEMENTS
        if definition.id not in earned_ids and definition.is_met(stats)
    ]


class LevelTier(BaseModel):
    """A named level reached at `min_points`."""
    model_config = ConfigDict(frozen=True)

    level: int
    name: str
    min_points: int


LEVEL_TIERS: tuple[LevelTier, ...] = (
    LevelTier(level=1, name="Beginner", min_points=0),
    LevelTier(level=2, name="Starter", min_points=100),
    LevelTier(level=3, name="Explorer", min_points=250),
    LevelTier(level=4, name="Tracker", min_points=500),
    LevelTier(level=5, name="Pro", min_points=1000),
    LevelTier(level=6, name="Expert", min_points=2000),
    LevelTier(level=7, name="Master", min_points=4000),
    LevelTier(level=8, name="Legend", min_points=7000),
    LevelTier(level=9, name="Champion", min_points=10000),
)


class LevelStatus(BaseModel):
    """Where a points total sits on the level ladder."""

    tier: LevelTier
    next_tier: Optional[LevelTier] = None
    progress_percent: float
    points_to_next: int


def level_for_points(total_points: int) -> LevelStatus:
    tier = LEVEL_TIERS[0]
    for candidate in LEVEL_TIERS:
        if total_points >= candidate.min_points:
            tier = candidate

    next_tier = next((t for t in LEVEL_TIERS if t.level == tier.level + 1), None)
    if next_tier is None:
        return LevelStatus(tier=tier, progress_percent=100.0, points_to_next=0)

    span = next_tier.min_points - tier.min_points
    return LevelStatus(
        tier=tier,
        next_tier=next_tier,
        progress_percent=(total_points - tier.min_points) / span * 100,
        points_to_next=next_tier.min_points - total_points,
    )


def progress_towards(definition: AchievementDefinition, stats: UserStats) -> float:
    """Percent of the way to a badge, capped at 100."""
    if definition.threshold <= 0:
        return 100.0
    value = getattr(stats, definition.metric)
    return min(100.0, value / definition.threshold * 100)


class AchievementService:
    """
    Persists newly earned achievements.

    A failed write is logged and skipped; the next evaluation picks it up
    again because the achievement is still unearned.
    """

    def __init__(
        self,
        storage: RecordStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()

    async def earned_ids(self, user_id: str) -> set[str]:
        rows = await self._storage.list(Table.ACHIEVEMENTS.value, user_id)
        return {achievement_key(r.get("achievement_type")) for r in rows}

    async def check_and_award(self, user_id: str, stats: UserStats) -> list[Achievement]:
        """
        Award every newly earned achievement for this stats snapshot.

        Returns:
            The achievements actually persisted
        """
        try:
            earned = await self.earned_ids(user_id)
        except StorageError as e:
            logger.error("achievements_load_failed", user_id=user_id, error=str(e))
            return []

        awarded: list[Achievement] = []
        for definition in evaluate_achievements(stats, earned):
            achievement = Achievement(
                user_id=user_id,
                achievement_type=definition.id,
                title=definition.title,
                description=definition.description,
                points=definition.points,
            )
            try:
                await self._storage.insert(Table.ACHIEVEMENTS.value, user_id, achievement.to_row())
            except StorageError as e:
                logger.error(
                    "achievement_award_failed",
                    user_id=user_id,
                    achievement=definition.id,
                    error=str(e),
                )
                continue

            awarded.append(achievement)
            await self._audit.log_achievement_awarded(
                user_id=user_id,
                achievement_type=definition.id,
                title=definition.title,
                points=definition.points,
            )

        if awarded:
            await self._add_points(user_id, stats, sum(a.points for a in awarded))

        return awarded

    async def _add_points(self, user_id: str, stats: UserStats, points: int) -> None:
        new_total = stats.total_points + points
        try:
            await self._storage.update(
                Table.USER_STATS.value,
                user_id,
                str(stats.id),
                {"total_points": new_total},
            )
            stats.total_points = new_total
        except StorageError as e:
            logger.error("achievement_points_failed", user_id=user_id, error=str(e))
