"""
Goal Store

Every change to a goal's saved or target amount goes through the milestone
notifier, so the user gets exactly one message per update. Reaching the
target marks the goal completed, counts it in the stats, and may unlock
goal achievements.
"""

from datetime import date
from typing import Any, Optional

import structlog

from finbuddy.gamification import (
    AchievementService,
    StatsTracker,
    detect_milestone,
)
from finbuddy.models.records import Goal
from finbuddy.services.storage import StorageError
from finbuddy.stores.base import RecordStore
from finbuddy.stores.notifications import Notification

logger = structlog.get_logger(__name__)


class GoalStore(RecordStore[Goal]):
    """Savings goals, newest first."""

    model = Goal
    order_by = "created_at"
    descending = True
    load_error = "Failed to load goals. Please try again."

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._stats = StatsTracker(self._storage)
        self._achievements = AchievementService(self._storage, self._audit)

    async def add(
        self,
        title: str,
        target_amount: float,
        category: Optional[str] = None,
        target_date: Optional[date] = None,
    ) -> Optional[Goal]:
        goal = Goal(
            user_id=self.user_id,
            title=title,
            category=category,
            target_amount=target_amount,
            target_date=target_date,
            current_amount=0.0,
        )
        return await self._insert(
            goal,
            success=Notification.success(
                "Goal Created",
                f'"{title}" goal has been added successfully.',
            ),
            failure="Failed to add goal. Please try again.",
        )

    async def update(self, goal_id: Any, changes: dict[str, Any]) -> Optional[Goal]:
        """
        Apply changes to a goal.

        When current_amount or target_amount changes, the milestone
        notifier picks the one message to show; otherwise the plain
        "updated" message is shown. A goal is completed whenever its
        saved amount reaches the target and counts again each time it
        gets there from below.
        """
        before = self.find(goal_id)
        if before is None:
            try:
                row = await self._storage.get(self.table, self.user_id, str(goal_id))
            except StorageError as e:
                await self.report_failure("update", e, "Failed to update goal. Please try again.")
                return None
            before = Goal.model_validate(row) if row else None

        changes = dict(changes)
        milestone = None
        if before is not None and ("current_amount" in changes or "target_amount" in changes):
            current = float(changes.get("current_amount", before.current_amount))
            target = float(changes.get("target_amount", before.target_amount))
            milestone = detect_milestone(
                before.current_amount,
                current,
                target,
                goal_title=changes.get("title", before.title),
                old_target=before.target_amount,
            )
            changes["is_completed"] = target > 0 and current >= target

        updated = await self._update(
            goal_id,
            changes,
            success=None,
            failure="Failed to update goal. Please try again.",
        )
        if updated is None:
            return None

        if milestone is None:
            self.notify(Notification.success("Goal Updated", "Your progress has been saved."))
            return updated

        if milestone.is_milestone:
            self.notify(Notification.celebration(milestone.title, milestone.message))
            await self._audit.log_milestone_reached(
                user_id=self.user_id,
                goal_id=str(updated.id),
                milestone=milestone.milestone.value,
                progress=milestone.new_percent,
            )
        else:
            self.notify(Notification.success(milestone.title, milestone.message))

        if milestone.completes_goal:
            await self._after_goal_completed()

        return updated

    async def contribute(self, goal_id: Any, amount: float) -> Optional[Goal]:
        """Add `amount` to the goal's saved amount."""
        goal = self.find(goal_id)
        if goal is None:
            self.notify(Notification.failure("Failed to update goal. Please try again."))
            return None
        return await self.update(goal_id, {"current_amount": goal.current_amount + amount})

    async def _after_goal_completed(self) -> None:
        try:
            stats = await self._stats.record_goal_completed(self.user_id)
        except StorageError as e:
            logger.error("stats_update_failed", user_id=self.user_id, error=str(e))
            return

        for achievement in await self._achievements.check_and_award(self.user_id, stats):
            self.notify(Notification.celebration(
                "🏆 Achievement Unlocked!",
                f"{achievement.title} (+{achievement.points} points)",
            ))

    async def remove(self, goal_id: Any) -> bool:
        return await self._delete(
            goal_id,
            success=Notification.success("Goal Removed", "Goal has been deleted successfully."),
            failure="Failed to remove goal. Please try again.",
        )

    @property
    def active(self) -> list[Goal]:
        return [g for g in self.items if not g.is_completed]

    @property
    def completed(self) -> list[Goal]:
        return [g for g in self.items if g.is_completed]
