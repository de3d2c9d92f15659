"""
Expense and Category Stores

Adding an expense is the main driver of gamification: it bumps the
stats counters and the daily streak, then runs the achievement
evaluator on the fresh snapshot.
"""

from datetime import date
from typing import Optional

import structlog

from finbuddy.gamification import AchievementService, StatsTracker
from finbuddy.models.records import (
    DEFAULT_CATEGORIES,
    CategoryOption,
    Expense,
    ExpenseCategory,
)
from finbuddy.queries.formatting import format_inr
from finbuddy.services.storage import StorageError
from finbuddy.stores.base import RecordStore
from finbuddy.stores.notifications import Notification

logger = structlog.get_logger(__name__)


class ExpenseStore(RecordStore[Expense]):
    """Expenses, newest date first."""

    model = Expense
    order_by = "date"
    descending = True
    load_error = "Failed to load expenses. Please try again."

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._stats = StatsTracker(self._storage)
        self._achievements = AchievementService(self._storage, self._audit)

    async def add(
        self,
        category: str,
        amount: float,
        on: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Optional[Expense]:
        expense = Expense(
            user_id=self.user_id,
            category=category,
            amount=amount,
            date=on or date.today(),
            description=description or None,
        )
        stored = await self._insert(
            expense,
            success=Notification.success(
                "✅ Expense Added",
                f"{format_inr(amount)} added to {category}",
            ),
            failure="Failed to add expense. Please try again.",
        )
        if stored is not None:
            await self._after_expense_added()
        return stored

    async def _after_expense_added(self) -> None:
        try:
            stats = await self._stats.record_expense(self.user_id)
        except StorageError as e:
            logger.error("stats_update_failed", user_id=self.user_id, error=str(e))
            return

        for achievement in await self._achievements.check_and_award(self.user_id, stats):
            self.notify(Notification.celebration(
                "🏆 Achievement Unlocked!",
                f"{achievement.title} (+{achievement.points} points)",
            ))

    async def remove(self, expense_id) -> bool:
        return await self._delete(
            expense_id,
            success=Notification.success("Expense Removed", "Expense has been deleted successfully."),
            failure="Failed to remove expense. Please try again.",
        )

    @property
    def total(self) -> float:
        return sum(e.amount for e in self.items)


class CategoryStore(RecordStore[ExpenseCategory]):
    """User-defined categories on top of the built-in ones."""

    model = ExpenseCategory
    order_by = "created_at"
    descending = False
    load_error = "Failed to load custom categories"

    @property
    def all_categories(self) -> list[CategoryOption]:
        """Defaults first, then custom categories in creation order."""
        custom = [
            CategoryOption(name=c.name, icon=c.icon, is_custom=True)
            for c in self.items
        ]
        return list(DEFAULT_CATEGORIES) + custom

    def exists(self, name: str) -> bool:
        wanted = name.strip().lower()
        return any(c.name.lower() == wanted for c in self.all_categories)

    async def add(self, name: str, icon: str = "📝") -> Optional[ExpenseCategory]:
        name = name.strip()
        if self.exists(name):
            self.notify(Notification.failure(
                "You already have a category with this name",
                title="Category exists",
            ))
            return None

        return await self._insert(
            ExpenseCategory(user_id=self.user_id, name=name, icon=icon),
            success=Notification.success("Category added", f'"{name}" is now available'),
            failure="Failed to add category",
        )

    async def remove(self, category_id) -> bool:
        return await self._delete(
            category_id,
            success=Notification.success("Category deleted", "Category has been removed"),
            failure="Failed to delete category",
        )
