"""Bill reminder store."""

from datetime import date, timedelta
from typing import Any, Optional

from finbuddy.models.records import Bill, BillFrequency
from finbuddy.stores.base import RecordStore
from finbuddy.stores.notifications import Notification


class BillStore(RecordStore[Bill]):
    """Bill reminders, soonest due first."""

    model = Bill
    order_by = "due_date"
    descending = False
    load_error = "Failed to load bills. Please try again."

    async def add(
        self,
        title: str,
        amount: float,
        due_date: date,
        frequency: BillFrequency = BillFrequency.MONTHLY,
        category: Optional[str] = None,
    ) -> Optional[Bill]:
        bill = Bill(
            user_id=self.user_id,
            title=title,
            amount=amount,
            due_date=due_date,
            frequency=frequency,
            category=category,
        )
        return await self._insert(
            bill,
            success=Notification.success("Bill Added", f'"{title}" reminder has been created.'),
            failure="Failed to add bill. Please try again.",
        )

    async def mark_paid(self, bill_id: Any) -> Optional[Bill]:
        return await self._update(
            bill_id,
            {"is_paid": True},
            success=Notification.success("Bill Marked as Paid", "Great! Bill has been marked as paid."),
            failure="Failed to update bill. Please try again.",
        )

    async def remove(self, bill_id: Any) -> bool:
        return await self._delete(
            bill_id,
            success=Notification.success("Bill Removed", "Bill reminder has been deleted successfully."),
            failure="Failed to remove bill. Please try again.",
        )

    def upcoming(self, within_days: int = 3, today: Optional[date] = None) -> list[Bill]:
        """Unpaid bills due between today and `within_days` from now."""
        today = today or date.today()
        horizon = today + timedelta(days=within_days)
        return [b for b in self.items if not b.is_paid and today <= b.due_date <= horizon]

    def overdue(self, today: Optional[date] = None) -> list[Bill]:
        today = today or date.today()
        return [b for b in self.items if not b.is_paid and b.due_date < today]

    @property
    def unpaid(self) -> list[Bill]:
        return [b for b in self.items if not b.is_paid]
