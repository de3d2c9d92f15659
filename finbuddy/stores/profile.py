"""Profile and indirect income stores."""

from typing import Any, Optional

from finbuddy.models.records import IncomeFrequency, IncomeSource, Profile
from finbuddy.queries.formatting import format_inr
from finbuddy.services.storage import StorageError
from finbuddy.stores.base import RecordStore
from finbuddy.stores.notifications import Notification


class ProfileStore(RecordStore[Profile]):
    """The single profile row of the user."""

    model = Profile

    @property
    def profile(self) -> Optional[Profile]:
        return self.items[0] if self.items else None

    @property
    def annual_salary(self) -> float:
        return self.profile.annual_salary if self.profile else 0.0

    @property
    def monthly_salary(self) -> float:
        return self.annual_salary / 12

    async def update_salary(self, salary: float) -> Optional[Profile]:
        """Set the annual salary, creating the profile row if there is none."""
        success = Notification.success(
            "💰 Salary Updated",
            f"Annual salary set to {format_inr(salary)}",
        )
        failure = "Failed to save salary. Please try again."

        if self.profile is None:
            try:
                await self.load()
            except StorageError as e:
                await self.report_failure("update", e, failure)
                return None

        if self.profile is None:
            return await self._insert(
                Profile(user_id=self.user_id, annual_salary=salary),
                success=success,
                failure=failure,
            )
        return await self._update(
            self.profile.id,
            {"annual_salary": salary},
            success=success,
            failure=failure,
        )


class IncomeSourceStore(RecordStore[IncomeSource]):
    """Income beyond salary, newest first."""

    model = IncomeSource

    async def add(
        self,
        income_type: str,
        amount: float,
        frequency: IncomeFrequency = IncomeFrequency.MONTHLY,
    ) -> Optional[IncomeSource]:
        return await self._insert(
            IncomeSource(
                user_id=self.user_id,
                income_type=income_type,
                amount=amount,
                frequency=frequency,
            ),
            success=Notification.success("✅ Income Source Added", f"{income_type} added successfully"),
            failure="Failed to add income source. Please try again.",
        )

    async def update(self, source_id: Any, changes: dict[str, Any]) -> Optional[IncomeSource]:
        return await self._update(
            source_id,
            changes,
            success=Notification.success("✅ Updated", "Income source updated successfully"),
            failure="Failed to update income source.",
        )

    async def remove(self, source_id: Any) -> bool:
        return await self._delete(
            source_id,
            success=Notification.success("🗑️ Deleted", "Income source removed successfully"),
            failure="Failed to delete income source.",
        )

    @property
    def monthly_total(self) -> float:
        return sum(s.monthly_amount for s in self.items)
