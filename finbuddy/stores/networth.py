"""
Net Worth, Debt and Investment Stores

The net worth view is two stores (assets and liabilities) read together.
The debt manager is a second view of the liabilities table with its own
ordering and messages.
"""

import asyncio
from typing import Any, Optional

from finbuddy.models.records import Asset, Investment, Liability
from finbuddy.services.storage import StorageError
from finbuddy.stores.base import RecordStore
from finbuddy.stores.notifications import Notification


class AssetStore(RecordStore[Asset]):
    """Assets, most valuable first."""

    model = Asset
    order_by = "current_value"
    descending = True

    async def add(self, **fields: Any) -> Optional[Asset]:
        return await self._insert(
            Asset(user_id=self.user_id, **fields),
            success=Notification.success("Success", "Asset added successfully"),
            failure="Failed to add asset",
        )

    async def update(self, asset_id: Any, changes: dict[str, Any]) -> Optional[Asset]:
        return await self._update(
            asset_id,
            changes,
            success=Notification.success("Success", "Asset updated"),
            failure="Failed to update asset",
        )

    async def remove(self, asset_id: Any) -> bool:
        return await self._delete(
            asset_id,
            success=Notification.success("Success", "Asset deleted"),
            failure="Failed to delete asset",
        )


class LiabilityStore(RecordStore[Liability]):
    """Liabilities, largest outstanding first."""

    model = Liability
    order_by = "outstanding_amount"
    descending = True

    async def add(self, **fields: Any) -> Optional[Liability]:
        return await self._insert(
            Liability(user_id=self.user_id, **fields),
            success=Notification.success("Success", "Liability added successfully"),
            failure="Failed to add liability",
        )

    async def update(self, liability_id: Any, changes: dict[str, Any]) -> Optional[Liability]:
        return await self._update(
            liability_id,
            changes,
            success=Notification.success("Success", "Liability updated"),
            failure="Failed to update liability",
        )

    async def remove(self, liability_id: Any) -> bool:
        return await self._delete(
            liability_id,
            success=Notification.success("Success", "Liability deleted"),
            failure="Failed to delete liability",
        )


class NetWorthStore:
    """Assets and liabilities side by side."""

    def __init__(self, storage, user_id: str, notifier=None, audit_logger=None):
        self.assets = AssetStore(storage, user_id, notifier, audit_logger)
        self.liabilities = LiabilityStore(storage, user_id, notifier, audit_logger)

    async def fetch(self) -> None:
        """Load both tables; one failure message covers both."""
        try:
            await asyncio.gather(self.assets.load(), self.liabilities.load())
        except StorageError as e:
            await self.assets.report_failure("load", e, "Failed to load net worth data")

    def start(self) -> None:
        self.assets.start()
        self.liabilities.start()

    def close(self) -> None:
        self.assets.close()
        self.liabilities.close()

    @property
    def total_assets(self) -> float:
        return sum(a.current_value for a in self.assets.items)

    @property
    def total_liabilities(self) -> float:
        return sum(item.outstanding_amount for item in self.liabilities.items)

    @property
    def net_worth(self) -> float:
        return self.total_assets - self.total_liabilities


class DebtStore(RecordStore[Liability]):
    """Liabilities as seen by the debt manager, newest first."""

    model = Liability
    order_by = "created_at"
    descending = True

    async def add(self, **fields: Any) -> Optional[Liability]:
        return await self._insert(
            Liability(user_id=self.user_id, **fields),
            success=Notification.success("Success", "Debt added successfully"),
            failure="Failed to add debt. Please try again.",
        )

    async def update(self, debt_id: Any, changes: dict[str, Any]) -> Optional[Liability]:
        return await self._update(
            debt_id,
            changes,
            success=Notification.success("Success", "Debt updated successfully"),
            failure="Failed to update debt. Please try again.",
        )

    async def remove(self, debt_id: Any) -> bool:
        return await self._delete(
            debt_id,
            success=Notification.success("Success", "Debt deleted successfully"),
            failure="Failed to delete debt. Please try again.",
        )

    @property
    def total_outstanding(self) -> float:
        return sum(d.outstanding_amount for d in self.items)

    @property
    def total_emi(self) -> float:
        return sum(d.emi_amount or 0.0 for d in self.items)


class InvestmentStore(RecordStore[Investment]):
    """Investments, most recent purchase first."""

    model = Investment
    order_by = "purchase_date"
    descending = True
    load_error = "Failed to load investments"

    async def add(self, **fields: Any) -> Optional[Investment]:
        return await self._insert(
            Investment(user_id=self.user_id, **fields),
            success=Notification.success("Success", "Investment added successfully"),
            failure="Failed to add investment",
        )

    async def update(self, investment_id: Any, changes: dict[str, Any]) -> Optional[Investment]:
        return await self._update(
            investment_id,
            changes,
            success=Notification.success("Success", "Investment updated successfully"),
            failure="Failed to update investment",
        )

    async def remove(self, investment_id: Any) -> bool:
        return await self._delete(
            investment_id,
            success=Notification.success("Success", "Investment deleted successfully"),
            failure="Failed to delete investment",
        )

    @property
    def total_invested(self) -> float:
        return sum(i.invested_amount for i in self.items)

    @property
    def total_value(self) -> float:
        return sum(i.market_value for i in self.items)
