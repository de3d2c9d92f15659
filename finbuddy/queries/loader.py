"""
User Data Loader

DESIGN DECISION: Advisors never query storage directly. They declare
which tables they need (with ordering and limits) and the loader fetches
them concurrently, returning typed records.

The numbers an advisor embeds in a prompt come only from what this
loader returned. The model never sees anything else.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional

import structlog

from finbuddy.models.records import (
    RECORD_TYPES,
    Asset,
    Bill,
    Expense,
    Goal,
    IncomeSource,
    Investment,
    Liability,
    Profile,
    Record,
    Table,
    TaxDeduction,
    UserStats,
)
from finbuddy.services.storage import RecordStorageInterface

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TableQuery:
    """One table to fetch, with optional ordering and row cap."""
    table: Table
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None


@dataclass
class UserData:
    """Everything loaded for one advisor call. Unrequested tables stay empty."""
    user_id: str
    expenses: list[Expense] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    bills: list[Bill] = field(default_factory=list)
    assets: list[Asset] = field(default_factory=list)
    liabilities: list[Liability] = field(default_factory=list)
    investments: list[Investment] = field(default_factory=list)
    income_sources: list[IncomeSource] = field(default_factory=list)
    tax_deductions: list[TaxDeduction] = field(default_factory=list)
    profiles: list[Profile] = field(default_factory=list)
    stats: list[UserStats] = field(default_factory=list)

    @property
    def profile(self) -> Optional[Profile]:
        return self.profiles[0] if self.profiles else None

    @property
    def user_stats(self) -> Optional[UserStats]:
        return self.stats[0] if self.stats else None

    @property
    def annual_salary(self) -> float:
        return self.profile.annual_salary if self.profile else 0.0


_ATTRIBUTES: dict[Table, str] = {
    Table.EXPENSES: "expenses",
    Table.GOALS: "goals",
    Table.BILLS: "bills",
    Table.ASSETS: "assets",
    Table.LIABILITIES: "liabilities",
    Table.INVESTMENTS: "investments",
    Table.INCOME_SOURCES: "income_sources",
    Table.TAX_DEDUCTIONS: "tax_deductions",
    Table.PROFILES: "profiles",
    Table.USER_STATS: "stats",
}


class UserDataLoader:
    """
    Fetches a user's rows for several tables at once.

    GUARANTEES:
    - Every read is scoped to the given user id
    - Rows are returned as validated models
    - A storage failure propagates (the advisor call fails as a whole)
    """

    def __init__(self, storage: RecordStorageInterface):
        self._storage = storage

    async def _fetch(self, user_id: str, query: TableQuery) -> list[Record]:
        rows = await self._storage.list(
            query.table.value,
            user_id,
            order_by=query.order_by,
            descending=query.descending,
            limit=query.limit,
        )
        model = RECORD_TYPES[query.table]
        return [model.from_row(row) for row in rows]

    async def load(self, user_id: str, queries: list[TableQuery]) -> UserData:
        """
        Load the requested tables concurrently.

        Raises:
            StorageError: If any table cannot be read
            KeyError: If a table has no slot in UserData
        """
        results = await asyncio.gather(*(self._fetch(user_id, q) for q in queries))

        data = UserData(user_id=user_id)
        for query, records in zip(queries, results):
            setattr(data, _ATTRIBUTES[query.table], records)

        logger.debug(
            "user_data_loaded",
            user_id=user_id,
            tables={q.table.value: len(r) for q, r in zip(queries, results)},
        )
        return data
