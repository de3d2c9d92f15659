"""
Data-Access Stores

One store per entity the UI shows. Each caches the signed-in user's rows,
writes through the storage layer, follows the change feed, and reports
every outcome as a notification.
"""

from finbuddy.stores.achievements import AchievementStore, StatsStore
from finbuddy.stores.base import RecordStore
from finbuddy.stores.bills import BillStore
from finbuddy.stores.expenses import CategoryStore, ExpenseStore
from finbuddy.stores.goals import GoalStore
from finbuddy.stores.networth import (
    AssetStore,
    DebtStore,
    InvestmentStore,
    LiabilityStore,
    NetWorthStore,
)
from finbuddy.stores.notifications import (
    Notification,
    NotificationCenter,
    NotificationVariant,
    Notifier,
)
from finbuddy.stores.profile import IncomeSourceStore, ProfileStore

__all__ = [
    "AchievementStore",
    "AssetStore",
    "BillStore",
    "CategoryStore",
    "DebtStore",
    "ExpenseStore",
    "GoalStore",
    "IncomeSourceStore",
    "InvestmentStore",
    "LiabilityStore",
    "NetWorthStore",
    "Notification",
    "NotificationCenter",
    "NotificationVariant",
    "Notifier",
    "ProfileStore",
    "RecordStore",
    "StatsStore",
]
