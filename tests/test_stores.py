"""Tests for the data-access stores."""

import gc

import pytest
from datetime import date, timedelta

from finbuddy.config import AuthSettings
from finbuddy.gamification import AchievementService, StatsTracker
from finbuddy.models.records import BillFrequency, IncomeFrequency, Table
from finbuddy.orchestrator import create_app_components
from finbuddy.services.auth import SessionVerifier
from finbuddy.services.storage import InMemoryRecordStorage, StorageError
from finbuddy.stores import (
    AchievementStore,
    BillStore,
    CategoryStore,
    ExpenseStore,
    GoalStore,
    IncomeSourceStore,
    NetWorthStore,
    NotificationCenter,
    NotificationVariant,
    ProfileStore,
)

from tests.conftest import USER_ID, FakeGateway


class BrokenStorage(InMemoryRecordStorage):
    """Inserts and reads always fail."""

    async def insert(self, table, user_id, values):
        raise StorageError("sheet unavailable")

    async def list(self, table, user_id, order_by=None, descending=False, limit=None):
        raise StorageError("sheet unavailable")


@pytest.fixture
def notifier():
    return NotificationCenter()


def titles(notifier: NotificationCenter) -> list[str]:
    return [n.title for n in notifier.drain()]


class TestExpenseStore:
    """Tests for adding and removing expenses."""

    @pytest.mark.asyncio
    async def test_first_expense_unlocks_achievement(self, storage, notifier, audit_logger):
        store = ExpenseStore(storage, USER_ID, notifier, audit_logger)

        expense = await store.add("Food & Dining", 250.0, description="Lunch")

        assert expense is not None
        assert store.items == [expense]
        assert titles(notifier) == ["✅ Expense Added", "🏆 Achievement Unlocked!"]
        stats = await storage.list(Table.USER_STATS.value, USER_ID)
        assert stats[0]["expenses_count"] == 1
        assert stats[0]["total_points"] == 10

    @pytest.mark.asyncio
    async def test_second_expense_awards_nothing_new(self, storage, notifier):
        store = ExpenseStore(storage, USER_ID, notifier)
        await store.add("Travel", 100.0)
        notifier.drain()

        await store.add("Travel", 50.0)

        assert titles(notifier) == ["✅ Expense Added"]
        assert store.total == 150.0

    @pytest.mark.asyncio
    async def test_failed_write_becomes_notification(self, notifier, audit_storage, audit_logger):
        store = ExpenseStore(BrokenStorage(), USER_ID, notifier, audit_logger)

        assert await store.add("Travel", 100.0) is None

        notifications = notifier.drain()
        assert len(notifications) == 1
        assert notifications[0].variant == NotificationVariant.DESTRUCTIVE
        assert notifications[0].message == "Failed to add expense. Please try again."
        assert audit_storage.events[-1].event_type.value == "write_failed"

    @pytest.mark.asyncio
    async def test_failed_load_keeps_cache(self, notifier):
        store = ExpenseStore(BrokenStorage(), USER_ID, notifier)
        assert await store.fetch() == []
        assert not store.loading
        assert titles(notifier) == ["Error"]

    @pytest.mark.asyncio
    async def test_remove(self, storage, notifier):
        store = ExpenseStore(storage, USER_ID, notifier)
        expense = await store.add("Travel", 100.0)

        assert await store.remove(expense.id) is True
        assert store.items == []

    @pytest.mark.asyncio
    async def test_newest_date_first(self, storage, notifier):
        store = ExpenseStore(storage, USER_ID, notifier)
        await store.add("Travel", 1.0, on=date(2026, 3, 1))
        await store.add("Travel", 2.0, on=date(2026, 3, 5))
        await store.add("Travel", 3.0, on=date(2026, 3, 3))

        fresh = ExpenseStore(storage, USER_ID, notifier)
        await fresh.fetch()
        assert [e.amount for e in fresh.items] == [2.0, 3.0, 1.0]


class TestCategoryStore:
    """Tests for custom categories."""

    @pytest.mark.asyncio
    async def test_defaults_then_custom(self, storage, notifier):
        store = CategoryStore(storage, USER_ID, notifier)
        await store.add("Pets", "🐶")

        names = [c.name for c in store.all_categories]
        assert names[0] == "Food & Dining"
        assert names[-1] == "Pets"
        assert store.all_categories[-1].is_custom

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, storage, notifier):
        store = CategoryStore(storage, USER_ID, notifier)

        assert await store.add("  travel ") is None
        assert titles(notifier) == ["Category exists"]
        assert await storage.list(Table.CATEGORIES.value, USER_ID) == []


class TestGoalStore:
    """Tests for goal progress notifications."""

    @pytest.mark.asyncio
    async def test_one_notification_per_update(self, storage, notifier):
        store = GoalStore(storage, USER_ID, notifier)
        goal = await store.add("Bike", 1000.0)
        notifier.drain()

        await store.update(goal.id, {"current_amount": 700.0})
        assert titles(notifier) == ["⭐ 50% complete!"]

        await store.update(goal.id, {"current_amount": 800.0})
        assert titles(notifier) == ["🚀 75% complete!"]

        await store.update(goal.id, {"current_amount": 850.0})
        assert titles(notifier) == ["Goal Updated"]

    @pytest.mark.asyncio
    async def test_completion(self, storage, notifier, audit_storage, audit_logger):
        store = GoalStore(storage, USER_ID, notifier, audit_logger)
        goal = await store.add("Bike", 1000.0)
        notifier.drain()

        updated = await store.contribute(goal.id, 1000.0)

        assert updated.is_completed
        assert titles(notifier) == ["🎉 Goal Completed!", "🏆 Achievement Unlocked!"]
        assert store.completed == [updated]
        stats = await storage.list(Table.USER_STATS.value, USER_ID)
        assert stats[0]["goals_completed"] == 1
        assert "goal_completed" in [e.event_type.value for e in audit_storage.events]

    @pytest.mark.asyncio
    async def test_title_change_is_plain_update(self, storage, notifier):
        store = GoalStore(storage, USER_ID, notifier)
        goal = await store.add("Bike", 1000.0)
        notifier.drain()

        updated = await store.update(goal.id, {"title": "Scooter"})
        assert updated.title == "Scooter"
        assert titles(notifier) == ["Goal Updated"]

    @pytest.mark.asyncio
    async def test_completing_again_counts_again(self, storage, notifier):
        store = GoalStore(storage, USER_ID, notifier)
        goal = await store.add("Bike", 100.0)

        await store.update(goal.id, {"current_amount": 100.0})
        reopened = await store.update(goal.id, {"current_amount": 50.0})
        assert not reopened.is_completed
        notifier.drain()

        again = await store.update(goal.id, {"current_amount": 100.0})

        assert again.is_completed
        assert titles(notifier)[0] == "🎉 Goal Completed!"
        stats = await storage.list(Table.USER_STATS.value, USER_ID)
        assert stats[0]["goals_completed"] == 2

    @pytest.mark.asyncio
    async def test_lowering_target_completes_goal(self, storage, notifier):
        store = GoalStore(storage, USER_ID, notifier)
        goal = await store.add("Bike", 100.0)
        await store.update(goal.id, {"current_amount": 80.0})
        notifier.drain()

        updated = await store.update(goal.id, {"target_amount": 50.0})

        assert updated.is_completed
        assert titles(notifier)[0] == "🎉 Goal Completed!"
        stats = await storage.list(Table.USER_STATS.value, USER_ID)
        assert stats[0]["goals_completed"] == 1


class TestAchievementStore:
    """Tests for the badge list shown on the Achievements page."""

    @pytest.mark.asyncio
    async def test_check_awards_and_notifies(self, storage, notifier):
        snapshot = await StatsTracker(storage).record_expense(USER_ID, on=date(2026, 3, 1))
        store = AchievementStore(storage, USER_ID, notifier)
        await store.fetch()

        awarded = await store.check(snapshot)

        assert [a.achievement_type for a in awarded] == ["first_expense"]
        assert "first_expense" in store.earned_ids
        assert titles(notifier) == ["🏆 Achievement Unlocked!"]

    @pytest.mark.asyncio
    async def test_hand_edited_type_counts_as_earned(self, storage, notifier):
        await storage.insert(Table.ACHIEVEMENTS.value, USER_ID, {
            "achievement_type": " First_Expense ",
            "title": "First Step",
            "points": 10,
        })
        snapshot = await StatsTracker(storage).record_expense(USER_ID, on=date(2026, 3, 1))
        store = AchievementStore(storage, USER_ID, notifier)
        await store.fetch()

        assert store.earned_ids == {"first_expense"}
        assert await AchievementService(storage).earned_ids(USER_ID) == store.earned_ids
        assert "first_expense" not in [d.id for d in store.locked]
        assert await store.check(snapshot) == []


class TestBillStore:
    """Tests for bill reminders."""

    @pytest.mark.asyncio
    async def test_upcoming_and_overdue(self, storage, notifier):
        today = date(2026, 3, 10)
        store = BillStore(storage, USER_ID, notifier)
        await store.add("Electricity", 1200.0, today + timedelta(days=2))
        await store.add("Internet", 999.0, today + timedelta(days=10))
        late = await store.add("Rent", 20000.0, today - timedelta(days=1))

        assert [b.title for b in store.upcoming(within_days=3, today=today)] == ["Electricity"]
        assert [b.title for b in store.overdue(today=today)] == ["Rent"]

        await store.mark_paid(late.id)
        assert store.overdue(today=today) == []
        assert len(store.unpaid) == 2

    @pytest.mark.asyncio
    async def test_soonest_first(self, storage, notifier):
        store = BillStore(storage, USER_ID, notifier)
        await store.add("B", 1.0, date(2026, 4, 1), frequency=BillFrequency.YEARLY)
        await store.add("A", 1.0, date(2026, 3, 1))
        assert [b.title for b in store.items] == ["A", "B"]


class TestProfileAndIncome:
    """Tests for salary and indirect income."""

    @pytest.mark.asyncio
    async def test_update_salary_creates_then_updates(self, storage, notifier):
        store = ProfileStore(storage, USER_ID, notifier)

        await store.update_salary(600000.0)
        await store.update_salary(1200000.0)

        assert len(await storage.list(Table.PROFILES.value, USER_ID)) == 1
        assert store.monthly_salary == 100000.0

    @pytest.mark.asyncio
    async def test_monthly_total(self, storage, notifier):
        store = IncomeSourceStore(storage, USER_ID, notifier)
        await store.add("Rent", 15000.0)
        await store.add("Dividends", 12000.0, IncomeFrequency.YEARLY)
        assert store.monthly_total == pytest.approx(16000.0)


class TestNetWorthStore:
    """Tests for the combined assets and liabilities view."""

    @pytest.mark.asyncio
    async def test_net_worth(self, storage, notifier):
        store = NetWorthStore(storage, USER_ID, notifier)
        await store.assets.add(asset_type="property", purchase_value=4000000, current_value=5000000)
        await store.liabilities.add(
            liability_type="home_loan",
            principal_amount=3000000,
            outstanding_amount=2000000,
            interest_rate=8.5,
        )

        fresh = NetWorthStore(storage, USER_ID, notifier)
        await fresh.fetch()
        assert fresh.total_assets == 5000000
        assert fresh.total_liabilities == 2000000
        assert fresh.net_worth == 3000000


class TestRealtime:
    """Stores follow writes made elsewhere."""

    @pytest.mark.asyncio
    async def test_other_session_write_appears(self, storage, notifier):
        watcher = ExpenseStore(storage, USER_ID, NotificationCenter())
        watcher.start()
        writer = ExpenseStore(storage, USER_ID, notifier)

        expense = await writer.add("Travel", 100.0)
        assert [e.id for e in watcher.items] == [expense.id]

        await writer.remove(expense.id)
        assert watcher.items == []

    @pytest.mark.asyncio
    async def test_closed_store_stops_following(self, storage, notifier):
        watcher = ExpenseStore(storage, USER_ID, NotificationCenter())
        watcher.start()
        watcher.close()

        await ExpenseStore(storage, USER_ID, notifier).add("Travel", 100.0)
        assert watcher.items == []

    @pytest.mark.asyncio
    async def test_other_users_writes_ignored(self, storage, notifier):
        watcher = ExpenseStore(storage, USER_ID, NotificationCenter())
        watcher.start()

        await ExpenseStore(storage, "user-2", notifier).add("Travel", 100.0)
        assert watcher.items == []

    @pytest.mark.asyncio
    async def test_closing_user_stores_unsubscribes(self, storage, feed):
        components = create_app_components(
            storage=storage,
            gateway=FakeGateway(),
            verifier=SessionVerifier(AuthSettings(jwt_secret="test-secret")),
        )
        stores = components.stores_for(USER_ID)
        await stores.fetch_all()
        stores.start()
        assert feed.subscriber_count > 0

        stores.close()
        assert feed.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_abandoned_store_lapses(self, storage, feed, notifier):
        watcher = ExpenseStore(storage, USER_ID, NotificationCenter())
        watcher.start()
        assert feed.subscriber_count == 1

        del watcher
        gc.collect()

        assert feed.subscriber_count == 0
        await ExpenseStore(storage, USER_ID, notifier).add("Travel", 100.0)
