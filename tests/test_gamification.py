"""Tests for achievements, goal milestones, streaks and levels."""

import pytest
from datetime import date

from finbuddy.gamification import (
    ACHIEVEMENTS,
    AchievementService,
    Milestone,
    StatsTracker,
    detect_milestone,
    evaluate_achievements,
    level_for_points,
    next_streak,
    progress_towards,
)
from finbuddy.models.records import Table, UserStats

from tests.conftest import USER_ID


def stats(**counters) -> UserStats:
    return UserStats(user_id=USER_ID, **counters)


class TestAchievementEvaluation:
    """Tests for the pure evaluator."""

    def test_tenth_expense_awards_tracker(self):
        """9 -> 10 expenses unlocks Expense Tracker only."""
        earned = {"first_expense"}
        before = evaluate_achievements(stats(expenses_count=9), earned)
        after = evaluate_achievements(stats(expenses_count=10), earned)
        assert before == []
        assert [a.id for a in after] == ["expense_tracker"]

    def test_eleventh_expense_awards_nothing(self):
        earned = {"first_expense", "expense_tracker"}
        assert evaluate_achievements(stats(expenses_count=11), earned) == []

    def test_awards_in_table_order(self):
        """Several thresholds crossed at once come back in table order."""
        result = evaluate_achievements(
            stats(expenses_count=10, current_streak=7, goals_completed=1),
            set(),
        )
        ids = [a.id for a in result]
        assert ids == [
            "first_expense",
            "expense_tracker",
            "goal_setter",
            "streak_beginner",
            "streak_champion",
        ]

    def test_thresholds(self):
        """Every definition is met exactly at its threshold."""
        for definition in ACHIEVEMENTS:
            at = stats(**{definition.metric: definition.threshold})
            below = stats(**{definition.metric: definition.threshold - 1})
            assert definition.is_met(at)
            assert not definition.is_met(below)

    def test_progress_towards_caps_at_100(self):
        definition = next(a for a in ACHIEVEMENTS if a.id == "expense_master")
        assert progress_towards(definition, stats(expenses_count=25)) == 50.0
        assert progress_towards(definition, stats(expenses_count=80)) == 100.0


class TestAchievementService:
    """Tests for awarding against storage."""

    @pytest.mark.asyncio
    async def test_awards_once(self, storage, audit_logger, audit_storage):
        """Re-running the check never awards the same badge twice."""
        tracker = StatsTracker(storage)
        snapshot = await tracker.get_or_create(USER_ID)
        snapshot = await tracker.record_expense(USER_ID, on=date(2026, 3, 1))

        service = AchievementService(storage, audit_logger)
        first = await service.check_and_award(USER_ID, snapshot)
        second = await service.check_and_award(USER_ID, snapshot)

        assert [a.achievement_type for a in first] == ["first_expense"]
        assert second == []
        rows = await storage.list(Table.ACHIEVEMENTS.value, USER_ID)
        assert len(rows) == 1
        assert any(e.event_type.value == "achievement_awarded" for e in audit_storage.events)

    @pytest.mark.asyncio
    async def test_points_added_to_stats(self, storage, audit_logger):
        tracker = StatsTracker(storage)
        snapshot = await tracker.record_expense(USER_ID, on=date(2026, 3, 1))

        await AchievementService(storage, audit_logger).check_and_award(USER_ID, snapshot)

        refreshed = await tracker.get_or_create(USER_ID)
        assert refreshed.total_points == 10


class TestMilestones:
    """Tests for the goal milestone notifier."""

    def test_crossing_75(self):
        result = detect_milestone(700, 800, 1000)
        assert result.milestone == Milestone.THREE_QUARTERS
        assert result.is_milestone

    def test_highest_band_wins(self):
        """80% -> 96% crosses only 90."""
        result = detect_milestone(800, 960, 1000)
        assert result.milestone == Milestone.ALMOST_THERE

    def test_jump_across_several_bands(self):
        """A single update from 10% to 95% reports 90, not 50 or 75."""
        assert detect_milestone(100, 950, 1000).milestone == Milestone.ALMOST_THERE

    def test_reaching_target_completes(self):
        result = detect_milestone(900, 1000, 1000, goal_title="Bike")
        assert result.milestone == Milestone.COMPLETED
        assert result.completes_goal
        assert "Bike" in result.message

    def test_no_band_crossed(self):
        result = detect_milestone(100, 200, 1000)
        assert result.milestone == Milestone.PROGRESS
        assert not result.is_milestone
        assert result.title == "Goal Updated"

    def test_decrease_is_plain_progress(self):
        assert detect_milestone(800, 400, 1000).milestone == Milestone.PROGRESS

    def test_already_complete_stays_plain(self):
        """Adding more to a finished goal does not celebrate again."""
        assert detect_milestone(1000, 1200, 1000).milestone == Milestone.PROGRESS

    def test_zero_target(self):
        assert detect_milestone(0, 100, 0).milestone == Milestone.PROGRESS

    def test_band_exactly_reached_with_paise(self):
        """0.15 of 0.20 is exactly 75%, even though the float quotient is not."""
        assert detect_milestone(0.1, 0.15, 0.2).milestone == Milestone.THREE_QUARTERS
        assert detect_milestone(0.1, 0.18, 0.2).milestone == Milestone.ALMOST_THERE

    def test_lower_target_completes(self):
        result = detect_milestone(80, 80, 50, old_target=100)
        assert result.milestone == Milestone.COMPLETED
        assert result.old_percent == 80.0


class TestStreaks:
    """Tests for the daily streak."""

    def test_first_expense_starts_streak(self):
        assert next_streak(0, None, date(2026, 3, 1)) == 1

    def test_consecutive_day_extends(self):
        assert next_streak(4, date(2026, 3, 1), date(2026, 3, 2)) == 5

    def test_same_day_unchanged(self):
        assert next_streak(4, date(2026, 3, 2), date(2026, 3, 2)) == 4

    def test_gap_resets(self):
        assert next_streak(4, date(2026, 2, 27), date(2026, 3, 2)) == 1

    @pytest.mark.asyncio
    async def test_tracker_updates_counters(self, storage):
        tracker = StatsTracker(storage)
        await tracker.record_expense(USER_ID, on=date(2026, 3, 1))
        await tracker.record_expense(USER_ID, on=date(2026, 3, 2))
        result = await tracker.record_expense(USER_ID, on=date(2026, 3, 2))

        assert result.expenses_count == 3
        assert result.current_streak == 2
        assert result.longest_streak == 2
        assert result.last_expense_date == date(2026, 3, 2)

    @pytest.mark.asyncio
    async def test_single_stats_row(self, storage):
        tracker = StatsTracker(storage)
        await tracker.get_or_create(USER_ID)
        await tracker.get_or_create(USER_ID)
        assert len(await storage.list(Table.USER_STATS.value, USER_ID)) == 1


class TestLevels:
    """Tests for the level ladder."""

    def test_beginner(self):
        status = level_for_points(0)
        assert status.tier.name == "Beginner"
        assert status.points_to_next == 100

    def test_mid_tier_progress(self):
        status = level_for_points(175)
        assert status.tier.level == 2
        assert status.progress_percent == 50.0
        assert status.points_to_next == 75

    def test_top_tier(self):
        status = level_for_points(20000)
        assert status.tier.name == "Champion"
        assert status.next_tier is None
        assert status.progress_percent == 100.0
