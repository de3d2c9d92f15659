"""
Gamification Package

Achievement thresholds, level tiers and goal milestone bands are all
defined here and nowhere else.
"""

from finbuddy.gamification.achievements import (
    ACHIEVEMENTS,
    ACHIEVEMENTS_BY_ID,
    LEVEL_TIERS,
    AchievementDefinition,
    AchievementService,
    LevelStatus,
    LevelTier,
    evaluate_achievements,
    level_for_points,
    progress_towards,
)
from finbuddy.gamification.milestones import (
    MILESTONE_BANDS,
    Milestone,
    MilestoneNotification,
    detect_milestone,
    progress_percent,
)
from finbuddy.gamification.streaks import StatsTracker, next_streak

__all__ = [
    "ACHIEVEMENTS",
    "ACHIEVEMENTS_BY_ID",
    "LEVEL_TIERS",
    "AchievementDefinition",
    "AchievementService",
    "LevelStatus",
    "LevelTier",
    "evaluate_achievements",
    "level_for_points",
    "progress_towards",
    "MILESTONE_BANDS",
    "Milestone",
    "MilestoneNotification",
    "detect_milestone",
    "progress_percent",
    "StatsTracker",
    "next_streak",
]
