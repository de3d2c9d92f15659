"""
Goal Milestone Notifier

Every change to a goal's saved amount produces exactly one notification:
the highest progress band crossed by this change, or a plain "progress
saved" message when no band was crossed.

Bands are 50, 75, 90 and 100 percent. Priority runs 100 > 90 > 75 > 50.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class Milestone(str, Enum):
    """Progress bands a goal can cross, plus the no-band outcome."""
    HALF_WAY = "50"
    THREE_QUARTERS = "75"
    ALMOST_THERE = "90"
    COMPLETED = "completed"
    PROGRESS = "progress"


# Highest first: the first band crossed wins.
MILESTONE_BANDS: tuple[tuple[float, Milestone], ...] = (
    (100.0, Milestone.COMPLETED),
    (90.0, Milestone.ALMOST_THERE),
    (75.0, Milestone.THREE_QUARTERS),
    (50.0, Milestone.HALF_WAY),
)


class MilestoneNotification(BaseModel):
    """The single message produced by one goal update."""

    milestone: Milestone
    title: str
    message: str
    old_percent: float
    new_percent: float
    completes_goal: bool = False

    @property
    def is_milestone(self) -> bool:
        return self.milestone != Milestone.PROGRESS


def progress_percent(amount: float, target: float) -> float:
    """Percent of target saved; 0 when the target is 0."""
    if target <= 0:
        return 0.0
    return amount / target * 100


def _render(milestone: Milestone, goal_title: str) -> tuple[str, str]:
    name = f'"{goal_title}"' if goal_title else "your goal"
    if milestone == Milestone.COMPLETED:
        return "🎉 Goal Completed!", f"Congratulations! You've reached {name}!"
    if milestone == Milestone.ALMOST_THERE:
        return "🔥 90% complete!", f"Almost there! {name} is 90% funded."
    if milestone == Milestone.THREE_QUARTERS:
        return "🚀 75% complete!", f"Three quarters of the way to {name}."
    if milestone == Milestone.HALF_WAY:
        return "⭐ 50% complete!", f"Halfway to {name}. Keep going!"
    return "Goal Updated", "Your progress has been saved."


def _reached(amount: float, target: float, band: float) -> bool:
    """amount is at least band percent of target, compared in exact decimals."""
    if target <= 0:
        return False
    return Decimal(str(amount)) * 100 >= Decimal(str(band)) * Decimal(str(target))


def detect_milestone(
    old_amount: float,
    new_amount: float,
    target_amount: float,
    goal_title: str = "",
    old_target: Optional[float] = None,
) -> MilestoneNotification:
    """
    Compare progress before and after an update.

    The highest band reached now but not before wins. If none was crossed
    (including decreases and updates past 100%), the result is the plain
    progress notification. Pass old_target when the update also changes
    the target amount.
    """
    if old_target is None:
        old_target = target_amount

    crossed = Milestone.PROGRESS
    for band, milestone in MILESTONE_BANDS:
        if _reached(new_amount, target_amount, band) and not _reached(old_amount, old_target, band):
            crossed = milestone
            break

    title, message = _render(crossed, goal_title)
    return MilestoneNotification(
        milestone=crossed,
        title=title,
        message=message,
        old_percent=progress_percent(old_amount, old_target),
        new_percent=progress_percent(new_amount, target_amount),
        completes_goal=crossed == Milestone.COMPLETED,
    )
