"""
Deterministic Aggregations

Pure functions over loaded records. Advisors compute every figure they
put in a prompt here, so the same rows always give the same numbers.

None of these touch storage or the clock unless `today` is omitted.
"""

import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Callable, Iterable, Optional, TypeVar

from finbuddy.models.records import Expense, Goal, IncomeSource, Liability

T = TypeVar("T")

# Share of monthly salary assumed as spending when nothing has been tracked
ESTIMATED_EXPENSE_RATIO = 0.6


def sum_amounts(items: Iterable[T], value: Optional[Callable[[T], Optional[float]]] = None) -> float:
    """Sum `amount` (or `value(item)`), treating None as zero."""
    getter = value or (lambda item: item.amount)
    return sum((getter(item) or 0.0) for item in items)


def group_totals(
    items: Iterable[T],
    key: Callable[[T], str],
    value: Optional[Callable[[T], Optional[float]]] = None,
) -> dict[str, float]:
    """Totals per key, in first-seen order."""
    getter = value or (lambda item: item.amount)
    totals: dict[str, float] = {}
    for item in items:
        k = key(item)
        totals[k] = totals.get(k, 0.0) + (getter(item) or 0.0)
    return totals


def group_counts(items: Iterable[T], key: Callable[[T], str]) -> dict[str, int]:
    counts: dict[str, int] = defaultdict(int)
    for item in items:
        counts[key(item)] += 1
    return dict(counts)


def percentage_breakdown(totals: dict[str, float], total: Optional[float] = None) -> dict[str, float]:
    """
    Share of each entry in the total, in percent, one decimal.

    A zero total gives 0 for every entry instead of dividing by zero.
    """
    whole = sum(totals.values()) if total is None else total
    if whole <= 0:
        return {k: 0.0 for k in totals}
    return {k: round(v / whole * 100, 1) for k, v in totals.items()}


# =============================================================================
# INCOME
# =============================================================================

def monthly_income_from_sources(sources: Iterable[IncomeSource]) -> float:
    """Indirect income normalized to one month."""
    return sum(s.monthly_amount for s in sources)


def total_monthly_income(annual_salary: float, sources: Iterable[IncomeSource]) -> float:
    return annual_salary / 12 + monthly_income_from_sources(sources)


# =============================================================================
# EXPENSES
# =============================================================================

def months_ago(today: date, months: int) -> date:
    """Same day `months` calendar months back, clamped to month end."""
    month_index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Last day of the target month
    if month == 12:
        last_day = 31
    else:
        last_day = (date(year, month + 1, 1) - timedelta(days=1)).day
    return date(year, month, min(today.day, last_day))


def expenses_since(
    expenses: Iterable[Expense],
    days: int,
    today: Optional[date] = None,
) -> list[Expense]:
    """Expenses dated on or after `today - days`."""
    cutoff = (today or date.today()) - timedelta(days=days)
    return [e for e in expenses if e.date >= cutoff]


def monthly_expense_average(
    expenses: Iterable[Expense],
    annual_salary: float = 0.0,
    months: int = 3,
    today: Optional[date] = None,
) -> float:
    """
    Average monthly spending over the last `months` months.

    The total is divided by the span the data actually covers (in 30-day
    months, at least one), not by `months`, so a user who started
    tracking last week is not averaged down.

    With no expenses in the window, 60% of monthly salary is assumed.
    """
    today = today or date.today()
    cutoff = months_ago(today, months)
    recent = [e for e in expenses if e.date >= cutoff]

    if recent:
        dates = [e.date for e in recent]
        day_span = (max(dates) - min(dates)).days
        months_span = max(1, math.ceil(day_span / 30))
        return sum_amounts(recent) / months_span

    if annual_salary > 0:
        return annual_salary / 12 * ESTIMATED_EXPENSE_RATIO
    return 0.0


def category_total(expenses: Iterable[Expense], categories: set[str]) -> float:
    return sum_amounts(e for e in expenses if e.category in categories)


def monthly_history(expenses: Iterable[Expense]) -> dict[str, dict]:
    """
    Spending per calendar month, keyed YYYY-MM, oldest first.

    Returns:
        {"2026-01": {"expenses": 1234.0, "count": 7}, ...}
    """
    history: dict[str, dict] = {}
    for expense in expenses:
        key = expense.date.strftime("%Y-%m")
        month = history.setdefault(key, {"expenses": 0.0, "count": 0})
        month["expenses"] += expense.amount
        month["count"] += 1
    return dict(sorted(history.items()))


def top_categories(expenses: list[Expense], n: int = 5) -> list[dict]:
    """
    The `n` categories with the highest spend.

    Returns:
        [{"category", "amount", "percentage", "count"}, ...] highest first
    """
    totals = group_totals(expenses, key=lambda e: e.category)
    counts = group_counts(expenses, key=lambda e: e.category)
    shares = percentage_breakdown(totals)
    ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:n]
    return [
        {
            "category": category,
            "amount": amount,
            "percentage": shares[category],
            "count": counts[category],
        }
        for category, amount in ranked
    ]


# =============================================================================
# GOALS AND DEBT
# =============================================================================

def goal_monthly_contributions(goals: Iterable[Goal], today: Optional[date] = None) -> float:
    """
    Monthly saving needed to hit every dated goal on time.

    Goals without a target date are ignored. A goal due now or in the
    past counts as one month away.
    """
    today = today or date.today()
    total = 0.0
    for goal in goals:
        if goal.target_date is None:
            continue
        months_left = max(1, math.ceil((goal.target_date - today).days / 30))
        total += goal.remaining_amount / months_left
    return total


def weighted_interest_rate(liabilities: list[Liability]) -> float:
    """Interest rate weighted by outstanding balance; 0 with no debt."""
    total = sum(item.outstanding_amount for item in liabilities)
    if total <= 0:
        return 0.0
    return sum(item.interest_rate * item.outstanding_amount for item in liabilities) / total


def home_loan_interest(liabilities: Iterable[Liability]) -> float:
    """Annual interest on home loans (Section 24 candidate)."""
    return sum(
        item.outstanding_amount * item.interest_rate / 100
        for item in liabilities
        if item.liability_type == "home_loan"
    )
