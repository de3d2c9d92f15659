"""Data loading and deterministic aggregation package."""

from finbuddy.queries.aggregations import (
    category_total,
    expenses_since,
    goal_monthly_contributions,
    group_counts,
    group_totals,
    home_loan_interest,
    monthly_expense_average,
    monthly_history,
    monthly_income_from_sources,
    months_ago,
    percentage_breakdown,
    sum_amounts,
    top_categories,
    total_monthly_income,
    weighted_interest_rate,
)
from finbuddy.queries.formatting import format_inr, format_number
from finbuddy.queries.loader import TableQuery, UserData, UserDataLoader

__all__ = [
    "TableQuery",
    "UserData",
    "UserDataLoader",
    "category_total",
    "expenses_since",
    "format_inr",
    "format_number",
    "goal_monthly_contributions",
    "group_counts",
    "group_totals",
    "home_loan_interest",
    "monthly_expense_average",
    "monthly_history",
    "monthly_income_from_sources",
    "months_ago",
    "percentage_breakdown",
    "sum_amounts",
    "top_categories",
    "total_monthly_income",
    "weighted_interest_rate",
]
