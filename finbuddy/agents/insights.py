"""
Insight Advisors

Spending pattern detection and the overall financial health score.
"""

from typing import Any, Optional

from pydantic import BaseModel

from finbuddy.agents.base import AdvisorAgent
from finbuddy.models.records import Table
from finbuddy.queries import (
    TableQuery,
    UserData,
    expenses_since,
    format_inr,
    monthly_income_from_sources,
    sum_amounts,
    top_categories,
)


# =============================================================================
# SPENDING INSIGHTS
# =============================================================================

SPENDING_SYSTEM_PROMPT = """You are an expert financial analyst specializing in spending pattern detection. Analyze transaction data to find opportunities to save money.

Your task:
1. Identify spending patterns and trends
2. Detect areas where user can save money
3. Find unusual or excessive spending
4. Provide actionable, specific recommendations
5. Focus on Indian context (delivery apps, shopping, utilities, etc.)

Format response as JSON:
{
  "patterns": ["pattern1", "pattern2", ...],
  "savingOpportunities": [
    { "category": "string", "current": number, "potential": number, "tip": "string" }
  ],
  "unusualSpending": ["observation1", "observation2", ...],
  "recommendations": ["rec1", "rec2", ...]
}"""

# Returned as-is when the user has not tracked anything yet
NO_EXPENSES_INSIGHTS = {
    "patterns": [],
    "savingOpportunities": ["Start tracking expenses to get personalized insights!"],
    "topCategories": [],
    "unusualSpending": [],
}


class SpendingInsightsAgent(AdvisorAgent):
    """Patterns and saving opportunities in the latest 100 expenses."""

    route = "spending-insights"
    tables = [TableQuery(Table.EXPENSES, order_by="date", descending=True, limit=100)]
    system_prompt = SPENDING_SYSTEM_PROMPT
    required_keys = ("patterns", "savingOpportunities", "unusualSpending", "recommendations")
    enrichment_key = "topCategories"

    def short_circuit(self, data: UserData) -> Optional[dict]:
        if not data.expenses:
            return {k: list(v) for k, v in NO_EXPENSES_INSIGHTS.items()}
        return None

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        return {
            "totalSpending": sum_amounts(data.expenses),
            "transactionCount": len(data.expenses),
            "topCategories": top_categories(data.expenses, n=5),
            "recent": [
                f"{e.category}: {format_inr(e.amount)} - {e.description or 'No description'}"
                for e in data.expenses[:20]
            ],
        }

    def enrichment(self, figures: dict[str, Any]) -> list[dict]:
        return figures["topCategories"]

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        categories = "\n".join(
            f"- {c['category']}: {format_inr(c['amount'])} "
            f"({c['percentage']:.1f}%, {c['count']} transactions)"
            for c in figures["topCategories"]
        )
        recent = "\n".join(figures["recent"])
        return f"""Analyze my spending and tell me where I can save:

Total Spending: {format_inr(figures["totalSpending"])}
Number of Transactions: {figures["transactionCount"]}

Top Spending Categories:
{categories}

Recent Transactions:
{recent}

Please identify patterns and provide specific saving opportunities with realistic estimates."""


# =============================================================================
# FINANCIAL HEALTH
# =============================================================================

HEALTH_SYSTEM_PROMPT = """You are a comprehensive financial health analyst. Calculate a detailed financial health score (0-100) based on multiple factors:

- Savings Rate (30 points): >20% excellent, 10-20% good, <10% poor
- Expense Management (25 points): Spending vs income ratio
- Financial Goals Progress (20 points): Active goals and completion rate
- Financial Consistency (15 points): Regular tracking and bill payment
- Emergency Fund Status (10 points): Months of expenses covered

Format response as JSON:
{
  "overallScore": number (0-100),
  "scoreBreakdown": {
    "savingsRate": { "score": number, "maxScore": 30, "status": "excellent|good|poor" },
    "expenseManagement": { "score": number, "maxScore": 25, "status": "excellent|good|poor" },
    "goalsProgress": { "score": number, "maxScore": 20, "status": "excellent|good|poor" },
    "consistency": { "score": number, "maxScore": 15, "status": "excellent|good|poor" },
    "emergencyFund": { "score": number, "maxScore": 10, "status": "excellent|good|poor" }
  },
  "healthLevel": "excellent|good|fair|poor",
  "strengths": ["strength1", "strength2", ...],
  "weaknesses": ["weakness1", "weakness2", ...],
  "topPriorities": ["priority1", "priority2", "priority3"],
  "actionPlan": {
    "immediate": ["action1", "action2"],
    "shortTerm": ["action1", "action2"],
    "longTerm": ["action1", "action2"]
  },
  "summary": "personalized summary of financial health"
}"""


class FinancialHealthAgent(AdvisorAgent):
    """0-100 health score across savings, spending, goals, consistency and emergency fund."""

    route = "financial-health"
    tables = [
        TableQuery(Table.EXPENSES, order_by="date", descending=True),
        TableQuery(Table.GOALS),
        TableQuery(Table.PROFILES),
        TableQuery(Table.INCOME_SOURCES),
        TableQuery(Table.BILLS),
        TableQuery(Table.USER_STATS),
    ]
    system_prompt = HEALTH_SYSTEM_PROMPT
    required_keys = (
        "overallScore",
        "scoreBreakdown",
        "healthLevel",
        "strengths",
        "weaknesses",
        "topPriorities",
        "actionPlan",
        "summary",
    )
    non_negative = ("overallScore",)
    enrichment_key = "metrics"

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        monthly_expenses = sum_amounts(expenses_since(data.expenses, days=30))
        monthly_income = data.annual_salary / 12 + monthly_income_from_sources(data.income_sources)
        savings_rate = (
            (monthly_income - monthly_expenses) / monthly_income * 100
            if monthly_income > 0 else 0.0
        )
        active_goals = len(data.goals)
        completed_goals = sum(1 for g in data.goals if g.current_amount >= g.target_amount)
        stats = data.user_stats

        return {
            "monthlyIncome": monthly_income,
            "monthlyExpenses": monthly_expenses,
            "savingsRate": savings_rate,
            "activeGoals": active_goals,
            "completedGoals": completed_goals,
            "goalCompletionRate": completed_goals / active_goals * 100 if active_goals else 0.0,
            "currentStreak": stats.current_streak if stats else 0,
            "expensesTracked": stats.expenses_count if stats else 0,
            "unpaidBills": sum(1 for b in data.bills if not b.is_paid),
            "totalExpenses": len(data.expenses),
        }

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        return f"""Analyze my complete financial health:

Income & Expenses:
- Monthly Income: {format_inr(figures["monthlyIncome"])}
- Monthly Expenses: {format_inr(figures["monthlyExpenses"])}
- Savings Rate: {figures["savingsRate"]:.1f}%

Financial Goals:
- Active Goals: {figures["activeGoals"]}
- Completed Goals: {figures["completedGoals"]}
- Goal Completion Rate: {figures["goalCompletionRate"]:.1f}%

Financial Consistency:
- Expense Tracking Streak: {figures["currentStreak"]} days
- Total Expenses Tracked: {figures["expensesTracked"]}
- Unpaid Bills: {figures["unpaidBills"]}

Total Expenses in Database: {figures["totalExpenses"]}

Provide a comprehensive financial health assessment with a score out of 100 and actionable improvement plan."""
