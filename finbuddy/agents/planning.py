"""
Planning Advisors

Budget, tax, retirement and income forecasting. All four ask the model
for a JSON object in the reply text (no tool calling).
"""

from typing import Any, Optional

from pydantic import BaseModel

from finbuddy.agents.base import AdvisorAgent
from finbuddy.models.advisor import IncomeForecastRequest
from finbuddy.models.records import Table
from finbuddy.queries import (
    TableQuery,
    UserData,
    category_total,
    expenses_since,
    format_inr,
    goal_monthly_contributions,
    group_totals,
    home_loan_interest,
    monthly_expense_average,
    monthly_history,
    monthly_income_from_sources,
    percentage_breakdown,
    sum_amounts,
)


# =============================================================================
# BUDGET OPTIMIZER
# =============================================================================

BUDGET_SYSTEM_PROMPT = """You are an expert financial advisor specializing in budget optimization. Analyze spending patterns and create optimal budgets using the 50/30/20 rule as a guideline (50% needs, 30% wants, 20% savings/goals), but adjust based on user's specific situation.

Your task:
1. Analyze current spending by category
2. Identify overspending and optimization opportunities
3. Create an optimized budget that balances needs, wants, and savings
4. Ensure budget allocates enough for financial goals
5. Provide specific, actionable recommendations for each category

Format response as JSON:
{
  "optimizedBudget": {
    "categoryName": { "current": number, "recommended": number, "savings": number },
    ...
  },
  "totalSavingsPotential": number,
  "budgetBreakdown": {
    "needs": { "amount": number, "percentage": number },
    "wants": { "amount": number, "percentage": number },
    "savings": { "amount": number, "percentage": number }
  },
  "recommendations": ["detailed rec1", "detailed rec2", ...],
  "quickWins": ["easy win1", "easy win2", ...],
  "summary": "plain language summary of the optimized budget"
}"""


class BudgetOptimizerAgent(AdvisorAgent):
    """Optimized category budget from the last 30 days of spending."""

    route = "budget-optimizer"
    tables = [
        TableQuery(Table.EXPENSES, order_by="date", descending=True, limit=90),
        TableQuery(Table.GOALS),
        TableQuery(Table.PROFILES),
        TableQuery(Table.INCOME_SOURCES),
    ]
    system_prompt = BUDGET_SYSTEM_PROMPT
    required_keys = (
        "optimizedBudget",
        "totalSavingsPotential",
        "budgetBreakdown",
        "recommendations",
        "quickWins",
        "summary",
    )
    non_negative = (
        "totalSavingsPotential",
        "budgetBreakdown.needs.amount",
        "budgetBreakdown.wants.amount",
        "budgetBreakdown.savings.amount",
    )
    enrichment_key = "currentFinancials"

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        last_30_days = expenses_since(data.expenses, days=30)
        category_spending = group_totals(last_30_days, key=lambda e: e.category)
        monthly_salary = data.annual_salary / 12
        monthly_indirect = monthly_income_from_sources(data.income_sources)
        return {
            "monthlySalary": monthly_salary,
            "monthlyIndirectIncome": monthly_indirect,
            "totalMonthlyIncome": monthly_salary + monthly_indirect,
            "totalSpending": sum(category_spending.values()),
            "goalContributions": goal_monthly_contributions(data.goals),
            "categorySpending": category_spending,
            "activeGoals": len(data.goals),
        }

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        shares = percentage_breakdown(figures["categorySpending"])
        category_lines = "\n".join(
            f"- {category}: {format_inr(amount)} ({shares[category]:.1f}%)"
            for category, amount in figures["categorySpending"].items()
        )
        return f"""Create an optimized budget for me:

Monthly Income: {format_inr(figures["totalMonthlyIncome"])}
Current Monthly Spending: {format_inr(figures["totalSpending"])}
Monthly Goal Contributions Needed: {format_inr(figures["goalContributions"])}

Category-wise Spending (last 30 days):
{category_lines}

Active Financial Goals: {figures["activeGoals"]}

Please create an optimized budget that helps me save more while maintaining a good quality of life. Prioritize my financial goals and identify quick wins."""


# =============================================================================
# TAX OPTIMIZER
# =============================================================================

TAX_SYSTEM_PROMPT = """You are a CA-level tax optimization expert for India. Analyze tax situations and provide comprehensive tax-saving strategies covering:
- Section 80C (₹1.5L limit): PPF, ELSS, EPF, Life Insurance, Home Loan Principal
- Section 80D: Health Insurance premiums
- Section 80CCD(1B): Additional NPS deduction (₹50K)
- Section 24: Home Loan Interest (₹2L limit)
- HRA exemption calculations
- Standard deduction (₹50K for salaried)
- Tax regime comparison (Old vs New)
- Investment strategies for tax efficiency

Format response as JSON:
{
  "currentTaxLiability": number,
  "potentialSavings": number,
  "effectiveTaxRate": number,
  "recommendations": {
    "immediate": [{"action": "desc", "savings": number, "effort": "low|medium|high"}],
    "shortTerm": [{"action": "desc", "savings": number, "effort": "low|medium|high"}],
    "longTerm": [{"action": "desc", "savings": number, "effort": "low|medium|high"}]
  },
  "deductionOpportunities": [
    {
      "section": "80C|80D|etc",
      "description": "what it covers",
      "limit": number,
      "utilized": number,
      "available": number,
      "howToClaim": "specific steps"
    }
  ],
  "regimeComparison": {
    "oldRegime": {"tax": number, "pros": ["..."], "cons": ["..."]},
    "newRegime": {"tax": number, "pros": ["..."], "cons": ["..."]},
    "recommendation": "old|new with reasoning"
  },
  "investmentSuggestions": [
    {
      "instrument": "ELSS|PPF|NPS|etc",
      "amount": number,
      "taxBenefit": number,
      "additionalBenefits": "..."
    }
  ],
  "quickWins": ["easy action1", "easy action2"],
  "summary": "comprehensive tax optimization summary"
}"""

MEDICAL_CATEGORIES = {"Healthcare", "Medical"}
EDUCATION_CATEGORIES = {"Education"}


class TaxOptimizerAgent(AdvisorAgent):
    """Deductions claimed and candidate deductions found in the user's data."""

    route = "tax-optimizer"
    tables = [
        TableQuery(Table.PROFILES),
        TableQuery(Table.TAX_DEDUCTIONS),
        TableQuery(Table.EXPENSES),
        TableQuery(Table.INVESTMENTS),
        TableQuery(Table.LIABILITIES),
    ]
    system_prompt = TAX_SYSTEM_PROMPT
    required_keys = (
        "currentTaxLiability",
        "potentialSavings",
        "effectiveTaxRate",
        "recommendations",
        "deductionOpportunities",
        "regimeComparison",
        "summary",
    )
    non_negative = ("currentTaxLiability", "potentialSavings", "effectiveTaxRate")
    enrichment_key = "actualValues"

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        return {
            "annualSalary": data.annual_salary,
            "deductionsByType": group_totals(data.tax_deductions, key=lambda d: d.deduction_type),
            "medicalExpenses": category_total(data.expenses, MEDICAL_CATEGORIES),
            "educationExpenses": category_total(data.expenses, EDUCATION_CATEGORIES),
            "homeLoanInterest": home_loan_interest(data.liabilities),
            "investmentValue": sum_amounts(data.investments, lambda i: i.market_value),
            "liabilityCount": len(data.liabilities),
        }

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        deduction_lines = "\n".join(
            f"- {kind}: {format_inr(amount)}"
            for kind, amount in figures["deductionsByType"].items()
        ) or "- None"
        return f"""Provide comprehensive tax optimization analysis:

Income Details:
- Annual Salary: {format_inr(figures["annualSalary"])}

Current Deductions Claimed:
{deduction_lines}

Potential Deductions Found:
- Medical Expenses (Annual): {format_inr(figures["medicalExpenses"])}
- Education Expenses (Annual): {format_inr(figures["educationExpenses"])}
- Home Loan Interest (Annual): {format_inr(figures["homeLoanInterest"])}

Investment Portfolio Value: {format_inr(figures["investmentValue"])}

Liabilities: {figures["liabilityCount"]} loans/debts

Provide a CA-level tax optimization strategy with specific, actionable recommendations for maximizing tax savings under Indian tax laws."""


# =============================================================================
# RETIREMENT PLANNER
# =============================================================================

RETIREMENT_SYSTEM_PROMPT = """You are a Chartered Accountant specializing in retirement planning. Provide comprehensive analysis.

Format response as JSON:
{
  "sipProjections": [
    {"monthlyInvestment": number, "expectedReturn": number, "years": number, "futureValue": number, "totalInvested": number, "returns": number}
  ],
  "retirementTargets": [
    {"retirementAge": number, "yearsToRetirement": number, "requiredCorpus": number, "monthlyExpenseAtRetirement": number, "monthlyInvestmentNeeded": number}
  ],
  "withdrawalStrategies": [
    {"strategyName": "string", "swpRate": number, "monthlyIncome": number, "corpusRequired": number, "yearsCovered": number, "description": "string"}
  ],
  "inflationAnalysis": {
    "currentMonthlyExpense": number,
    "inflationRate": number,
    "projections": [{"year": number, "monthlyExpense": number, "annualExpense": number}]
  },
  "recommendations": {
    "immediate": ["string"],
    "midTerm": ["string"],
    "longTerm": ["string"]
  },
  "summary": "string"
}"""


class RetirementPlannerAgent(AdvisorAgent):
    """Retirement corpus, SIP and withdrawal planning."""

    route = "retirement-planner"
    tables = [
        TableQuery(Table.PROFILES),
        TableQuery(Table.EXPENSES),
        TableQuery(Table.INVESTMENTS),
        TableQuery(Table.ASSETS),
        TableQuery(Table.GOALS),
        TableQuery(Table.INCOME_SOURCES),
    ]
    system_prompt = RETIREMENT_SYSTEM_PROMPT
    required_keys = (
        "sipProjections",
        "retirementTargets",
        "withdrawalStrategies",
        "inflationAnalysis",
        "recommendations",
        "summary",
    )
    non_negative = ("inflationAnalysis.currentMonthlyExpense", "inflationAnalysis.inflationRate")
    enrichment_key = "currentFinancials"

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        annual_salary = data.annual_salary
        monthly_expenses = monthly_expense_average(data.expenses, annual_salary, months=3)
        monthly_indirect = monthly_income_from_sources(data.income_sources)
        total_income = annual_salary / 12 + monthly_indirect

        retirement_goal = next(
            (
                g for g in data.goals
                if "retirement" in (g.category or "").lower()
                or "retirement" in g.title.lower()
            ),
            None,
        )
        return {
            "annualSalary": annual_salary,
            "monthlyExpenses": monthly_expenses,
            "currentSavings": (
                sum_amounts(data.investments, lambda i: i.market_value)
                + sum_amounts(data.assets, lambda a: a.current_value)
            ),
            "monthlyIndirectIncome": monthly_indirect,
            "totalMonthlyIncome": total_income,
            "monthlySavingCapacity": max(0.0, total_income - monthly_expenses),
            "retirementGoal": retirement_goal.target_amount if retirement_goal else None,
        }

    def enrichment(self, figures: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in figures.items() if k != "retirementGoal"}

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        goal = figures["retirementGoal"]
        return f"""Create a comprehensive retirement plan for:

Current Financial Position:
- Annual Salary: {format_inr(figures["annualSalary"])}
- Monthly Expenses: {format_inr(figures["monthlyExpenses"])}
- Current Savings/Investments: {format_inr(figures["currentSavings"])}
- Retirement Goal: {format_inr(goal) if goal is not None else "Not Set"}

Calculate and provide:
1. SIP projections (monthly investments of ₹5k, ₹10k, ₹25k, ₹50k)
2. Retirement corpus target based on current expenses with inflation
3. Different retirement ages (55, 60, 65)
4. Withdrawal strategies (SWP rates)
5. Inflation-adjusted projections (6% inflation)

Provide specific, actionable recommendations."""


# =============================================================================
# INCOME FORECAST
# =============================================================================

def forecast_month_keys(timeframe: int) -> list[str]:
    """["nextMonth", "month2", ...] for the requested horizon."""
    return ["nextMonth"] + [f"month{i}" for i in range(2, timeframe + 1)]


def income_forecast_system_prompt(timeframe: int) -> str:
    months = ",\n".join(
        f'    "{key}": {{ "income": number, "expenses": number, "savings": number }}'
        for key in forecast_month_keys(timeframe)
    )
    horizon = "month's" if timeframe == 1 else f"{timeframe} months'"
    return f"""You are a financial forecasting expert specializing in income prediction using regression analysis. Analyze historical data and provide accurate predictions.

Your task:
1. Analyze the user's historical expense patterns and income data
2. Use regression analysis to identify trends
3. Predict next {horizon} income and expenses
4. Provide confidence levels and key insights
5. Suggest strategies to increase income or optimize expenses

Format your response as JSON with this structure:
{{
  "forecast": {{
{months}
  }},
  "confidence": "high|medium|low",
  "insights": ["insight1", "insight2", ...],
  "recommendations": ["rec1", "rec2", ...]
}}"""


class IncomeForecastAgent(AdvisorAgent):
    """
    Income and expense forecast over 1, 3 or 6 months.

    The optional what-if scenario (extra monthly income, monthly growth
    rate) is applied to the baseline before it reaches the prompt.
    """

    route = "income-forecast"
    tables = [
        TableQuery(Table.EXPENSES, order_by="date"),
        TableQuery(Table.INCOME_SOURCES),
        TableQuery(Table.PROFILES),
    ]
    required_keys = ("forecast", "confidence", "insights", "recommendations")
    enrichment_key = "baseline"
    request_model = IncomeForecastRequest

    system_prompt = income_forecast_system_prompt(3)

    def build_system_prompt(self, request: Optional[BaseModel]) -> str:
        timeframe = request.timeframe if request is not None else 3
        return income_forecast_system_prompt(timeframe)

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        request = request or IncomeForecastRequest()
        monthly_salary = data.annual_salary / 12
        monthly_indirect = monthly_income_from_sources(data.income_sources)
        baseline = monthly_salary + monthly_indirect

        figures: dict[str, Any] = {
            "monthlySalary": monthly_salary,
            "monthlyIndirectIncome": monthly_indirect,
            "totalMonthlyIncome": baseline,
            "history": monthly_history(data.expenses),
            "timeframe": request.timeframe,
        }

        scenario = request.what_if_scenario
        if scenario is not None:
            growth = 1 + scenario.income_growth_percent / 100
            adjusted = baseline + scenario.additional_income
            figures["scenario"] = {
                "additionalIncome": scenario.additional_income,
                "incomeGrowthPercent": scenario.income_growth_percent,
                "projectedIncome": [
                    round(adjusted * growth ** month, 2)
                    for month in range(1, request.timeframe + 1)
                ],
            }
        figures["monthsOfData"] = len(figures["history"])
        return figures

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        history = "\n".join(
            f"{month}: {format_inr(totals['expenses'])} ({totals['count']} expenses)"
            for month, totals in figures["history"].items()
        ) or "No expenses recorded yet"
        timeframe = figures["timeframe"]
        horizon = "next month" if timeframe == 1 else f"next {timeframe} months"

        prompt = f"""Analyze my financial data and forecast {horizon}:

Historical Monthly Expenses:
{history}

Current Monthly Income: {format_inr(figures["totalMonthlyIncome"])}
- Salary: {format_inr(figures["monthlySalary"])}
- Side Income: {format_inr(figures["monthlyIndirectIncome"])}

Total months of data: {figures["monthsOfData"]}
"""
        scenario = figures.get("scenario")
        if scenario:
            projected = ", ".join(format_inr(v) for v in scenario["projectedIncome"])
            prompt += f"""
What-if Scenario:
- Additional Monthly Income: {format_inr(scenario["additionalIncome"])}
- Monthly Income Growth: {scenario["incomeGrowthPercent"]}%
- Projected Monthly Income: {projected}
Forecast income using this scenario instead of the current income.
"""
        prompt += (
            "\nPlease provide a forecast using regression on the expense trends "
            "and suggest ways to optimize my finances."
        )
        return prompt
