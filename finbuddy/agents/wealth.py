"""
Wealth Advisors

Debt payoff strategy, net worth analysis and portfolio review.

The debt and net worth advisors use tool calling: the model is forced to
call a declared function and its arguments are the result. That gives a
stricter shape than asking for JSON in the reply text.
"""

from typing import Any, Optional

from pydantic import BaseModel

from finbuddy.agents.base import AdvisorAgent
from finbuddy.models.records import Table
from finbuddy.queries import (
    TableQuery,
    UserData,
    format_inr,
    group_totals,
    percentage_breakdown,
    sum_amounts,
    weighted_interest_rate,
)


# =============================================================================
# JSON SCHEMA HELPERS
# =============================================================================

NUMBER = {"type": "number"}
STRING = {"type": "string"}
STRING_LIST = {"type": "array", "items": STRING}


def obj(properties: dict, required: Optional[list[str]] = None) -> dict:
    """Object schema; every property is required unless told otherwise."""
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties) if required is None else required,
    }


def array_of(item: dict) -> dict:
    return {"type": "array", "items": item}


# =============================================================================
# DEBT ANALYZER
# =============================================================================

_PAYOFF_STRATEGY = obj({
    "payoffOrder": array_of(obj({
        "debtType": STRING,
        "lender": STRING,
        "amount": NUMBER,
        "monthsToPayoff": NUMBER,
        "totalInterest": NUMBER,
    })),
    "totalMonths": NUMBER,
    "totalInterest": NUMBER,
    "description": STRING,
})

DEBT_STRATEGY_TOOL = {
    "name": "analyze_debt_strategy",
    "description": "Provide comprehensive debt elimination strategies",
    "parameters": obj({
        "snowballStrategy": _PAYOFF_STRATEGY,
        "avalancheStrategy": _PAYOFF_STRATEGY,
        "interestSavings": obj({
            "snowballVsMinimum": NUMBER,
            "avalancheVsMinimum": NUMBER,
            "avalancheVsSnowball": NUMBER,
        }),
        "acceleratedPayoff": array_of(obj({
            "extraPaymentPercent": NUMBER,
            "extraMonthlyAmount": NUMBER,
            "newPayoffMonths": NUMBER,
            "interestSaved": NUMBER,
            "timeReduction": STRING,
        })),
        "recommendations": obj({
            "immediate": STRING_LIST,
            "strategy": STRING_LIST,
            "longTerm": STRING_LIST,
        }),
        "milestones": array_of(obj({
            "milestone": STRING,
            "targetDate": STRING,
            "amountPaid": NUMBER,
        })),
        "summary": STRING,
    }),
}


class DebtAnalyzerAgent(AdvisorAgent):
    """Snowball vs avalanche payoff plans for the user's liabilities."""

    route = "debt-analyzer"
    tables = [TableQuery(Table.LIABILITIES)]
    system_prompt = (
        "You are a CA-level debt management specialist. Analyze debt portfolios "
        "and create detailed payoff strategies."
    )
    tool = DEBT_STRATEGY_TOOL
    required_keys = tuple(DEBT_STRATEGY_TOOL["parameters"]["required"])
    non_negative = (
        "snowballStrategy.totalMonths",
        "snowballStrategy.totalInterest",
        "avalancheStrategy.totalMonths",
        "avalancheStrategy.totalInterest",
    )
    enrichment_key = "actualValues"

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        return {
            "totalDebt": sum_amounts(data.liabilities, lambda d: d.outstanding_amount),
            "totalMonthlyPayment": sum_amounts(data.liabilities, lambda d: d.emi_amount),
            "weightedInterestRate": weighted_interest_rate(data.liabilities),
            "debtCount": len(data.liabilities),
            "debts": [
                {
                    "type": d.liability_type,
                    "lender": d.lender,
                    "principal": d.principal_amount,
                    "outstanding": d.outstanding_amount,
                    "interestRate": d.interest_rate,
                    "emi": d.emi_amount or 0.0,
                }
                for d in data.liabilities
            ],
        }

    def enrichment(self, figures: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in figures.items() if k != "debts"}

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        debts = "\n".join(
            f"""- {d["type"]} ({d["lender"]})
  Principal: {format_inr(d["principal"])}
  Outstanding: {format_inr(d["outstanding"])}
  Interest: {d["interestRate"]}%
  EMI: {format_inr(d["emi"])}"""
            for d in figures["debts"]
        ) or "- None recorded"
        return f"""Analyze my debt portfolio and create elimination strategies:

Debt Summary:
- Total Debt: {format_inr(figures["totalDebt"])}
- Total Monthly Payment: {format_inr(figures["totalMonthlyPayment"])}
- Weighted Interest Rate: {figures["weightedInterestRate"]:.2f}%

Individual Debts:
{debts}

Create debt snowball and avalanche strategies with:
1. Payment order for each strategy
2. Projected payoff timeline
3. Interest savings comparison
4. Accelerated payoff options (extra 10%, 20%, 30% payment)
5. Debt-free milestone timeline"""


# =============================================================================
# NET WORTH CALCULATOR
# =============================================================================

_GROWTH_TARGET = obj({
    "target": NUMBER,
    "timeframe": STRING,
    "actions": STRING_LIST,
})

NET_WORTH_TOOL = {
    "name": "analyze_net_worth",
    "description": "Provide comprehensive net worth analysis with financial ratios and recommendations",
    "parameters": obj({
        "financialRatios": obj({
            "debtToAssetRatio": NUMBER,
            "liquidityRatio": NUMBER,
            "solvencyRatio": NUMBER,
            "interpretation": STRING,
        }),
        "wealthGrade": {"type": "string", "enum": ["A+", "A", "B", "C", "D"]},
        "analysis": obj({
            "strengths": STRING_LIST,
            "concerns": STRING_LIST,
            "opportunities": STRING_LIST,
        }),
        "netWorthGrowthPlan": obj({
            "shortTerm": _GROWTH_TARGET,
            "mediumTerm": _GROWTH_TARGET,
            "longTerm": _GROWTH_TARGET,
        }),
        "recommendations": obj({
            "assetOptimization": STRING_LIST,
            "debtManagement": STRING_LIST,
            "wealthBuilding": STRING_LIST,
        }),
        "milestones": array_of(obj({
            "milestone": STRING,
            "targetAmount": NUMBER,
            "estimatedTimeframe": STRING,
        })),
        "summary": STRING,
    }),
}


class NetWorthAgent(AdvisorAgent):
    """Net worth, ratios and a growth plan."""

    route = "net-worth-calculator"
    tables = [
        TableQuery(Table.INVESTMENTS),
        TableQuery(Table.ASSETS),
        TableQuery(Table.LIABILITIES),
        TableQuery(Table.GOALS),
    ]
    system_prompt = (
        "You are a CA-level wealth management analyst. Analyze net worth data "
        "and provide expert financial insights."
    )
    tool = NET_WORTH_TOOL
    required_keys = tuple(NET_WORTH_TOOL["parameters"]["required"])
    non_negative = ("financialRatios.debtToAssetRatio",)
    enrichment_key = "actualValues"

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        total_investments = sum_amounts(data.investments, lambda i: i.market_value)
        asset_breakdown = {"investments": total_investments}
        for asset_type, value in group_totals(
            data.assets, key=lambda a: a.asset_type, value=lambda a: a.current_value
        ).items():
            asset_breakdown[asset_type] = asset_breakdown.get(asset_type, 0.0) + value

        liability_breakdown = group_totals(
            data.liabilities,
            key=lambda item: item.liability_type,
            value=lambda item: item.outstanding_amount,
        )
        total_assets = sum(asset_breakdown.values())
        total_liabilities = sum(liability_breakdown.values())
        return {
            "totalAssets": total_assets,
            "totalLiabilities": total_liabilities,
            "netWorth": total_assets - total_liabilities,
            "assetBreakdown": asset_breakdown,
            "liabilityBreakdown": liability_breakdown,
            "goalCount": len(data.goals),
            "goalTargetTotal": sum_amounts(data.goals, lambda g: g.target_amount),
        }

    def enrichment(self, figures: dict[str, Any]) -> dict[str, Any]:
        keep = ("totalAssets", "totalLiabilities", "netWorth", "assetBreakdown", "liabilityBreakdown")
        return {k: figures[k] for k in keep}

    @staticmethod
    def _breakdown_lines(breakdown: dict[str, float]) -> str:
        shares = percentage_breakdown(breakdown)
        return "\n".join(
            f"- {kind}: {format_inr(value)} ({shares[kind]:.1f}%)"
            for kind, value in breakdown.items()
        ) or "- None"

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        return f"""Analyze my complete net worth:

Net Worth Summary:
- Total Assets: {format_inr(figures["totalAssets"])}
- Total Liabilities: {format_inr(figures["totalLiabilities"])}
- Net Worth: {format_inr(figures["netWorth"])}

Asset Breakdown:
{self._breakdown_lines(figures["assetBreakdown"])}

Liability Breakdown:
{self._breakdown_lines(figures["liabilityBreakdown"])}

Financial Goals: {figures["goalCount"]} active goals totaling {format_inr(figures["goalTargetTotal"])}

Provide a CA-level net worth analysis with specific strategies to optimize wealth and achieve financial independence."""


# =============================================================================
# PORTFOLIO ANALYSIS
# =============================================================================

PORTFOLIO_SYSTEM_PROMPT = """You are an expert investment portfolio analyst. Analyze portfolios and provide comprehensive insights.

Format response as JSON:
{
  "overallScore": number,
  "diversificationScore": number,
  "riskLevel": "low|moderate|high|very_high",
  "performanceRating": "excellent|good|average|poor",
  "analysis": {
    "strengths": ["string"],
    "concerns": ["string"],
    "opportunities": ["string"]
  },
  "recommendations": {
    "immediate": ["string"],
    "shortTerm": ["string"],
    "longTerm": ["string"]
  },
  "assetAllocationAdvice": {
    "current": "string",
    "ideal": "string",
    "rebalancing": ["string"]
  },
  "taxOptimization": ["string"],
  "summary": "string"
}"""


class PortfolioAgent(AdvisorAgent):
    """Diversification, risk and returns of the user's holdings."""

    route = "portfolio-analysis"
    tables = [TableQuery(Table.INVESTMENTS)]
    system_prompt = PORTFOLIO_SYSTEM_PROMPT
    required_keys = (
        "overallScore",
        "diversificationScore",
        "riskLevel",
        "performanceRating",
        "analysis",
        "recommendations",
        "summary",
    )
    non_negative = ("overallScore", "diversificationScore")
    enrichment_key = "actualValues"

    def aggregate(self, data: UserData, request: Optional[BaseModel]) -> dict[str, Any]:
        investments = data.investments
        total_invested = sum_amounts(investments, lambda i: i.invested_amount)
        total_value = sum_amounts(investments, lambda i: i.market_value)
        total_returns = total_value - total_invested

        holdings = []
        for inv in investments:
            invested = inv.invested_amount
            current = inv.market_value
            holdings.append({
                "name": inv.name,
                "type": inv.investment_type,
                "invested": invested,
                "current": current,
                "returnsPercent": (current - invested) / invested * 100 if invested > 0 else 0.0,
            })

        return {
            "totalInvested": total_invested,
            "totalCurrentValue": total_value,
            "totalReturns": total_returns,
            "returnsPercentage": total_returns / total_invested * 100 if total_invested > 0 else 0.0,
            "holdingsCount": len(investments),
            "byType": group_totals(
                investments, key=lambda i: i.investment_type, value=lambda i: i.market_value
            ),
            "byCategory": group_totals(
                [i for i in investments if i.category],
                key=lambda i: i.category,
                value=lambda i: i.market_value,
            ),
            "holdings": holdings,
        }

    def enrichment(self, figures: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in figures.items() if k != "holdings"}

    @staticmethod
    def _share_lines(breakdown: dict[str, float], total: float) -> str:
        shares = percentage_breakdown(breakdown, total)
        return "\n".join(
            f"- {kind}: {format_inr(value)} ({shares[kind]:.1f}%)"
            for kind, value in breakdown.items()
        ) or "- None"

    def render_prompt(self, figures: dict[str, Any], request: Optional[BaseModel]) -> str:
        total = figures["totalCurrentValue"]
        holdings = "\n".join(
            f"- {h['name']} ({h['type']}): Invested {format_inr(h['invested'])}, "
            f"Current {format_inr(h['current'])}, Returns {h['returnsPercent']:.1f}%"
            for h in figures["holdings"]
        ) or "- None"
        return f"""Analyze my investment portfolio:

Portfolio Summary:
- Total Invested: {format_inr(figures["totalInvested"])}
- Current Value: {format_inr(total)}
- Total Returns: {format_inr(figures["totalReturns"])} ({figures["returnsPercentage"]:.1f}%)

Number of Holdings: {figures["holdingsCount"]}

By Investment Type:
{self._share_lines(figures["byType"], total)}

By Category:
{self._share_lines(figures["byCategory"], total)}

Individual Holdings:
{holdings}

Provide a comprehensive CA-level portfolio analysis with actionable recommendations."""
