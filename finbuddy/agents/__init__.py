"""AI advisor agents package."""

from finbuddy.agents.assistant import AssistantAgent
from finbuddy.agents.base import AdvisorAgent
from finbuddy.agents.insights import FinancialHealthAgent, SpendingInsightsAgent
from finbuddy.agents.planning import (
    BudgetOptimizerAgent,
    IncomeForecastAgent,
    RetirementPlannerAgent,
    TaxOptimizerAgent,
)
from finbuddy.agents.wealth import DebtAnalyzerAgent, NetWorthAgent, PortfolioAgent

# Every JSON advisor, in the order the UI lists them
ADVISOR_TYPES: tuple[type[AdvisorAgent], ...] = (
    BudgetOptimizerAgent,
    TaxOptimizerAgent,
    RetirementPlannerAgent,
    DebtAnalyzerAgent,
    NetWorthAgent,
    IncomeForecastAgent,
    SpendingInsightsAgent,
    FinancialHealthAgent,
    PortfolioAgent,
)

__all__ = [
    "ADVISOR_TYPES",
    "AdvisorAgent",
    "AssistantAgent",
    "BudgetOptimizerAgent",
    "DebtAnalyzerAgent",
    "FinancialHealthAgent",
    "IncomeForecastAgent",
    "NetWorthAgent",
    "PortfolioAgent",
    "RetirementPlannerAgent",
    "SpendingInsightsAgent",
    "TaxOptimizerAgent",
]
