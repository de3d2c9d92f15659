"""
Tests for the AI advisors and the chat assistant.

The gateway is a fake: these tests check what the advisors load,
compute, send and return, never what a model would say.
"""

import pytest
from datetime import date

from pydantic import ValidationError

from finbuddy.agents import (
    ADVISOR_TYPES,
    AssistantAgent,
    BudgetOptimizerAgent,
    DebtAnalyzerAgent,
    FinancialHealthAgent,
    IncomeForecastAgent,
    NetWorthAgent,
    PortfolioAgent,
    SpendingInsightsAgent,
    TaxOptimizerAgent,
)
from finbuddy.agents.insights import NO_EXPENSES_INSIGHTS
from finbuddy.agents.wealth import NET_WORTH_TOOL
from finbuddy.models.records import (
    Asset,
    Bill,
    Expense,
    Goal,
    IncomeSource,
    Investment,
    Liability,
    Profile,
    TaxDeduction,
    UserStats,
)
from finbuddy.services.llm import LLMServiceError, RateLimitedError

from tests.conftest import OTHER_USER_ID, USER_ID, FakeGateway


async def seed(storage, user_id, *records):
    for record in records:
        await storage.insert(record.TABLE.value, user_id, record.to_row())


def complete_response(agent_type) -> dict:
    """A response carrying every key the advisor requires."""
    return {key: 1 for key in agent_type.required_keys}


def make_agent(agent_type, storage, gateway, audit_logger=None):
    return agent_type(storage, gateway, audit_logger=audit_logger)


def events(audit_storage) -> list[str]:
    return [e.event_type.value for e in audit_storage.events]


class TestAdvisorPipeline:
    """Behaviour shared by every advisor."""

    def test_routes_are_unique(self):
        routes = [t.route for t in ADVISOR_TYPES]
        assert len(routes) == len(set(routes)) == 9

    @pytest.mark.asyncio
    @pytest.mark.parametrize("agent_type", ADVISOR_TYPES)
    async def test_every_advisor_runs_on_empty_data(self, agent_type, storage):
        """A brand new user gets an answer from every advisor."""
        gateway = FakeGateway(complete_response(agent_type))
        result = await make_agent(agent_type, storage, gateway).run(USER_ID)
        if gateway.calls:
            for key in agent_type.required_keys:
                assert key in result
        else:
            assert result == NO_EXPENSES_INSIGHTS

    @pytest.mark.asyncio
    async def test_audits_request_and_completion(self, storage, audit_logger, audit_storage):
        gateway = FakeGateway(complete_response(BudgetOptimizerAgent))
        await make_agent(BudgetOptimizerAgent, storage, gateway, audit_logger).run(USER_ID)

        assert events(audit_storage) == ["advisor_requested", "advisor_completed"]
        assert audit_storage.events[-1].entity_type == "budget-optimizer"

    @pytest.mark.asyncio
    async def test_incomplete_response_fails(self, storage, audit_logger, audit_storage):
        gateway = FakeGateway({"summary": "only this"})
        agent = make_agent(BudgetOptimizerAgent, storage, gateway, audit_logger)

        with pytest.raises(LLMServiceError, match="AI did not return structured data"):
            await agent.run(USER_ID)
        assert events(audit_storage)[-2:] == ["response_validation_failed", "advisor_failed"]

    @pytest.mark.asyncio
    async def test_gateway_errors_propagate(self, storage, audit_logger, audit_storage):
        gateway = FakeGateway(error=RateLimitedError())
        agent = make_agent(TaxOptimizerAgent, storage, gateway, audit_logger)

        with pytest.raises(RateLimitedError):
            await agent.run(USER_ID)
        assert events(audit_storage)[-1] == "advisor_failed"

    @pytest.mark.asyncio
    async def test_only_callers_data_reaches_prompt(self, storage):
        await seed(storage, OTHER_USER_ID, Profile(user_id=OTHER_USER_ID, annual_salary=9999999))
        await seed(storage, USER_ID, Profile(user_id=USER_ID, annual_salary=1200000))
        gateway = FakeGateway(complete_response(TaxOptimizerAgent))

        result = await make_agent(TaxOptimizerAgent, storage, gateway).run(USER_ID)

        assert result["actualValues"]["annualSalary"] == 1200000
        assert "₹99,99,999" not in gateway.calls[0]["user"]
        assert "₹12,00,000" in gateway.calls[0]["user"]


class TestBudgetOptimizer:

    @pytest.mark.asyncio
    async def test_current_financials(self, storage):
        today = date.today()
        await seed(
            storage, USER_ID,
            Profile(user_id=USER_ID, annual_salary=1200000),
            IncomeSource(user_id=USER_ID, income_type="Rent", amount=5000),
            Expense(user_id=USER_ID, category="Food & Dining", amount=6000, date=today),
            Expense(user_id=USER_ID, category="Travel", amount=2000, date=today),
            Goal(user_id=USER_ID, title="Someday", target_amount=50000),
        )
        gateway = FakeGateway(complete_response(BudgetOptimizerAgent))

        result = await make_agent(BudgetOptimizerAgent, storage, gateway).run(USER_ID)

        financials = result["currentFinancials"]
        assert financials["totalMonthlyIncome"] == 105000
        assert financials["totalSpending"] == 8000
        assert financials["categorySpending"] == {"Food & Dining": 6000, "Travel": 2000}
        assert financials["activeGoals"] == 1
        assert "Food & Dining: ₹6,000 (75.0%)" in gateway.calls[0]["user"]
        assert gateway.calls[0]["tool"] is None


class TestTaxOptimizer:

    @pytest.mark.asyncio
    async def test_deduction_candidates(self, storage):
        await seed(
            storage, USER_ID,
            TaxDeduction(user_id=USER_ID, deduction_type="80C", amount=100000),
            TaxDeduction(user_id=USER_ID, deduction_type="80C", amount=50000),
            Expense(user_id=USER_ID, category="Healthcare", amount=12000),
            Expense(user_id=USER_ID, category="Education", amount=30000),
            Liability(user_id=USER_ID, liability_type="home_loan", principal_amount=3000000,
                      outstanding_amount=2000000, interest_rate=9.0),
        )
        gateway = FakeGateway(complete_response(TaxOptimizerAgent))

        result = await make_agent(TaxOptimizerAgent, storage, gateway).run(USER_ID)

        actual = result["actualValues"]
        assert actual["deductionsByType"] == {"80C": 150000}
        assert actual["medicalExpenses"] == 12000
        assert actual["educationExpenses"] == 30000
        assert actual["homeLoanInterest"] == pytest.approx(180000)


class TestDebtAnalyzer:

    @pytest.mark.asyncio
    async def test_uses_tool_and_hides_debt_list(self, storage):
        await seed(
            storage, USER_ID,
            Liability(user_id=USER_ID, liability_type="home_loan", principal_amount=3000000,
                      outstanding_amount=3000000, interest_rate=8.0, emi_amount=30000),
            Liability(user_id=USER_ID, liability_type="credit_card", principal_amount=1000000,
                      outstanding_amount=1000000, interest_rate=36.0),
        )
        gateway = FakeGateway(complete_response(DebtAnalyzerAgent))

        result = await make_agent(DebtAnalyzerAgent, storage, gateway).run(USER_ID)

        actual = result["actualValues"]
        assert actual["totalDebt"] == 4000000
        assert actual["totalMonthlyPayment"] == 30000
        assert actual["weightedInterestRate"] == pytest.approx(15.0)
        assert "debts" not in actual
        assert gateway.calls[0]["tool"]["name"] == "analyze_debt_strategy"


class TestNetWorth:

    @pytest.mark.asyncio
    async def test_actual_values(self, storage):
        await seed(
            storage, USER_ID,
            Investment(user_id=USER_ID, investment_type="stocks", name="INFY",
                       purchase_price=1000, quantity=10, current_value=15000),
            Asset(user_id=USER_ID, asset_type="property", purchase_value=4000000,
                  current_value=5000000),
            Liability(user_id=USER_ID, liability_type="home_loan", principal_amount=3000000,
                      outstanding_amount=2000000, interest_rate=8.5),
        )
        gateway = FakeGateway(complete_response(NetWorthAgent))

        result = await make_agent(NetWorthAgent, storage, gateway).run(USER_ID)

        actual = result["actualValues"]
        assert actual["totalAssets"] == 5015000
        assert actual["totalLiabilities"] == 2000000
        assert actual["netWorth"] == 3015000
        assert list(actual["assetBreakdown"]) == ["investments", "property"]
        assert actual["liabilityBreakdown"] == {"home_loan": 2000000}
        assert gateway.calls[0]["tool"] is NET_WORTH_TOOL


class TestPortfolio:

    @pytest.mark.asyncio
    async def test_returns(self, storage):
        await seed(
            storage, USER_ID,
            Investment(user_id=USER_ID, investment_type="mutual_fund", name="Index Fund",
                       purchase_price=100, quantity=100, current_value=12000, category="equity"),
            Investment(user_id=USER_ID, investment_type="fd", name="SBI FD", purchase_price=10000),
        )
        gateway = FakeGateway(complete_response(PortfolioAgent))

        result = await make_agent(PortfolioAgent, storage, gateway).run(USER_ID)

        actual = result["actualValues"]
        assert actual["totalInvested"] == 20000
        assert actual["totalCurrentValue"] == 22000
        assert actual["returnsPercentage"] == pytest.approx(10.0)
        assert actual["byCategory"] == {"equity": 12000}
        assert "holdings" not in actual


class TestIncomeForecast:

    @pytest.mark.asyncio
    async def test_timeframe_shapes_prompt(self, storage):
        await seed(storage, USER_ID, Profile(user_id=USER_ID, annual_salary=600000))
        gateway = FakeGateway(complete_response(IncomeForecastAgent))

        result = await make_agent(IncomeForecastAgent, storage, gateway).run(
            USER_ID, {"timeframe": 6}
        )

        system = gateway.calls[0]["system"]
        assert '"month6"' in system
        assert '"nextMonth"' in system
        assert result["baseline"]["totalMonthlyIncome"] == 50000
        assert result["baseline"]["timeframe"] == 6

    @pytest.mark.asyncio
    async def test_what_if_scenario(self, storage):
        await seed(storage, USER_ID, Profile(user_id=USER_ID, annual_salary=600000))
        gateway = FakeGateway(complete_response(IncomeForecastAgent))

        result = await make_agent(IncomeForecastAgent, storage, gateway).run(
            USER_ID,
            {"timeframe": 1, "whatIfScenario": {"additionalIncome": 10000, "incomeGrowthPercent": 10}},
        )

        assert result["baseline"]["scenario"]["projectedIncome"] == [66000.0]
        assert "What-if Scenario" in gateway.calls[0]["user"]
        assert '"month2"' not in gateway.calls[0]["system"]

    @pytest.mark.asyncio
    async def test_invalid_timeframe(self, storage):
        gateway = FakeGateway(complete_response(IncomeForecastAgent))
        with pytest.raises(ValidationError):
            await make_agent(IncomeForecastAgent, storage, gateway).run(USER_ID, {"timeframe": 2})
        assert gateway.calls == []


class TestSpendingInsights:

    @pytest.mark.asyncio
    async def test_no_expenses_skips_model(self, storage):
        gateway = FakeGateway()

        result = await make_agent(SpendingInsightsAgent, storage, gateway).run(USER_ID)

        assert gateway.calls == []
        assert result == NO_EXPENSES_INSIGHTS
        result["patterns"].append("mutated")
        assert NO_EXPENSES_INSIGHTS["patterns"] == []

    @pytest.mark.asyncio
    async def test_top_categories_attached(self, storage):
        await seed(
            storage, USER_ID,
            Expense(user_id=USER_ID, category="Food & Dining", amount=750),
            Expense(user_id=USER_ID, category="Travel", amount=250),
        )
        gateway = FakeGateway(complete_response(SpendingInsightsAgent))

        result = await make_agent(SpendingInsightsAgent, storage, gateway).run(USER_ID)

        assert result["topCategories"][0] == {
            "category": "Food & Dining", "amount": 750, "percentage": 75.0, "count": 1,
        }


class TestFinancialHealth:

    @pytest.mark.asyncio
    async def test_metrics(self, storage):
        today = date.today()
        await seed(
            storage, USER_ID,
            Profile(user_id=USER_ID, annual_salary=1200000),
            Expense(user_id=USER_ID, category="Travel", amount=20000, date=today),
            Goal(user_id=USER_ID, title="Done", target_amount=1000, current_amount=1000),
            Goal(user_id=USER_ID, title="Open", target_amount=1000),
            Bill(user_id=USER_ID, title="Rent", amount=1, due_date=today),
            UserStats(user_id=USER_ID, current_streak=4, expenses_count=12),
        )
        gateway = FakeGateway(complete_response(FinancialHealthAgent))

        result = await make_agent(FinancialHealthAgent, storage, gateway).run(USER_ID)

        metrics = result["metrics"]
        assert metrics["monthlyIncome"] == 100000
        assert metrics["monthlyExpenses"] == 20000
        assert metrics["savingsRate"] == 80.0
        assert metrics["completedGoals"] == 1
        assert metrics["goalCompletionRate"] == 50.0
        assert metrics["currentStreak"] == 4
        assert metrics["unpaidBills"] == 1


class TestAssistant:
    """Tests for the chat assistant."""

    @pytest.mark.asyncio
    async def test_stream_relays_gateway_lines(self, storage, audit_logger, audit_storage):
        await seed(storage, USER_ID, Profile(user_id=USER_ID, annual_salary=1200000))
        gateway = FakeGateway()
        assistant = AssistantAgent(storage, gateway, audit_logger)

        lines = await assistant.stream(
            USER_ID, {"messages": [{"role": "user", "content": "How am I doing?"}]}
        )

        assert list(lines) == gateway.stream_lines
        call = gateway.calls[0]
        assert "You are FinBuddy" in call["system"]
        assert "Annual Salary: ₹12,00,000" in call["system"]
        assert call["messages"] == [{"role": "user", "content": "How am I doing?"}]
        assert events(audit_storage) == ["advisor_requested", "advisor_completed"]

    @pytest.mark.asyncio
    async def test_stream_error_raised_before_streaming(self, storage):
        assistant = AssistantAgent(storage, FakeGateway(error=RateLimitedError()))
        with pytest.raises(RateLimitedError):
            await assistant.stream(USER_ID, {"messages": [{"role": "user", "content": "hi"}]})

    @pytest.mark.asyncio
    async def test_requires_messages(self, storage):
        assistant = AssistantAgent(storage, FakeGateway())
        with pytest.raises(ValidationError):
            await assistant.stream(USER_ID, {})

    @pytest.mark.asyncio
    async def test_reply(self, storage):
        assistant = AssistantAgent(storage, FakeGateway(text="Namaste!"))
        reply = await assistant.reply(USER_ID, {"messages": [{"role": "user", "content": "hi"}]})
        assert reply == "Namaste!"
