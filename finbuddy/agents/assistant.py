"""
FinBuddy Chat Assistant

Conversational assistant grounded in the user's own numbers. Each
request reloads a small snapshot (latest 20 expenses, goals, stats,
salary) and puts it in the system prompt; the conversation history is
supplied by the client.

The reply is streamed: the HTTP layer relays the gateway's server-sent
events to the browser unchanged.
"""

import asyncio
import time
from typing import Iterator, Optional

import structlog

from finbuddy.audit import AuditLogger
from finbuddy.models.advisor import ChatRequest
from finbuddy.models.records import Table
from finbuddy.queries import (
    TableQuery,
    UserData,
    UserDataLoader,
    format_inr,
    group_totals,
    sum_amounts,
)
from finbuddy.services.llm import LLMGateway
from finbuddy.services.storage import RecordStorageInterface

logger = structlog.get_logger(__name__)


ASSISTANT_PERSONA = """You are FinBuddy, a friendly and supportive personal finance assistant specialized in Indian financial planning. You help users track expenses, manage budgets, save taxes, and achieve their financial goals in the Indian context.

Your personality:
- Warm, encouraging, and positive
- Give specific, actionable advice relevant to India
- Celebrate progress and milestones
- Use emojis occasionally to be friendly (but not excessively)
- Keep responses concise and focused
- Be empathetic when discussing financial challenges

Your capabilities:
- Analyze spending patterns and suggest improvements
- Help create and track budgets suitable for Indian lifestyle
- Provide goal-setting strategies
- Offer tax-saving tips (Section 80C, 80D, NPS, HRA, etc.)
- Suggest Indian investment options (ELSS, PPF, EPF, NPS, Mutual Funds, FDs)
- Give tips for saving money in Indian context
- Celebrate achievements and streaks
- Provide step-by-step guidance
- Explain tax slabs in plain language: break down exactly how each slab impacts their income

India-Specific Tax Saving Knowledge:
- Section 80C (₹1.5 lakh limit): ELSS, PPF, EPF, Life Insurance, NSC, Tax-saving FDs, Home Loan Principal
- Section 80D: Health insurance premiums (₹25K for self, ₹50K if senior citizen, ₹25K for parents)
- Section 80CCD(1B): Additional ₹50K for NPS contribution
- Section 24: Home loan interest deduction (₹2 lakh)
- HRA: House Rent Allowance exemption (if applicable)
- Standard Deduction: ₹50,000 for salaried individuals
- New Tax Regime vs Old: Explain trade-offs based on deductions
- Financial Year: April to March (Tax filing by July 31)

When users ask about taxes, explain in simple terms:
1. How much they earn (total income)
2. What falls in which tax slab (0%, 5%, 10%, 15%, 20%, 30%)
3. Exactly how much tax they pay in each slab
4. Show the progressive nature: they only pay the top rate on income above that slab
5. Calculate final effective tax rate
6. Suggest deductions that could lower their slab

When responding:
- Always use Indian Rupees (₹) for amounts
- Format large numbers with Indian numbering (lakhs, crores)
- Reference specific data from the user's financial information
- Provide concrete examples and actionable steps
- Acknowledge their progress and achievements
- Be honest but supportive about areas for improvement
- Ask clarifying questions when needed
"""


def build_context(data: UserData) -> str:
    """Snapshot of the user's data appended to the persona."""
    expenses = data.expenses
    stats = data.user_stats
    by_category = group_totals(expenses, key=lambda e: e.category)

    categories = ", ".join(f"{k}: {format_inr(v)}" for k, v in by_category.items())
    goals = ", ".join(
        f"{g.title}: {format_inr(g.current_amount)}/{format_inr(g.target_amount)}"
        for g in data.goals
    )
    recent = "\n".join(
        f"- {e.category}: {format_inr(e.amount)} ({e.description or 'No description'})"
        for e in expenses[:5]
    )

    return f"""
User's Financial Data (All amounts in Indian Rupees):
- Annual Salary: {format_inr(data.annual_salary)}
- Total Expenses (last 20): {format_inr(sum_amounts(expenses))}
- Expenses by Category: {categories or "None"}
- Active Goals: {len(data.goals)}
- Goals Progress: {goals or "None"}
- Current Streak: {stats.current_streak if stats else 0} days
- Total Expenses Tracked: {stats.expenses_count if stats else 0}
- Goals Completed: {stats.goals_completed if stats else 0}
- Total Points: {stats.total_points if stats else 0}

Recent Expenses:
{recent or "- None"}

Indian Financial Context:
- Financial Year: April to March
- Tax slabs under new vs old regime
- Common tax-saving instruments: 80C (₹1.5L limit), 80D (health insurance), NPS (additional ₹50K)
- Popular investment options: ELSS, PPF, EPF, NPS, Mutual Funds, Fixed Deposits
"""


class AssistantAgent:
    """
    The FinBuddy chat assistant.

    BOUNDARIES:
    - Reads only; never writes the user's data
    - Holds no conversation state (the client sends the history)
    """

    route = "finbuddy-chat"
    tables = [
        TableQuery(Table.EXPENSES, order_by="date", descending=True, limit=20),
        TableQuery(Table.GOALS),
        TableQuery(Table.USER_STATS),
        TableQuery(Table.PROFILES),
    ]

    def __init__(
        self,
        storage: RecordStorageInterface,
        gateway: LLMGateway,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._loader = UserDataLoader(storage)
        self._gateway = gateway
        self._audit = audit_logger or AuditLogger()

    async def _prepare(self, user_id: str, payload: Optional[dict]) -> tuple[str, list[dict]]:
        request = ChatRequest.model_validate(payload or {})
        data = await self._loader.load(user_id, self.tables)
        system = ASSISTANT_PERSONA + build_context(data)
        messages = [m.model_dump() for m in request.messages]
        return system, messages

    async def stream(self, user_id: str, payload: Optional[dict]) -> Iterator[str]:
        """
        Open a streamed reply.

        Gateway errors (429, 402, others) are raised here, before any
        bytes are relayed, so the caller can still answer with a status.

        Returns:
            Iterator of SSE lines to relay verbatim
        """
        started = time.monotonic()
        system, messages = await self._prepare(user_id, payload)
        await self._audit.log_advisor_requested(user_id, self.route)
        try:
            lines = await asyncio.to_thread(self._gateway.stream_chat, system, messages)
        except Exception as e:
            logger.error("assistant_failed", user_id=user_id, error=str(e))
            await self._audit.log_advisor_failed(user_id, self.route, str(e))
            raise

        elapsed_ms = int((time.monotonic() - started) * 1000)
        await self._audit.log_advisor_completed(user_id, self.route, elapsed_ms)
        return lines

    async def reply(self, user_id: str, payload: Optional[dict]) -> str:
        """Whole reply in one piece."""
        started = time.monotonic()
        system, messages = await self._prepare(user_id, payload)
        await self._audit.log_advisor_requested(user_id, self.route)
        try:
            text = await self._gateway.complete_text(system, messages)
        except Exception as e:
            await self._audit.log_advisor_failed(user_id, self.route, str(e))
            raise
        elapsed_ms = int((time.monotonic() - started) * 1000)
        await self._audit.log_advisor_completed(user_id, self.route, elapsed_ms)
        return text
