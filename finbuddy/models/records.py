"""
Core Data Models for FinBuddy

One model per table in the backing store. Every record is owned by a
user id and every read or write is scoped to that owner.

DESIGN DECISION: The only invariants enforced here are ownership and
non-negative amounts. Everything else (uniqueness, foreign keys) is the
backing store's job, exactly as it was before the rewrite.
"""

import datetime as dt
from datetime import date, datetime, timezone
from enum import Enum
from typing import ClassVar, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillFrequency(str, Enum):
    """How often a bill recurs."""
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class IncomeFrequency(str, Enum):
    """How often an indirect income source pays out."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


# Multipliers that convert a payout into a monthly figure.
# Weekly is x4, not 52/12.
MONTHLY_FACTORS: dict[IncomeFrequency, float] = {
    IncomeFrequency.DAILY: 30.0,
    IncomeFrequency.WEEKLY: 4.0,
    IncomeFrequency.MONTHLY: 1.0,
    IncomeFrequency.QUARTERLY: 1.0 / 3.0,
    IncomeFrequency.YEARLY: 1.0 / 12.0,
}


class Table(str, Enum):
    """Table names in the backing store."""
    EXPENSES = "expenses"
    GOALS = "financial_goals"
    BILLS = "bill_reminders"
    ASSETS = "assets"
    LIABILITIES = "liabilities"
    INVESTMENTS = "investments"
    INCOME_SOURCES = "indirect_income_sources"
    TAX_DEDUCTIONS = "tax_deductions"
    CATEGORIES = "expense_categories"
    PROFILES = "profiles"
    USER_STATS = "user_stats"
    ACHIEVEMENTS = "user_achievements"


# =============================================================================
# BASE RECORD
# =============================================================================

class Record(BaseModel):
    """
    Common shape of every row.

    Subclasses set TABLE to the name of the table they live in.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    TABLE: ClassVar[Table]

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_row(self) -> dict:
        """JSON-compatible dict for the storage layer."""
        return self.model_dump(mode="json")

    @classmethod
    def from_row(cls, row: dict) -> "Record":
        return cls.model_validate(row)


# =============================================================================
# EXPENSES AND CATEGORIES
# =============================================================================

class Expense(Record):
    """A single spend entry."""
    TABLE: ClassVar[Table] = Table.EXPENSES

    category: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(..., ge=0, description="Amount in INR")
    date: dt.date = Field(default_factory=dt.date.today)
    description: Optional[str] = Field(default=None, max_length=500)


class ExpenseCategory(Record):
    """User-defined expense category."""
    TABLE: ClassVar[Table] = Table.CATEGORIES

    name: str = Field(..., min_length=1, max_length=50)
    icon: str = Field(default="📝", max_length=10)


class CategoryOption(BaseModel):
    """A category as shown in pickers (built-in or custom)."""
    name: str
    icon: str
    is_custom: bool = False


DEFAULT_CATEGORIES: list[CategoryOption] = [
    CategoryOption(name="Food & Dining", icon="🍽️"),
    CategoryOption(name="Transportation", icon="🚗"),
    CategoryOption(name="Entertainment", icon="🎬"),
    CategoryOption(name="Healthcare", icon="🏥"),
    CategoryOption(name="Shopping", icon="🛍️"),
    CategoryOption(name="Utilities", icon="⚡"),
    CategoryOption(name="Education", icon="📚"),
    CategoryOption(name="Travel", icon="✈️"),
    CategoryOption(name="Investment", icon="💰"),
    CategoryOption(name="Other", icon="📝"),
]


# =============================================================================
# GOALS AND BILLS
# =============================================================================

class Goal(Record):
    """A savings target."""
    TABLE: ClassVar[Table] = Table.GOALS

    title: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    target_amount: float = Field(..., ge=0)
    current_amount: float = Field(default=0.0, ge=0)
    target_date: Optional[date] = None
    is_completed: bool = False

    @property
    def progress_percent(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return self.current_amount / self.target_amount * 100

    @property
    def remaining_amount(self) -> float:
        return max(0.0, self.target_amount - self.current_amount)


class Bill(Record):
    """A recurring or one-off bill reminder."""
    TABLE: ClassVar[Table] = Table.BILLS

    title: str = Field(..., min_length=1, max_length=200)
    amount: float = Field(..., ge=0)
    frequency: BillFrequency = BillFrequency.MONTHLY
    due_date: date
    category: Optional[str] = Field(default=None, max_length=100)
    is_paid: bool = False


# =============================================================================
# NET WORTH: ASSETS, LIABILITIES, INVESTMENTS
# =============================================================================

class Asset(Record):
    """Something the user owns (property, vehicle, jewelry...)."""
    TABLE: ClassVar[Table] = Table.ASSETS

    asset_type: str = Field(..., min_length=1, max_length=50)
    name: str = Field(default="", max_length=200)
    purchase_date: Optional[date] = None
    purchase_value: float = Field(..., ge=0)
    current_value: float = Field(..., ge=0)
    depreciation_rate: float = Field(default=0.0, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)


class Liability(Record):
    """A loan or other debt."""
    TABLE: ClassVar[Table] = Table.LIABILITIES

    liability_type: str = Field(..., min_length=1, max_length=50)
    lender: str = Field(default="", max_length=200)
    principal_amount: float = Field(..., ge=0)
    outstanding_amount: float = Field(..., ge=0)
    interest_rate: float = Field(..., ge=0, description="Annual rate in percent")
    emi_amount: Optional[float] = Field(default=None, ge=0)
    start_date: date = Field(default_factory=date.today)
    end_date: Optional[date] = None
    next_payment_date: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class Investment(Record):
    """A market holding (stocks, mutual funds, FD, PPF...)."""
    TABLE: ClassVar[Table] = Table.INVESTMENTS

    investment_type: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    purchase_date: date = Field(default_factory=date.today)
    purchase_price: float = Field(..., ge=0)
    quantity: float = Field(default=1.0, ge=0)
    current_price: Optional[float] = Field(default=None, ge=0)
    current_value: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, max_length=50)

    @property
    def invested_amount(self) -> float:
        return self.purchase_price * self.quantity

    @property
    def market_value(self) -> float:
        """Current value if known, otherwise what was paid."""
        if self.current_value:
            return self.current_value
        return self.invested_amount


# =============================================================================
# INCOME AND TAX
# =============================================================================

class IncomeSource(Record):
    """Income beyond salary (rent, freelancing, dividends...)."""
    TABLE: ClassVar[Table] = Table.INCOME_SOURCES

    income_type: str = Field(..., min_length=1, max_length=100)
    amount: float = Field(default=0.0, ge=0)
    frequency: IncomeFrequency = IncomeFrequency.MONTHLY

    @property
    def monthly_amount(self) -> float:
        return self.amount * MONTHLY_FACTORS[self.frequency]


class TaxDeduction(Record):
    """A deduction claimed under a section of the Income Tax Act."""
    TABLE: ClassVar[Table] = Table.TAX_DEDUCTIONS

    deduction_type: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=500)
    amount: float = Field(..., ge=0)
    financial_year: str = Field(default="", max_length=9)
    claimed: bool = False


# =============================================================================
# PROFILE, STATS, ACHIEVEMENTS
# =============================================================================

class Profile(Record):
    """One row per user."""
    TABLE: ClassVar[Table] = Table.PROFILES

    display_name: Optional[str] = Field(default=None, max_length=200)
    annual_salary: float = Field(default=0.0, ge=0)

    @property
    def monthly_salary(self) -> float:
        return self.annual_salary / 12


class UserStats(Record):
    """Aggregate counters that drive achievements."""
    TABLE: ClassVar[Table] = Table.USER_STATS

    expenses_count: int = Field(default=0, ge=0)
    goals_completed: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    total_points: int = Field(default=0, ge=0)
    last_expense_date: Optional[date] = None


def achievement_key(achievement_type: object) -> str:
    """Stored achievement_type as a definition id (rows may be hand-edited)."""
    return str(achievement_type or "").strip().lower()


class Achievement(Record):
    """An earned badge."""
    TABLE: ClassVar[Table] = Table.ACHIEVEMENTS

    achievement_type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=300)
    points: int = Field(default=0, ge=0)
    earned_at: datetime = Field(default_factory=utcnow)

    @field_validator("achievement_type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return achievement_key(v)


RECORD_TYPES: dict[Table, type[Record]] = {
    model.TABLE: model
    for model in (
        Expense, ExpenseCategory, Goal, Bill, Asset, Liability, Investment,
        IncomeSource, TaxDeduction, Profile, UserStats, Achievement,
    )
}
