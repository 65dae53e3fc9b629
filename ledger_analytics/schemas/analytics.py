"""Analytics value objects and response schemas.

Everything here is immutable: the engine computes these fresh from the ledger
on every call and never mutates them afterwards.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

ZERO = Decimal("0")
UNCATEGORIZED = "uncategorized"


class Direction(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class Granularity(str, Enum):
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class PatternTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class _ValueObject(BaseModel):
    model_config = {"frozen": True}


# ── Inputs (ledger view + workspace reads) ────────
class DateRange(_ValueObject):
    """Inclusive calendar date range."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class TransactionRecord(_ValueObject):
    id: UUID
    workspace_id: UUID
    account_id: UUID
    amount: Decimal = Field(ge=0)
    direction: Direction
    category: str | None = None
    occurred_at: datetime
    currency: str = "EUR"

    @field_validator("category")
    @classmethod
    def _blank_category_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("occurred_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class WorkspaceSettings(_ValueObject):
    currency: str = "EUR"
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


class WorkspaceMetadata(_ValueObject):
    accounts_count: int = 0
    active_budgets_count: int = 0
    active_goals_count: int = 0
    # Balance of all active accounts before the requested balance date
    opening_balance: Decimal = ZERO
    # Current balance of all active accounts
    total_balance: Decimal = ZERO


_BUDGET_PERIOD_ALIASES = {"monthly": "month", "quarterly": "quarter", "yearly": "year", "annual": "year"}


class BudgetPlan(_ValueObject):
    """An active budget as stored in the workspace."""

    id: UUID
    name: str
    # None budgets every expense of the workspace
    category: str | None = None
    amount: Decimal = Field(ge=0)
    period: Granularity = Granularity.MONTH

    @field_validator("period", mode="before")
    @classmethod
    def _normalise_period(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            return _BUDGET_PERIOD_ALIASES.get(value, value)
        return value


class SavingsGoalPlan(_ValueObject):
    id: UUID
    name: str
    target_amount: Decimal = Field(ge=0)
    current_amount: Decimal = ZERO
    target_date: date | None = None


# ── Engine outputs ────────────────────────────────
class PeriodBucket(_ValueObject):
    period_key: str  # "2024-03", "2024-Q1", "2024"
    start: date
    end: date
    income: Decimal = ZERO
    expenses: Decimal = ZERO
    net: Decimal = ZERO
    transaction_count: int = 0


class CategoryBreakdownEntry(_ValueObject):
    category: str
    amount: Decimal
    percentage: Decimal  # 0..100, 2 decimal places
    transaction_count: int
    average_amount: Decimal
    change_from_previous: Decimal | None = None


class TrendPoint(_ValueObject):
    period: str
    income: Decimal
    expenses: Decimal
    net: Decimal
    balance: Decimal
    growth_rate: Decimal | None = None
    category_breakdown: list[CategoryBreakdownEntry] | None = None


class MonthlyPrediction(_ValueObject):
    period: str
    predicted_income: Decimal
    predicted_expenses: Decimal
    predicted_net: Decimal
    confidence: Decimal  # 0..100


class CashFlowProfile(_ValueObject):
    monthly_average: Decimal
    trend_direction: TrendDirection
    volatility_score: Decimal  # 0..1
    predictions: list[MonthlyPrediction] = []
    # Set when the series is too short (< 3 points) to classify a trend
    low_confidence: bool = False
    data_points: int = 0


class SpendingPattern(_ValueObject):
    category: str
    monthly_average: Decimal
    trend: PatternTrend
    seasonality_score: Decimal
    recent_change_percentage: Decimal


class MonthlySummary(_ValueObject):
    income: Decimal
    expenses: Decimal
    net: Decimal
    transaction_count: int


class MonthlySpending(_ValueObject):
    period: str
    month: int
    spending: Decimal
    # Zero when the previous month had no spending
    change_from_previous: Decimal


class AccountSummary(_ValueObject):
    id: UUID
    name: str
    type: str
    currency: str
    balance: Decimal


class BudgetSummary(_ValueObject):
    id: UUID
    name: str
    category: str | None
    period: Granularity
    start: date
    end: date
    amount: Decimal
    spent: Decimal
    remaining: Decimal  # negative once over budget
    percentage_used: Decimal  # 0 for a zero budget
    is_over_budget: bool


class SavingsGoalSummary(_ValueObject):
    id: UUID
    name: str
    target_amount: Decimal
    current_amount: Decimal
    progress_percentage: Decimal
    is_completed: bool
    target_date: date | None = None
    days_remaining: int | None = None
    monthly_savings_needed: Decimal = ZERO


class WorkspaceOverview(_ValueObject):
    workspace_id: UUID
    as_of: date
    currency: str
    total_balance: Decimal
    accounts_count: int
    active_budgets_count: int
    active_goals_count: int
    accounts: list[AccountSummary] = []
    budgets: list[BudgetSummary] = []
    savings_goals: list[SavingsGoalSummary] = []
    monthly_summary: MonthlySummary
    current_period: PeriodBucket
    cash_flow: CashFlowProfile | None = None
    predictions_available: bool = False
    generated_at: datetime


# ── Response envelopes ────────────────────────────
class BreakdownSummary(BaseModel):
    total_amount: Decimal
    categories_count: int
    top_category: str | None


class BreakdownResponse(BaseModel):
    data: list[CategoryBreakdownEntry]
    summary: BreakdownSummary
    start_date: date
    end_date: date


class TrendsResponse(BaseModel):
    data: list[TrendPoint]
    granularity: Granularity
    data_quality: str  # "empty", "sparse", "good"
