"""Shared test fixtures."""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from ledger_analytics.api.deps import get_ledger_reader
from ledger_analytics.core.exceptions import UpstreamReadError, WorkspaceNotFoundError
from ledger_analytics.main import app
from ledger_analytics.schemas.analytics import (
    ZERO,
    AccountSummary,
    BudgetPlan,
    DateRange,
    Direction,
    PeriodBucket,
    SavingsGoalPlan,
    TransactionRecord,
    WorkspaceMetadata,
    WorkspaceSettings,
)
from ledger_analytics.services.bucketing import local_date

WORKSPACE_ID = UUID("6f1c2e0a-3b7d-4d8e-9a51-0c2f4b6d8e10")
ACCOUNT_ID = UUID("0b9e8d7c-6a5f-4e3d-8c2b-1a0f9e8d7c6b")


def txn(
    amount,
    direction: str = "expense",
    day: str = "2024-01-15",
    category: str | None = None,
    at: datetime | None = None,
    workspace_id: UUID = WORKSPACE_ID,
    account_id: UUID = ACCOUNT_ID,
) -> TransactionRecord:
    """Build a transaction; ``day`` is placed at noon UTC unless ``at`` is given."""
    occurred_at = at or datetime.fromisoformat(day).replace(hour=12, tzinfo=timezone.utc)
    return TransactionRecord(
        id=uuid4(),
        workspace_id=workspace_id,
        account_id=account_id,
        amount=Decimal(str(amount)),
        direction=direction,
        category=category,
        occurred_at=occurred_at,
    )


def bucket(key: str, income=0, expenses=0, count: int = 0) -> PeriodBucket:
    year, month = (int(part) for part in key.split("-"))
    income, expenses = Decimal(str(income)), Decimal(str(expenses))
    return PeriodBucket(
        period_key=key,
        start=date(year, month, 1),
        end=date(year, month, 28),
        income=income,
        expenses=expenses,
        net=income - expenses,
        transaction_count=count,
    )


class InMemoryLedgerReader:
    """LedgerReader over a list of records, for a single workspace.

    Operations named in ``fail_on`` raise UpstreamReadError; those in
    ``block_on`` never return until cancelled (recorded in ``cancelled``).
    Any other workspace id raises WorkspaceNotFoundError. Transactions on
    ``inactive_accounts`` are invisible to every read.
    """

    def __init__(
        self,
        transactions=(),
        *,
        workspace_id: UUID = WORKSPACE_ID,
        timezone: str = "UTC",
        currency: str = "EUR",
        initial_balance: Decimal = ZERO,
        accounts_count: int = 1,
        budgets_count: int = 0,
        goals_count: int = 0,
        accounts: list[AccountSummary] = (),
        budgets: list[BudgetPlan] = (),
        goals: list[SavingsGoalPlan] = (),
        inactive_accounts: set[UUID] = frozenset(),
        fail_on: set[str] | None = None,
        block_on: set[str] | None = None,
    ):
        self.transactions = list(transactions)
        self.workspace_id = workspace_id
        self.settings = WorkspaceSettings(currency=currency, timezone=timezone)
        self.initial_balance = initial_balance
        self.accounts_count = accounts_count
        self.budgets_count = budgets_count
        self.goals_count = goals_count
        self.accounts = list(accounts)
        self.budgets = list(budgets)
        self.goals = list(goals)
        self.inactive_accounts = set(inactive_accounts)
        self.fail_on = fail_on or set()
        self.block_on = block_on or set()
        self.calls: list[str] = []
        self.cancelled: list[str] = []

    async def _check(self, operation: str, workspace_id: UUID | None = None) -> None:
        self.calls.append(operation)
        if operation in self.fail_on:
            raise UpstreamReadError(f"{operation} failed")
        if operation in self.block_on:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled.append(operation)
                raise
        if workspace_id is not None and workspace_id != self.workspace_id:
            raise WorkspaceNotFoundError(workspace_id)

    def _visible(self) -> list[TransactionRecord]:
        return [t for t in self.transactions if t.account_id not in self.inactive_accounts]

    async def ping(self):
        await self._check("ping")

    async def list_transactions(self, workspace_id: UUID, date_range: DateRange):
        await self._check("list_transactions", workspace_id)
        return [
            t
            for t in self._visible()
            if date_range.start <= t.occurred_at.astimezone(timezone.utc).date() <= date_range.end
        ]

    async def get_metadata(self, workspace_id: UUID, balance_date: date | None = None):
        await self._check("get_metadata", workspace_id)
        tz = self.settings.tzinfo
        visible = self._visible()

        def signed(t: TransactionRecord) -> Decimal:
            if t.direction is Direction.INCOME:
                return t.amount
            if t.direction is Direction.EXPENSE:
                return -t.amount
            return ZERO

        total = self.initial_balance + sum((signed(t) for t in visible), ZERO)
        opening = self.initial_balance
        if balance_date is not None:
            opening += sum(
                (signed(t) for t in visible if local_date(t.occurred_at, tz) < balance_date),
                ZERO,
            )
        return WorkspaceMetadata(
            accounts_count=self.accounts_count,
            active_budgets_count=self.budgets_count,
            active_goals_count=self.goals_count,
            opening_balance=opening,
            total_balance=total,
        )

    async def get_settings(self, workspace_id: UUID):
        await self._check("get_settings", workspace_id)
        return self.settings

    async def list_accounts(self, workspace_id: UUID):
        await self._check("list_accounts", workspace_id)
        return list(self.accounts)

    async def list_budgets(self, workspace_id: UUID):
        await self._check("list_budgets", workspace_id)
        return list(self.budgets)

    async def list_goals(self, workspace_id: UUID):
        await self._check("list_goals", workspace_id)
        return list(self.goals)


@pytest.fixture
def ledger():
    return InMemoryLedgerReader()


@pytest.fixture
async def client(ledger):
    """Async test client for the FastAPI app, reading from the in-memory ledger."""
    app.dependency_overrides[get_ledger_reader] = lambda: ledger
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
