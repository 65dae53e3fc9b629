"""Ledger read API consumed by the analytics engine.

The engine only depends on the ``LedgerReader`` protocol. ``SqlLedgerReader``
implements it on top of the SQLAlchemy models; storage rows are mapped into
strict value objects here, so the pure core never sees loose record shapes.
"""

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

import pydantic
from sqlalchemy import case, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_analytics.core.exceptions import UpstreamReadError, WorkspaceNotFoundError
from ledger_analytics.models.account import Account
from ledger_analytics.models.budget import Budget, SavingsGoal
from ledger_analytics.models.transaction import Transaction
from ledger_analytics.models.workspace import Workspace
from ledger_analytics.schemas.analytics import (
    AccountSummary,
    BudgetPlan,
    DateRange,
    SavingsGoalPlan,
    TransactionRecord,
    WorkspaceMetadata,
    WorkspaceSettings,
)


class LedgerReader(Protocol):
    async def list_transactions(
        self, workspace_id: UUID, date_range: DateRange
    ) -> list[TransactionRecord]:
        """Transactions on active accounts that occurred within the range (UTC dates)."""
        ...

    async def get_metadata(
        self, workspace_id: UUID, balance_date: date | None = None
    ) -> WorkspaceMetadata:
        """Counts and balances; ``opening_balance`` is the balance before ``balance_date``.

        Balances cover the same accounts as ``list_transactions``.
        """
        ...

    async def get_settings(self, workspace_id: UUID) -> WorkspaceSettings:
        ...

    async def list_accounts(self, workspace_id: UUID) -> list[AccountSummary]:
        """Active accounts with their current balance."""
        ...

    async def list_budgets(self, workspace_id: UUID) -> list[BudgetPlan]:
        ...

    async def list_goals(self, workspace_id: UUID) -> list[SavingsGoalPlan]:
        ...

    async def ping(self) -> None:
        """Raise UpstreamReadError when the ledger store cannot be reached."""
        ...


def _field(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value or 0))


def record_from_row(row: Any) -> TransactionRecord:
    """Map an ORM row or a plain mapping into a TransactionRecord.

    Accepts ``type`` as an alias of ``direction`` and normalises its case.
    """
    direction = _field(row, "direction") or _field(row, "type")
    return TransactionRecord(
        id=_field(row, "id"),
        workspace_id=_field(row, "workspace_id"),
        account_id=_field(row, "account_id"),
        amount=Decimal(str(_field(row, "amount"))),
        direction=str(direction).strip().lower(),
        category=_field(row, "category"),
        occurred_at=_field(row, "occurred_at"),
        currency=_field(row, "currency") or "EUR",
    )


def _day_start(day: date, tz: tzinfo = timezone.utc) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


# ── Query building blocks ─────────────────────────
def _active_accounts(workspace_id: UUID):
    return select(Account.id).where(
        Account.workspace_id == workspace_id, Account.is_active.is_(True)
    )


def _ledger_scope(workspace_id: UUID) -> list:
    """Filters shared by every transaction read: live rows on active accounts."""
    return [
        Transaction.workspace_id == workspace_id,
        Transaction.account_id.in_(_active_accounts(workspace_id)),
        Transaction.deleted_at.is_(None),
    ]


# Transfers move money between accounts of the same workspace: no effect on totals
_flow_amount = case(
    (Transaction.type == "income", Transaction.amount),
    (Transaction.type == "expense", -Transaction.amount),
    else_=0,
)
# Per account, a transfer leaves its source account
_account_amount = case(
    (Transaction.type == "income", Transaction.amount),
    else_=-Transaction.amount,
)


class SqlLedgerReader:
    """LedgerReader backed by the SQL ledger store.

    Each read opens its own session, so reads may run concurrently.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        default_currency: str = "EUR",
        default_timezone: str = "UTC",
    ):
        self.session_factory = session_factory
        self.default_currency = default_currency
        self.default_timezone = default_timezone

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise UpstreamReadError(f"{operation} failed") from e
        except pydantic.ValidationError as e:
            raise UpstreamReadError(f"{operation} returned malformed data") from e

    async def _workspace(self, db: AsyncSession, workspace_id: UUID) -> Workspace:
        workspace = await db.get(Workspace, workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(workspace_id)
        return workspace

    async def ping(self) -> None:
        async with self._session("ping") as db:
            await db.execute(text("SELECT 1"))

    async def list_transactions(
        self, workspace_id: UUID, date_range: DateRange
    ) -> list[TransactionRecord]:
        async with self._session("list_transactions") as db:
            result = await db.execute(
                select(Transaction)
                .where(
                    *_ledger_scope(workspace_id),
                    Transaction.occurred_at >= _day_start(date_range.start),
                    Transaction.occurred_at < _day_start(date_range.end + timedelta(days=1)),
                )
                .order_by(Transaction.occurred_at, Transaction.id)
            )
            return [record_from_row(row) for row in result.scalars().all()]

    async def get_settings(self, workspace_id: UUID) -> WorkspaceSettings:
        async with self._session("get_settings") as db:
            workspace = await self._workspace(db, workspace_id)
            return WorkspaceSettings(
                currency=workspace.currency or self.default_currency,
                timezone=workspace.timezone or self.default_timezone,
            )

    async def get_metadata(
        self, workspace_id: UUID, balance_date: date | None = None
    ) -> WorkspaceMetadata:
        async with self._session("get_metadata") as db:
            workspace = await self._workspace(db, workspace_id)

            accounts_row = (
                await db.execute(
                    select(
                        func.count(Account.id).label("count"),
                        func.coalesce(func.sum(Account.initial_balance), 0).label("initial"),
                    ).where(Account.workspace_id == workspace_id, Account.is_active.is_(True))
                )
            ).one()
            budgets_count = (
                await db.execute(
                    select(func.count(Budget.id)).where(
                        Budget.workspace_id == workspace_id, Budget.is_active.is_(True)
                    )
                )
            ).scalar()
            goals_count = (
                await db.execute(
                    select(func.count(SavingsGoal.id)).where(
                        SavingsGoal.workspace_id == workspace_id, SavingsGoal.is_active.is_(True)
                    )
                )
            ).scalar()

            scope = _ledger_scope(workspace_id)
            net_total = (
                await db.execute(select(func.coalesce(func.sum(_flow_amount), 0)).where(*scope))
            ).scalar()

            initial = _decimal(accounts_row.initial)
            opening = initial
            if balance_date is not None:
                tz = ZoneInfo(workspace.timezone or self.default_timezone)
                net_before = (
                    await db.execute(
                        select(func.coalesce(func.sum(_flow_amount), 0)).where(
                            *scope,
                            Transaction.occurred_at < _day_start(balance_date, tz),
                        )
                    )
                ).scalar()
                opening = initial + _decimal(net_before)

            return WorkspaceMetadata(
                accounts_count=accounts_row.count,
                active_budgets_count=budgets_count or 0,
                active_goals_count=goals_count or 0,
                opening_balance=opening,
                total_balance=initial + _decimal(net_total),
            )

    async def list_accounts(self, workspace_id: UUID) -> list[AccountSummary]:
        async with self._session("list_accounts") as db:
            await self._workspace(db, workspace_id)
            scope = _ledger_scope(workspace_id)
            outgoing = dict(
                (
                    await db.execute(
                        select(Transaction.account_id, func.sum(_account_amount))
                        .where(*scope)
                        .group_by(Transaction.account_id)
                    )
                ).all()
            )
            incoming = dict(
                (
                    await db.execute(
                        select(Transaction.transfer_account_id, func.sum(Transaction.amount))
                        .where(
                            *scope,
                            Transaction.type == "transfer",
                            Transaction.transfer_account_id.is_not(None),
                        )
                        .group_by(Transaction.transfer_account_id)
                    )
                ).all()
            )
            accounts = (
                await db.execute(
                    select(Account)
                    .where(Account.workspace_id == workspace_id, Account.is_active.is_(True))
                    .order_by(Account.name, Account.id)
                )
            ).scalars().all()
            return [
                AccountSummary(
                    id=account.id,
                    name=account.name,
                    type=account.type,
                    currency=account.currency or self.default_currency,
                    balance=_decimal(account.initial_balance)
                    + _decimal(outgoing.get(account.id))
                    + _decimal(incoming.get(account.id)),
                )
                for account in accounts
            ]

    async def list_budgets(self, workspace_id: UUID) -> list[BudgetPlan]:
        async with self._session("list_budgets") as db:
            result = await db.execute(
                select(Budget)
                .where(Budget.workspace_id == workspace_id, Budget.is_active.is_(True))
                .order_by(Budget.name, Budget.id)
            )
            return [
                BudgetPlan(
                    id=b.id,
                    name=b.name,
                    category=b.category,
                    amount=_decimal(b.amount),
                    period=b.period or "month",
                )
                for b in result.scalars().all()
            ]

    async def list_goals(self, workspace_id: UUID) -> list[SavingsGoalPlan]:
        async with self._session("list_goals") as db:
            result = await db.execute(
                select(SavingsGoal)
                .where(SavingsGoal.workspace_id == workspace_id, SavingsGoal.is_active.is_(True))
                .order_by(SavingsGoal.target_date, SavingsGoal.name)
            )
            return [
                SavingsGoalPlan(
                    id=g.id,
                    name=g.name,
                    target_amount=_decimal(g.target_amount),
                    current_amount=_decimal(g.current_amount),
                    target_date=g.target_date,
                )
                for g in result.scalars().all()
            ]
