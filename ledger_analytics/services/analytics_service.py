"""Analytics service — overview, category breakdowns, trends, cash flow.

This is the only part of the engine that performs I/O. It reads from an
injected ``LedgerReader``, runs the pure bucketing/breakdown/trend/forecast
functions and translates engine errors into HTTP errors.
"""

import asyncio
import time
from collections.abc import Awaitable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import structlog

from ledger_analytics.config import Settings, settings
from ledger_analytics.core.exceptions import (
    AnalyticsUnavailableError,
    InsufficientDataError,
    InvalidRangeError,
    NotFoundError,
    UnsupportedGranularityError,
    UpstreamReadError,
    ValidationError,
    WorkspaceNotFoundError,
)
from ledger_analytics.schemas.analytics import (
    CashFlowProfile,
    CategoryBreakdownEntry,
    DateRange,
    Direction,
    Granularity,
    MonthlySpending,
    MonthlySummary,
    PeriodBucket,
    SpendingPattern,
    TransactionRecord,
    TrendPoint,
    WorkspaceOverview,
    WorkspaceSettings,
)
from ledger_analytics.services.breakdown import breakdown
from ledger_analytics.services.bucketing import (
    bucketize,
    coerce_granularity,
    period_range,
    period_start,
    select_range,
    shift_month,
    validate_range,
)
from ledger_analytics.services.cashflow import analyze
from ledger_analytics.services.forecast import forecast
from ledger_analytics.services.ledger import LedgerReader
from ledger_analytics.services.patterns import monthly_spending, spending_patterns
from ledger_analytics.services.plans import budget_utilization, goal_progress
from ledger_analytics.services.trends import build_series

logger = structlog.get_logger()

# Years accepted by the monthly spending comparison
MIN_YEAR = 1900
MAX_YEAR = 2999

# Ledger reads use UTC day bounds; one extra day on each side covers any
# workspace timezone, the bucketer then trims to exact local dates.
_READ_PADDING = timedelta(days=1)


def padded(date_range: DateRange) -> DateRange:
    return DateRange(start=date_range.start - _READ_PADDING, end=date_range.end + _READ_PADDING)


def previous_range(date_range: DateRange) -> DateRange:
    """Range of the same length ending the day before ``date_range`` starts."""
    return DateRange(
        start=date_range.start - timedelta(days=date_range.days),
        end=date_range.start - timedelta(days=1),
    )


def history_range(as_of: date, months: int) -> DateRange:
    """The ``months`` complete calendar months before the month of ``as_of``."""
    current = period_start(as_of, Granularity.MONTH)
    return DateRange(start=shift_month(current, -months), end=current - timedelta(days=1))


async def fan_out(*reads: Awaitable[Any]) -> list[Any]:
    """Await ``reads`` concurrently, results in argument order.

    The first failing read cancels the others and its error is re-raised as is.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(read) for read in reads]
    except ExceptionGroup as eg:
        raise eg.exceptions[0]
    return [task.result() for task in tasks]


def data_quality(points: list[TrendPoint]) -> str:
    if not points:
        return "empty"
    active = [p for p in points if p.income > 0 or p.expenses > 0]
    if len(active) < min(3, len(points)):
        return "sparse"
    return "good"


class AnalyticsService:
    def __init__(self, ledger: LedgerReader, config: Settings = settings):
        self.ledger = ledger
        self.config = config

    # ── Workspace overview ────────────────────────
    async def overview(self, workspace_id: UUID, as_of: date | None = None) -> WorkspaceOverview:
        """Current-month summary, balances, counts and a short cash-flow outlook."""
        started = time.perf_counter()
        with self._translate_errors("overview", workspace_id):
            ws = await self._settings(workspace_id)
            as_of = as_of or self._today(ws)
            current = period_range(as_of, Granularity.MONTH, 1)
            history = history_range(as_of, self.config.overview_history_months)

            # Yearly budgets need spending since January
            read_start = min(history.start, period_start(as_of, Granularity.YEAR))

            transactions, metadata, accounts, budgets, goals = await fan_out(
                self._read_transactions(workspace_id, DateRange(start=read_start, end=current.end)),
                self.ledger.get_metadata(workspace_id, balance_date=history.start),
                self.ledger.list_accounts(workspace_id),
                self.ledger.list_budgets(workspace_id),
                self.ledger.list_goals(workspace_id),
            )

            tz = ws.tzinfo
            current_bucket = bucketize(transactions, Granularity.MONTH, current, tz)[0]
            points = build_series(
                bucketize(transactions, Granularity.MONTH, history, tz),
                metadata.opening_balance,
            )
            cash_flow = self._profile(points, self.config.overview_forecast_months, workspace_id)
            budget_summaries = [budget_utilization(b, transactions, as_of, tz) for b in budgets]
            goal_summaries = [goal_progress(g, as_of) for g in goals]

        logger.info(
            "workspace_overview",
            workspace_id=str(workspace_id),
            as_of=as_of.isoformat(),
            transactions=len(transactions),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return WorkspaceOverview(
            workspace_id=workspace_id,
            as_of=as_of,
            currency=ws.currency,
            total_balance=metadata.total_balance,
            accounts_count=metadata.accounts_count,
            active_budgets_count=metadata.active_budgets_count,
            active_goals_count=metadata.active_goals_count,
            accounts=accounts,
            budgets=budget_summaries,
            savings_goals=goal_summaries,
            monthly_summary=self._summary(current_bucket),
            current_period=current_bucket,
            cash_flow=cash_flow,
            predictions_available=bool(cash_flow.predictions),
            generated_at=datetime.now(timezone.utc),
        )

    # ── Category breakdowns ───────────────────────
    async def spending_analysis(
        self, workspace_id: UUID, date_range: DateRange
    ) -> list[CategoryBreakdownEntry]:
        return await self._category_analysis(workspace_id, date_range, Direction.EXPENSE)

    async def income_analysis(
        self, workspace_id: UUID, date_range: DateRange
    ) -> list[CategoryBreakdownEntry]:
        return await self._category_analysis(workspace_id, date_range, Direction.INCOME)

    async def resolve_period(
        self, workspace_id: UUID, period: Granularity | str = Granularity.MONTH
    ) -> DateRange:
        """Current month/quarter/year to date, in the workspace's timezone."""
        with self._translate_errors("resolve_period", workspace_id):
            ws = await self._settings(workspace_id)
            return period_range(self._today(ws), period, 1)

    async def _category_analysis(
        self, workspace_id: UUID, date_range: DateRange, direction: Direction
    ) -> list[CategoryBreakdownEntry]:
        operation = f"{direction.value}_analysis"
        with self._translate_errors(operation, workspace_id):
            validate_range(date_range)
            previous = previous_range(date_range)
            ws = await self._settings(workspace_id)
            current_txns, previous_txns = await fan_out(
                self._read_transactions(workspace_id, date_range),
                self._read_transactions(workspace_id, previous),
            )
            entries = breakdown(
                select_range(current_txns, date_range, ws.tzinfo),
                direction,
                select_range(previous_txns, previous, ws.tzinfo),
            )

        logger.info(
            operation,
            workspace_id=str(workspace_id),
            start=date_range.start.isoformat(),
            end=date_range.end.isoformat(),
            categories=len(entries),
        )
        return entries

    # ── Trends & cash flow ────────────────────────
    async def trends(
        self,
        workspace_id: UUID,
        granularity: Granularity | str = Granularity.MONTH,
        count: int = 12,
        detailed: bool = False,
        as_of: date | None = None,
    ) -> list[TrendPoint]:
        """The last ``count`` periods (current one to date) as a trend series.

        With ``detailed`` each point embeds its expense breakdown compared with
        the previous period.
        """
        with self._translate_errors("trends", workspace_id):
            granularity = coerce_granularity(granularity)
            self._check_window("count", count, self.config.trends_max_periods)
            ws = await self._settings(workspace_id)
            date_range = period_range(as_of or self._today(ws), granularity, count)

            transactions, metadata = await fan_out(
                self._read_transactions(workspace_id, date_range),
                self.ledger.get_metadata(workspace_id, balance_date=date_range.start),
            )
            tz = ws.tzinfo
            transactions = select_range(transactions, date_range, tz)

            def breakdown_for(bucket: PeriodBucket, previous: PeriodBucket | None):
                prev_txns = None
                if previous is not None:
                    prev_txns = select_range(
                        transactions, DateRange(start=previous.start, end=previous.end), tz
                    )
                return breakdown(
                    select_range(transactions, DateRange(start=bucket.start, end=bucket.end), tz),
                    Direction.EXPENSE,
                    prev_txns,
                )

            points = build_series(
                bucketize(transactions, granularity, date_range, tz),
                metadata.opening_balance,
                breakdown_for if detailed else None,
            )

        logger.info(
            "trends",
            workspace_id=str(workspace_id),
            granularity=granularity.value,
            count=count,
            detailed=detailed,
        )
        return points

    async def cash_flow(
        self, workspace_id: UUID, horizon_months: int = 3, as_of: date | None = None
    ) -> CashFlowProfile:
        """Cash-flow profile of the last complete months plus a forecast.

        The forecast starts with the current (incomplete) month.
        """
        with self._translate_errors("cash_flow", workspace_id):
            if not 0 <= horizon_months <= self.config.forecast_max_horizon:
                raise InvalidRangeError(
                    f"horizon_months must be between 0 and {self.config.forecast_max_horizon}"
                )
            ws = await self._settings(workspace_id)
            history = history_range(as_of or self._today(ws), self.config.cash_flow_history_months)

            transactions, metadata = await fan_out(
                self._read_transactions(workspace_id, history),
                self.ledger.get_metadata(workspace_id, balance_date=history.start),
            )
            points = build_series(
                bucketize(transactions, Granularity.MONTH, history, ws.tzinfo),
                metadata.opening_balance,
            )
            profile = self._profile(points, horizon_months, workspace_id)

        logger.info(
            "cash_flow",
            workspace_id=str(workspace_id),
            trend=profile.trend_direction.value,
            volatility=str(profile.volatility_score),
            predictions=len(profile.predictions),
        )
        return profile

    async def spending_patterns(
        self, workspace_id: UUID, months: int = 6, as_of: date | None = None
    ) -> list[SpendingPattern]:
        """Per-category spending patterns over the last complete ``months``."""
        with self._translate_errors("spending_patterns", workspace_id):
            self._check_window("months", months, self.config.trends_max_periods)
            ws = await self._settings(workspace_id)
            window = history_range(as_of or self._today(ws), months)
            transactions = await self._read_transactions(workspace_id, window)
            return spending_patterns(
                transactions, window, ws.tzinfo, self.config.analytics_pattern_threshold
            )

    async def monthly_spending_comparison(
        self, workspace_id: UUID, year: int | None = None
    ) -> list[MonthlySpending]:
        """Expenses of each month of ``year`` (default: the current one)."""
        with self._translate_errors("monthly_spending_comparison", workspace_id):
            if year is not None and not MIN_YEAR <= year <= MAX_YEAR:
                raise InvalidRangeError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")
            ws = await self._settings(workspace_id)
            year = year or self._today(ws).year
            window = DateRange(start=date(year, 1, 1), end=date(year, 12, 31))
            transactions = await self._read_transactions(workspace_id, window)
            months = monthly_spending(bucketize(transactions, Granularity.MONTH, window, ws.tzinfo))

        logger.info("monthly_spending_comparison", workspace_id=str(workspace_id), year=year)
        return months

    # ── Helpers ───────────────────────────────────
    def _profile(
        self, points: list[TrendPoint], horizon_months: int, workspace_id: UUID
    ) -> CashFlowProfile:
        profile = analyze(points, self.config.analytics_trend_threshold)
        try:
            predictions = forecast(
                points,
                horizon_months,
                profile=profile,
                confidence_ceiling=self.config.forecast_confidence_ceiling,
                confidence_floor=self.config.forecast_confidence_floor,
                confidence_decay=self.config.forecast_confidence_decay,
                clip_multiplier=self.config.forecast_clip_multiplier,
            )
        except InsufficientDataError as e:
            logger.info(
                "forecast_unavailable",
                workspace_id=str(workspace_id),
                data_points=len(points),
                reason=str(e),
            )
            predictions = []
        return profile.model_copy(update={"predictions": predictions})

    async def _settings(self, workspace_id: UUID) -> WorkspaceSettings:
        return await self.ledger.get_settings(workspace_id)

    async def _read_transactions(
        self, workspace_id: UUID, date_range: DateRange
    ) -> list[TransactionRecord]:
        return await self.ledger.list_transactions(workspace_id, padded(date_range))

    @staticmethod
    def _today(ws: WorkspaceSettings) -> date:
        return datetime.now(ws.tzinfo).date()

    @staticmethod
    def _check_window(name: str, value: int, maximum: int) -> None:
        if not 1 <= value <= maximum:
            raise InvalidRangeError(f"{name} must be between 1 and {maximum}")

    @staticmethod
    def _summary(bucket: PeriodBucket) -> MonthlySummary:
        return MonthlySummary(
            income=bucket.income,
            expenses=bucket.expenses,
            net=bucket.net,
            transaction_count=bucket.transaction_count,
        )

    @contextmanager
    def _translate_errors(self, operation: str, workspace_id: UUID) -> Iterator[None]:
        try:
            yield
        except UpstreamReadError as e:
            logger.warning(
                "analytics_upstream_failed",
                operation=operation,
                workspace_id=str(workspace_id),
                error=str(e),
            )
            raise AnalyticsUnavailableError() from e
        except WorkspaceNotFoundError as e:
            raise NotFoundError("Workspace") from e
        except (InvalidRangeError, UnsupportedGranularityError) as e:
            raise ValidationError(str(e)) from e
