"""Spending patterns: per-category trends and month-over-month spending."""

from collections.abc import Iterable, Sequence
from datetime import tzinfo
from decimal import Decimal

from ledger_analytics.schemas.analytics import (
    UNCATEGORIZED,
    ZERO,
    DateRange,
    Direction,
    Granularity,
    MonthlySpending,
    PatternTrend,
    PeriodBucket,
    SpendingPattern,
    TransactionRecord,
)
from ledger_analytics.services.bucketing import (
    iter_periods,
    local_date,
    period_key_for,
    resolve_timezone,
)
from ledger_analytics.services.cashflow import mean, population_std
from ledger_analytics.utils.money import quantize_money

HUNDRED = Decimal("100")
ONE = Decimal("1")


def _classify(first: Decimal, second: Decimal, threshold: Decimal) -> PatternTrend:
    if second > first * (ONE + threshold):
        return PatternTrend.INCREASING
    if second < first * (ONE - threshold):
        return PatternTrend.DECREASING
    return PatternTrend.STABLE


def spending_patterns(
    transactions: Iterable[TransactionRecord],
    date_range: DateRange,
    tz: tzinfo | str = "UTC",
    threshold: Decimal = Decimal("0.10"),
) -> list[SpendingPattern]:
    """Monthly average, trend and seasonality of each expense category.

    Months without spending in a category count as zero. The trend compares
    the second half of the window with the first half.
    """
    keys = [key for key, _, _ in iter_periods(date_range, Granularity.MONTH)]
    index = {key: i for i, key in enumerate(keys)}
    zone = resolve_timezone(tz)

    series: dict[str, list[Decimal]] = {}
    for txn in transactions:
        if txn.direction is not Direction.EXPENSE:
            continue
        day = local_date(txn.occurred_at, zone)
        if not date_range.start <= day <= date_range.end:
            continue
        amounts = series.setdefault(txn.category or UNCATEGORIZED, [ZERO] * len(keys))
        amounts[index[period_key_for(day, Granularity.MONTH)]] += txn.amount

    half = len(keys) // 2
    patterns = []
    for category, amounts in series.items():
        average = mean(amounts)
        if half:
            first, second = mean(amounts[:half]), mean(amounts[half:])
        else:
            first = second = average
        seasonality = population_std(amounts) / average * HUNDRED if average > 0 else ZERO
        change = (second - first) / first * HUNDRED if first > 0 else ZERO
        patterns.append(
            SpendingPattern(
                category=category,
                monthly_average=quantize_money(average),
                trend=_classify(first, second, threshold),
                seasonality_score=quantize_money(seasonality),
                recent_change_percentage=quantize_money(change),
            )
        )

    patterns.sort(key=lambda p: (-p.monthly_average, p.category))
    return patterns


def monthly_spending(buckets: Sequence[PeriodBucket]) -> list[MonthlySpending]:
    """Expenses per month with the change against the month before.

    The change is zero when the previous month had no spending.
    """
    result = []
    previous = ZERO
    for bucket in sorted(buckets, key=lambda b: b.period_key):
        result.append(
            MonthlySpending(
                period=bucket.period_key,
                month=bucket.start.month,
                spending=bucket.expenses,
                change_from_previous=bucket.expenses - previous if previous > 0 else ZERO,
            )
        )
        previous = bucket.expenses
    return result
