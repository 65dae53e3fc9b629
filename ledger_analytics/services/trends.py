"""Trend series builder: running balance and growth rate over ordered buckets."""

from collections.abc import Callable, Sequence
from decimal import Decimal

from ledger_analytics.schemas.analytics import (
    ZERO,
    CategoryBreakdownEntry,
    PeriodBucket,
    TrendPoint,
)
from ledger_analytics.utils.money import quantize_places

BreakdownProvider = Callable[[PeriodBucket, PeriodBucket | None], list[CategoryBreakdownEntry]]


def growth_rate(previous_net: Decimal, net: Decimal) -> Decimal | None:
    """Relative change of net against the previous period, None when undefined."""
    if previous_net == 0:
        return None
    rate = (net - previous_net) / abs(previous_net)
    return quantize_places(rate, 4)


def build_series(
    buckets: Sequence[PeriodBucket],
    opening_balance: Decimal = ZERO,
    category_breakdowns: BreakdownProvider | None = None,
) -> list[TrendPoint]:
    """Turn ordered buckets into trend points.

    ``category_breakdowns`` is called once per bucket (with the previous
    bucket, or None for the first) only when given; simple balance charts skip
    that work entirely.
    """
    points = []
    balance = opening_balance
    previous: PeriodBucket | None = None
    for bucket in sorted(buckets, key=lambda b: b.period_key):
        balance += bucket.net
        points.append(
            TrendPoint(
                period=bucket.period_key,
                income=bucket.income,
                expenses=bucket.expenses,
                net=bucket.net,
                balance=balance,
                growth_rate=growth_rate(previous.net, bucket.net) if previous is not None else None,
                category_breakdown=(
                    category_breakdowns(bucket, previous) if category_breakdowns else None
                ),
            )
        )
        previous = bucket
    return points
