"""Period bucketer: groups ledger transactions into calendar periods.

Buckets are keyed by period ("2024-03", "2024-Q1", "2024") and computed in the
workspace's local timezone. Every period touched by the requested range gets a
bucket, even when it holds no transactions, so downstream trend series never
have gaps.
"""

import re
from collections.abc import Iterable, Iterator
from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal
from zoneinfo import ZoneInfo

from ledger_analytics.core.exceptions import InvalidRangeError, UnsupportedGranularityError
from ledger_analytics.schemas.analytics import (
    ZERO,
    DateRange,
    Direction,
    Granularity,
    PeriodBucket,
    TransactionRecord,
)

_MONTHS_PER_PERIOD = {
    Granularity.MONTH: 1,
    Granularity.QUARTER: 3,
    Granularity.YEAR: 12,
}

_KEY_PATTERNS = [
    (re.compile(r"^(\d{4})-(\d{2})$"), Granularity.MONTH),
    (re.compile(r"^(\d{4})-Q([1-4])$"), Granularity.QUARTER),
    (re.compile(r"^(\d{4})$"), Granularity.YEAR),
]


def coerce_granularity(value: Granularity | str) -> Granularity:
    if isinstance(value, Granularity):
        return value
    try:
        return Granularity(value)
    except ValueError as e:
        raise UnsupportedGranularityError(value) from e


def validate_range(date_range: DateRange) -> None:
    if date_range.start > date_range.end:
        raise InvalidRangeError(
            f"Range start {date_range.start.isoformat()} is after end {date_range.end.isoformat()}"
        )


def resolve_timezone(tz: tzinfo | str) -> tzinfo:
    return ZoneInfo(tz) if isinstance(tz, str) else tz


def local_date(moment: datetime, tz: tzinfo) -> date:
    """Calendar date of a timestamp as seen in ``tz``."""
    return moment.astimezone(tz).date()


# ── Calendar helpers ──────────────────────────────
def shift_month(day: date, months: int) -> date:
    """First day of the month ``months`` away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def period_start(day: date, granularity: Granularity | str) -> date:
    granularity = coerce_granularity(granularity)
    if granularity is Granularity.MONTH:
        return day.replace(day=1)
    if granularity is Granularity.QUARTER:
        return date(day.year, (day.month - 1) // 3 * 3 + 1, 1)
    return date(day.year, 1, 1)


def period_end(day: date, granularity: Granularity | str) -> date:
    granularity = coerce_granularity(granularity)
    start = period_start(day, granularity)
    return shift_month(start, _MONTHS_PER_PERIOD[granularity]) - timedelta(days=1)


def period_key_for(day: date, granularity: Granularity | str) -> str:
    granularity = coerce_granularity(granularity)
    if granularity is Granularity.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    if granularity is Granularity.QUARTER:
        return f"{day.year:04d}-Q{(day.month - 1) // 3 + 1}"
    return f"{day.year:04d}"


def parse_period_key(key: str) -> tuple[Granularity, date]:
    """Return the granularity and first day of a period key."""
    for pattern, granularity in _KEY_PATTERNS:
        match = pattern.match(key)
        if not match:
            continue
        year = int(match.group(1))
        if granularity is Granularity.MONTH:
            month = int(match.group(2))
            if not 1 <= month <= 12:
                break
            return granularity, date(year, month, 1)
        if granularity is Granularity.QUARTER:
            return granularity, date(year, (int(match.group(2)) - 1) * 3 + 1, 1)
        return granularity, date(year, 1, 1)
    raise UnsupportedGranularityError(key)


def iter_periods(
    date_range: DateRange, granularity: Granularity | str
) -> Iterator[tuple[str, date, date]]:
    """Yield (period_key, start, end) for each period touched by the range.

    Bounds are clipped to the range, so the first and last periods may be partial.
    """
    granularity = coerce_granularity(granularity)
    validate_range(date_range)
    step = _MONTHS_PER_PERIOD[granularity]
    cursor = period_start(date_range.start, granularity)
    while cursor <= date_range.end:
        end = shift_month(cursor, step) - timedelta(days=1)
        yield (
            period_key_for(cursor, granularity),
            max(cursor, date_range.start),
            min(end, date_range.end),
        )
        cursor = shift_month(cursor, step)


def period_range(as_of: date, granularity: Granularity | str, count: int) -> DateRange:
    """Range covering the ``count`` periods ending with the one containing ``as_of``.

    The last period is to-date: it stops at ``as_of``.
    """
    granularity = coerce_granularity(granularity)
    if count < 1:
        raise InvalidRangeError(f"Period count must be at least 1, got {count}")
    months_back = _MONTHS_PER_PERIOD[granularity] * (count - 1)
    start = shift_month(period_start(as_of, granularity), -months_back)
    return DateRange(start=start, end=as_of)


def select_range(
    transactions: Iterable[TransactionRecord],
    date_range: DateRange,
    tz: tzinfo | str = "UTC",
) -> list[TransactionRecord]:
    """Transactions whose local date falls inside the range."""
    zone = resolve_timezone(tz)
    return [
        txn
        for txn in transactions
        if date_range.start <= local_date(txn.occurred_at, zone) <= date_range.end
    ]


# ── Bucketing ─────────────────────────────────────
def bucketize(
    transactions: Iterable[TransactionRecord],
    granularity: Granularity | str,
    date_range: DateRange,
    tz: tzinfo | str = "UTC",
) -> list[PeriodBucket]:
    """Aggregate transactions into one bucket per period of ``date_range``.

    Transfers are counted but excluded from income/expenses/net. Transactions
    whose local date lies outside the range are dropped.
    """
    granularity = coerce_granularity(granularity)
    periods = list(iter_periods(date_range, granularity))
    zone = resolve_timezone(tz)

    totals: dict[str, dict] = {
        key: {"income": ZERO, "expenses": ZERO, "count": 0} for key, _, _ in periods
    }
    for txn in transactions:
        day = local_date(txn.occurred_at, zone)
        if not date_range.start <= day <= date_range.end:
            continue
        acc = totals[period_key_for(day, granularity)]
        acc["count"] += 1
        if txn.direction is Direction.INCOME:
            acc["income"] += txn.amount
        elif txn.direction is Direction.EXPENSE:
            acc["expenses"] += txn.amount

    buckets = []
    for key, start, end in periods:
        acc = totals[key]
        income: Decimal = acc["income"]
        expenses: Decimal = acc["expenses"]
        buckets.append(
            PeriodBucket(
                period_key=key,
                start=start,
                end=end,
                income=income,
                expenses=expenses,
                net=income - expenses,
                transaction_count=acc["count"],
            )
        )
    return buckets
