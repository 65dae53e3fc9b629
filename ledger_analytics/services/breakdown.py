"""Category breakdowns of spending or income."""

from collections.abc import Iterable, Sequence
from decimal import ROUND_FLOOR, Decimal

from ledger_analytics.schemas.analytics import (
    UNCATEGORIZED,
    ZERO,
    BreakdownSummary,
    CategoryBreakdownEntry,
    Direction,
    TransactionRecord,
)
from ledger_analytics.utils.money import quantize_money

HUNDRED = Decimal("100")
HUNDREDTHS = Decimal("10000")


def _totals_by_category(
    transactions: Iterable[TransactionRecord], direction: Direction
) -> dict[str, tuple[Decimal, int]]:
    totals: dict[str, tuple[Decimal, int]] = {}
    for txn in transactions:
        if txn.direction is not direction:
            continue
        category = txn.category or UNCATEGORIZED
        amount, count = totals.get(category, (ZERO, 0))
        totals[category] = (amount + txn.amount, count + 1)
    return totals


def allocate_percentages(amounts: Sequence[Decimal]) -> list[Decimal]:
    """Split 100 % across ``amounts`` in 0.01 steps, summing to exactly 100.00.

    Largest-remainder rounding: every share is floored to the hundredth, the
    leftover hundredths go to the largest remainders. Ties go to the earlier
    amount, so callers pass amounts in their display order.
    """
    total = sum(amounts, ZERO)
    raw = [amount * HUNDREDTHS / total for amount in amounts]
    floors = [r.to_integral_value(rounding=ROUND_FLOOR) for r in raw]
    leftover = max(int(HUNDREDTHS - sum(floors, ZERO)), 0)
    by_remainder = sorted(range(len(raw)), key=lambda i: raw[i] - floors[i], reverse=True)
    for i in by_remainder[:leftover]:
        floors[i] += 1
    return [quantize_money(f / HUNDRED) for f in floors]


def breakdown(
    transactions: Iterable[TransactionRecord],
    direction: Direction | str,
    previous_period_transactions: Iterable[TransactionRecord] | None = None,
) -> list[CategoryBreakdownEntry]:
    """Group ``direction`` transactions by category with their share of the total.

    Transactions without a category land in the "uncategorized" entry. When
    the total is zero the result is empty. Percentages always add up to
    exactly 100.00. ``change_from_previous`` is only filled when
    previous-period transactions are given; a category missing from the
    previous period counts as a previous amount of zero.
    """
    direction = Direction(direction)
    totals = _totals_by_category(transactions, direction)
    if sum((amount for amount, _ in totals.values()), ZERO) == 0:
        return []

    previous = None
    if previous_period_transactions is not None:
        previous = _totals_by_category(previous_period_transactions, direction)

    ordered = sorted(totals.items(), key=lambda item: (-item[1][0], item[0]))
    percentages = allocate_percentages([amount for _, (amount, _) in ordered])

    entries = []
    for (category, (amount, count)), percentage in zip(ordered, percentages):
        change = None
        if previous is not None:
            change = amount - previous.get(category, (ZERO, 0))[0]
        entries.append(
            CategoryBreakdownEntry(
                category=category,
                amount=amount,
                percentage=percentage,
                transaction_count=count,
                average_amount=quantize_money(amount / count),
                change_from_previous=change,
            )
        )
    return entries


def summarize_breakdown(entries: list[CategoryBreakdownEntry]) -> BreakdownSummary:
    return BreakdownSummary(
        total_amount=sum((e.amount for e in entries), ZERO),
        categories_count=len(entries),
        top_category=entries[0].category if entries else None,
    )
