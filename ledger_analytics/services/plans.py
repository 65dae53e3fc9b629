"""Budget utilization and savings-goal progress."""

from collections.abc import Iterable
from datetime import date, tzinfo
from decimal import Decimal

from ledger_analytics.schemas.analytics import (
    ZERO,
    BudgetPlan,
    BudgetSummary,
    Direction,
    SavingsGoalPlan,
    SavingsGoalSummary,
    TransactionRecord,
)
from ledger_analytics.services.bucketing import period_range, select_range
from ledger_analytics.utils.money import quantize_money

HUNDRED = Decimal("100")
ONE = Decimal("1")
DAYS_PER_MONTH = Decimal("30.44")


def _ratio_percent(part: Decimal, whole: Decimal) -> Decimal:
    """``part`` as a percentage of ``whole``; 0 when ``whole`` is 0."""
    if whole == 0:
        return ZERO
    return quantize_money(part / whole * HUNDRED)


def budget_utilization(
    budget: BudgetPlan,
    transactions: Iterable[TransactionRecord],
    as_of: date,
    tz: tzinfo | str = "UTC",
) -> BudgetSummary:
    """Spending against ``budget`` over its current period, to ``as_of``.

    Only expenses count; a budget without category tracks all of them.
    """
    date_range = period_range(as_of, budget.period, 1)
    spent = sum(
        (
            txn.amount
            for txn in select_range(transactions, date_range, tz)
            if txn.direction is Direction.EXPENSE
            and (budget.category is None or txn.category == budget.category)
        ),
        ZERO,
    )
    return BudgetSummary(
        id=budget.id,
        name=budget.name,
        category=budget.category,
        period=budget.period,
        start=date_range.start,
        end=date_range.end,
        amount=budget.amount,
        spent=spent,
        remaining=budget.amount - spent,
        percentage_used=_ratio_percent(spent, budget.amount),
        is_over_budget=spent > budget.amount,
    )


def goal_progress(goal: SavingsGoalPlan, as_of: date) -> SavingsGoalSummary:
    """Progress towards ``goal`` and the monthly saving still needed to meet its date."""
    is_completed = goal.current_amount >= goal.target_amount
    days_remaining = (goal.target_date - as_of).days if goal.target_date else None

    needed = ZERO
    if not is_completed and days_remaining is not None and days_remaining > 0:
        months = max(Decimal(days_remaining) / DAYS_PER_MONTH, ONE)
        needed = quantize_money((goal.target_amount - goal.current_amount) / months)

    return SavingsGoalSummary(
        id=goal.id,
        name=goal.name,
        target_amount=goal.target_amount,
        current_amount=goal.current_amount,
        progress_percentage=_ratio_percent(goal.current_amount, goal.target_amount),
        is_completed=is_completed,
        target_date=goal.target_date,
        days_remaining=days_remaining,
        monthly_savings_needed=needed,
    )
