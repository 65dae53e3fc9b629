"""Budget utilization and savings-goal progress tests."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from conftest import txn
from ledger_analytics.schemas.analytics import BudgetPlan, Granularity, SavingsGoalPlan
from ledger_analytics.services.plans import budget_utilization, goal_progress


def _budget(amount, category=None, period="month"):
    return BudgetPlan(id=uuid4(), name="Budget", category=category, amount=Decimal(str(amount)), period=period)


def _goal(target, current, target_date=None):
    return SavingsGoalPlan(
        id=uuid4(),
        name="Goal",
        target_amount=Decimal(str(target)),
        current_amount=Decimal(str(current)),
        target_date=target_date,
    )


MARCH = [
    txn(120, "expense", "2024-03-02", "groceries"),
    txn(30, "expense", "2024-03-09", "groceries"),
    txn(45, "expense", "2024-03-10", "cinema"),
    txn(2000, "income", "2024-03-01", "salary"),
    txn(300, "transfer", "2024-03-04"),
    txn(999, "expense", "2024-02-28", "groceries"),
]


def test_budget_counts_its_category_in_the_current_period():
    summary = budget_utilization(_budget(200, "groceries"), MARCH, date(2024, 3, 15))
    assert (summary.start, summary.end) == (date(2024, 3, 1), date(2024, 3, 15))
    assert summary.spent == Decimal("150")
    assert summary.remaining == Decimal("50")
    assert summary.percentage_used == Decimal("75.00")
    assert summary.is_over_budget is False


def test_budget_without_category_tracks_all_expenses():
    summary = budget_utilization(_budget(150), MARCH, date(2024, 3, 15))
    assert summary.spent == Decimal("195")
    assert summary.percentage_used == Decimal("130.00")
    assert summary.remaining == Decimal("-45")
    assert summary.is_over_budget is True


def test_zero_budget_reports_zero_percent_used():
    summary = budget_utilization(_budget(0, "cinema"), MARCH, date(2024, 3, 15))
    assert summary.spent == Decimal("45")
    assert summary.percentage_used == Decimal("0")
    assert summary.remaining == Decimal("-45")
    assert summary.is_over_budget is True

    untouched = budget_utilization(_budget(0, "travel"), MARCH, date(2024, 3, 15))
    assert untouched.percentage_used == Decimal("0")
    assert untouched.is_over_budget is False


def test_quarterly_budget_starts_with_the_quarter():
    summary = budget_utilization(_budget(2000, "groceries", "quarterly"), MARCH, date(2024, 3, 15))
    assert summary.period is Granularity.QUARTER
    assert summary.start == date(2024, 1, 1)
    assert summary.spent == Decimal("1149")


def test_budget_period_follows_the_workspace_timezone():
    # 20:00 UTC on 29 February is already 1 March in Tokyo
    late = [txn(60, "expense", at=datetime(2024, 2, 29, 20, tzinfo=timezone.utc))]
    assert budget_utilization(_budget(100), late, date(2024, 3, 15)).spent == 0
    assert budget_utilization(_budget(100), late, date(2024, 3, 15), "Asia/Tokyo").spent == Decimal("60")


def test_goal_progress():
    progress = goal_progress(_goal(1000, 250, date(2024, 6, 15)), date(2024, 3, 15))
    assert progress.progress_percentage == Decimal("25.00")
    assert progress.is_completed is False
    assert progress.days_remaining == 92
    assert progress.monthly_savings_needed == Decimal("248.15")


def test_completed_goal_needs_no_more_savings():
    progress = goal_progress(_goal(500, 650, date(2024, 6, 15)), date(2024, 3, 15))
    assert progress.is_completed is True
    assert progress.progress_percentage == Decimal("130.00")
    assert progress.monthly_savings_needed == 0


def test_goal_due_within_a_month_needs_the_whole_remainder():
    progress = goal_progress(_goal(1000, 400, date(2024, 3, 25)), date(2024, 3, 15))
    assert progress.monthly_savings_needed == Decimal("600.00")


def test_overdue_and_undated_goals():
    overdue = goal_progress(_goal(1000, 400, date(2024, 3, 1)), date(2024, 3, 15))
    assert overdue.days_remaining == -14
    assert overdue.monthly_savings_needed == 0

    undated = goal_progress(_goal(1000, 400), date(2024, 3, 15))
    assert undated.days_remaining is None
    assert undated.monthly_savings_needed == 0


def test_zero_target_goal():
    progress = goal_progress(_goal(0, 0), date(2024, 3, 15))
    assert progress.progress_percentage == Decimal("0")
    assert progress.is_completed is True
