"""Spending pattern tests."""

from datetime import date
from decimal import Decimal

from conftest import bucket, txn
from ledger_analytics.schemas.analytics import DateRange, PatternTrend
from ledger_analytics.services.patterns import monthly_spending, spending_patterns

H1_2024 = DateRange(start=date(2024, 1, 1), end=date(2024, 6, 30))


def monthly_spend(category, amounts):
    return [
        txn(amount, "expense", f"2024-{month:02d}-10", category)
        for month, amount in enumerate(amounts, start=1)
        if amount
    ]


def test_steady_category():
    (pattern,) = spending_patterns(monthly_spend("groceries", [100] * 6), H1_2024)
    assert pattern.category == "groceries"
    assert pattern.monthly_average == Decimal("100.00")
    assert pattern.trend is PatternTrend.STABLE
    assert pattern.seasonality_score == 0
    assert pattern.recent_change_percentage == 0


def test_rising_and_falling_categories():
    patterns = {
        p.category: p
        for p in spending_patterns(
            monthly_spend("dining", [50, 50, 50, 100, 100, 100])
            + monthly_spend("fuel", [80, 80, 80, 40, 40, 40]),
            H1_2024,
        )
    }
    assert patterns["dining"].trend is PatternTrend.INCREASING
    assert patterns["dining"].recent_change_percentage == Decimal("100.00")
    assert patterns["dining"].monthly_average == Decimal("75.00")
    assert patterns["fuel"].trend is PatternTrend.DECREASING
    assert patterns["fuel"].recent_change_percentage == Decimal("-50.00")


def test_months_without_spending_count_as_zero():
    (pattern,) = spending_patterns(monthly_spend("travel", [0, 0, 0, 0, 0, 600]), H1_2024)
    assert pattern.monthly_average == Decimal("100.00")
    assert pattern.trend is PatternTrend.INCREASING
    # No spending in the first half: change is reported as zero
    assert pattern.recent_change_percentage == 0
    assert pattern.seasonality_score > 100


def test_income_and_out_of_window_spending_are_ignored():
    patterns = spending_patterns(
        [txn(3000, "income", "2024-02-01", "salary"), txn(70, "expense", "2024-07-02", "books")],
        H1_2024,
    )
    assert patterns == []


def test_ordered_by_monthly_average():
    patterns = spending_patterns(
        monthly_spend("small", [10] * 6) + monthly_spend("large", [500] * 6),
        H1_2024,
    )
    assert [p.category for p in patterns] == ["large", "small"]


def test_threshold_is_configurable():
    transactions = monthly_spend("utilities", [100, 100, 100, 105, 105, 105])
    (default,) = spending_patterns(transactions, H1_2024)
    (strict,) = spending_patterns(transactions, H1_2024, threshold=Decimal("0.01"))
    assert default.trend is PatternTrend.STABLE
    assert strict.trend is PatternTrend.INCREASING


def test_monthly_spending_changes():
    months = monthly_spending(
        [
            bucket("2024-03", expenses=90),
            bucket("2024-01", expenses=0),
            bucket("2024-02", income=400, expenses=120),
        ]
    )
    assert [(m.period, m.month) for m in months] == [("2024-01", 1), ("2024-02", 2), ("2024-03", 3)]
    assert [m.spending for m in months] == [0, Decimal("120"), Decimal("90")]
    # No spending in January: February has no baseline
    assert [m.change_from_previous for m in months] == [0, 0, Decimal("-30")]
