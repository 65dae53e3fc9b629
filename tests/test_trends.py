"""Trend series tests."""

from decimal import Decimal

from conftest import bucket
from ledger_analytics.services.trends import build_series, growth_rate


def test_running_balance_and_growth_rate():
    points = build_series(
        [bucket("2024-01", income=100), bucket("2024-02", expenses=50), bucket("2024-03", income=200)]
    )
    assert [p.period for p in points] == ["2024-01", "2024-02", "2024-03"]
    assert [p.net for p in points] == [Decimal("100"), Decimal("-50"), Decimal("200")]
    assert [p.balance for p in points] == [Decimal("100"), Decimal("50"), Decimal("250")]
    assert [p.growth_rate for p in points] == [None, Decimal("-1.5000"), Decimal("5.0000")]


def test_opening_balance_carries_into_the_series():
    points = build_series([bucket("2024-01", income=10), bucket("2024-02")], Decimal("1000"))
    assert [p.balance for p in points] == [Decimal("1010"), Decimal("1010")]


def test_growth_rate_is_undefined_after_a_zero_net():
    points = build_series([bucket("2024-01"), bucket("2024-02", income=40)])
    assert points[1].growth_rate is None
    assert growth_rate(Decimal("0"), Decimal("10")) is None
    assert growth_rate(Decimal("-20"), Decimal("-30")) == Decimal("-0.5000")


def test_buckets_are_ordered_by_period():
    points = build_series([bucket("2024-03", income=3), bucket("2024-01", income=1)])
    assert [p.period for p in points] == ["2024-01", "2024-03"]
    assert points[-1].balance == Decimal("4")


def test_breakdowns_are_only_computed_when_requested():
    calls = []

    def provider(current, previous):
        calls.append((current.period_key, previous.period_key if previous else None))
        return []

    plain = build_series([bucket("2024-01"), bucket("2024-02")])
    assert all(p.category_breakdown is None for p in plain)

    detailed = build_series([bucket("2024-02"), bucket("2024-01")], category_breakdowns=provider)
    assert calls == [("2024-01", None), ("2024-02", "2024-01")]
    assert all(p.category_breakdown == [] for p in detailed)


def test_empty_series():
    assert build_series([]) == []
