"""Volatility and cash-flow analysis over a trend series."""

from collections.abc import Sequence
from decimal import Decimal

from ledger_analytics.core.exceptions import InsufficientDataError
from ledger_analytics.schemas.analytics import (
    ZERO,
    CashFlowProfile,
    TrendDirection,
    TrendPoint,
)
from ledger_analytics.utils.money import quantize_money, quantize_places

ONE = Decimal("1")
MIN_TREND_POINTS = 3


def mean(values: Sequence[Decimal]) -> Decimal:
    return sum(values, ZERO) / Decimal(len(values))


def population_std(values: Sequence[Decimal]) -> Decimal:
    avg = mean(values)
    variance = sum(((v - avg) ** 2 for v in values), ZERO) / Decimal(len(values))
    return variance.sqrt()


def volatility_score(nets: Sequence[Decimal]) -> Decimal:
    """Standard deviation of net relative to |mean net|, clamped to [0, 1].

    A zero mean gives 1 when the series varies at all and 0 when it is flat.
    """
    avg = mean(nets)
    std = population_std(nets)
    if avg == 0:
        return ONE if std > 0 else ZERO
    score = min(max(std / abs(avg), ZERO), ONE)
    return quantize_places(score, 4)


def trend_direction(nets: Sequence[Decimal], threshold: Decimal) -> TrendDirection:
    """Compare the mean of the most recent third of the series with the earliest third."""
    if len(nets) < MIN_TREND_POINTS:
        return TrendDirection.STABLE
    third = len(nets) // 3
    early = mean(nets[:third])
    recent = mean(nets[-third:])
    margin = threshold * abs(early)
    if recent - early > margin:
        return TrendDirection.UP
    if early - recent > margin:
        return TrendDirection.DOWN
    return TrendDirection.STABLE


def analyze(
    points: Sequence[TrendPoint],
    trend_threshold: Decimal = Decimal("0.05"),
) -> CashFlowProfile:
    """Build a cash-flow profile (without predictions) from a trend series.

    Series shorter than three points are reported as ``stable`` with
    ``low_confidence`` set rather than guessing a direction.
    """
    if not points:
        raise InsufficientDataError("Cannot analyze an empty trend series")

    nets = [p.net for p in points]
    return CashFlowProfile(
        monthly_average=quantize_money(mean(nets)),
        trend_direction=trend_direction(nets, trend_threshold),
        volatility_score=volatility_score(nets),
        predictions=[],
        low_confidence=len(nets) < MIN_TREND_POINTS,
        data_points=len(nets),
    )
