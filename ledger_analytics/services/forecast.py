"""Short-horizon cash-flow forecasting.

The model is deliberately simple and auditable:

* predicted net = historical mean net + least-squares slope x months ahead,
  clipped to a multiple of the largest historical |net|;
* predicted income/expenses keep their historical share of gross flow and
  always reconcile to the predicted net;
* confidence starts at a ceiling, is scaled down by volatility and decays
  linearly with the horizon, with a floor.
"""

from collections.abc import Sequence
from decimal import Decimal

from ledger_analytics.core.exceptions import InsufficientDataError, InvalidRangeError
from ledger_analytics.schemas.analytics import (
    ZERO,
    CashFlowProfile,
    Granularity,
    MonthlyPrediction,
    TrendPoint,
)
from ledger_analytics.services.bucketing import (
    parse_period_key,
    period_end,
    period_key_for,
    shift_month,
)
from ledger_analytics.services.cashflow import mean, volatility_score
from ledger_analytics.utils.money import quantize_money

ONE = Decimal("1")
MIN_FORECAST_POINTS = 2


def linear_slope(values: Sequence[Decimal]) -> Decimal:
    """Ordinary least-squares slope of values against their index."""
    n = len(values)
    x_mean = Decimal(n - 1) / 2
    y_mean = mean(values)
    numerator = sum(
        ((Decimal(i) - x_mean) * (y - y_mean) for i, y in enumerate(values)), ZERO
    )
    denominator = sum(((Decimal(i) - x_mean) ** 2 for i in range(n)), ZERO)
    return numerator / denominator


def split_net(
    predicted_net: Decimal,
    avg_income: Decimal,
    avg_expenses: Decimal,
) -> tuple[Decimal, Decimal]:
    """Derive (income, expenses) whose difference is exactly ``predicted_net``."""
    gross = avg_income + avg_expenses
    if gross == 0:
        income = max(predicted_net, ZERO)
        return income, income - predicted_net

    gap = predicted_net - (avg_income - avg_expenses)
    income = avg_income + gap * avg_income / gross
    expenses = avg_expenses - gap * avg_expenses / gross
    if income < 0:
        return ZERO, -predicted_net
    if expenses < 0:
        return predicted_net, ZERO
    return income, expenses


def confidence_for(
    horizon: int,
    volatility: Decimal,
    ceiling: Decimal,
    floor: Decimal,
    decay: Decimal,
) -> Decimal:
    decay_factor = max(ONE - decay * (horizon - 1), ZERO)
    raw = ceiling * (ONE - volatility) * decay_factor
    return quantize_money(min(max(raw, floor), ceiling))


def forecast_periods(last_period: str, horizon_months: int) -> list[str]:
    """Month keys following the period ``last_period`` (any granularity)."""
    granularity, start = parse_period_key(last_period)
    first = shift_month(period_end(start, granularity), 1)
    return [
        period_key_for(shift_month(first, h), Granularity.MONTH) for h in range(horizon_months)
    ]


def forecast(
    points: Sequence[TrendPoint],
    horizon_months: int,
    *,
    profile: CashFlowProfile | None = None,
    confidence_ceiling: Decimal = Decimal("90"),
    confidence_floor: Decimal = Decimal("10"),
    confidence_decay: Decimal = Decimal("0.1"),
    clip_multiplier: Decimal = Decimal("3"),
) -> list[MonthlyPrediction]:
    """Predict ``horizon_months`` months of income, expenses and net.

    ``profile`` supplies the volatility score when the caller already ran the
    analyzer; otherwise it is computed from ``points``.
    """
    if len(points) < MIN_FORECAST_POINTS:
        raise InsufficientDataError(
            f"At least {MIN_FORECAST_POINTS} historical points are needed to forecast, got {len(points)}"
        )
    if horizon_months < 0:
        raise InvalidRangeError(f"Forecast horizon must be >= 0, got {horizon_months}")

    nets = [p.net for p in points]
    average_net = mean(nets)
    slope = linear_slope(nets)
    cap = clip_multiplier * max(abs(n) for n in nets)
    avg_income = mean([p.income for p in points])
    avg_expenses = mean([p.expenses for p in points])
    volatility = profile.volatility_score if profile is not None else volatility_score(nets)

    predictions = []
    for h, period in enumerate(forecast_periods(points[-1].period, horizon_months), start=1):
        predicted_net = min(max(average_net + slope * h, -cap), cap)
        income, _ = split_net(predicted_net, avg_income, avg_expenses)
        net_q = quantize_money(predicted_net)
        income_q = quantize_money(income)
        predictions.append(
            MonthlyPrediction(
                period=period,
                predicted_income=income_q,
                predicted_expenses=income_q - net_q,
                predicted_net=net_q,
                confidence=confidence_for(
                    h, volatility, confidence_ceiling, confidence_floor, confidence_decay
                ),
            )
        )
    return predictions
