"""Analytics API routes — overview, breakdowns, trends, cash flow."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from ledger_analytics.api.deps import get_analytics_service
from ledger_analytics.core.exceptions import ValidationError
from ledger_analytics.schemas.analytics import (
    BreakdownResponse,
    CashFlowProfile,
    CategoryBreakdownEntry,
    DateRange,
    Granularity,
    MonthlySpending,
    SpendingPattern,
    TrendsResponse,
    WorkspaceOverview,
)
from ledger_analytics.services.analytics_service import AnalyticsService, data_quality
from ledger_analytics.services.breakdown import summarize_breakdown

router = APIRouter()


async def _resolve_range(
    service: AnalyticsService,
    workspace_id: UUID,
    period: Granularity,
    start_date: date | None,
    end_date: date | None,
) -> DateRange:
    if start_date is None and end_date is None:
        return await service.resolve_period(workspace_id, period)
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date must be given together")
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    return DateRange(start=start_date, end=end_date)


def _breakdown_response(
    entries: list[CategoryBreakdownEntry], date_range: DateRange
) -> BreakdownResponse:
    return BreakdownResponse(
        data=entries,
        summary=summarize_breakdown(entries),
        start_date=date_range.start,
        end_date=date_range.end,
    )


@router.get("/workspaces/{workspace_id}/overview", response_model=WorkspaceOverview)
async def overview(
    workspace_id: UUID,
    as_of: date | None = None,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Workspace summary: balances, counts, current month and cash-flow outlook."""
    return await service.overview(workspace_id, as_of=as_of)


@router.get("/workspaces/{workspace_id}/spending", response_model=BreakdownResponse)
async def spending_analysis(
    workspace_id: UUID,
    period: Granularity = Granularity.MONTH,
    start_date: date | None = None,
    end_date: date | None = None,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Expenses by category, with the change against the preceding period.

    Either give an explicit start_date/end_date, or a period (month, quarter,
    year) meaning "current period to date".
    """
    date_range = await _resolve_range(service, workspace_id, period, start_date, end_date)
    entries = await service.spending_analysis(workspace_id, date_range)
    return _breakdown_response(entries, date_range)


@router.get("/workspaces/{workspace_id}/income", response_model=BreakdownResponse)
async def income_analysis(
    workspace_id: UUID,
    period: Granularity = Granularity.MONTH,
    start_date: date | None = None,
    end_date: date | None = None,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Income by category, with the change against the preceding period."""
    date_range = await _resolve_range(service, workspace_id, period, start_date, end_date)
    entries = await service.income_analysis(workspace_id, date_range)
    return _breakdown_response(entries, date_range)


@router.get("/workspaces/{workspace_id}/trends", response_model=TrendsResponse)
async def trends(
    workspace_id: UUID,
    granularity: Granularity = Granularity.MONTH,
    count: int = Query(12, ge=1),
    detailed: bool = False,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Income/expenses/net/balance for the last `count` periods.

    `detailed=true` embeds each period's expense breakdown.
    """
    points = await service.trends(workspace_id, granularity, count, detailed=detailed)
    return TrendsResponse(data=points, granularity=granularity, data_quality=data_quality(points))


@router.get("/workspaces/{workspace_id}/cash-flow", response_model=CashFlowProfile)
async def cash_flow(
    workspace_id: UUID,
    horizon_months: int = Query(3, ge=0),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Monthly average, trend direction, volatility and forecast."""
    return await service.cash_flow(workspace_id, horizon_months)


@router.get("/workspaces/{workspace_id}/spending-patterns", response_model=list[SpendingPattern])
async def spending_patterns(
    workspace_id: UUID,
    months: int = Query(6, ge=1),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Per-category monthly average, trend and seasonality."""
    return await service.spending_patterns(workspace_id, months)


@router.get("/workspaces/{workspace_id}/spending-comparison", response_model=list[MonthlySpending])
async def spending_comparison(
    workspace_id: UUID,
    year: int | None = None,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Spending of each month of `year` (default: current year) with the change month over month."""
    return await service.monthly_spending_comparison(workspace_id, year)
