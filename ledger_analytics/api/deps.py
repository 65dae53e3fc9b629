"""Shared API dependencies."""

from fastapi import Depends

from ledger_analytics.config import settings
from ledger_analytics.core.database import async_session_factory
from ledger_analytics.services.analytics_service import AnalyticsService
from ledger_analytics.services.ledger import LedgerReader, SqlLedgerReader


def get_ledger_reader() -> LedgerReader:
    return SqlLedgerReader(
        async_session_factory,
        default_currency=settings.default_currency,
        default_timezone=settings.default_timezone,
    )


def get_analytics_service(
    ledger: LedgerReader = Depends(get_ledger_reader),
) -> AnalyticsService:
    """A fresh service per request; the engine keeps no state between calls."""
    return AnalyticsService(ledger, settings)


__all__ = ["get_ledger_reader", "get_analytics_service"]
