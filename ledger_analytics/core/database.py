"""Async database engine and session factory for the ledger store."""

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from ledger_analytics.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)
