from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pnl_indexer.app.config import settings


def create_app_async_engine(
    *,
    database_url: str | None = None,
    echo: bool = False,
) -> AsyncEngine:
    """
    Build the AsyncEngine shared by the indexer run and the ledger rebuild.

    Falls back to settings.database_url (postgresql+asyncpg://...).
    A sync "postgresql://" URL is upgraded to the asyncpg driver.
    """
    url = database_url or settings.database_url
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
    )
