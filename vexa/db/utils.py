from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession


def _normalize_db_url(url: str | None) -> str | None:
    # Neon/Heroku style "postgres://...", asyncpg/SQLAlchemy needs "postgresql+asyncpg://..."
    if not url:
        return None
    if url.startswith("postgres://",):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """One core operation == one transaction. Commit on success, roll everything back otherwise."""
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
