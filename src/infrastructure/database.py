"""
Async SQLAlchemy engine and session factory.

Uses ``asyncpg`` as the PostgreSQL driver.  Every request gets its own
``AsyncSession``; the seat counters are only ever changed through
conditional UPDATE statements, so no session holds state that another
request depends on.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings


def build_engine(url: str, **kwargs) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False, **kwargs)
    return create_async_engine(url, echo=False, pool_size=20, max_overflow=10, **kwargs)


engine = build_engine(settings.database_url)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""
