"""Async database engine and session factory.

Configures the SQLAlchemy async engine with connection pooling. The SQL
stores open one short transaction per call through async_session_factory,
so a step record can be saved without holding the session row and vice
versa.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from hireflow.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development",
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
