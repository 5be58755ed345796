from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from lifeconnections.config import settings


def create_engine_and_sessionmaker(
    database_url: str,
    echo: bool = False,
) -> Tuple[AsyncEngine, async_sessionmaker]:
    engine = create_async_engine(database_url, echo=echo, future=True)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    return engine, session_factory


# Create async engine and session factory
engine, AsyncSessionLocal = create_engine_and_sessionmaker(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models"""
    pass


async def init_db(target_engine: AsyncEngine = None):
    """Create the life_connections table if it does not exist."""
    # Register mapped classes on Base.metadata
    from lifeconnections.models import LifeConnection  # noqa: F401

    async with (target_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
