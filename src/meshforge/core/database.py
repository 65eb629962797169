"""Database session factory setup."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel


def setup_db_session(db_url: str, pool_size: int = 10) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    Args:
        db_url: PostgreSQL connection URL (postgresql+psycopg://...)
        pool_size: Maximum number of connections in the pool (default: 10)

    Returns:
        Async session factory for creating database sessions
    """
    engine = create_async_engine(
        db_url,
        pool_size=pool_size,
        max_overflow=0,  # No overflow beyond pool_size
        pool_pre_ping=True,  # Verify connections before using
        echo=False,  # Don't log SQL queries (use structlog instead)
    )

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading issues after commit
    )

    return session_factory


async def create_tables(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Create all registered SQLModel tables that do not exist yet.

    Args:
        session_factory: Async session factory bound to the target database
    """
    # Register entities with SQLModel metadata
    import meshforge.models  # noqa: F401

    async with session_factory() as session:
        await session.run_sync(
            lambda sync_session: SQLModel.metadata.create_all(sync_session.connection())
        )
        await session.commit()
