"""Key-value persistence backends for history and collections.

Two implementations of the same async contract:
- InMemoryKeyValueStore: process-local dict (tests, ephemeral runs)
- SqlKeyValueStore: key_value_entries table through a UnitOfWork
"""

from typing import Awaitable, Callable, Protocol

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from meshforge.core.config import Settings
from meshforge.core.database import create_tables, setup_db_session
from meshforge.uow import UnitOfWork, create_uow_factory

logger = structlog.get_logger(__name__)

HISTORY_KEY = "meshforge-generated-models"
COLLECTIONS_KEY = "meshforge-collections"


class KeyValueStore(Protocol):
    """Flat key-value store holding whole serialized lists."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store. Contents are lost when the process exits."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SqlKeyValueStore:
    """Store backed by the key_value_entries table.

    Every call runs in its own UnitOfWork so each write is committed
    before the call returns.
    """

    def __init__(self, uow_factory: Callable[[], Awaitable[UnitOfWork]]):
        """Initialize store.

        Args:
            uow_factory: Factory from create_uow_factory()
        """
        self.uow_factory = uow_factory

    async def get(self, key: str) -> str | None:
        async with await self.uow_factory() as uow:
            return await uow.key_values.get_value(key)

    async def set(self, key: str, value: str) -> None:
        async with await self.uow_factory() as uow:
            await uow.key_values.set_value(key, value)
        logger.debug("kv_store.written", key=key, size=len(value))

    async def remove(self, key: str) -> None:
        async with await self.uow_factory() as uow:
            deleted = await uow.key_values.delete_value(key)
        logger.debug("kv_store.removed", key=key, existed=deleted)


async def kv_store_from_settings(
    settings: Settings,
) -> tuple[KeyValueStore, async_sessionmaker[AsyncSession] | None]:
    """Build the key-value backend configured by DATABASE_URL.

    Returns:
        (store, session_factory) where session_factory is None for the
        in-memory backend
    """
    if not settings.database_url:
        logger.warning("kv_store.in_memory", reason="database_url_not_set")
        return InMemoryKeyValueStore(), None

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    await create_tables(session_factory)
    logger.info("kv_store.sql", db_url=settings.database_url.split("@")[-1])
    return SqlKeyValueStore(create_uow_factory(session_factory)), session_factory
