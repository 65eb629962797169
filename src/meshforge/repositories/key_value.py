"""KeyValueEntry repository.

Provides data access methods for the flat key-value store that backs the
generation history and saved collections.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from meshforge.models.key_value import KeyValueEntry


class KeyValueRepository:
    """Repository for KeyValueEntry rows.

    Provides UPSERT behavior (INSERT ... ON CONFLICT DO UPDATE) for setting values.
    Values are opaque serialized strings; callers own the encoding.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_value(self, key: str) -> str | None:
        """Retrieve the stored value for a key.

        Args:
            key: Entry key (e.g., "meshforge-generated-models")

        Returns:
            Stored value if found, None otherwise
        """
        # Column select bypasses the identity map, so upserts are never read stale
        result = await self.session.execute(
            select(KeyValueEntry.value).where(KeyValueEntry.key == key)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def set_value(self, key: str, value: str) -> None:
        """Replace the value for a key (UPSERT).

        Args:
            key: Entry key
            value: Serialized value, stored as-is
        """
        now = datetime.now(timezone.utc)
        stmt = insert(KeyValueEntry).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": value, "updated_at": now},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def delete_value(self, key: str) -> bool:
        """Delete the entry for a key (idempotent).

        Args:
            key: Entry key to delete

        Returns:
            True if key was deleted, False if key did not exist
        """
        result = await self.session.execute(
            delete(KeyValueEntry).where(KeyValueEntry.key == key)  # type: ignore[arg-type]
        )
        await self.session.flush()
        return result.rowcount > 0  # type: ignore[attr-defined]
