"""Named snapshots of the generation history."""

import asyncio

import structlog
from pydantic import TypeAdapter, ValidationError

from meshforge.models.collection import HistoryCollection
from meshforge.models.generation import GeneratedResult
from meshforge.services.history.kv_store import COLLECTIONS_KEY, KeyValueStore
from meshforge.services.history.result_store import ResultStore

logger = structlog.get_logger(__name__)

DEFAULT_COLLECTIONS_LIMIT = 10

_collections_adapter = TypeAdapter(list[HistoryCollection])


class HistoryCollections:
    """Create, list, load and delete saved copies of the history list.

    Collections are stored newest-first as one serialized list under a
    fixed key. Saving beyond the limit discards the oldest collection.
    """

    def __init__(
        self,
        store: KeyValueStore,
        history: ResultStore,
        limit: int = DEFAULT_COLLECTIONS_LIMIT,
        key: str = COLLECTIONS_KEY,
    ):
        self.store = store
        self.history = history
        self.limit = limit
        self.key = key
        self._lock = asyncio.Lock()

    async def _read(self) -> list[HistoryCollection]:
        raw = await self.store.get(self.key)
        if not raw:
            return []
        try:
            return _collections_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "collections.load_failed",
                key=self.key,
                error_message=str(e).splitlines()[0],
            )
            return []

    async def _write(self, collections: list[HistoryCollection]) -> None:
        await self.store.set(self.key, _collections_adapter.dump_json(collections).decode("utf-8"))

    async def list_all(self) -> list[HistoryCollection]:
        return await self._read()

    async def get(self, collection_id: str) -> HistoryCollection | None:
        for collection in await self._read():
            if collection.id == collection_id:
                return collection
        return None

    async def create(
        self, name: str, results: list[GeneratedResult] | None = None
    ) -> HistoryCollection:
        """Save a snapshot of the given results (default: the current history).

        Raises:
            ValueError: If name is blank or there is nothing to save
        """
        name = name.strip()
        if not name:
            raise ValueError("Collection name cannot be empty")
        snapshot = list(results) if results is not None else self.history.items
        if not snapshot:
            raise ValueError("Cannot save an empty history as a collection")

        collection = HistoryCollection(name=name, results=snapshot)
        async with self._lock:
            collections = [collection, *await self._read()][: self.limit]
            await self._write(collections)

        logger.info(
            "collections.created",
            collection_id=collection.id,
            name=name,
            result_count=len(snapshot),
        )
        return collection

    async def load(self, collection_id: str) -> list[GeneratedResult] | None:
        """Replace the current history with a saved collection.

        Returns:
            The new history list, or None if no collection has that id
        """
        collection = await self.get(collection_id)
        if collection is None:
            return None
        results = await self.history.replace(collection.results)
        logger.info("collections.loaded", collection_id=collection_id, count=len(results))
        return results

    async def delete(self, collection_id: str) -> bool:
        async with self._lock:
            collections = await self._read()
            remaining = [c for c in collections if c.id != collection_id]
            if len(remaining) == len(collections):
                return False
            await self._write(remaining)

        logger.info("collections.deleted", collection_id=collection_id)
        return True
