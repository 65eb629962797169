"""Capped, deduplicated history of generated results.

The whole list is read once at start-up and written back in full after
every mutation. Entries are deduplicated on model_reference: identical
prompts can legitimately produce different assets, so the prompt text is
never used as the identity.
"""

import asyncio
from typing import Iterable

import structlog
from pydantic import TypeAdapter, ValidationError

from meshforge.models.generation import GeneratedResult
from meshforge.services.history.kv_store import HISTORY_KEY, KeyValueStore

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 20

_results_adapter = TypeAdapter(list[GeneratedResult])


def encode_results(results: list[GeneratedResult]) -> str:
    return _results_adapter.dump_json(results).decode("utf-8")


def decode_results(raw: str) -> list[GeneratedResult]:
    return _results_adapter.validate_json(raw)


def dedupe_and_cap(results: Iterable[GeneratedResult], limit: int) -> list[GeneratedResult]:
    """Keep the first entry per model_reference, then truncate to limit."""
    seen: set[str] = set()
    kept: list[GeneratedResult] = []
    for result in results:
        if result.model_reference in seen:
            continue
        seen.add(result.model_reference)
        kept.append(result)
    return kept[:limit]


class ResultStore:
    """Newest-first history list persisted through a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = DEFAULT_HISTORY_LIMIT,
        key: str = HISTORY_KEY,
    ):
        """Initialize result store.

        Args:
            store: Durable key-value backend
            limit: Maximum number of entries kept (oldest are discarded)
            key: Key the serialized list is stored under
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.store = store
        self.limit = limit
        self.key = key
        self._items: list[GeneratedResult] = []
        self._lock = asyncio.Lock()

    @property
    def items(self) -> list[GeneratedResult]:
        """Snapshot of the history list, newest first."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, result_id: str) -> GeneratedResult | None:
        for result in self._items:
            if result.id == result_id:
                return result
        return None

    async def load_all(self) -> list[GeneratedResult]:
        """Load the persisted list, replacing the in-memory copy.

        A missing key yields an empty history. A value that cannot be decoded
        is logged and also treated as empty; it is overwritten on the next
        mutation.
        """
        raw = await self.store.get(self.key)
        loaded: list[GeneratedResult] = []
        if raw:
            try:
                loaded = decode_results(raw)
            except ValidationError as e:
                logger.warning(
                    "history.load_failed",
                    key=self.key,
                    error_count=e.error_count(),
                    error_message=str(e).splitlines()[0],
                )
                loaded = []

        async with self._lock:
            self._items = dedupe_and_cap(loaded, self.limit)

        logger.info("history.loaded", key=self.key, count=len(self._items))
        return self.items

    async def persist(self, results: list[GeneratedResult]) -> None:
        """Write the whole list to the durable store (never partial)."""
        await self.store.set(self.key, encode_results(results))

    async def add(self, result: GeneratedResult) -> GeneratedResult:
        """Prepend a result unless its model_reference is already recorded.

        Returns:
            The stored entry: the new result, or the existing entry that
            shares its model_reference (left unchanged)
        """
        async with self._lock:
            for existing in self._items:
                if existing.model_reference == result.model_reference:
                    logger.info(
                        "history.result.duplicate",
                        existing_id=existing.id,
                        model_reference=result.model_reference,
                    )
                    return existing

            updated = [result, *self._items]
            dropped = updated[self.limit :]
            updated = updated[: self.limit]

            await self.persist(updated)
            self._items = updated

        logger.info(
            "history.result.added",
            result_id=result.id,
            quality=result.quality.value,
            count=len(updated),
            dropped=len(dropped),
        )
        return result

    async def remove(self, result_id: str) -> bool:
        """Remove an entry by local id.

        Returns:
            True if an entry was removed, False if no entry had that id
        """
        async with self._lock:
            updated = [r for r in self._items if r.id != result_id]
            if len(updated) == len(self._items):
                return False
            await self.persist(updated)
            self._items = updated

        logger.info("history.result.removed", result_id=result_id, count=len(updated))
        return True

    async def clear(self) -> None:
        """Empty the history and persist the empty list."""
        async with self._lock:
            await self.persist([])
            self._items = []

        logger.info("history.cleared", key=self.key)

    async def replace(self, results: list[GeneratedResult]) -> list[GeneratedResult]:
        """Replace the whole history, enforcing dedup and the cap."""
        async with self._lock:
            updated = dedupe_and_cap(results, self.limit)
            await self.persist(updated)
            self._items = updated

        logger.info("history.replaced", count=len(updated), offered=len(results))
        return self.items
