"""Typed, per-id serialized document caches.

DocumentCache validates documents against a pydantic model and degrades
storage failures: a failed or corrupt read is a miss, a failed write is
logged and dropped. Every write for a given id, including the
read-modify-write in ``update``, is serialized by a per-id asyncio.Lock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from historian.core.caching.protocols import CacheBackend
from historian.core.models.journey import TimelineArtifact
from historian.core.models.research import ResearchPaper

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class DocumentCache(Generic[T]):
    """Cache of pydantic documents keyed by their ``id`` field."""

    def __init__(self, backend: CacheBackend, model_cls: type[T]) -> None:
        self.backend = backend
        self.model_cls = model_cls
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, entity_id: str) -> asyncio.Lock:
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = self._locks[entity_id] = asyncio.Lock()
        return lock

    @staticmethod
    def _id_of(entity: T) -> str:
        return str(getattr(entity, "id"))

    async def _read(self, entity_id: str) -> T | None:
        try:
            document = await self.backend.get(entity_id)
        except Exception:
            logger.exception(f"Cache read failed for {entity_id}; treating as miss")
            return None

        if document is None:
            return None

        try:
            return self.model_cls.model_validate_json(document)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Corrupt cache entry for {entity_id}; treating as miss: {e}")
            return None

    async def _write(self, entity: T) -> bool:
        entity_id = self._id_of(entity)
        try:
            await self.backend.put(entity_id, entity.model_dump_json())
        except Exception:
            logger.exception(f"Cache write failed for {entity_id}")
            return False
        logger.debug(f"Cached {self.model_cls.__name__} {entity_id}")
        return True

    async def get(self, entity_id: str) -> T | None:
        """Load an entity; None on miss, corruption or storage failure."""
        return await self._read(entity_id)

    async def put(self, entity: T) -> bool:
        """Store an entity, replacing any previous version.

        Returns:
            True if the entity was persisted
        """
        async with self.lock_for(self._id_of(entity)):
            return await self._write(entity)

    async def delete(self, entity_id: str) -> None:
        async with self.lock_for(entity_id):
            try:
                await self.backend.delete(entity_id)
            except Exception:
                logger.exception(f"Cache delete failed for {entity_id}")

    async def list_all(self) -> list[T]:
        """Load every readable entity. Unreadable entries are skipped."""
        try:
            keys = await self.backend.keys()
        except Exception:
            logger.exception(f"Cache listing failed for {self.model_cls.__name__}")
            return []

        entities = await asyncio.gather(*(self._read(key) for key in keys))
        return [e for e in entities if e is not None]

    async def update(
        self,
        entity_id: str,
        mutator: Callable[[T], T],
        default: T | None = None,
    ) -> T | None:
        """Read-modify-write an entity under its lock.

        The mutator always sees the latest stored version. If nothing is
        stored, it is applied to ``default`` instead; with no default the
        update is skipped.

        Args:
            entity_id: Entity to update
            mutator: Pure function producing the new version
            default: Base version when the entity is not stored

        Returns:
            The new version (also when persisting it failed), or None if skipped
        """
        async with self.lock_for(entity_id):
            current = await self._read(entity_id)
            if current is None:
                if default is None:
                    logger.warning(
                        f"Skipping update of missing {self.model_cls.__name__} {entity_id}"
                    )
                    return None
                current = default

            updated = mutator(current)
            await self._write(updated)
            return updated


class TimelineCache(DocumentCache[TimelineArtifact]):
    """Persistent store of generated journeys."""

    NAMESPACE = "landmarks"

    def __init__(self, backend: CacheBackend) -> None:
        super().__init__(backend, TimelineArtifact)


class PaperArchive(DocumentCache[ResearchPaper]):
    """Persistent store of research dossiers awaiting launch."""

    NAMESPACE = "research_papers"

    def __init__(self, backend: CacheBackend) -> None:
        super().__init__(backend, ResearchPaper)
