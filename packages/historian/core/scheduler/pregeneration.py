"""Background pregeneration of catalog journeys.

Every catalog entity without a cached journey is generated concurrently
in the background. Entities fail independently: a failure puts that entity
back to idle and never affects the others.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
import logging

from historian.core.caching.store import TimelineCache
from historian.core.models.catalog import CatalogEntry
from historian.core.models.journey import TimelineArtifact
from historian.core.models.status import EntityStatus
from historian.core.pipeline.generation import GenerationPipeline
from historian.core.pipeline.request import JourneyRequest

logger = logging.getLogger(__name__)

EntityStatusListener = Callable[[str, EntityStatus], None]


class PregenerationScheduler:
    """Keeps every catalog entity's journey generated and at hand.

    Holds the per-entity status and an in-memory copy of each ready
    journey, so callers can open a pregenerated journey without touching
    storage.
    """

    def __init__(
        self,
        pipeline: GenerationPipeline,
        cache: TimelineCache,
        catalog: Sequence[CatalogEntry],
    ) -> None:
        self.pipeline = pipeline
        self.cache = cache
        self.catalog: dict[str, CatalogEntry] = {entry.id: entry for entry in catalog}
        self.statuses: dict[str, EntityStatus] = {
            entity_id: EntityStatus.IDLE for entity_id in self.catalog
        }
        self.artifacts: dict[str, TimelineArtifact] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._refresh_locks: dict[str, asyncio.Lock] = {}
        self._listeners: list[EntityStatusListener] = []
        self._background: asyncio.Task[None] | None = None

    def subscribe(self, listener: EntityStatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def status(self, entity_id: str) -> EntityStatus:
        return self.statuses[entity_id]

    def get(self, entity_id: str) -> TimelineArtifact | None:
        """In-memory journey for a ready entity."""
        return self.artifacts.get(entity_id)

    def _set_status(self, entity_id: str, status: EntityStatus) -> None:
        if self.statuses.get(entity_id) is status:
            return
        self.statuses[entity_id] = status
        logger.debug(f"Entity {entity_id} → {status.value}")
        for listener in list(self._listeners):
            try:
                listener(entity_id, status)
            except Exception:
                logger.exception(f"Entity status listener failed for {entity_id}")

    async def bootstrap(self) -> dict[str, EntityStatus]:
        """Classify every catalog entity from a single read of the cache.

        Returns:
            Status per entity id after classification
        """
        cached = {artifact.id: artifact for artifact in await self.cache.list_all()}

        for entity_id in self.catalog:
            if self.statuses[entity_id] is EntityStatus.LOADING:
                continue
            artifact = cached.get(entity_id)
            if artifact is not None:
                self.artifacts[entity_id] = artifact
                self._set_status(entity_id, EntityStatus.READY)
            else:
                self._set_status(entity_id, EntityStatus.IDLE)

        ready = sum(1 for s in self.statuses.values() if s is EntityStatus.READY)
        logger.info(f"Catalog bootstrap: {ready}/{len(self.catalog)} journeys cached")
        return dict(self.statuses)

    def pending(self) -> list[str]:
        return [eid for eid, status in self.statuses.items() if status is EntityStatus.IDLE]

    async def run_pending(self) -> dict[str, EntityStatus]:
        """Generate every idle entity concurrently and wait for all to settle.

        Returns:
            Status per entity id once every generation settled
        """
        tasks = [self.schedule(entity_id) for entity_id in self.pending()]
        if tasks:
            logger.info(f"Pregenerating {len(tasks)} catalog journeys")
            await asyncio.gather(*tasks, return_exceptions=True)
        return dict(self.statuses)

    def schedule(self, entity_id: str, force: bool = False) -> asyncio.Task[None]:
        """Start generating one entity unless it is already loading.

        Raises:
            KeyError: If the entity is not in the catalog
        """
        entry = self.catalog[entity_id]
        existing = self._tasks.get(entity_id)
        if existing is not None and not existing.done():
            return existing

        self._set_status(entity_id, EntityStatus.LOADING)
        task = asyncio.create_task(self._pregenerate(entry, force), name=f"pregenerate:{entity_id}")
        self._tasks[entity_id] = task
        return task

    async def _pregenerate(self, entry: CatalogEntry, force: bool) -> None:
        try:
            artifact = await self.pipeline.run(JourneyRequest.from_preset(entry), force=force)
        except Exception as e:
            logger.error(f"Pregeneration failed for {entry.name}: {e}")
            self._set_status(entry.id, EntityStatus.IDLE)
            return

        self.artifacts[entry.id] = artifact
        self._set_status(entry.id, EntityStatus.READY)

    def start(self) -> asyncio.Task[None]:
        """Bootstrap and pregenerate in the background; returns immediately."""
        if self._background is None or self._background.done():
            self._background = asyncio.create_task(self._run_background(), name="pregeneration")
        return self._background

    async def _run_background(self) -> None:
        await self.bootstrap()
        await self.run_pending()

    async def refresh(self, entity_id: str) -> EntityStatus:
        """Discard and regenerate one entity's journey.

        Concurrent refreshes of one entity run one after another.

        Returns:
            The entity's status once regeneration settled
        """
        if entity_id not in self.catalog:
            raise KeyError(f"Unknown catalog entity: {entity_id}")

        lock = self._refresh_locks.setdefault(entity_id, asyncio.Lock())
        async with lock:
            while True:
                existing = self._tasks.get(entity_id)
                if existing is not None and not existing.done():
                    logger.info(f"Refresh of {entity_id} waiting for running pregeneration")
                    await asyncio.wait({existing})

                self.artifacts.pop(entity_id, None)
                await self.cache.delete(entity_id)
                # Background pregeneration may have picked the entity up meanwhile.
                if not self._is_loading(entity_id):
                    break

            self._set_status(entity_id, EntityStatus.IDLE)
            task = self.schedule(entity_id, force=True)

        await task
        return self.statuses[entity_id]

    def _is_loading(self, entity_id: str) -> bool:
        task = self._tasks.get(entity_id)
        return task is not None and not task.done()

    async def close(self) -> None:
        """Cancel outstanding background work and wait for it to unwind."""
        tasks = [t for t in [self._background, *self._tasks.values()] if t and not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
