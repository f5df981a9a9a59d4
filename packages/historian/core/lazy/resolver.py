"""Scrub-driven lazy generation of timeline scenes.

Only the first era is rendered up front. As the scrub position moves, every
era close enough to it is rendered (image, then hotspots) and written back
to the cache. At most one generation per event is in flight at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging

from historian.core.caching.store import TimelineCache
from historian.core.config.models import JourneySettings
from historian.core.models.journey import TimelineArtifact
from historian.core.pipeline.generation import image_data_uri
from historian.core.providers.base import GenerationService

logger = logging.getLogger(__name__)

EventListener = Callable[[int, TimelineArtifact], None]


class LazyVisualResolver:
    """Resolve era scenes of one journey as the user scrubs through it."""

    def __init__(
        self,
        provider: GenerationService,
        cache: TimelineCache,
        artifact: TimelineArtifact,
        *,
        panoramic: bool = False,
        settings: JourneySettings | None = None,
    ) -> None:
        """
        Args:
            provider: Remote generation capabilities
            cache: Store the resolved scenes are written back to
            artifact: Journey to resolve (already ready)
            panoramic: Use the panoramic trigger distance
            settings: Overrides for the trigger distances
        """
        self.provider = provider
        self.cache = cache
        self.artifact = artifact
        self.panoramic = panoramic
        self.settings = settings or JourneySettings()
        self.position = 0.0
        self._inflight: dict[int, asyncio.Task[None]] = {}
        self._listeners: list[EventListener] = []

    @property
    def trigger_distance(self) -> float:
        if self.panoramic:
            return self.settings.panoramic_trigger_distance
        return self.settings.lazy_trigger_distance

    @property
    def in_flight(self) -> set[int]:
        return set(self._inflight)

    def subscribe(self, listener: EventListener) -> None:
        """Call ``listener(index, artifact)`` after each scene is stored."""
        self._listeners.append(listener)

    def set_panoramic(self, panoramic: bool) -> None:
        self.panoramic = panoramic

    def eligible(self, position: float) -> list[int]:
        """Indices that should start generating at ``position``."""
        threshold = self.trigger_distance
        return [
            index
            for index, event in enumerate(self.artifact.timeline)
            if abs(position - index) < threshold
            and not event.generated
            and index not in self._inflight
        ]

    def update_position(self, position: float) -> list[int]:
        """Move the scrub position and start generating newly eligible events.

        Never blocks: generations run as background tasks.

        Returns:
            Indices whose generation started on this call
        """
        last = max(len(self.artifact.timeline) - 1, 0)
        self.position = min(max(position, 0.0), float(last))

        started = self.eligible(self.position)
        for index in started:
            self._inflight[index] = asyncio.create_task(
                self._resolve(index), name=f"lazy:{self.artifact.id}:{index}"
            )
        if started:
            logger.debug(f"{self.artifact.id}: lazy generation started for {started}")
        return started

    async def _resolve(self, index: int) -> None:
        started = self.artifact
        event = started.timeline[index]
        name = started.subject_name
        try:
            image = await self.provider.render_image(event, name, started.source_image)
            hotspots = await self.provider.identify_hotspots(image, name, event.year)
            resolved = event.with_image(image_data_uri(image)).with_hotspots(hotspots)

            def merge(current: TimelineArtifact) -> TimelineArtifact:
                if not _same_era(current, started, index) or current.timeline[index].generated:
                    return current
                return current.with_event(index, resolved)

            updated = await self.cache.update(started.id, merge, default=started)
            self.artifact = self._rebase(updated if updated is not None else merge(self.artifact))
        except Exception as e:
            logger.error(f"{started.id}: lazy generation failed for index {index}: {e}")
            return
        finally:
            self._inflight.pop(index, None)

        if not _same_era(self.artifact, started, index):
            logger.info(
                f"{started.id}: discarded era {event.year} (index {index}); journey was regenerated"
            )
            return
        logger.info(
            f"{started.id}: resolved era {event.year} (index {index}, {len(hotspots)} hotspots)"
        )

        for listener in list(self._listeners):
            try:
                listener(index, self.artifact)
            except Exception:
                logger.exception(f"{self.artifact.id}: lazy listener failed")

    def _rebase(self, stored: TimelineArtifact) -> TimelineArtifact:
        """Carry scenes resolved in memory over to ``stored``.

        The stored copy lags behind when cache writes fail. A regenerated
        journey (different ``created_at``) replaces the in-memory one.
        """
        if stored.created_at != self.artifact.created_at:
            return stored
        for index, event in enumerate(self.artifact.timeline):
            if (
                event.generated
                and index < len(stored.timeline)
                and not stored.timeline[index].generated
            ):
                stored = stored.with_event(index, event)
        return stored

    async def drain(self) -> None:
        """Wait until every in-flight generation settled (including ones started meanwhile)."""
        while self._inflight:
            await asyncio.gather(*self._inflight.values(), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight generations."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        # Tasks cancelled before their first step never reach their cleanup.
        self._inflight.clear()


def _same_era(current: TimelineArtifact, started: TimelineArtifact, index: int) -> bool:
    """Whether ``current`` still holds the planned era a render started from."""
    if current.created_at != started.created_at or index >= len(current.timeline):
        return False
    before, now = started.timeline[index], current.timeline[index]
    return (before.year, before.title, before.visual_prompt) == (now.year, now.title, now.visual_prompt)
