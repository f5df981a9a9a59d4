"""Tests for PregenerationScheduler."""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from historian.core.caching import TimelineCache
from historian.core.models import CatalogEntry, EntityStatus, TimelineArtifact
from historian.core.pipeline import GenerationPipeline
from historian.core.scheduler import PregenerationScheduler


@pytest.fixture
def scheduler(
    pipeline: GenerationPipeline, timeline_cache: TimelineCache, catalog: list[CatalogEntry]
) -> PregenerationScheduler:
    return PregenerationScheduler(pipeline, timeline_cache, catalog)


class TestBootstrap:
    """Tests for initial classification from the cache."""

    def test_all_idle_before_bootstrap(self, scheduler: PregenerationScheduler):
        assert set(scheduler.statuses.values()) == {EntityStatus.IDLE}

    async def test_cached_entities_are_ready(
        self,
        scheduler: PregenerationScheduler,
        timeline_cache: TimelineCache,
        make_artifact: Callable[..., TimelineArtifact],
    ):
        """Test entities with a cached journey start ready and in memory."""
        cached = make_artifact("sagrada", subject_name="Sagrada Família")
        await timeline_cache.put(cached)

        statuses = await scheduler.bootstrap()

        assert statuses == {
            "eiffel": EntityStatus.IDLE,
            "sagrada": EntityStatus.READY,
            "colosseum": EntityStatus.IDLE,
        }
        assert scheduler.get("sagrada") == cached
        assert scheduler.pending() == ["eiffel", "colosseum"]

    async def test_non_catalog_journeys_ignored(
        self,
        scheduler: PregenerationScheduler,
        timeline_cache: TimelineCache,
        make_artifact: Callable[..., TimelineArtifact],
    ):
        await timeline_cache.put(make_artifact("upload-1"))

        statuses = await scheduler.bootstrap()

        assert "upload-1" not in statuses
        assert scheduler.get("upload-1") is None


class TestRunPending:
    """Tests for fleet pregeneration."""

    async def test_all_entities_generated(self, scheduler: PregenerationScheduler, provider):
        await scheduler.bootstrap()

        statuses = await scheduler.run_pending()

        assert set(statuses.values()) == {EntityStatus.READY}
        assert provider.count("plan_timeline") == 3
        assert scheduler.get("colosseum").subject_name == "Colosseum"

    async def test_cached_entities_not_regenerated(
        self,
        scheduler: PregenerationScheduler,
        provider,
        timeline_cache: TimelineCache,
        make_artifact: Callable[..., TimelineArtifact],
    ):
        await timeline_cache.put(make_artifact("eiffel"))
        await scheduler.bootstrap()

        await scheduler.run_pending()

        planned = [args[0] for args in provider.args_of("plan_timeline")]
        assert sorted(planned) == ["Colosseum", "Sagrada Família"]

    async def test_failures_are_independent(self, scheduler: PregenerationScheduler, provider):
        """Test one failing entity does not affect the others."""
        provider.failing_subjects = {"Sagrada Família"}
        await scheduler.bootstrap()

        statuses = await scheduler.run_pending()

        assert statuses == {
            "eiffel": EntityStatus.READY,
            "sagrada": EntityStatus.IDLE,
            "colosseum": EntityStatus.READY,
        }
        assert scheduler.get("sagrada") is None
        assert scheduler.pending() == ["sagrada"]

    async def test_listener_sees_loading_then_ready(self, scheduler: PregenerationScheduler):
        events: list[tuple[str, EntityStatus]] = []
        scheduler.subscribe(lambda entity_id, status: events.append((entity_id, status)))
        await scheduler.bootstrap()

        await scheduler.run_pending()

        eiffel_events = [status for entity_id, status in events if entity_id == "eiffel"]
        assert eiffel_events == [EntityStatus.LOADING, EntityStatus.READY]

    async def test_schedule_dedupes_running_entity(
        self, scheduler: PregenerationScheduler, provider
    ):
        gate = provider.gate("plan_timeline")

        first = scheduler.schedule("eiffel")
        second = scheduler.schedule("eiffel")
        assert first is second
        assert scheduler.status("eiffel") is EntityStatus.LOADING

        gate.set()
        await first

        assert scheduler.status("eiffel") is EntityStatus.READY

    def test_schedule_unknown_entity(self, scheduler: PregenerationScheduler):
        with pytest.raises(KeyError):
            scheduler.schedule("atlantis")

    async def test_start_runs_in_background(self, scheduler: PregenerationScheduler):
        """Test start returns immediately and pregenerates the whole catalog."""
        task = scheduler.start()
        assert isinstance(task, asyncio.Task)

        await task

        assert set(scheduler.statuses.values()) == {EntityStatus.READY}


class TestRefresh:
    """Tests for single-entity regeneration."""

    async def test_refresh_regenerates(
        self, scheduler: PregenerationScheduler, provider, timeline_cache: TimelineCache
    ):
        await scheduler.bootstrap()
        await scheduler.run_pending()
        before = provider.count("plan_timeline")

        status = await scheduler.refresh("eiffel")

        assert status is EntityStatus.READY
        assert provider.count("plan_timeline") == before + 1
        assert await timeline_cache.get("eiffel") is not None

    async def test_refresh_failure_leaves_entity_idle(
        self, scheduler: PregenerationScheduler, provider, timeline_cache: TimelineCache
    ):
        await scheduler.bootstrap()
        await scheduler.run_pending()
        provider.failing_subjects = {"Eiffel Tower"}

        status = await scheduler.refresh("eiffel")

        assert status is EntityStatus.IDLE
        assert scheduler.get("eiffel") is None
        assert await timeline_cache.get("eiffel") is None

    async def test_concurrent_refreshes_never_report_idle_while_loading(
        self, scheduler: PregenerationScheduler, provider
    ):
        """Test overlapping refreshes keep the idle, loading, ready lifecycle."""
        events: list[tuple[str, EntityStatus]] = []
        scheduler.subscribe(lambda entity_id, status: events.append((entity_id, status)))
        gate = provider.gate("plan_timeline")
        scheduler.schedule("eiffel")

        refreshes = [asyncio.create_task(scheduler.refresh("eiffel")) for _ in range(2)]
        await asyncio.sleep(0)
        gate.set()
        statuses = await asyncio.gather(*refreshes)
        seen = [status for entity_id, status in events if entity_id == "eiffel"]

        assert statuses == [EntityStatus.READY, EntityStatus.READY]
        assert (EntityStatus.LOADING, EntityStatus.IDLE) not in set(zip(seen, seen[1:]))
        assert seen[-1] is EntityStatus.READY
        assert provider.count("plan_timeline") == 3

    async def test_refresh_unknown_entity(self, scheduler: PregenerationScheduler):
        with pytest.raises(KeyError):
            await scheduler.refresh("atlantis")


async def test_close_cancels_outstanding_work(
    scheduler: PregenerationScheduler, pipeline: GenerationPipeline, provider
):
    """Test close cancels scheduled generations."""
    gate = provider.gate("plan_timeline")
    task = scheduler.schedule("eiffel")
    await asyncio.sleep(0)

    await scheduler.close()
    assert task.cancelled()

    # The shared generation itself is not cancelled and still completes.
    gate.set()
    while pipeline.is_running("eiffel"):
        await asyncio.sleep(0)
