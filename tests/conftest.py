"""Shared pytest fixtures for historian tests.

Remote generation is replaced by FakeGenerationService: every capability
records its call, can be made to fail, and can be held on an asyncio.Event
gate so tests control interleaving.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from historian.core.caching.backends.memory import MemoryBackend
from historian.core.caching.store import PaperArchive, TimelineCache
from historian.core.config.models import JourneySettings
from historian.core.models.catalog import DEFAULT_CATALOG, CatalogEntry
from historian.core.models.journey import (
    Citation,
    SceneHotspot,
    TimelineArtifact,
    TimelineEvent,
)
from historian.core.pipeline.generation import GenerationPipeline
from historian.core.providers.base import (
    Identification,
    RelevanceVerdict,
    ResearchFindings,
    TimelinePlan,
)

# Two little-endian PCM16 samples: 0x0000, 0x7FFF
PCM_NARRATION_B64 = "AAD/fw=="


# ============================================================================
# Fake generation service
# ============================================================================


class FakeGenerationService:
    """In-memory GenerationService with call recording and failure injection."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.gates: dict[str, asyncio.Event] = {}
        self._failures: dict[str, list[BaseException]] = {}
        self._permanent: dict[str, BaseException] = {}

        self.identification = Identification(name="Eiffel Tower", location="Paris, France")
        self.plan_length: int | None = None
        self.plan_sources = [Citation(title="City Archive", url="https://archive.example/eiffel")]
        self.failing_subjects: set[str] = set()
        self.narration = PCM_NARRATION_B64
        self.hotspot_count = 2
        self.findings = ResearchFindings(
            approved=True,
            topic="Roman aqueducts",
            title="Water for an Empire",
            report="Aqueducts carried water into Rome for five centuries.",
            image_prompts=["Aqua Appia under construction", "Pont du Gard at dusk", "A castellum"],
            sources=[Citation(title="Encyclopedia", url="https://encyclopedia.example/aqueduct")],
        )
        self.verdict = RelevanceVerdict(relevant=True)

    # -- control -----------------------------------------------------------

    def fail(self, capability: str, error: BaseException, times: int | None = 1) -> None:
        """Make ``capability`` raise ``error`` (``times=None`` for every call)."""
        if times is None:
            self._permanent[capability] = error
        else:
            self._failures.setdefault(capability, []).extend([error] * times)

    def gate(self, capability: str) -> asyncio.Event:
        """Hold every call to ``capability`` until the returned event is set."""
        event = self.gates[capability] = asyncio.Event()
        return event

    def count(self, capability: str) -> int:
        return sum(1 for name, _ in self.calls if name == capability)

    def args_of(self, capability: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == capability]

    async def _enter(self, capability: str, *args: Any) -> None:
        self.calls.append((capability, args))
        gate = self.gates.get(capability)
        if gate is not None:
            await gate.wait()
        if capability in self._permanent:
            raise self._permanent[capability]
        queued = self._failures.get(capability)
        if queued:
            raise queued.pop(0)

    # -- GenerationService -------------------------------------------------

    def _plan(self, length: int) -> list[TimelineEvent]:
        count = length if self.plan_length is None else self.plan_length
        return [
            TimelineEvent(
                year=1850 + 50 * i,
                title=f"Era {i}",
                description=f"What happened in era {i}",
                visual_prompt=f"Scene of era {i}",
            )
            for i in range(count)
        ]

    async def identify(self, image_b64: str) -> Identification:
        await self._enter("identify", image_b64)
        return self.identification

    async def plan_timeline(self, subject_name: str, location: str, length: int) -> TimelinePlan:
        await self._enter("plan_timeline", subject_name, location, length)
        if subject_name in self.failing_subjects:
            raise RuntimeError(f"Planner unavailable for {subject_name}")
        return TimelinePlan(events=self._plan(length), sources=self.plan_sources)

    async def plan_timeline_from_report(self, topic: str, report: str, length: int) -> TimelinePlan:
        await self._enter("plan_timeline_from_report", topic, report, length)
        return TimelinePlan(events=self._plan(length))

    async def render_image(
        self,
        event: TimelineEvent,
        subject_name: str,
        reference_image_b64: str | None = None,
    ) -> str:
        await self._enter("render_image", event.year, subject_name, reference_image_b64)
        return f"scene{event.year}"

    async def identify_hotspots(
        self, image_b64: str, subject_name: str, year: int
    ) -> list[SceneHotspot]:
        await self._enter("identify_hotspots", image_b64, subject_name, year)
        return [
            SceneHotspot(
                id=SceneHotspot.make_id(i, year),
                name=f"Feature {i}",
                description=f"Feature {i} in {year}",
                x=0.25 * (i + 1),
                y=0.5,
            )
            for i in range(self.hotspot_count)
        ]

    async def synthesize_narration(self, subject_name: str, timeline: list[TimelineEvent]) -> str:
        await self._enter("synthesize_narration", subject_name, len(timeline))
        return self.narration

    async def conduct_research(self, audio_b64: str) -> ResearchFindings:
        await self._enter("conduct_research", audio_b64)
        return self.findings

    async def validate_relevance(
        self, subject_name: str, year: int, content: str, is_audio: bool
    ) -> RelevanceVerdict:
        await self._enter("validate_relevance", subject_name, year, content, is_audio)
        return self.verdict

    async def render_research_image(self, prompt: str) -> str:
        await self._enter("render_research_image", prompt)
        return f"illustration-{len(self.args_of('render_research_image'))}"


# ============================================================================
# Path Fixtures
# ============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def provider() -> FakeGenerationService:
    """Fresh fake generation service."""
    return FakeGenerationService()


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def timeline_cache(backend: MemoryBackend) -> TimelineCache:
    """Timeline cache over an in-memory backend."""
    return TimelineCache(backend)


@pytest.fixture
def paper_archive() -> PaperArchive:
    return PaperArchive(MemoryBackend())


@pytest.fixture
def journey_settings() -> JourneySettings:
    return JourneySettings()


@pytest.fixture
def pipeline(
    provider: FakeGenerationService,
    timeline_cache: TimelineCache,
    journey_settings: JourneySettings,
) -> GenerationPipeline:
    """Pipeline wired to the fake service and in-memory cache."""
    return GenerationPipeline(provider, timeline_cache, journey_settings)


# ============================================================================
# Data Fixtures
# ============================================================================


@pytest.fixture
def eiffel() -> CatalogEntry:
    return DEFAULT_CATALOG[0]


@pytest.fixture
def catalog() -> list[CatalogEntry]:
    """Three-entry catalog (small enough to reason about fleet behaviour)."""
    return list(DEFAULT_CATALOG[:3])


@pytest.fixture
def make_artifact() -> Callable[..., TimelineArtifact]:
    """Factory for ready artifacts with the given events already generated."""

    def _make(
        entity_id: str = "eiffel",
        generated: Iterable[int] = (0,),
        length: int = 4,
        subject_name: str = "Eiffel Tower",
    ) -> TimelineArtifact:
        done = set(generated)
        timeline = []
        for i in range(length):
            event = TimelineEvent(
                year=1850 + 50 * i,
                title=f"Era {i}",
                description=f"What happened in era {i}",
                visual_prompt=f"Scene of era {i}",
            )
            if i in done:
                event = event.with_image(f"data:image/jpeg;base64,scene{event.year}")
            timeline.append(event)
        return TimelineArtifact(
            id=entity_id,
            subject_name=subject_name,
            subject_location="Paris, France",
            timeline=timeline,
            narration_audio=PCM_NARRATION_B64,
        )

    return _make
