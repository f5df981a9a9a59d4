"""Remote generation capabilities used by the orchestration layer.

Every capability is an async call that may fail transiently. Providers
wrap their own remote calls in ResilientCall, so callers only ever see
the final outcome.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from historian.core.models.journey import Citation, SceneHotspot, TimelineEvent


class Identification(BaseModel):
    """Subject recognised in an uploaded photo."""

    model_config = ConfigDict(frozen=True)

    name: str
    location: str


class TimelinePlan(BaseModel):
    """Planned eras (not yet visualized) plus the sources the plan drew on."""

    model_config = ConfigDict(frozen=True)

    events: list[TimelineEvent]
    sources: list[Citation] = Field(default_factory=list)


class ResearchFindings(BaseModel):
    """Structured outcome of a spoken research request."""

    model_config = ConfigDict(frozen=True)

    approved: bool
    reason: str | None = None
    topic: str | None = None
    title: str | None = None
    report: str | None = None
    image_prompts: list[str] = Field(default_factory=list)
    sources: list[Citation] = Field(default_factory=list)


class RelevanceVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    relevant: bool
    feedback: str = ""


class GenerationService(Protocol):
    """Protocol for remote generation providers.

    Binary payloads (images, audio) are exchanged as base64 strings without
    a data-URI prefix.
    """

    async def identify(self, image_b64: str) -> Identification:
        """Identify the landmark shown in an image."""
        ...

    async def plan_timeline(self, subject_name: str, location: str, length: int) -> TimelinePlan:
        """Research a subject and plan ``length`` eras."""
        ...

    async def plan_timeline_from_report(self, topic: str, report: str, length: int) -> TimelinePlan:
        """Plan ``length`` eras from an existing research report."""
        ...

    async def render_image(
        self,
        event: TimelineEvent,
        subject_name: str,
        reference_image_b64: str | None = None,
    ) -> str:
        """Render the scene for one era.

        Raises:
            EmptyResponseError: If the service returns no image
        """
        ...

    async def identify_hotspots(
        self, image_b64: str, subject_name: str, year: int
    ) -> list[SceneHotspot]:
        """Locate points of interest in a rendered scene."""
        ...

    async def synthesize_narration(
        self, subject_name: str, timeline: list[TimelineEvent]
    ) -> str:
        """Write and voice a narration for the journey.

        Returns:
            Base64 audio, or an empty string if the service produced none
        """
        ...

    async def conduct_research(self, audio_b64: str) -> ResearchFindings:
        """Run grounded research on a spoken request."""
        ...

    async def validate_relevance(
        self, subject_name: str, year: int, content: str, is_audio: bool
    ) -> RelevanceVerdict:
        """Judge whether a user note relates to the subject."""
        ...

    async def render_research_image(self, prompt: str) -> str:
        """Render an illustration for a research dossier."""
        ...
