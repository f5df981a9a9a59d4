"""Journey data model: timeline events, hotspots, notes and the persisted artifact."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
import time
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SceneHotspot(BaseModel):
    """Named point of interest in a generated scene.

    Coordinates are normalized to the image (equirectangular when the scene
    is panoramic).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    description: str
    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)

    @staticmethod
    def make_id(index: int, year: int) -> str:
        return f"hotspot-{index}-{year}"


class TimelineEvent(BaseModel):
    """One era of a journey.

    An event is ``generated`` exactly when it carries an image. Once generated
    it only changes by attaching hotspots.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    year: int
    title: str
    description: str
    visual_prompt: str
    image_ref: str | None = None
    generated: bool = False
    panoramic: bool = True
    hotspots: list[SceneHotspot] | None = None

    @model_validator(mode="after")
    def _check_generated(self) -> Self:
        if self.generated != (self.image_ref is not None):
            raise ValueError("generated must be True exactly when image_ref is set")
        return self

    def with_image(self, image_ref: str) -> TimelineEvent:
        """Return a generated copy of this event carrying ``image_ref``."""
        return self.model_copy(update={"image_ref": image_ref, "generated": True})

    def with_hotspots(self, hotspots: list[SceneHotspot]) -> TimelineEvent:
        return self.model_copy(update={"hotspots": list(hotspots)})


class Citation(BaseModel):
    """Source record returned by grounded research."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str
    url: str


class NoteType(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


class UserNote(BaseModel):
    """Text or recorded note attached to a journey."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    type: NoteType
    content: str
    timestamp: int = Field(default_factory=now_ms)
    year_context: int | None = None


class TimelineArtifact(BaseModel):
    """Fully generated journey for one entity.

    This is the unit of persistence. The timeline length is fixed when the
    artifact is first planned and is never changed afterwards. All changes
    produce a new artifact (see ``with_event`` / ``with_note``) that is then
    written back through the cache.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    subject_name: str
    subject_location: str
    source_image: str | None = None
    timeline: list[TimelineEvent]
    narration_audio: str | None = None
    sources: list[Citation] = Field(default_factory=list)
    is_user_submitted: bool = False
    user_notes: list[UserNote] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    schema_version: int = 1

    @property
    def generated_indices(self) -> list[int]:
        return [i for i, event in enumerate(self.timeline) if event.generated]

    def with_event(self, index: int, event: TimelineEvent) -> TimelineArtifact:
        """Return a copy with the event at ``index`` replaced.

        Raises:
            IndexError: If ``index`` is outside the timeline
        """
        if not 0 <= index < len(self.timeline):
            raise IndexError(f"Event index {index} out of range for timeline of {len(self.timeline)}")
        timeline = list(self.timeline)
        timeline[index] = event
        return self.model_copy(update={"timeline": timeline})

    def with_note(self, note: UserNote) -> TimelineArtifact:
        return self.model_copy(update={"user_notes": [*self.user_notes, note]})

    def without_note(self, note_id: str) -> TimelineArtifact:
        return self.model_copy(
            update={"user_notes": [n for n in self.user_notes if n.id != note_id]}
        )
