"""Journey generation requests."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from historian.core.models.catalog import CatalogEntry
from historian.core.models.journey import Citation, now_ms
from historian.core.models.research import ResearchPaper

RESEARCH_LOCATION = "Historical Records"


class JourneySource(str, Enum):
    """What a journey is generated from."""

    IMAGE = "image"
    PRESET = "preset"
    RESEARCH = "research"


def strip_data_uri(value: str) -> str:
    """Return the base64 payload of a data URI (or the value unchanged)."""
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


class JourneyRequest(BaseModel):
    """Everything the pipeline needs to generate one journey."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    entity_id: str
    kind: JourneySource
    subject_name: str = "Target Site"
    subject_location: str = "Unknown"
    source_image: str | None = Field(default=None, description="Uploaded photo (base64)")
    topic: str | None = None
    report: str | None = None
    reference_image: str | None = Field(
        default=None, description="Base64 image guiding the first scene"
    )
    sources: list[Citation] = Field(default_factory=list)
    is_user_submitted: bool = False

    @classmethod
    def from_image(cls, image_b64: str, entity_id: str | None = None) -> JourneyRequest:
        """Request for an uploaded photo; the subject is identified from the image."""
        image = strip_data_uri(image_b64)
        return cls(
            entity_id=entity_id or f"upload-{now_ms()}",
            kind=JourneySource.IMAGE,
            source_image=image,
            reference_image=image,
            is_user_submitted=True,
        )

    @classmethod
    def from_preset(cls, entry: CatalogEntry) -> JourneyRequest:
        return cls(
            entity_id=entry.id,
            kind=JourneySource.PRESET,
            subject_name=entry.name,
            subject_location=entry.location,
        )

    @classmethod
    def from_paper(cls, paper: ResearchPaper) -> JourneyRequest:
        """Request for a journey planned from a research dossier."""
        return cls(
            entity_id=paper.journey_id,
            kind=JourneySource.RESEARCH,
            subject_name=paper.title,
            subject_location=RESEARCH_LOCATION,
            topic=paper.topic,
            report=paper.content,
            reference_image=strip_data_uri(paper.images[0]) if paper.images else None,
            sources=list(paper.sources),
            is_user_submitted=True,
        )
