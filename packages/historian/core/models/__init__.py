"""Historian data model."""

from historian.core.models.catalog import DEFAULT_CATALOG, CatalogEntry
from historian.core.models.journey import (
    Citation,
    NoteType,
    SceneHotspot,
    TimelineArtifact,
    TimelineEvent,
    UserNote,
    now_ms,
)
from historian.core.models.research import ResearchPaper
from historian.core.models.status import EntityStatus, GenerationStage, GenerationStatus

__all__ = [
    "DEFAULT_CATALOG",
    "CatalogEntry",
    "Citation",
    "EntityStatus",
    "GenerationStage",
    "GenerationStatus",
    "NoteType",
    "ResearchPaper",
    "SceneHotspot",
    "TimelineArtifact",
    "TimelineEvent",
    "UserNote",
    "now_ms",
]
