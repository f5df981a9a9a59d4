"""Research dossier model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from historian.core.models.journey import Citation, now_ms


class ResearchPaper(BaseModel):
    """Grounded research dossier produced from a spoken request.

    Persisted until it is launched as a journey.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    topic: str
    title: str
    content: str
    images: list[str] = Field(default_factory=list)
    sources: list[Citation] = Field(default_factory=list)
    timestamp: int = Field(default_factory=now_ms)
    schema_version: int = 1

    @property
    def journey_id(self) -> str:
        """Id of the journey launched from this paper."""
        return f"journey-from-paper-{self.id}"
