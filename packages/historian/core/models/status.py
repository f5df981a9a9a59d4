"""Generation status and per-entity status enums."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from historian.core.retry.classifier import ErrorKind


class GenerationStage(str, Enum):
    """Stage of a single generation run."""

    IDLE = "idle"
    IDENTIFYING = "identifying"
    PLANNING = "planning"
    VISUALIZING = "visualizing"
    NARRATING = "narrating"
    READY = "ready"
    ERROR = "error"


class GenerationStatus(BaseModel):
    """Snapshot reported to status listeners during a run.

    Transient: never persisted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    stage: GenerationStage
    message: str = ""
    progress: int = Field(default=0, ge=0, le=100)
    error_kind: ErrorKind | None = None


class EntityStatus(str, Enum):
    """Background pregeneration status of a catalog entity."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"

