"""Remote generation providers."""

from historian.core.providers.base import (
    GenerationService,
    Identification,
    RelevanceVerdict,
    ResearchFindings,
    TimelinePlan,
)
from historian.core.providers.factory import create_generation_provider

__all__ = [
    "GenerationService",
    "Identification",
    "RelevanceVerdict",
    "ResearchFindings",
    "TimelinePlan",
    "create_generation_provider",
]
