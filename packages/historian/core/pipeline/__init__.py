"""Journey generation pipeline.

Example:
    >>> pipeline = GenerationPipeline(provider, cache)
    >>> artifact = await pipeline.run(JourneyRequest.from_preset(entry), on_status=print)
"""

from historian.core.pipeline.generation import GenerationPipeline, image_data_uri
from historian.core.pipeline.request import JourneyRequest, JourneySource, strip_data_uri
from historian.core.pipeline.state import (
    GenerationStateMachine,
    InvalidTransitionError,
    StatusListener,
)

__all__ = [
    "GenerationPipeline",
    "GenerationStateMachine",
    "InvalidTransitionError",
    "JourneyRequest",
    "JourneySource",
    "StatusListener",
    "image_data_uri",
    "strip_data_uri",
]
