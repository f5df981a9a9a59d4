"""Exception hierarchy for Historian.

Remote failures surface as RemoteServiceError (classified by the retry
layer). The generation pipeline wraps whatever ended a run in
GenerationError or CredentialRequiredError, preserving the original message
verbatim and chaining the original exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from historian.core.models.status import GenerationStage
    from historian.core.retry.classifier import ErrorKind


class HistorianError(Exception):
    """Base exception for all Historian errors."""


class RemoteServiceError(HistorianError):
    """Error reported by (or about) the remote generation service.

    Attributes:
        message: Human-readable error description
        status_code: HTTP-style status code (if available)
        operation: Name of the remote capability that failed
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.operation = operation

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(message={self.message!r}, "
            f"status_code={self.status_code}, operation={self.operation!r})"
        )


class EmptyResponseError(RemoteServiceError):
    """Remote call succeeded but returned no usable payload (e.g. no image data)."""


class MalformedResponseError(RemoteServiceError):
    """Remote call returned a payload that does not match the expected schema."""


class GenerationError(HistorianError):
    """A generation run failed.

    ``str(error)`` is the original failure message, unchanged. The original
    exception is available as ``__cause__``.

    Attributes:
        entity_id: Id of the entity being generated
        stage: Stage that was active when the run failed
        error_kind: Classification of the underlying failure
    """

    def __init__(
        self,
        message: str,
        *,
        entity_id: str,
        stage: GenerationStage,
        error_kind: ErrorKind,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.entity_id = entity_id
        self.stage = stage
        self.error_kind = error_kind


class CredentialRequiredError(GenerationError):
    """Run failed because the service credential is missing, invalid or out of quota.

    Callers should prompt for a new credential rather than retry.
    """


class MissingCredentialError(HistorianError, ValueError):
    """No API key is configured for the generation provider."""


class AudioDecodeError(HistorianError):
    """Narration payload could not be decoded by any strategy."""

    def __init__(self, message: str, causes: list[BaseException] | None = None) -> None:
        super().__init__(message)
        self.causes = causes or []


class ResearchRejectedError(HistorianError):
    """Research request was declined (not a historical topic, or no usable report)."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class IrrelevantNoteError(HistorianError):
    """User note was judged irrelevant to the journey it targets."""

    def __init__(self, feedback: str) -> None:
        super().__init__(feedback)
        self.feedback = feedback
