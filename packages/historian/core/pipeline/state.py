"""Generation run state machine with status fan-out."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import time

from historian.core.models.status import GenerationStage, GenerationStatus
from historian.core.retry.classifier import ErrorKind

logger = logging.getLogger(__name__)

StatusListener = Callable[[GenerationStatus], None]


@dataclass(frozen=True)
class StageTransition:
    """Record of a stage change."""

    from_stage: GenerationStage
    to_stage: GenerationStage
    timestamp: float
    progress: int
    message: str


class InvalidTransitionError(Exception):
    """Raised when an invalid stage transition is attempted."""


class GenerationStateMachine:
    """Tracks one generation run and notifies listeners of every status change.

    Progress never decreases: a lower value than the current one is raised
    to the current one.
    """

    VALID_TRANSITIONS: dict[GenerationStage, list[GenerationStage]] = {
        GenerationStage.IDLE: [
            GenerationStage.IDENTIFYING,
            GenerationStage.PLANNING,
            GenerationStage.READY,  # Cache hit
            GenerationStage.ERROR,
        ],
        GenerationStage.IDENTIFYING: [
            GenerationStage.PLANNING,
            GenerationStage.ERROR,
        ],
        GenerationStage.PLANNING: [
            GenerationStage.VISUALIZING,
            GenerationStage.ERROR,
        ],
        GenerationStage.VISUALIZING: [
            GenerationStage.NARRATING,
            GenerationStage.READY,  # Narration finished before the image
            GenerationStage.ERROR,
        ],
        GenerationStage.NARRATING: [
            GenerationStage.READY,
            GenerationStage.ERROR,
        ],
    }

    # Terminal states (no transitions out)
    TERMINAL_STATES = {GenerationStage.READY, GenerationStage.ERROR}

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        self.status = GenerationStatus(stage=GenerationStage.IDLE)
        self.history: list[StageTransition] = []
        self._listeners: list[StatusListener] = []

    @property
    def stage(self) -> GenerationStage:
        return self.status.stage

    @property
    def progress(self) -> int:
        return self.status.progress

    def is_terminal(self) -> bool:
        return self.stage in self.TERMINAL_STATES

    def can_transition_to(self, stage: GenerationStage) -> bool:
        return stage in self.VALID_TRANSITIONS.get(self.stage, [])

    def subscribe(self, listener: StatusListener, replay: bool = True) -> Callable[[], None]:
        """Register a status listener.

        Args:
            listener: Called with every new status
            replay: Deliver the current status immediately (late joiners)

        Returns:
            Callable that detaches the listener
        """
        self._listeners.append(listener)
        if replay and (self.stage is not GenerationStage.IDLE or self.progress > 0):
            self._deliver(listener, self.status)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, message: str, progress: int | None = None) -> None:
        """Report progress within the current stage."""
        self._publish(self.stage, message, progress, None)

    def transition(
        self, to_stage: GenerationStage, message: str = "", progress: int | None = None
    ) -> None:
        """Move to a new stage.

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        if not self.can_transition_to(to_stage):
            raise InvalidTransitionError(
                f"Invalid transition: {self.stage.value} → {to_stage.value}. "
                f"Valid transitions: {[s.value for s in self.VALID_TRANSITIONS.get(self.stage, [])]}"
            )
        self._publish(to_stage, message, progress, None)

    def complete(self, message: str = "") -> None:
        self.transition(GenerationStage.READY, message, 100)

    def fail(self, message: str, error_kind: ErrorKind) -> None:
        """Enter the error stage, keeping the progress reached so far."""
        if self.is_terminal():
            logger.warning(f"{self.entity_id}: ignoring failure after {self.stage.value}: {message}")
            return
        self._publish(GenerationStage.ERROR, message, None, error_kind)

    def _publish(
        self,
        stage: GenerationStage,
        message: str,
        progress: int | None,
        error_kind: ErrorKind | None,
    ) -> None:
        previous = self.status
        new_progress = previous.progress if progress is None else max(previous.progress, progress)
        self.status = GenerationStatus(
            stage=stage, message=message, progress=min(new_progress, 100), error_kind=error_kind
        )

        if stage is not previous.stage:
            self.history.append(
                StageTransition(
                    from_stage=previous.stage,
                    to_stage=stage,
                    timestamp=time.time(),
                    progress=self.status.progress,
                    message=message,
                )
            )
            logger.info(
                f"{self.entity_id}: {previous.stage.value} → {stage.value} "
                f"({self.status.progress}%) {message}"
            )

        for listener in list(self._listeners):
            self._deliver(listener, self.status)

    def _deliver(self, listener: StatusListener, status: GenerationStatus) -> None:
        try:
            listener(status)
        except Exception:
            logger.exception(f"{self.entity_id}: status listener failed")
