"""Staged, cache-first journey generation.

One run per entity id at a time: concurrent callers for the same id join
the run already in flight instead of starting another remote sequence.
A run keeps going when the caller that started it goes away; its result
is still cached.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging

from historian.core.caching.store import TimelineCache
from historian.core.config.models import JourneySettings
from historian.core.errors import CredentialRequiredError, GenerationError, MalformedResponseError
from historian.core.models.journey import TimelineArtifact
from historian.core.models.status import GenerationStage
from historian.core.pipeline.request import JourneyRequest, JourneySource
from historian.core.pipeline.state import GenerationStateMachine, StatusListener
from historian.core.providers.base import GenerationService, TimelinePlan
from historian.core.retry.classifier import DEFAULT_CLASSIFIER, ErrorClassifier, ErrorKind
from historian.core.utils.logging import get_logger

logger = logging.getLogger(__name__)

IMAGE_DATA_URI_PREFIX = "data:image/jpeg;base64,"


def image_data_uri(image_b64: str) -> str:
    return f"{IMAGE_DATA_URI_PREFIX}{image_b64}"


@dataclass
class _Run:
    """A generation in flight and the state machine reporting on it."""

    request: JourneyRequest
    machine: GenerationStateMachine
    task: asyncio.Task[TimelineArtifact]


class GenerationPipeline:
    """Drive a journey from request to cached artifact.

    Stages: identifying (uploaded photos only), planning, visualizing and
    narrating, then ready. A cache hit goes straight to ready.
    """

    def __init__(
        self,
        provider: GenerationService,
        cache: TimelineCache,
        settings: JourneySettings | None = None,
        classifier: ErrorClassifier | None = None,
    ) -> None:
        """
        Args:
            provider: Remote generation capabilities
            cache: Artifact store (checked first, written on success)
            settings: Journey behaviour (timeline length, narration coupling)
            classifier: Maps failures to error kinds
        """
        self.provider = provider
        self.cache = cache
        self.settings = settings or JourneySettings()
        self.classifier = classifier or DEFAULT_CLASSIFIER
        self._inflight: dict[str, _Run] = {}
        self._refresh_locks: dict[str, asyncio.Lock] = {}

    def is_running(self, entity_id: str) -> bool:
        return entity_id in self._inflight

    async def run(
        self,
        request: JourneyRequest,
        on_status: StatusListener | None = None,
        *,
        force: bool = False,
    ) -> TimelineArtifact:
        """Return the journey for ``request``, generating it on a cache miss.

        Args:
            request: What to generate
            on_status: Receives every status update of the run
            force: Bypass the cache (same as ``refresh``)

        Returns:
            The cached or newly generated artifact

        Raises:
            CredentialRequiredError: If the service rejected the credential
            GenerationError: If any stage failed
        """
        if force:
            return await self.refresh(request, on_status)

        existing = self._inflight.get(request.entity_id)
        if existing is not None:
            logger.debug(f"Joining in-flight generation for {request.entity_id}")
            return await self._join(existing, on_status)

        return await self._join(self._start(request, bypass_cache=False), on_status)

    async def refresh(
        self, request: JourneyRequest, on_status: StatusListener | None = None
    ) -> TimelineArtifact:
        """Discard the cached journey and generate it again.

        Waits for any run already in flight for the same id to settle first.
        """
        entity_id = request.entity_id
        lock = self._refresh_locks.setdefault(entity_id, asyncio.Lock())
        async with lock:
            while (existing := self._inflight.get(entity_id)) is not None:
                logger.info(f"Refresh of {entity_id} waiting for in-flight generation")
                await asyncio.wait({existing.task})
            run = self._start(request, bypass_cache=True)

        return await self._join(run, on_status)

    def _start(self, request: JourneyRequest, bypass_cache: bool) -> _Run:
        machine = GenerationStateMachine(request.entity_id)
        task = asyncio.create_task(
            self._generate(request, machine, bypass_cache),
            name=f"generate:{request.entity_id}",
        )
        run = _Run(request=request, machine=machine, task=task)
        self._inflight[request.entity_id] = run
        task.add_done_callback(lambda t: self._finished(run, t))
        return run

    def _finished(self, run: _Run, task: asyncio.Task[TimelineArtifact]) -> None:
        if self._inflight.get(run.request.entity_id) is run:
            del self._inflight[run.request.entity_id]
        # Mark the outcome as retrieved when every caller has gone away.
        if not task.cancelled():
            task.exception()

    async def _join(self, run: _Run, on_status: StatusListener | None) -> TimelineArtifact:
        unsubscribe = run.machine.subscribe(on_status) if on_status else None
        try:
            return await asyncio.shield(run.task)
        finally:
            if unsubscribe is not None:
                unsubscribe()

    async def _generate(
        self, request: JourneyRequest, machine: GenerationStateMachine, bypass_cache: bool
    ) -> TimelineArtifact:
        log = get_logger(__name__, entity_id=request.entity_id)
        try:
            if bypass_cache:
                await self.cache.delete(request.entity_id)
            else:
                machine.update("Checking archives...", 10)
                cached = await self.cache.get(request.entity_id)
                if cached is not None:
                    log.info(f"Cache hit for {request.entity_id}")
                    machine.complete("Loaded from archives")
                    return cached

            name, location = request.subject_name, request.subject_location
            if request.kind is JourneySource.IMAGE and request.source_image:
                machine.transition(GenerationStage.IDENTIFYING, "Analyzing target structure...", 15)
                identification = await self.provider.identify(request.source_image)
                name, location = identification.name, identification.location
                log.info(f"Identified {request.entity_id} as {name} ({location})")

            plan = await self._plan(request, machine, name, location)

            machine.transition(
                GenerationStage.VISUALIZING, "Visualizing history & narration...", 60
            )
            first_image, narration = await self._visualize_and_narrate(
                request, machine, plan, name
            )

            timeline = list(plan.events)
            timeline[0] = timeline[0].with_image(image_data_uri(first_image))
            artifact = TimelineArtifact(
                id=request.entity_id,
                subject_name=name,
                subject_location=location,
                source_image=request.source_image,
                timeline=timeline,
                narration_audio=narration or None,
                sources=plan.sources or request.sources,
                is_user_submitted=request.is_user_submitted,
            )

            if not await self.cache.put(artifact):
                log.warning(f"Journey {request.entity_id} generated but not persisted")

            machine.complete("Journey ready")
            return artifact

        except Exception as e:
            kind = self.classifier.classify(e)
            failed_stage = machine.stage
            message = str(e) or e.__class__.__name__
            log.error(f"Generation of {request.entity_id} failed during {failed_stage.value}: {message}")
            machine.fail(message, kind)

            error_cls = CredentialRequiredError if kind is ErrorKind.CREDENTIAL else GenerationError
            raise error_cls(
                message, entity_id=request.entity_id, stage=failed_stage, error_kind=kind
            ) from e

    async def _plan(
        self,
        request: JourneyRequest,
        machine: GenerationStateMachine,
        name: str,
        location: str,
    ) -> TimelinePlan:
        length = self.settings.timeline_length

        if request.kind is JourneySource.RESEARCH:
            machine.transition(GenerationStage.PLANNING, "Synthesizing historical moments...", 30)
            report = (request.report or "")[: self.settings.report_char_limit]
            plan = await self.provider.plan_timeline_from_report(
                request.topic or name, report, length
            )
        else:
            machine.transition(GenerationStage.PLANNING, f"Researching {name}...", 30)
            plan = await self.provider.plan_timeline(name, location, length)

        if not plan.events:
            raise MalformedResponseError("Timeline plan contained no events", operation="plan")
        if len(plan.events) != length:
            logger.warning(
                f"Planner returned {len(plan.events)} events for {request.entity_id} "
                f"(requested {length}); keeping them as planned"
            )
        return plan

    async def _visualize_and_narrate(
        self,
        request: JourneyRequest,
        machine: GenerationStateMachine,
        plan: TimelinePlan,
        name: str,
    ) -> tuple[str, str | None]:
        narration_task = asyncio.ensure_future(
            self.provider.synthesize_narration(name, list(plan.events))
        )

        async def render_first() -> str:
            image = await self.provider.render_image(
                plan.events[0], name, request.reference_image
            )
            if not narration_task.done():
                machine.transition(GenerationStage.NARRATING, "Composing narration...", 80)
            return image

        image_result, narration_result = await asyncio.gather(
            render_first(), narration_task, return_exceptions=True
        )

        if isinstance(image_result, BaseException):
            raise image_result
        if isinstance(narration_result, BaseException):
            if not self.settings.narration_best_effort:
                raise narration_result
            logger.warning(
                f"Narration failed for {request.entity_id}; continuing without audio: "
                f"{narration_result}"
            )
            return image_result, None

        return image_result, narration_result
