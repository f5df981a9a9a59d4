"""Research intake: spoken request → archived dossier → journey."""

from __future__ import annotations

import asyncio
import logging

from historian.core.caching.store import PaperArchive
from historian.core.config.models import JourneySettings
from historian.core.errors import ResearchRejectedError
from historian.core.models.journey import TimelineArtifact, now_ms
from historian.core.models.research import ResearchPaper
from historian.core.pipeline.generation import GenerationPipeline
from historian.core.pipeline.request import JourneyRequest
from historian.core.pipeline.state import StatusListener
from historian.core.providers.base import GenerationService

logger = logging.getLogger(__name__)

ILLUSTRATION_DATA_URI_PREFIX = "data:image/png;base64,"


class ResearchDesk:
    """Turns spoken research requests into dossiers and dossiers into journeys."""

    def __init__(
        self,
        provider: GenerationService,
        archive: PaperArchive,
        settings: JourneySettings | None = None,
    ) -> None:
        self.provider = provider
        self.archive = archive
        self.settings = settings or JourneySettings()

    async def conduct(self, audio_b64: str) -> ResearchPaper:
        """Research a spoken request and archive the resulting dossier.

        Args:
            audio_b64: Recorded request (base64)

        Returns:
            The archived paper

        Raises:
            ResearchRejectedError: If the request was declined or produced no report
        """
        findings = await self.provider.conduct_research(audio_b64)

        if not (findings.approved and findings.title and findings.report):
            reason = findings.reason or "Research request could not be fulfilled."
            logger.info(f"Research request rejected: {reason}")
            raise ResearchRejectedError(reason)

        prompts = findings.image_prompts[: self.settings.research_image_limit]
        images = await self._illustrate(prompts)

        paper = ResearchPaper(
            id=f"paper-{now_ms()}",
            topic=findings.topic or findings.title,
            title=findings.title,
            content=findings.report,
            images=images,
            sources=findings.sources,
        )
        await self.archive.put(paper)
        logger.info(f"Archived research paper {paper.id}: {paper.title} ({len(images)} images)")
        return paper

    async def _illustrate(self, prompts: list[str]) -> list[str]:
        results = await asyncio.gather(
            *(self.provider.render_research_image(p) for p in prompts), return_exceptions=True
        )
        images = []
        for prompt, result in zip(prompts, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"Research illustration failed for {prompt!r}: {result}")
                continue
            images.append(f"{ILLUSTRATION_DATA_URI_PREFIX}{result}")
        return images

    async def papers(self) -> list[ResearchPaper]:
        """Archived papers, newest first."""
        return sorted(await self.archive.list_all(), key=lambda p: p.timestamp, reverse=True)

    async def launch_journey(
        self,
        paper: ResearchPaper,
        pipeline: GenerationPipeline,
        on_status: StatusListener | None = None,
    ) -> TimelineArtifact:
        """Generate (or load) the journey for a paper, then discard the paper.

        The paper is kept when generation fails so the launch can be retried.
        """
        artifact = await pipeline.run(JourneyRequest.from_paper(paper), on_status)
        await self.archive.delete(paper.id)
        logger.info(f"Launched journey {artifact.id} from paper {paper.id}")
        return artifact
