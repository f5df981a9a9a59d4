"""Historian session - wires configuration to the shared services.

The session owns one instance of each service (provider, caches, pipeline,
scheduler, research desk, notes ledger) so concurrent callers share the
same per-id locks and in-flight bookkeeping.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from historian.core.audio.decoder import AudioDecoder
from historian.core.caching.backends.fs import FSBackend
from historian.core.caching.backends.memory import MemoryBackend
from historian.core.caching.protocols import CacheBackend
from historian.core.caching.store import PaperArchive, TimelineCache
from historian.core.config.models import AppConfig
from historian.core.lazy.resolver import LazyVisualResolver
from historian.core.models.journey import TimelineArtifact
from historian.core.pipeline.generation import GenerationPipeline
from historian.core.providers.base import GenerationService
from historian.core.providers.factory import create_generation_provider
from historian.core.research.desk import ResearchDesk
from historian.core.research.notes import NotesLedger
from historian.core.retry.resilient import ResilientCall
from historian.core.scheduler.pregeneration import PregenerationScheduler

logger = logging.getLogger(__name__)


class HistorianSession:
    """Session coordinator for Historian services.

    Services are created lazily on first access.
    """

    def __init__(
        self,
        *,
        app_config: AppConfig | Path | str | None = None,
        provider: GenerationService | None = None,
    ):
        """Initialize session.

        Args:
            app_config: AppConfig instance, path, or None (uses default path)
            provider: Pre-built generation provider (created from config if None)

        Raises:
            ValidationError: If the config is invalid
        """
        self.app_config: AppConfig = self._resolve_config(app_config)
        if provider is not None:
            self._provider = provider

        logger.debug(
            f"Session initialized: cache={self.app_config.cache.backend}:"
            f"{self.app_config.cache.cache_dir}, catalog={len(self.app_config.catalog)}"
        )

    @staticmethod
    def _resolve_config(value: Any) -> AppConfig:
        """Resolve config from value, path, or default.

        Raises:
            TypeError: If value is wrong type
        """
        if value is None:
            return AppConfig.load_or_default()
        elif isinstance(value, (Path, str)):
            return AppConfig.load_or_default(Path(value))
        elif isinstance(value, AppConfig):
            return value
        else:
            raise TypeError(f"Expected AppConfig, Path, str, or None; got {type(value).__name__}")

    def _backend(self, namespace: str) -> CacheBackend:
        if self.app_config.cache.backend == "memory":
            return MemoryBackend()
        return FSBackend(self.app_config.cache.cache_dir, namespace)

    @property
    def retry(self) -> ResilientCall:
        if not hasattr(self, "_retry"):
            self._retry = ResilientCall.from_settings(self.app_config.retry)
        return self._retry

    @property
    def provider(self) -> GenerationService:
        """Generation provider (raises MissingCredentialError when no API key is configured)."""
        if not hasattr(self, "_provider"):
            self._provider = create_generation_provider(self.app_config, self.retry)
        return self._provider

    @property
    def timeline_cache(self) -> TimelineCache:
        if not hasattr(self, "_timeline_cache"):
            self._timeline_cache = TimelineCache(self._backend(TimelineCache.NAMESPACE))
        return self._timeline_cache

    @property
    def paper_archive(self) -> PaperArchive:
        if not hasattr(self, "_paper_archive"):
            self._paper_archive = PaperArchive(self._backend(PaperArchive.NAMESPACE))
        return self._paper_archive

    @property
    def pipeline(self) -> GenerationPipeline:
        if not hasattr(self, "_pipeline"):
            self._pipeline = GenerationPipeline(
                self.provider,
                self.timeline_cache,
                self.app_config.journey,
                self.retry.classifier,
            )
        return self._pipeline

    @property
    def scheduler(self) -> PregenerationScheduler:
        if not hasattr(self, "_scheduler"):
            self._scheduler = PregenerationScheduler(
                self.pipeline, self.timeline_cache, self.app_config.catalog
            )
        return self._scheduler

    @property
    def research_desk(self) -> ResearchDesk:
        if not hasattr(self, "_research_desk"):
            self._research_desk = ResearchDesk(
                self.provider, self.paper_archive, self.app_config.journey
            )
        return self._research_desk

    @property
    def notes(self) -> NotesLedger:
        if not hasattr(self, "_notes"):
            self._notes = NotesLedger(self.provider, self.timeline_cache)
        return self._notes

    @property
    def audio_decoder(self) -> AudioDecoder:
        if not hasattr(self, "_audio_decoder"):
            self._audio_decoder = AudioDecoder()
        return self._audio_decoder

    def resolver_for(self, artifact: TimelineArtifact, panoramic: bool = False) -> LazyVisualResolver:
        """Create a lazy scene resolver for a ready journey."""
        return LazyVisualResolver(
            self.provider,
            self.timeline_cache,
            artifact,
            panoramic=panoramic,
            settings=self.app_config.journey,
        )
