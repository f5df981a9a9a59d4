"""Generation provider factory."""

from __future__ import annotations

import logging

from historian.core.config.models import AppConfig
from historian.core.errors import MissingCredentialError
from historian.core.providers.base import GenerationService
from historian.core.retry.resilient import ResilientCall

logger = logging.getLogger(__name__)


def create_generation_provider(
    app_config: AppConfig, retry: ResilientCall | None = None
) -> GenerationService:
    """Create the configured generation provider.

    Args:
        app_config: Application config (provider section and retry policy)
        retry: Retry wrapper to share; built from ``app_config.retry`` if None

    Returns:
        Provider instance

    Raises:
        MissingCredentialError: If the provider has no API key
        ValueError: If the provider is unknown
    """
    provider_config = app_config.provider
    retry = retry or ResilientCall.from_settings(app_config.retry)

    if provider_config.name == "gemini":
        if not provider_config.api_key:
            raise MissingCredentialError(
                "Gemini API key not configured (set GEMINI_API_KEY or provider.api_key)"
            )

        from historian.core.providers.gemini import GeminiProvider

        logger.debug(f"Creating Gemini provider (text model {provider_config.text_model})")
        return GeminiProvider(provider_config, retry=retry)

    raise ValueError(f"Unknown generation provider: {provider_config.name}")
