"""Configuration models for Historian."""

from __future__ import annotations

from pathlib import Path
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from historian.core.models.catalog import DEFAULT_CATALOG, CatalogEntry

# Number of eras a planned journey contains.
TIMELINE_LENGTH = 4

# Lazy generation fires for events closer than this to the scrub position.
LAZY_TRIGGER_DISTANCE = 1.1
PANORAMIC_TRIGGER_DISTANCE = 1.0


class ConfigBase(BaseModel):
    """Base class for all Historian configurations.

    Provides common functionality for loading from files with defaults.
    Subclasses must implement default_path() to specify their default location.
    """

    model_config = ConfigDict(extra="ignore")  # Forward compatibility

    @classmethod
    def default_path(cls) -> Path:
        """Return the default config file path for this config type."""
        raise NotImplementedError(f"{cls.__name__} must implement default_path()")

    @classmethod
    def load_or_default(cls, path: Path | str | None = None) -> Self:
        """Load config from path or use default path.

        Args:
            path: Path to config file, or None to use default

        Returns:
            Loaded config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValidationError: If config is invalid
        """
        # AppConfig needs environment variable loading for API keys
        if cls.__name__ == "AppConfig":
            from historian.core.config.loader import load_app_config

            return load_app_config(path)  # type: ignore[return-value]

        from historian.core.config.loader import load_config

        if path is None:
            path = cls.default_path()
        raw = load_config(path)
        return cls.model_validate(raw)


class ProviderConfig(BaseModel):
    """Remote generation service configuration."""

    name: str = Field(default="gemini", pattern="^(gemini)$", description="Provider backend")

    api_key: str | None = Field(
        default=None,
        description="Service API key (falls back to GEMINI_API_KEY / API_KEY env vars)",
    )

    text_model: str = Field(default="gemini-3-flash-preview", description="Text/planning model")

    image_model: str = Field(default="gemini-2.5-flash-image", description="Image model")

    tts_model: str = Field(default="gemini-2.5-flash-preview-tts", description="Speech model")

    voice: str = Field(default="Fenrir", description="Prebuilt narration voice")

    scene_aspect_ratio: str = Field(default="16:9", description="Aspect ratio for era scenes")

    research_aspect_ratio: str = Field(
        default="1:1", description="Aspect ratio for research illustrations"
    )


class RetrySettings(BaseModel):
    """Retry policy for remote calls."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay_ms: float = Field(default=1500.0, ge=0.0, description="Delay before first retry")
    jitter_ms: float = Field(default=1000.0, ge=0.0, description="Max uniform jitter per retry")
    backoff_factor: float = Field(default=1.5, ge=1.0, description="Delay growth per retry")


class JourneySettings(BaseModel):
    """Journey generation behaviour."""

    timeline_length: int = Field(
        default=TIMELINE_LENGTH, gt=0, description="Events requested from the planner"
    )

    lazy_trigger_distance: float = Field(default=LAZY_TRIGGER_DISTANCE, gt=0.0)

    panoramic_trigger_distance: float = Field(default=PANORAMIC_TRIGGER_DISTANCE, gt=0.0)

    narration_best_effort: bool = Field(
        default=False,
        description="Keep the journey when narration fails (narration_audio left empty)",
    )

    report_char_limit: int = Field(
        default=5000, gt=0, description="Research report characters passed to the planner"
    )

    research_image_limit: int = Field(
        default=2, ge=0, description="Illustrations rendered per research dossier"
    )


class CacheSettings(BaseModel):
    """Artifact persistence configuration."""

    backend: str = Field(default="fs", pattern="^(fs|memory)$")
    cache_dir: str = Field(default=".historian", description="Root for the filesystem backend")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    structured: bool = Field(default=False, description="Emit JSON log lines")
    filename: str | None = Field(default=None, description="Log file (stdout when unset)")


class AppConfig(ConfigBase):
    """Application configuration."""

    model_config = ConfigDict(extra="ignore")
    provider: ProviderConfig = ProviderConfig()
    retry: RetrySettings = RetrySettings()
    journey: JourneySettings = JourneySettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingConfig = LoggingConfig()
    catalog: list[CatalogEntry] = Field(default_factory=lambda: list(DEFAULT_CATALOG))

    @classmethod
    def default_path(cls) -> Path:
        """Default path for application config."""
        return Path("historian.yaml")
