"""Historian configuration."""

from historian.core.config.loader import (
    configure_logging,
    detect_format,
    load_app_config,
    load_config,
)
from historian.core.config.models import (
    LAZY_TRIGGER_DISTANCE,
    PANORAMIC_TRIGGER_DISTANCE,
    TIMELINE_LENGTH,
    AppConfig,
    CacheSettings,
    ConfigBase,
    JourneySettings,
    LoggingConfig,
    ProviderConfig,
    RetrySettings,
)

__all__ = [
    "LAZY_TRIGGER_DISTANCE",
    "PANORAMIC_TRIGGER_DISTANCE",
    "TIMELINE_LENGTH",
    "AppConfig",
    "CacheSettings",
    "ConfigBase",
    "JourneySettings",
    "LoggingConfig",
    "ProviderConfig",
    "RetrySettings",
    "configure_logging",
    "detect_format",
    "load_app_config",
    "load_config",
]
