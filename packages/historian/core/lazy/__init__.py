"""Scrub-driven lazy scene generation."""

from historian.core.config.models import LAZY_TRIGGER_DISTANCE, PANORAMIC_TRIGGER_DISTANCE
from historian.core.lazy.resolver import EventListener, LazyVisualResolver

__all__ = [
    "LAZY_TRIGGER_DISTANCE",
    "PANORAMIC_TRIGGER_DISTANCE",
    "EventListener",
    "LazyVisualResolver",
]
