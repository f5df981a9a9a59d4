"""Fleet-level background pregeneration."""

from historian.core.scheduler.pregeneration import EntityStatusListener, PregenerationScheduler

__all__ = ["EntityStatusListener", "PregenerationScheduler"]
