from historian.core.caching.backends.fs import FSBackend
from historian.core.caching.backends.memory import MemoryBackend

__all__ = ["FSBackend", "MemoryBackend"]
