"""Artifact persistence for Historian.

Key features:
- Async document backends (filesystem via aiofiles, in-memory)
- Pydantic validation on load, corruption treated as a miss
- Atomic document writes
- Per-id serialized writes and read-modify-write updates
"""

from historian.core.caching.backends.fs import FSBackend
from historian.core.caching.backends.memory import MemoryBackend
from historian.core.caching.protocols import CacheBackend
from historian.core.caching.store import DocumentCache, PaperArchive, TimelineCache

__all__ = [
    "CacheBackend",
    "DocumentCache",
    "FSBackend",
    "MemoryBackend",
    "PaperArchive",
    "TimelineCache",
]
