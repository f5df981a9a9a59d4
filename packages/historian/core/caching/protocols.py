"""Protocol for document storage backends.

Backends store opaque JSON documents keyed by entity id. Validation,
locking and error degradation live in TimelineCache, not in backends.
"""

from typing import Protocol


class CacheBackend(Protocol):
    """
    Async key/document store.

    Implementations must make ``put`` atomic: a concurrent or interrupted
    writer never leaves a partially written document visible to ``get``.
    """

    async def get(self, key: str) -> str | None:
        """
        Read a document.

        Returns:
            Document text, or None if absent
        """
        ...

    async def put(self, key: str, document: str) -> None:
        """
        Write (or replace) a document.

        Raises:
            OSError: On write failure
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove a document. Absent keys are ignored."""
        ...

    async def keys(self) -> list[str]:
        """List stored keys."""
        ...
