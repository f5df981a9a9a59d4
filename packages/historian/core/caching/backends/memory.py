"""In-memory document backend (tests, ephemeral sessions)."""


class MemoryBackend:
    """Dict-backed CacheBackend."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._documents.get(key)

    async def put(self, key: str, document: str) -> None:
        self._documents[key] = document

    async def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._documents)

    def __len__(self) -> int:
        return len(self._documents)
