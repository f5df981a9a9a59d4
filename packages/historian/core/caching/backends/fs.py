"""Filesystem document backend using aiofiles.

One JSON document per key under a namespace directory. Writes are atomic
(temp file in the same directory, then os.replace()).
"""

import asyncio
import contextlib
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from urllib.parse import quote, unquote

import aiofiles  # type: ignore[import-untyped]
import aiofiles.os  # type: ignore[import-untyped]

DOCUMENT_SUFFIX = ".json"


def key_to_filename(key: str) -> str:
    """Encode a key as a single, reversible path component."""
    if not key:
        raise ValueError("Cache key must not be empty")
    return quote(key, safe="-_.") + DOCUMENT_SUFFIX


def filename_to_key(filename: str) -> str:
    return unquote(filename[: -len(DOCUMENT_SUFFIX)])


class FSBackend:
    """
    Async filesystem CacheBackend.

    The namespace directory is created lazily on first use.
    """

    def __init__(self, root: Path | str, namespace: str) -> None:
        """
        Args:
            root: Cache root directory
            namespace: Sub-directory for this store (e.g. "landmarks")
        """
        self.root = Path(root)
        self.namespace = namespace
        self.directory = self.root / quote(namespace, safe="-_")
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Ensure the namespace directory exists. Safe to call repeatedly."""
        async with self._init_lock:
            if not self._initialized:
                await aiofiles.os.makedirs(self.directory, exist_ok=True)
                self._initialized = True

    def _path(self, key: str) -> Path:
        return self.directory / key_to_filename(key)

    async def get(self, key: str) -> str | None:
        await self.initialize()
        try:
            async with aiofiles.open(self._path(key), encoding="utf-8") as f:
                content: str = await f.read()
                return content
        except FileNotFoundError:
            return None

    async def put(self, key: str, document: str) -> None:
        await self.initialize()
        path = self._path(key)
        loop = asyncio.get_running_loop()

        def create_temp_file() -> str:
            tmp = NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.directory,
                suffix=".tmp",
                delete=False,
            )
            tmp_path = tmp.name
            tmp.close()
            return tmp_path

        tmp_path = await loop.run_in_executor(None, create_temp_file)
        try:
            async with aiofiles.open(tmp_path, mode="w", encoding="utf-8") as f:
                await f.write(document)
            await loop.run_in_executor(None, os.replace, tmp_path, str(path))
        except BaseException:
            with contextlib.suppress(OSError):
                await aiofiles.os.unlink(tmp_path)
            raise

    async def delete(self, key: str) -> None:
        await self.initialize()
        with contextlib.suppress(FileNotFoundError):
            await aiofiles.os.unlink(self._path(key))

    async def keys(self) -> list[str]:
        await self.initialize()
        entries: list[str] = await aiofiles.os.listdir(self.directory)
        return sorted(
            filename_to_key(name) for name in entries if name.endswith(DOCUMENT_SUFFIX)
        )
