"""Tests for FSBackend (async, aiofiles)."""

from __future__ import annotations

from pathlib import Path

import pytest

from historian.core.caching import FSBackend
from historian.core.caching.backends.fs import filename_to_key, key_to_filename


@pytest.fixture
def backend(tmp_path: Path) -> FSBackend:
    """Provide FSBackend rooted in a temp directory."""
    return FSBackend(tmp_path / "cache", "landmarks")


class TestKeyEncoding:
    """Tests for key ↔ filename mapping."""

    def test_plain_key(self):
        assert key_to_filename("eiffel") == "eiffel.json"

    def test_unsafe_characters_are_escaped(self):
        filename = key_to_filename("journey/from paper")
        assert "/" not in filename
        assert filename_to_key(filename) == "journey/from paper"

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            key_to_filename("")


class TestInitialization:
    """Tests for lazy directory creation."""

    async def test_initialize_creates_namespace_dir(self, backend: FSBackend, tmp_path: Path):
        """Test initialize creates the namespace directory."""
        await backend.initialize()
        assert (tmp_path / "cache" / "landmarks").is_dir()

    async def test_first_read_initializes(self, backend: FSBackend):
        """Test reading from a fresh backend is a miss, not an error."""
        assert await backend.get("eiffel") is None
        assert backend.directory.is_dir()


class TestReadWrite:
    """Tests for document storage."""

    async def test_put_then_get(self, backend: FSBackend):
        await backend.put("eiffel", '{"id": "eiffel"}')
        assert await backend.get("eiffel") == '{"id": "eiffel"}'

    async def test_put_replaces_document(self, backend: FSBackend):
        await backend.put("eiffel", "first")
        await backend.put("eiffel", "second")
        assert await backend.get("eiffel") == "second"

    async def test_put_leaves_no_temp_files(self, backend: FSBackend):
        """Test atomic writes clean up after themselves."""
        await backend.put("eiffel", "doc")
        await backend.put("colosseum", "doc")

        leftovers = [p.name for p in backend.directory.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []

    async def test_delete(self, backend: FSBackend):
        await backend.put("eiffel", "doc")
        await backend.delete("eiffel")
        assert await backend.get("eiffel") is None

    async def test_delete_missing_is_noop(self, backend: FSBackend):
        await backend.delete("never-stored")

    async def test_keys_lists_documents_only(self, backend: FSBackend):
        """Test keys ignores non-document files in the namespace."""
        await backend.put("eiffel", "a")
        await backend.put("journey-from-paper-paper-1", "b")
        (backend.directory / "stray.tmp").write_text("partial")

        assert await backend.keys() == ["eiffel", "journey-from-paper-paper-1"]

    async def test_namespaces_are_isolated(self, tmp_path: Path):
        landmarks = FSBackend(tmp_path, "landmarks")
        papers = FSBackend(tmp_path, "research_papers")

        await landmarks.put("x", "journey")

        assert await papers.get("x") is None
        assert await papers.keys() == []
