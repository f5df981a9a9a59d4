"""User notes attached to journeys."""

from __future__ import annotations

import logging

from historian.core.caching.store import TimelineCache
from historian.core.errors import IrrelevantNoteError
from historian.core.models.journey import NoteType, TimelineArtifact, UserNote, now_ms
from historian.core.providers.base import GenerationService

logger = logging.getLogger(__name__)

DEFAULT_REJECTION = "This entry doesn't seem relevant to the current landmark."


class NotesLedger:
    """Validates and stores user notes through read-modify-write on the journey."""

    def __init__(self, provider: GenerationService, cache: TimelineCache) -> None:
        self.provider = provider
        self.cache = cache

    async def add_note(
        self,
        artifact: TimelineArtifact,
        content: str,
        *,
        is_audio: bool = False,
        year_context: int | None = None,
    ) -> TimelineArtifact:
        """Attach a note to a journey after checking it is relevant.

        Args:
            artifact: Journey the note belongs to
            content: Note text, or base64 audio when ``is_audio``
            is_audio: Content is a recording
            year_context: Era the user was viewing (defaults to the first)

        Returns:
            The journey including the new note

        Raises:
            IrrelevantNoteError: If the note is unrelated to the subject
        """
        year = year_context if year_context is not None else artifact.timeline[0].year
        verdict = await self.provider.validate_relevance(
            artifact.subject_name, year, content, is_audio
        )
        if not verdict.relevant:
            raise IrrelevantNoteError(verdict.feedback or DEFAULT_REJECTION)

        note = UserNote(
            id=f"note-{now_ms()}",
            type=NoteType.AUDIO if is_audio else NoteType.TEXT,
            content=content,
            year_context=year,
        )
        updated = await self.cache.update(
            artifact.id, lambda current: current.with_note(note), default=artifact
        )
        logger.info(f"Added {note.type.value} note {note.id} to {artifact.id}")
        return updated or artifact.with_note(note)

    async def remove_note(self, artifact: TimelineArtifact, note_id: str) -> TimelineArtifact:
        updated = await self.cache.update(
            artifact.id, lambda current: current.without_note(note_id), default=artifact
        )
        return updated or artifact.without_note(note_id)
