"""Research dossiers and user notes."""

from historian.core.research.desk import ResearchDesk
from historian.core.research.notes import NotesLedger

__all__ = ["NotesLedger", "ResearchDesk"]
