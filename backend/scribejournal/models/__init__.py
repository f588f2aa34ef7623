# Models package init
from scribejournal.models.journal import JournalEntry, RawTranscription

__all__ = ["JournalEntry", "RawTranscription"]
