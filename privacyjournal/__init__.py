"""
Private Journal - journal entries stored in a private GitHub repository,
searchable by meaning.

Entries and folders live as files in a repository the user owns, with a
local cache taking over whenever the remote cannot be reached.
"""

__version__ = "0.1.0"

from .models.core import Entry, Folder
from .storage.document_store import JournalStore

__all__ = [
    "Entry",
    "Folder",
    "JournalStore",
]
