"""
Access to the running ``JournalServer`` from route handlers.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..application_server import JournalServer


# Installed by the application lifespan, cleared on shutdown
_journal_server: Optional["JournalServer"] = None


def set_server_instance(server: Optional["JournalServer"]) -> None:
    global _journal_server
    _journal_server = server


def get_server() -> "JournalServer":
    """
    Raises:
        RuntimeError: Called outside the application lifespan
    """
    if _journal_server is None:
        raise RuntimeError("Journal server is not running")
    return _journal_server
