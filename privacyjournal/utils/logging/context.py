"""
Per-task logging context.

Each API request (or any awaited store call) gets one correlation id, and
``operation_context`` attaches extra fields to every event logged while it
is active. Both live in ``contextvars`` so concurrent requests stay apart.
"""

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

_correlation_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "privacyjournal_correlation_id", default=None
)
_context_fields: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "privacyjournal_context_fields", default={}
)


def get_correlation_id() -> str:
    """The current correlation id; one is assigned on first use."""
    current = _correlation_id.get()
    if current is None:
        current = uuid.uuid4().hex
        _correlation_id.set(current)
    return current


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def get_operation_context() -> Dict[str, Any]:
    return dict(_context_fields.get())


@contextmanager
def operation_context(**fields: Any) -> Iterator[None]:
    """
    Add ``fields`` to every event logged inside the block.

    Example::

        with operation_context(path="/api/entries"):
            await store.get_all_entries()
    """
    token = _context_fields.set({**_context_fields.get(), **fields})
    try:
        yield
    finally:
        _context_fields.reset(token)
