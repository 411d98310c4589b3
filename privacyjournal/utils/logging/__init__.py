"""
Structured logging for the journal store.

``track`` instruments operations; ``log_event`` records domain events.
"""

from .context import get_correlation_id, operation_context, set_correlation_id
from .smart_logger import track
from .structured import DevelopmentFormatter, create_development_formatter, log_event

__all__ = [
    "track",
    "log_event",
    "get_correlation_id",
    "set_correlation_id",
    "operation_context",
    "DevelopmentFormatter",
    "create_development_formatter",
]
