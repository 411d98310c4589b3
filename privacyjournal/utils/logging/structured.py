"""
Structured events on top of the standard ``logging`` module.

An event is a normal log record whose message is the event name and whose
``structured_data`` attribute holds the event fields, the correlation id and
any ``operation_context`` fields. Handlers installed by
``configure_logging`` render them with ``DevelopmentFormatter``.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from .context import get_correlation_id, get_operation_context

EVENT_LOGGER_NAME = "privacyjournal.events"

_event_logger = logging.getLogger(EVENT_LOGGER_NAME)


def log_event(
    event_name: str, data: Optional[Dict[str, Any]] = None, level: int = logging.INFO
) -> None:
    """
    Emit one structured event.

    Example::

        log_event("backend_mode_changed", {
            "mode": "local_only",
            "repository": "privacy-journal-entries-octo",
            "reason": "connection refused",
        }, level=logging.WARNING)
    """
    if not _event_logger.isEnabledFor(level):
        return

    payload: Dict[str, Any] = {"event": event_name, "correlation_id": get_correlation_id()}
    payload.update(get_operation_context())
    if data:
        payload.update(data)
    _event_logger.log(level, event_name, extra={"structured_data": payload})


def _format_duration(duration_ms: int) -> str:
    if duration_ms >= 1000:
        return f"{duration_ms / 1000:.1f}s"
    return f"{duration_ms}ms"


class DevelopmentFormatter(logging.Formatter):
    """One short line per record: time, level, then a readable summary."""

    # Shown inline for domain events, in this order
    CONTEXT_FIELDS = (
        "entry_id",
        "folder_id",
        "collection",
        "record_id",
        "repository",
        "path",
        "backend",
        "mode",
        "state",
        "error_kind",
        "processed",
        "errors",
        "count",
        "reason",
    )

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        data = getattr(record, "structured_data", None)
        if not data:
            summary = record.getMessage()
        else:
            summary = self._summarize(data)
        return f"{stamp} | {record.levelname:5} | {summary}"

    def _summarize(self, data: Dict[str, Any]) -> str:
        event = data.get("event", "")
        operation = data.get("operation") or "operation"

        if event == "operation_started":
            return f"{operation} started"

        if event == "operation_completed":
            line = f"{_format_duration(data.get('duration_ms', 0))} {operation}"
            if "result_length" in data:
                line += f" ({data['result_length']} results)"
            elif "result_value" in data:
                line += " (ok)" if data["result_value"] else " (not found)"
            return line

        if event == "operation_failed":
            message = data.get("error_message", "")
            if len(message) > 60:
                message = message[:57] + "..."
            return (
                f"{operation} failed after {_format_duration(data.get('duration_ms', 0))}"
                f" ({data.get('error_type', 'Error')}: {message})"
            )

        fields = [
            f"{key}={data[key]}" for key in self.CONTEXT_FIELDS if data.get(key) is not None
        ]
        if data.get("error"):
            fields.append(f"error={str(data['error'])[:80]}")
        if not fields:
            return event or "event"
        return f"{event}: {', '.join(fields)}"


def create_development_formatter() -> logging.Formatter:
    return DevelopmentFormatter()
