"""
Operation tracking decorator.

``@track`` wraps store, index and client operations. Each call emits an
``operation_completed`` or ``operation_failed`` event with its duration, a
redacted view of selected keyword arguments and a short result summary.
Hot read paths are sampled; anything that writes is always logged.
"""

import asyncio
import functools
import logging
import random
import time
from typing import Any, Callable, Dict, Iterable, Optional, TypeVar, Union, cast

from .context import get_correlation_id
from .structured import log_event

F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)

SAMPLE_RATES = {
    "high_frequency": 0.1,
    "medium_frequency": 0.5,
    "low_frequency": 1.0,
}

# Substrings of operation names that are never sampled away
UNSAMPLED_OPERATIONS = ("create", "update", "delete", "move", "rebuild", "migrate")

REDACTED_KEYS = ("token", "secret", "password", "key", "auth")
BULKY_KEYS = frozenset({"content", "text", "query", "body", "data"})
MAX_LOGGED_LENGTH = 100


def _is_sampled(operation: str, frequency: str) -> bool:
    name = operation.lower()
    if any(marker in name for marker in UNSAMPLED_OPERATIONS):
        return True
    return random.random() < SAMPLE_RATES.get(frequency, 1.0)


def _loggable(key: str, value: Any) -> Any:
    lowered = key.lower()
    if any(marker in lowered for marker in REDACTED_KEYS):
        return "[REDACTED]"
    if isinstance(value, str):
        if len(value) <= MAX_LOGGED_LENGTH:
            return value
        if lowered in BULKY_KEYS:
            return f"<{len(value)} chars>"
        return value[:MAX_LOGGED_LENGTH] + "..."
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return f"<{type(value).__name__}>"


def _summarize(result: Any) -> Dict[str, Any]:
    summary: Dict[str, Any] = {"result_type": type(result).__name__}
    if isinstance(result, bool):
        summary["result_value"] = result
    elif isinstance(result, (list, tuple, dict)):
        summary["result_length"] = len(result)
    return summary


class _TrackedCall:
    """Context for one invocation; logs on exit."""

    def __init__(
        self,
        operation: str,
        level: int,
        arg_names: Optional[Iterable[str]],
        kwargs: Dict[str, Any],
        include_result: bool,
        emit_events: bool,
    ):
        self.operation = operation
        self.level = level
        self.include_result = include_result
        self.emit_events = emit_events
        self.result: Any = None
        self.context: Dict[str, Any] = {"operation": operation}
        if arg_names is not None:
            wanted = set(arg_names)
            self.context.update(
                {
                    f"arg_{name}": _loggable(name, value)
                    for name, value in kwargs.items()
                    if name in wanted
                }
            )

    def __enter__(self) -> "_TrackedCall":
        self.context["correlation_id"] = get_correlation_id()
        self._started = time.perf_counter()
        if self.emit_events and self.level <= logging.DEBUG:
            log_event("operation_started", dict(self.context), self.level)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        context = dict(self.context)
        context["duration_ms"] = int((time.perf_counter() - self._started) * 1000)

        if exc_type is not None:
            context.update(
                {
                    "success": False,
                    "error_type": exc_type.__name__,
                    "error_message": str(exc) if exc else "",
                }
            )
            log_event("operation_failed", context, logging.ERROR)
        elif self.emit_events:
            context["success"] = True
            if self.include_result and self.result is not None:
                context.update(_summarize(self.result))
            log_event("operation_completed", context, self.level)
        return False


def track(
    operation: Optional[str] = None,
    level: int = logging.INFO,
    frequency: str = "low_frequency",
    include_args: Union[bool, Iterable[str]] = True,
    include_result: bool = True,
    emit_events: bool = True,
):
    """
    Log the lifecycle of the decorated function.

    Args:
        operation: Event operation name; defaults to the qualified function name
        level: Level of the completion event (failures are always ERROR)
        frequency: Sampling bucket, see ``SAMPLE_RATES``
        include_args: Keyword argument names to log; True for all, False for none
        include_result: Add a type/length summary of the return value
        emit_events: False to log failures only

    Example::

        @track(operation="entry_update", include_args=["entry_id"])
        async def update_entry(self, entry_id, title, content): ...
    """

    def decorator(func: F) -> F:
        op_name = operation or func.__qualname__.replace(".", "_").lower()

        def _call(kwargs: Dict[str, Any]) -> _TrackedCall:
            if include_args is True:
                arg_names: Optional[Iterable[str]] = kwargs.keys()
            elif include_args is False:
                arg_names = None
            else:
                arg_names = include_args
            return _TrackedCall(
                op_name, level, arg_names, kwargs, include_result, emit_events
            )

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                if not _is_sampled(op_name, frequency):
                    return await func(*args, **kwargs)
                with _call(kwargs) as call:
                    call.result = await func(*args, **kwargs)
                return call.result

            return cast(F, async_wrapper)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            if not _is_sampled(op_name, frequency):
                return func(*args, **kwargs)
            with _call(kwargs) as call:
                call.result = func(*args, **kwargs)
            return call.result

        return cast(F, sync_wrapper)

    return decorator
