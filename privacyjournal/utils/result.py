"""
Success/Failure values for remote calls and HTTP error bodies.

Remote clients return these instead of raising, and the ``error_type`` of a
``Failure`` carries a discriminated kind the caller can branch on:

    >>> found = Success("abc123")
    >>> found.unwrap()
    'abc123'

    >>> missing = Failure("Not Found", error_type="not_found", status_code=404)
    >>> missing.unwrap_or(None) is None
    True

The route helpers at the bottom build the failures the API renders as
``{"success": false, "error": ..., "error_type": ...}``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass
class Success(Generic[T]):
    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def __bool__(self) -> bool:
        return True


@dataclass
class Failure(Generic[E]):
    """
    A failed call.

    Attributes:
        error: Message for logs and API bodies
        error_type: Failure kind, e.g. "not_found" or "ValidationError"
        context: Extra fields echoed in API bodies
        recoverable: Whether the same call may succeed later
        status_code: HTTP status the failure maps to
    """

    error: E
    error_type: str = "error"
    context: Optional[Dict[str, Any]] = None
    recoverable: bool = False
    status_code: int = 500

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def unwrap(self) -> Any:
        raise RuntimeError(f"Called unwrap on Failure ({self.error_type}): {self.error}")

    def unwrap_or(self, default: Any) -> Any:
        return default

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": False,
            "error": str(self.error),
            "error_type": self.error_type,
        }
        if self.context:
            body["context"] = self.context
        if self.recoverable:
            body["recoverable"] = True
        return body

    def __bool__(self) -> bool:
        return False


Result = Union[Success[T], Failure[E]]


# (error_type, status_code, recoverable) per API error category
_VALIDATION = ("ValidationError", 400, True)
_NOT_FOUND = ("NotFoundError", 404, False)
_CONFLICT = ("ConflictError", 409, True)
_UNAVAILABLE = ("ServiceUnavailable", 503, True)


def _api_failure(
    category: tuple, message: str, context: Optional[Dict[str, Any]]
) -> Failure:
    error_type, status_code, recoverable = category
    return Failure(
        error=message,
        error_type=error_type,
        context=context,
        recoverable=recoverable,
        status_code=status_code,
    )


def validation_error(message: str, context: Optional[Dict[str, Any]] = None) -> Failure:
    return _api_failure(_VALIDATION, message, context)


def not_found_error(message: str, context: Optional[Dict[str, Any]] = None) -> Failure:
    return _api_failure(_NOT_FOUND, message, context)


def conflict_error(message: str, context: Optional[Dict[str, Any]] = None) -> Failure:
    """A request that lost to existing state, such as a taken repository name."""
    return _api_failure(_CONFLICT, message, context)


def service_unavailable(message: str, context: Optional[Dict[str, Any]] = None) -> Failure:
    """The remote repository could not be used for this request."""
    return _api_failure(_UNAVAILABLE, message, context)
