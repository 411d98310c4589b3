"""
Error responses for the API.

Store exceptions and ``Failure`` results are rendered with the same body
shape: ``{"success": false, "error": ..., "error_type": ...}``.
"""

from typing import Dict, Type

from fastapi.responses import JSONResponse

from ...storage.exceptions import (
    BackendUnreachable,
    ConcurrencyConflict,
    CycleDetected,
    EmbeddingUnavailable,
    FormatError,
    IdentityUnverified,
    JournalStoreError,
    LocalStorageExhausted,
    NameConflict,
    NotFoundError,
)
from ...utils.result import Failure

STATUS_CODES: Dict[Type[JournalStoreError], int] = {
    NotFoundError: 404,
    NameConflict: 409,
    ConcurrencyConflict: 409,
    CycleDetected: 409,
    FormatError: 422,
    IdentityUnverified: 503,
    BackendUnreachable: 503,
    EmbeddingUnavailable: 503,
    LocalStorageExhausted: 507,
}


def status_code_for(error: JournalStoreError) -> int:
    for error_class, status_code in STATUS_CODES.items():
        if isinstance(error, error_class):
            return status_code
    return 500


def store_error_response(error: JournalStoreError) -> JSONResponse:
    content = error.to_dict()
    if isinstance(error, LocalStorageExhausted):
        content["error"] = error.get_user_message()
    return JSONResponse(content=content, status_code=status_code_for(error))


def failure_response(failure: Failure) -> JSONResponse:
    return JSONResponse(content=failure.to_dict(), status_code=failure.status_code)
