"""
Types shared by remote repository clients.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from ...models import Repository
from ...utils.result import Failure, Result


class RemoteErrorKind(str, Enum):
    """Discriminated failure kinds reported by a remote client."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    NAME_CONFLICT = "name_conflict"
    UNAUTHORIZED = "unauthorized"
    UNREACHABLE = "unreachable"
    ERROR = "error"


@dataclass
class RemoteFile:
    """Decoded file content and its version token."""

    content: bytes
    sha: str


@dataclass
class RemoteFileInfo:
    """One item of a directory listing."""

    name: str
    path: str
    type: str
    sha: str


def remote_failure(
    kind: RemoteErrorKind,
    message: str,
    status_code: int = 500,
    context: Optional[Dict[str, Any]] = None,
) -> Failure:
    """Build a ``Failure`` tagged with a remote error kind."""
    return Failure(
        error=message,
        error_type=kind.value,
        context=context,
        recoverable=kind in (RemoteErrorKind.UNREACHABLE, RemoteErrorKind.NAME_CONFLICT),
        status_code=status_code,
    )


def failure_kind(result: Failure) -> RemoteErrorKind:
    """Recover the ``RemoteErrorKind`` of a failure, ``ERROR`` if untagged."""
    try:
        return RemoteErrorKind(result.error_type)
    except ValueError:
        return RemoteErrorKind.ERROR



class RemoteRepositoryClient(Protocol):
    """Async content-addressed file host holding the journal repository."""

    async def get_authenticated_login(self) -> Result[str, str]: ...

    async def get_file(self, owner: str, repo: str, path: str) -> Result[RemoteFile, str]: ...

    async def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        message: str,
        sha: Optional[str] = None,
    ) -> Result[str, str]: ...

    async def delete_file(
        self, owner: str, repo: str, path: str, sha: str, message: str
    ) -> Result[None, str]: ...

    async def list_files(
        self, owner: str, repo: str, path: str = ""
    ) -> Result[List[RemoteFileInfo], str]: ...

    async def list_repositories(self) -> Result[List[Repository], str]: ...

    async def get_repository(self, owner: str, name: str) -> Result[Repository, str]: ...

    async def create_repository(
        self,
        name: str,
        private: bool = True,
        description: str = "",
        auto_init: bool = True,
    ) -> Result[Repository, str]: ...
