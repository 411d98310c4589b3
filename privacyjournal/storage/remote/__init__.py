"""
Remote repository clients.
"""

from .github_client import GitHubRepositoryClient
from .types import (
    RemoteErrorKind,
    RemoteFile,
    RemoteFileInfo,
    RemoteRepositoryClient,
    failure_kind,
    remote_failure,
)

__all__ = [
    "GitHubRepositoryClient",
    "RemoteErrorKind",
    "RemoteFile",
    "RemoteFileInfo",
    "RemoteRepositoryClient",
    "failure_kind",
    "remote_failure",
]
