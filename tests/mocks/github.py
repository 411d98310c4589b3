import hashlib
from typing import Dict, List, Optional, Set, Tuple

from privacyjournal.models import Repository
from privacyjournal.storage.remote.types import (
    RemoteErrorKind,
    RemoteFile,
    RemoteFileInfo,
    remote_failure,
)
from privacyjournal.utils.result import Success


class FakeGitHubClient:
    """
    In-memory GitHub with per-file shas and failure injection.

    ``unreachable`` fails every call; ``fail_operations`` maps a method name
    to the failure kind it should return.
    """

    def __init__(self, login: str = "alice"):
        self.login = login
        self.repositories: Dict[str, Repository] = {}
        self.hidden_repositories: Set[str] = set()
        self.files: Dict[str, Dict[str, Tuple[bytes, str]]] = {}
        self.unreachable = False
        self.fail_operations: Dict[str, RemoteErrorKind] = {}
        self.calls: List[Tuple] = []
        self._sha_counter = 0

    # Test helpers

    def add_repository(self, name: str, auto_init: bool = True) -> None:
        self.repositories[name] = Repository(
            name=name,
            full_name=f"{self.login}/{name}",
            owner=self.login,
            private=True,
            description="Private repository for journal entries",
        )
        self.files.setdefault(name, {})
        if auto_init:
            self.seed_file(name, "README.md", f"# {name}\n".encode("utf-8"))

    def seed_file(self, repo: str, path: str, content: bytes) -> str:
        sha = self._next_sha(content)
        self.files.setdefault(repo, {})[path] = (content, sha)
        return sha

    def file_content(self, repo: str, path: str) -> Optional[bytes]:
        stored = self.files.get(repo, {}).get(path)
        return stored[0] if stored else None

    def paths(self, repo: str) -> List[str]:
        return sorted(self.files.get(repo, {}))

    def count_calls(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def _next_sha(self, content: bytes) -> str:
        self._sha_counter += 1
        return hashlib.sha1(content + str(self._sha_counter).encode()).hexdigest()

    def _injected(self, method: str):
        if self.unreachable:
            return remote_failure(RemoteErrorKind.UNREACHABLE, "connection refused", 503)
        kind = self.fail_operations.get(method)
        if kind is not None:
            return remote_failure(kind, f"injected {kind.value}", 500)
        return None

    def _repo_files(self, owner: str, repo: str):
        if owner != self.login or repo not in self.repositories:
            return None
        return self.files.setdefault(repo, {})

    # Client interface

    async def get_authenticated_login(self):
        self.calls.append(("get_authenticated_login",))
        failure = self._injected("get_authenticated_login")
        if failure is not None:
            return failure
        return Success(self.login)

    async def get_file(self, owner, repo, path):
        self.calls.append(("get_file", repo, path))
        failure = self._injected("get_file")
        if failure is not None:
            return failure
        files = self._repo_files(owner, repo)
        if files is None or path not in files:
            return remote_failure(RemoteErrorKind.NOT_FOUND, "Not Found", 404)
        content, sha = files[path]
        return Success(RemoteFile(content=content, sha=sha))

    async def put_file(self, owner, repo, path, content, message, sha=None):
        self.calls.append(("put_file", repo, path, sha))
        failure = self._injected("put_file")
        if failure is not None:
            return failure
        files = self._repo_files(owner, repo)
        if files is None:
            return remote_failure(RemoteErrorKind.NOT_FOUND, "Not Found", 404)
        current = files.get(path)
        if current is None and sha is not None:
            return remote_failure(RemoteErrorKind.CONFLICT, "sha does not match", 409)
        if current is not None and sha != current[1]:
            return remote_failure(RemoteErrorKind.CONFLICT, "sha does not match", 409)
        new_sha = self._next_sha(content)
        files[path] = (content, new_sha)
        return Success(new_sha)

    async def delete_file(self, owner, repo, path, sha, message):
        self.calls.append(("delete_file", repo, path, sha))
        failure = self._injected("delete_file")
        if failure is not None:
            return failure
        files = self._repo_files(owner, repo)
        if files is None or path not in files:
            return remote_failure(RemoteErrorKind.NOT_FOUND, "Not Found", 404)
        if files[path][1] != sha:
            return remote_failure(RemoteErrorKind.CONFLICT, "sha does not match", 409)
        del files[path]
        return Success(None)

    async def list_files(self, owner, repo, path=""):
        self.calls.append(("list_files", repo, path))
        failure = self._injected("list_files")
        if failure is not None:
            return failure
        files = self._repo_files(owner, repo)
        if files is None:
            return remote_failure(RemoteErrorKind.NOT_FOUND, "Not Found", 404)

        prefix = f"{path}/" if path else ""
        items: Dict[str, RemoteFileInfo] = {}
        for file_path, (_, sha) in files.items():
            if not file_path.startswith(prefix):
                continue
            rest = file_path[len(prefix):]
            name, _, remainder = rest.partition("/")
            if remainder:
                items.setdefault(name, RemoteFileInfo(name, prefix + name, "dir", ""))
            else:
                items[name] = RemoteFileInfo(name, file_path, "file", sha)
        if path and not items:
            return remote_failure(RemoteErrorKind.NOT_FOUND, "Not Found", 404)
        return Success(sorted(items.values(), key=lambda item: item.name))

    async def list_repositories(self):
        self.calls.append(("list_repositories",))
        failure = self._injected("list_repositories")
        if failure is not None:
            return failure
        return Success(list(self.repositories.values()))

    async def get_repository(self, owner, name):
        self.calls.append(("get_repository", name))
        failure = self._injected("get_repository")
        if failure is not None:
            return failure
        if owner != self.login or name not in self.repositories:
            return remote_failure(RemoteErrorKind.NOT_FOUND, "Not Found", 404)
        return Success(self.repositories[name])

    async def create_repository(self, name, private=True, description="", auto_init=True):
        self.calls.append(("create_repository", name))
        failure = self._injected("create_repository")
        if failure is not None:
            return failure
        if name in self.repositories or name in self.hidden_repositories:
            return remote_failure(
                RemoteErrorKind.NAME_CONFLICT, "name already exists on this account", 422
            )
        self.add_repository(name, auto_init=auto_init)
        return Success(self.repositories[name])
