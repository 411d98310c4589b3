"""
GitHub REST API client for the journal's backing repository.

Every method returns a ``Result``. HTTP statuses and transport errors are
classified into ``RemoteErrorKind`` values here and nowhere else, so callers
never inspect status codes or error text.
"""

import asyncio
import base64
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import aiohttp

from ...models import Repository
from ...utils.http_session import HTTPSessionMixin
from ...utils.logging import log_event, track
from ...utils.result import Result, Success
from .types import RemoteErrorKind, RemoteFile, RemoteFileInfo, remote_failure

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
REPOSITORY_PAGE_SIZE = 100


def _classify_status(status: int, body: str, creating_repository: bool = False) -> RemoteErrorKind:
    """Map an HTTP error status (and body, for 422) to a failure kind."""
    if status == 404:
        return RemoteErrorKind.NOT_FOUND
    if status == 409:
        return RemoteErrorKind.CONFLICT
    if status == 422:
        lowered = body.lower()
        if creating_repository and "already exists" in lowered:
            return RemoteErrorKind.NAME_CONFLICT
        if "sha" in lowered:
            return RemoteErrorKind.CONFLICT
        return RemoteErrorKind.ERROR
    if status in (401, 403):
        return RemoteErrorKind.UNAUTHORIZED
    if status >= 500:
        return RemoteErrorKind.UNREACHABLE
    return RemoteErrorKind.ERROR


def _parse_repository(data: Dict[str, Any]) -> Repository:
    owner = data.get("owner") or {}
    return Repository(
        name=data["name"],
        full_name=data.get("full_name") or f"{owner.get('login', '')}/{data['name']}",
        owner=owner.get("login", ""),
        private=bool(data.get("private", True)),
        description=data.get("description"),
        html_url=data.get("html_url"),
    )


class GitHubRepositoryClient(HTTPSessionMixin):
    """
    Thin async wrapper over the GitHub contents and repositories APIs.

    File content crosses the wire base64-encoded; ``get_file`` and
    ``put_file`` take and return raw bytes.
    """

    def __init__(
        self,
        token: Optional[str],
        api_url: str = "https://api.github.com",
        timeout_seconds: int = 15,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(session)
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _build_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _open_default_session(self) -> None:
        self._initialize_session(
            timeout_seconds=self.timeout_seconds,
            headers=self._build_headers(),
        )

    async def initialize(self) -> None:
        self._ensure_session()
        log_event(
            "github_client_initialized",
            {"api_url": self.api_url, "timeout": self.timeout_seconds},
            level=logging.DEBUG,
        )

    async def cleanup(self) -> None:
        await self._cleanup_session()

    def _contents_url(self, owner: str, repo: str, path: str) -> str:
        return f"{self.api_url}/repos/{quote(owner)}/{quote(repo)}/contents/{quote(path)}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        creating_repository: bool = False,
    ) -> Tuple[Optional[Any], Optional[Any]]:
        """
        Perform one request.

        Returns:
            ``(data, None)`` on a 2xx response, ``(None, failure)`` otherwise
        """
        session = self._ensure_session()
        try:
            async with session.request(
                method, url, json=json_body, params=params
            ) as response:
                if response.status >= 400:
                    body = await response.text()
                    kind = _classify_status(response.status, body, creating_repository)
                    if kind != RemoteErrorKind.NOT_FOUND:
                        log_event(
                            "github_request_failed",
                            {
                                "method": method,
                                "status": response.status,
                                "error_kind": kind.value,
                                "error": body[:300],
                            },
                            level=logging.WARNING,
                        )
                    return None, remote_failure(
                        kind,
                        f"GitHub {method} failed (HTTP {response.status})",
                        status_code=response.status,
                    )
                if response.status == 204:
                    return {}, None
                return await response.json(), None
        except asyncio.TimeoutError:
            log_event(
                "github_request_timeout",
                {"method": method, "timeout": self.timeout_seconds},
                level=logging.WARNING,
            )
            return None, remote_failure(
                RemoteErrorKind.UNREACHABLE,
                f"GitHub {method} timed out after {self.timeout_seconds}s",
                status_code=504,
            )
        except aiohttp.ClientError as e:
            log_event(
                "github_connection_error",
                {"method": method, "error": str(e)},
                level=logging.WARNING,
            )
            return None, remote_failure(
                RemoteErrorKind.UNREACHABLE,
                f"Failed to connect to GitHub: {e}",
                status_code=503,
            )

    @track(operation="remote_get_login", include_args=False)
    async def get_authenticated_login(self) -> Result[str, str]:
        """Resolve the canonical login of the token's account."""
        data, failure = await self._request("GET", f"{self.api_url}/user")
        if failure is not None:
            return failure
        login = (data or {}).get("login")
        if not login:
            return remote_failure(RemoteErrorKind.ERROR, "Response carried no login")
        return Success(login)

    @track(
        operation="remote_get_file",
        include_args=["repo", "path"],
        frequency="high_frequency",
    )
    async def get_file(self, owner: str, repo: str, path: str) -> Result[RemoteFile, str]:
        data, failure = await self._request("GET", self._contents_url(owner, repo, path))
        if failure is not None:
            return failure
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            return remote_failure(
                RemoteErrorKind.ERROR, f"{path} is not a file", status_code=400
            )
        try:
            raw = base64.b64decode(data.get("content", ""))
        except (ValueError, TypeError) as e:
            return remote_failure(RemoteErrorKind.ERROR, f"Invalid file encoding: {e}")
        return Success(RemoteFile(content=raw, sha=data["sha"]))

    @track(operation="remote_put_file", include_args=["repo", "path", "sha"])
    async def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        message: str,
        sha: Optional[str] = None,
    ) -> Result[str, str]:
        """
        Create or replace a file.

        Without ``sha`` the call only succeeds if the file does not exist.
        With a stale ``sha`` it fails with ``CONFLICT``.
        """
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if sha:
            body["sha"] = sha
        data, failure = await self._request(
            "PUT", self._contents_url(owner, repo, path), json_body=body
        )
        if failure is not None:
            return failure
        new_sha = ((data or {}).get("content") or {}).get("sha", "")
        return Success(new_sha)

    @track(operation="remote_delete_file", include_args=["repo", "path"])
    async def delete_file(
        self, owner: str, repo: str, path: str, sha: str, message: str
    ) -> Result[None, str]:
        _, failure = await self._request(
            "DELETE",
            self._contents_url(owner, repo, path),
            json_body={"message": message, "sha": sha},
        )
        if failure is not None:
            return failure
        return Success(None)

    @track(
        operation="remote_list_files",
        include_args=["repo", "path"],
        frequency="medium_frequency",
    )
    async def list_files(
        self, owner: str, repo: str, path: str = ""
    ) -> Result[List[RemoteFileInfo], str]:
        data, failure = await self._request("GET", self._contents_url(owner, repo, path))
        if failure is not None:
            return failure
        if not isinstance(data, list):
            return remote_failure(
                RemoteErrorKind.ERROR, f"{path or '/'} is not a directory", status_code=400
            )
        return Success(
            [
                RemoteFileInfo(
                    name=item["name"],
                    path=item.get("path", item["name"]),
                    type=item.get("type", "file"),
                    sha=item.get("sha", ""),
                )
                for item in data
            ]
        )

    @track(operation="remote_list_repositories", include_args=False)
    async def list_repositories(self) -> Result[List[Repository], str]:
        """List up to the first 100 repositories owned by the account."""
        data, failure = await self._request(
            "GET",
            f"{self.api_url}/user/repos",
            params={"per_page": REPOSITORY_PAGE_SIZE, "affiliation": "owner"},
        )
        if failure is not None:
            return failure
        return Success([_parse_repository(item) for item in data or []])

    @track(operation="remote_get_repository", include_args=["owner", "name"])
    async def get_repository(self, owner: str, name: str) -> Result[Repository, str]:
        data, failure = await self._request(
            "GET", f"{self.api_url}/repos/{quote(owner)}/{quote(name)}"
        )
        if failure is not None:
            return failure
        return Success(_parse_repository(data))

    @track(operation="remote_create_repository", include_args=["name", "private"])
    async def create_repository(
        self,
        name: str,
        private: bool = True,
        description: str = "",
        auto_init: bool = True,
    ) -> Result[Repository, str]:
        data, failure = await self._request(
            "POST",
            f"{self.api_url}/user/repos",
            json_body={
                "name": name,
                "private": private,
                "description": description,
                "auto_init": auto_init,
            },
            creating_repository=True,
        )
        if failure is not None:
            return failure
        log_event("repository_created_remote", {"repository": name, "private": private})
        return Success(_parse_repository(data))
