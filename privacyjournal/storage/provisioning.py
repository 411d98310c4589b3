"""
Provisioning of the private repository that backs a journal.

The state machine verifies the identity against the remote, then makes sure
a repository with the derived name exists, creating it if needed:

    UNCHECKED -> VERIFYING -> EXISTS
                           -> CREATING -> CREATED
                                       -> CONFLICT_RETRY -> CREATED | FAILED
                           -> FAILED

``FAILED`` means "operate in local-only mode", never a fatal error.
"""

import logging
import re
import time
from enum import Enum
from typing import Callable, List, Optional

from ..models import Repository
from ..utils.logging import log_event, track
from .remote.types import RemoteErrorKind, RemoteRepositoryClient, failure_kind

logger = logging.getLogger(__name__)

DEFAULT_REPO_PREFIX = "privacy-journal-entries"
RETRY_REPO_PREFIX = "privacy-journal"
REPOSITORY_DESCRIPTION = "Private repository for journal entries"
MAX_HISTORY = 100

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9-]")


class ProvisioningState(str, Enum):
    UNCHECKED = "unchecked"
    VERIFYING = "verifying"
    EXISTS = "exists"
    CREATING = "creating"
    CREATED = "created"
    CONFLICT_RETRY = "conflict_retry"
    FAILED = "failed"


READY_STATES = frozenset({ProvisioningState.EXISTS, ProvisioningState.CREATED})


def sanitize_identity(identity: str) -> str:
    """Replace every character outside ``[A-Za-z0-9-]`` with ``-``."""
    return _UNSAFE_NAME_CHARS.sub("-", identity)


def derive_repo_name(identity: str, prefix: str = DEFAULT_REPO_PREFIX) -> str:
    return f"{prefix}-{sanitize_identity(identity)}"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class ProvisioningStateMachine:
    """
    Ensures a backing repository exists for one identity.

    Once ready, ``ensure_ready`` answers without remote calls until
    ``invalidate`` is called. Every state change is appended to ``history``.
    """

    def __init__(
        self,
        client: RemoteRepositoryClient,
        identity: str,
        repo_prefix: str = DEFAULT_REPO_PREFIX,
        retry_prefix: str = RETRY_REPO_PREFIX,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.client = client
        self.owner = identity
        self.repo_prefix = repo_prefix
        self.retry_prefix = retry_prefix
        self._clock = clock or _epoch_ms
        self._pinned = False
        self.repo_name = derive_repo_name(identity, repo_prefix)
        self._state = ProvisioningState.UNCHECKED
        self._history: List[ProvisioningState] = [ProvisioningState.UNCHECKED]

    @property
    def state(self) -> ProvisioningState:
        return self._state

    @property
    def history(self) -> List[ProvisioningState]:
        return list(self._history)

    @property
    def is_ready(self) -> bool:
        return self._state in READY_STATES

    def _transition(self, new_state: ProvisioningState) -> None:
        self._state = new_state
        self._history.append(new_state)
        if len(self._history) > MAX_HISTORY:
            del self._history[: len(self._history) - MAX_HISTORY]
        log_event(
            "provisioning_state_changed",
            {"state": new_state.value, "repository": self.repo_name},
            level=logging.DEBUG,
        )

    def invalidate(self) -> None:
        """Forget readiness so the next ``ensure_ready`` re-verifies."""
        if self._state != ProvisioningState.UNCHECKED:
            self._transition(ProvisioningState.UNCHECKED)

    async def _verify_identity(self) -> bool:
        result = await self.client.get_authenticated_login()
        if result.is_failure():
            log_event(
                "identity_verification_failed",
                {"error_kind": failure_kind(result).value, "error": result.error},
                level=logging.WARNING,
            )
            return False

        login = result.unwrap()
        if login != self.owner:
            log_event(
                "identity_canonicalized",
                {"previous": self.owner, "login": login},
            )
            self.owner = login
            if not self._pinned:
                self.repo_name = derive_repo_name(login, self.repo_prefix)
        return True

    async def _repository_exists(self) -> Optional[bool]:
        """
        Check for ``repo_name`` by listing, then by direct lookup.

        Returns:
            True or False, or None when the remote could not answer
        """
        listing = await self.client.list_repositories()
        if listing.is_success():
            if any(repo.name == self.repo_name for repo in listing.unwrap()):
                return True
        else:
            log_event(
                "repository_listing_failed",
                {"error_kind": failure_kind(listing).value},
                level=logging.WARNING,
            )

        lookup = await self.client.get_repository(self.owner, self.repo_name)
        if lookup.is_success():
            return True
        if failure_kind(lookup) == RemoteErrorKind.NOT_FOUND:
            return False
        return None

    async def _create(self, name: str) -> Optional[RemoteErrorKind]:
        result = await self.client.create_repository(
            name,
            private=True,
            description=REPOSITORY_DESCRIPTION,
            auto_init=True,
        )
        if result.is_success():
            return None
        return failure_kind(result)

    @track(operation="ensure_repository_ready", include_args=False, emit_events=False)
    async def ensure_ready(self) -> bool:
        """
        Make sure the backing repository exists.

        Returns:
            True when the remote can be used, False for local-only mode
        """
        if self.is_ready:
            return True

        self._transition(ProvisioningState.VERIFYING)
        if not await self._verify_identity():
            self._transition(ProvisioningState.FAILED)
            return False

        exists = await self._repository_exists()
        if exists is None:
            self._transition(ProvisioningState.FAILED)
            return False
        if exists:
            self._transition(ProvisioningState.EXISTS)
            return True

        self._transition(ProvisioningState.CREATING)
        error = await self._create(self.repo_name)
        if error is None:
            self._transition(ProvisioningState.CREATED)
            log_event("repository_provisioned", {"repository": self.repo_name})
            return True

        if error != RemoteErrorKind.NAME_CONFLICT:
            log_event(
                "repository_creation_failed",
                {"repository": self.repo_name, "error_kind": error.value},
                level=logging.WARNING,
            )
            self._transition(ProvisioningState.FAILED)
            return False

        # Exists under this name but is not visible to us
        self._transition(ProvisioningState.CONFLICT_RETRY)
        base_name = derive_repo_name(self.owner, self.repo_prefix)
        self.repo_name = f"{base_name}-{self._clock()}"
        error = await self._create(self.repo_name)
        if error is None:
            self._pinned = True
            self._transition(ProvisioningState.CREATED)
            log_event(
                "repository_provisioned",
                {"repository": self.repo_name, "reason": "name_conflict"},
            )
            return True

        log_event(
            "repository_creation_failed",
            {"repository": self.repo_name, "error_kind": error.value},
            level=logging.WARNING,
        )
        self._transition(ProvisioningState.FAILED)
        return False

    @track(operation="force_unique_repository", include_args=False)
    async def force_unique_repository(self) -> bool:
        """
        Create a repository under a fresh, timestamped name and select it.

        Returns:
            True if the repository was created
        """
        self._transition(ProvisioningState.VERIFYING)
        if not await self._verify_identity():
            self._transition(ProvisioningState.FAILED)
            return False

        name = f"{self.retry_prefix}-{sanitize_identity(self.owner)}-{self._clock()}"
        self._transition(ProvisioningState.CREATING)
        error = await self._create(name)
        if error is not None:
            log_event(
                "repository_creation_failed",
                {"repository": name, "error_kind": error.value, "reason": "retry"},
                level=logging.WARNING,
            )
            self._transition(ProvisioningState.FAILED)
            return False

        self.repo_name = name
        self._pinned = True
        self._transition(ProvisioningState.CREATED)
        log_event("repository_provisioned", {"repository": name, "reason": "retry"})
        return True

    def select_repository(self, name: str) -> None:
        """Pin an existing repository as current; it is checked on next use."""
        self.repo_name = name
        self._pinned = True
        self.invalidate()
        log_event("repository_selected", {"repository": name})

    @track(operation="create_named_repository", include_args=["custom_name"])
    async def create_repository(self, custom_name: Optional[str] = None) -> Optional[str]:
        """
        Create a repository (named, or derived from the identity) and select it.

        Returns:
            The repository name, or None if creation failed
        """
        if not await self._verify_identity():
            return None

        name = custom_name or derive_repo_name(self.owner, self.repo_prefix)
        error = await self._create(name)
        if error is not None:
            log_event(
                "repository_creation_failed",
                {"repository": name, "error_kind": error.value},
                level=logging.WARNING,
            )
            return None

        self.repo_name = name
        self._pinned = True
        self._transition(ProvisioningState.CREATED)
        return name

    async def list_journal_repositories(self) -> List[Repository]:
        """Repositories of the identity whose name marks them as journals."""
        result = await self.client.list_repositories()
        if result.is_failure():
            log_event(
                "repository_listing_failed",
                {"error_kind": failure_kind(result).value},
                level=logging.WARNING,
            )
            return []
        return [
            repo for repo in result.unwrap() if repo.name.startswith(self.retry_prefix)
        ]
