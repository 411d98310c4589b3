import pytest

from privacyjournal.storage.provisioning import (
    MAX_HISTORY,
    ProvisioningState,
    ProvisioningStateMachine,
    derive_repo_name,
    sanitize_identity,
)
from privacyjournal.storage.remote.types import RemoteErrorKind
from tests.mocks import FakeGitHubClient, ManualClock


def _machine(github: FakeGitHubClient, identity: str = "alice", clock=None):
    return ProvisioningStateMachine(github, identity, clock=clock or ManualClock())


class TestRepositoryNames:
    def test_sanitize_identity(self):
        assert sanitize_identity("jane.doe_99@example") == "jane-doe-99-example"

    def test_derive_repo_name(self):
        assert derive_repo_name("alice") == "privacy-journal-entries-alice"
        assert derive_repo_name("a b", prefix="notes") == "notes-a-b"


class TestEnsureReady:
    @pytest.mark.asyncio
    async def test_creates_missing_repository(self, github):
        machine = _machine(github)

        assert await machine.ensure_ready() is True

        assert "privacy-journal-entries-alice" in github.repositories
        assert machine.history == [
            ProvisioningState.UNCHECKED,
            ProvisioningState.VERIFYING,
            ProvisioningState.CREATING,
            ProvisioningState.CREATED,
        ]

    @pytest.mark.asyncio
    async def test_existing_repository_is_used(self, github):
        github.add_repository("privacy-journal-entries-alice")
        machine = _machine(github)

        assert await machine.ensure_ready() is True

        assert machine.state == ProvisioningState.EXISTS
        assert github.count_calls("create_repository") == 0

    @pytest.mark.asyncio
    async def test_ready_state_is_cached(self, github):
        machine = _machine(github)
        await machine.ensure_ready()
        calls_before = len(github.calls)

        assert await machine.ensure_ready() is True

        assert len(github.calls) == calls_before

    @pytest.mark.asyncio
    async def test_invalidate_forces_reverification(self, github):
        machine = _machine(github)
        await machine.ensure_ready()

        machine.invalidate()
        assert machine.state == ProvisioningState.UNCHECKED

        assert await machine.ensure_ready() is True
        assert machine.state == ProvisioningState.EXISTS

    @pytest.mark.asyncio
    async def test_name_conflict_retries_with_timestamp(self, github):
        github.hidden_repositories.add("privacy-journal-entries-alice")
        clock = ManualClock(start_ms=1700000000000)
        machine = _machine(github, clock=clock)

        assert await machine.ensure_ready() is True

        assert machine.repo_name == "privacy-journal-entries-alice-1700000000000"
        assert machine.history[-3:] == [
            ProvisioningState.CREATING,
            ProvisioningState.CONFLICT_RETRY,
            ProvisioningState.CREATED,
        ]

    @pytest.mark.asyncio
    async def test_renamed_repository_survives_reverification(self, github):
        github.hidden_repositories.add("privacy-journal-entries-alice")
        machine = _machine(github)
        await machine.ensure_ready()
        renamed = machine.repo_name

        machine.invalidate()
        await machine.ensure_ready()

        assert machine.repo_name == renamed
        assert machine.state == ProvisioningState.EXISTS

    @pytest.mark.asyncio
    async def test_unreachable_remote_fails(self, github):
        github.unreachable = True
        machine = _machine(github)

        assert await machine.ensure_ready() is False

        assert machine.state == ProvisioningState.FAILED
        assert not machine.is_ready

    @pytest.mark.asyncio
    async def test_unreachable_remote_never_creates(self, github):
        github.unreachable = True
        machine = _machine(github)

        await machine.ensure_ready()

        assert github.repositories == {}
        assert github.count_calls("create_repository") == 0
        assert machine.history[-1] == ProvisioningState.FAILED

    @pytest.mark.asyncio
    async def test_failed_lookup_does_not_create(self, github):
        github.fail_operations["list_repositories"] = RemoteErrorKind.UNREACHABLE
        github.fail_operations["get_repository"] = RemoteErrorKind.UNAUTHORIZED
        machine = _machine(github)

        assert await machine.ensure_ready() is False

        assert github.count_calls("create_repository") == 0

    @pytest.mark.asyncio
    async def test_failed_creation(self, github):
        github.fail_operations["create_repository"] = RemoteErrorKind.UNAUTHORIZED
        machine = _machine(github)

        assert await machine.ensure_ready() is False
        assert machine.state == ProvisioningState.FAILED

    @pytest.mark.asyncio
    async def test_identity_is_canonicalized(self):
        github = FakeGitHubClient(login="Alice")
        machine = _machine(github, identity="alice")

        await machine.ensure_ready()

        assert machine.owner == "Alice"
        assert machine.repo_name == "privacy-journal-entries-Alice"

    @pytest.mark.asyncio
    async def test_history_is_bounded(self, github):
        machine = _machine(github)
        for _ in range(MAX_HISTORY):
            await machine.ensure_ready()
            machine.invalidate()

        assert len(machine.history) == MAX_HISTORY


class TestRepositoryManagement:
    @pytest.mark.asyncio
    async def test_force_unique_repository(self, github):
        clock = ManualClock(start_ms=42)
        machine = _machine(github, clock=clock)

        assert await machine.force_unique_repository() is True

        assert machine.repo_name == "privacy-journal-alice-42"
        assert machine.is_ready

    @pytest.mark.asyncio
    async def test_force_unique_repository_failure(self, github):
        github.unreachable = True
        machine = _machine(github)

        assert await machine.force_unique_repository() is False
        assert machine.state == ProvisioningState.FAILED

    @pytest.mark.asyncio
    async def test_select_repository_pins_name(self, github):
        github.add_repository("privacy-journal-old")
        machine = _machine(github)

        machine.select_repository("privacy-journal-old")
        assert await machine.ensure_ready() is True

        assert machine.repo_name == "privacy-journal-old"
        assert machine.state == ProvisioningState.EXISTS

    @pytest.mark.asyncio
    async def test_create_repository_with_custom_name(self, github):
        machine = _machine(github)

        assert await machine.create_repository("privacy-journal-travel") == "privacy-journal-travel"

        assert machine.repo_name == "privacy-journal-travel"
        assert machine.state == ProvisioningState.CREATED

    @pytest.mark.asyncio
    async def test_create_repository_name_taken(self, github):
        github.add_repository("privacy-journal-travel")
        machine = _machine(github)

        assert await machine.create_repository("privacy-journal-travel") is None

    @pytest.mark.asyncio
    async def test_list_journal_repositories_filters_by_prefix(self, github):
        github.add_repository("privacy-journal-entries-alice")
        github.add_repository("privacy-journal-alice-1")
        github.add_repository("dotfiles")
        machine = _machine(github)

        names = [r.name for r in await machine.list_journal_repositories()]

        assert sorted(names) == ["privacy-journal-alice-1", "privacy-journal-entries-alice"]

    @pytest.mark.asyncio
    async def test_list_journal_repositories_unreachable(self, github):
        github.unreachable = True

        assert await _machine(github).list_journal_repositories() == []
