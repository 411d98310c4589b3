import json

import pytest

from privacyjournal.models import BackendMode, Flow, FlowStep
from privacyjournal.storage.document_store import render_flow_responses

REPO = "privacy-journal-entries-alice"


def _steps():
    return [
        FlowStep(id="mood", prompt="How do you feel?", type="range", min=1, max=10),
        FlowStep(
            id="slept",
            prompt="Slept well?",
            type="boolean",
            description="At least seven hours",
        ),
        FlowStep(id="notes", prompt="Anything else?", type="journal"),
    ]


def _flow():
    return Flow(
        id="f-1",
        title="Evening check-in",
        steps=_steps(),
        created_at="2024-05-01T10:20:30.123Z",
        updated_at="2024-05-01T10:20:30.123Z",
    )


class TestFlows:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store, github):
        flow = await store.create_flow("Evening check-in", steps=_steps())

        stored = json.loads(github.file_content(REPO, f"flows/{flow.id}.json"))
        assert stored["title"] == "Evening check-in"
        assert [s["id"] for s in stored["steps"]] == ["mood", "slept", "notes"]
        assert "createdAt" in stored
        assert await store.get_flow_by_id(flow.id) == flow

    @pytest.mark.asyncio
    async def test_list_in_creation_order(self, store, clock):
        await store.create_flow("Morning")
        clock.advance(1000)
        await store.create_flow("Evening")

        assert [f.title for f in await store.get_all_flows()] == ["Morning", "Evening"]

    @pytest.mark.asyncio
    async def test_update_keeps_steps_unless_passed(self, store):
        flow = await store.create_flow("Check-in", description="daily", steps=_steps())

        renamed = await store.update_flow(flow.id, "Daily check-in")
        assert renamed.steps == flow.steps
        assert renamed.description == "daily"

        trimmed = await store.update_flow(
            flow.id, "Daily check-in", description=None, steps=_steps()[:1]
        )
        assert [s.id for s in trimmed.steps] == ["mood"]
        assert trimmed.description is None
        assert trimmed.created_at == flow.created_at

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        assert await store.update_flow("nope", "x") is None

    @pytest.mark.asyncio
    async def test_delete(self, store, github):
        flow = await store.create_flow("Temporary")

        assert await store.delete_flow(flow.id) is True

        assert github.file_content(REPO, f"flows/{flow.id}.json") is None
        assert await store.get_flow_by_id(flow.id) is None
        assert await store.delete_flow(flow.id) is False

    @pytest.mark.asyncio
    async def test_local_mode(self, store, github):
        github.unreachable = True

        flow = await store.create_flow("Offline flow")

        assert store.mode == BackendMode.LOCAL_ONLY
        assert [f.id for f in await store.get_all_flows()] == [flow.id]


class TestFlowResponses:
    def test_render(self):
        flow = _flow()

        content = render_flow_responses(
            flow, {"mood": 7, "slept": True}, "2024-05-01T10:20:30.123Z"
        )

        assert content == (
            "Flow: Evening check-in\n"
            "Date: 2024-05-01T10:20:30.123Z\n"
            "\n"
            "## 1. How do you feel?\n"
            "Answer: 7\n"
            "\n"
            "## 2. Slept well?\n"
            "At least seven hours\n"
            "Answer: Yes\n"
            "\n"
            "## 3. Anything else?\n"
            "Answer: \n"
            "\n"
        )

    @pytest.mark.asyncio
    async def test_submit_creates_entry(self, store):
        flow = await store.create_flow("Evening check-in", steps=_steps())

        entry = await store.submit_flow_responses(flow.id, {"slept": False})

        assert entry.title == "Evening check-in - 2024-05-01"
        assert "Answer: No" in entry.content
        assert await store.get_entry_by_id(entry.id) == entry

    @pytest.mark.asyncio
    async def test_submit_for_missing_flow(self, store):
        assert await store.submit_flow_responses("nope", {}) is None
        assert await store.get_all_entries() == []


class TestChatSessions:
    @pytest.mark.asyncio
    async def test_default_title(self, store):
        session = await store.create_chat_session()

        assert session.title == "Chat 2024-05-01 10:20:30"
        assert session.messages == []

    @pytest.mark.asyncio
    async def test_newest_first(self, store, clock):
        await store.create_chat_session("older")
        clock.advance(60_000)
        await store.create_chat_session("newer")

        titles = [s.title for s in await store.get_all_chat_sessions()]

        assert titles == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_append_messages(self, store, github, clock):
        session = await store.create_chat_session("Questions")
        clock.advance(1000)

        await store.append_message_to_session(session.id, "user", "What did I do in May?")
        updated = await store.append_message_to_session(
            session.id, "assistant", "You went to Lisbon."
        )

        assert [m.role for m in updated.messages] == ["user", "assistant"]
        assert updated.updated_at > session.updated_at
        assert updated.messages[0].timestamp < updated.messages[1].timestamp
        stored = json.loads(github.file_content(REPO, f"chats/{session.id}.json"))
        assert stored["messages"][1]["content"] == "You went to Lisbon."

    @pytest.mark.asyncio
    async def test_append_to_missing_session(self, store):
        assert await store.append_message_to_session("nope", "user", "hi") is None

    @pytest.mark.asyncio
    async def test_delete(self, store):
        session = await store.create_chat_session("Scratch")

        assert await store.delete_chat_session(session.id) is True
        assert await store.get_chat_session(session.id) is None

    @pytest.mark.asyncio
    async def test_local_mode_survives_recovery(self, store, github, cache):
        await store.create_chat_session("Online")
        github.unreachable = True
        offline = await store.create_chat_session("Offline")
        await store.append_message_to_session(offline.id, "user", "still here?")

        github.unreachable = False
        assert [s.title for s in await store.get_all_chat_sessions()] == ["Online"]
        assert "still here?" in cache.get("journal-chats")

        assert await store.retry_remote_connection() is True
        repo = store.current_repository
        assert github.file_content(repo, f"chats/{offline.id}.json") is not None
