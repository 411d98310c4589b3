import json

import pytest

from privacyjournal.models import BackendMode
from privacyjournal.storage.exceptions import CycleDetected

REPO = "privacy-journal-entries-alice"


def _folder_json(folder_id, name, parent_id=None):
    record = {
        "id": folder_id,
        "name": name,
        "createdAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": "2024-01-01T00:00:00.000Z",
    }
    if parent_id:
        record["parentId"] = parent_id
    return json.dumps(record).encode("utf-8")


@pytest.fixture
def cyclic_repo(github):
    github.add_repository(REPO)
    github.seed_file(REPO, "folders/a.json", _folder_json("a", "A", parent_id="b"))
    github.seed_file(REPO, "folders/b.json", _folder_json("b", "B", parent_id="a"))
    return github


class TestFolderRecords:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store, github):
        folder = await store.create_folder("Travel", description="Trips", color="#00aaff")

        stored = json.loads(github.file_content(REPO, f"folders/{folder.id}.json"))
        assert stored["name"] == "Travel"
        assert stored["createdAt"] == folder.created_at
        assert "parentId" not in stored
        assert await store.get_folder_by_id(folder.id) == folder

    @pytest.mark.asyncio
    async def test_list_in_creation_order(self, store, clock):
        first = await store.create_folder("Work")
        clock.advance(5)
        second = await store.create_folder("Home")

        assert [f.id for f in await store.get_all_folders()] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_empty_when_no_folders_directory(self, store):
        assert await store.get_all_folders() == []

    @pytest.mark.asyncio
    async def test_update(self, store):
        folder = await store.create_folder("Wrok")

        updated = await store.update_folder(folder.id, "Work", description="Job")

        assert updated.name == "Work"
        assert updated.description == "Job"
        assert updated.created_at == folder.created_at
        assert (await store.get_folder_by_id(folder.id)).name == "Work"

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        assert await store.update_folder("nope", "x") is None

    @pytest.mark.asyncio
    async def test_rename_keeps_description_and_color(self, store):
        folder = await store.create_folder("Wrok", description="Job", color="#00ff00")

        updated = await store.update_folder(folder.id, "Work")

        assert updated.description == "Job"
        assert updated.color == "#00ff00"
        stored = await store.get_folder_by_id(folder.id)
        assert (stored.description, stored.color) == ("Job", "#00ff00")

    @pytest.mark.asyncio
    async def test_update_clears_description_explicitly(self, store):
        folder = await store.create_folder("Work", description="Job", color="#00ff00")

        updated = await store.update_folder(folder.id, "Work", description=None)

        assert updated.description is None
        assert updated.color == "#00ff00"

    @pytest.mark.asyncio
    async def test_delete_moves_children_up(self, store):
        root = await store.create_folder("Root")
        middle = await store.create_folder("Middle", parent_id=root.id)
        leaf = await store.create_folder("Leaf", parent_id=middle.id)

        assert await store.delete_folder(middle.id) is True

        assert await store.get_folder_by_id(middle.id) is None
        assert (await store.get_folder_by_id(leaf.id)).parent_id == root.id
        assert await store.delete_folder(middle.id) is False

    @pytest.mark.asyncio
    async def test_entries_keep_dangling_folder_reference(self, store):
        folder = await store.create_folder("Temporary")
        entry = await store.create_entry("Note", "", folder_id=folder.id)

        await store.delete_folder(folder.id)

        assert (await store.get_entry_by_id(entry.id)).folder_id == folder.id
        assert await store.resolve_folder_name(folder.id) == "unknown"

    @pytest.mark.asyncio
    async def test_resolve_folder_name(self, store):
        folder = await store.create_folder("Dreams")

        assert await store.resolve_folder_name(folder.id) == "Dreams"
        assert await store.resolve_folder_name(None) is None

    @pytest.mark.asyncio
    async def test_local_mode(self, store, github):
        github.unreachable = True

        folder = await store.create_folder("Offline")

        assert store.mode == BackendMode.LOCAL_ONLY
        assert [f.name for f in await store.get_all_folders()] == ["Offline"]
        assert (await store.update_folder(folder.id, "Renamed")).name == "Renamed"
        assert await store.delete_folder(folder.id) is True
        assert await store.get_all_folders() == []


class TestFolderHierarchy:
    @pytest.mark.asyncio
    async def test_roots_and_subfolders(self, store):
        root = await store.create_folder("Root")
        child = await store.create_folder("Child", parent_id=root.id)
        orphan = await store.create_folder("Orphan", parent_id="deleted-parent")

        roots = {f.id for f in await store.get_root_folders()}

        assert roots == {root.id, orphan.id}
        assert [f.id for f in await store.get_subfolders(root.id)] == [child.id]

    @pytest.mark.asyncio
    async def test_path_is_root_first(self, store):
        root = await store.create_folder("Root")
        middle = await store.create_folder("Middle", parent_id=root.id)
        leaf = await store.create_folder("Leaf", parent_id=middle.id)

        path = await store.get_folder_path(leaf.id)

        assert [f.name for f in path] == ["Root", "Middle", "Leaf"]

    @pytest.mark.asyncio
    async def test_path_of_missing_folder_is_empty(self, store):
        assert await store.get_folder_path("nope") == []

    @pytest.mark.asyncio
    async def test_path_stops_at_dangling_parent(self, store):
        orphan = await store.create_folder("Orphan", parent_id="deleted-parent")

        assert [f.id for f in await store.get_folder_path(orphan.id)] == [orphan.id]

    @pytest.mark.asyncio
    async def test_cyclic_parent_chain_raises(self, store, cyclic_repo):
        with pytest.raises(CycleDetected) as exc_info:
            await store.get_folder_path("a")

        assert exc_info.value.folder_id == "a"

    @pytest.mark.asyncio
    async def test_move(self, store):
        first = await store.create_folder("First")
        second = await store.create_folder("Second")

        moved = await store.move_folder(second.id, first.id)

        assert moved.parent_id == first.id
        assert [f.id for f in await store.get_subfolders(first.id)] == [second.id]

    @pytest.mark.asyncio
    async def test_move_to_root(self, store):
        root = await store.create_folder("Root")
        child = await store.create_folder("Child", parent_id=root.id)

        moved = await store.move_folder(child.id, None)

        assert moved.parent_id is None

    @pytest.mark.asyncio
    async def test_move_under_descendant_is_rejected(self, store):
        root = await store.create_folder("Root")
        child = await store.create_folder("Child", parent_id=root.id)
        grandchild = await store.create_folder("Grandchild", parent_id=child.id)

        assert await store.move_folder(root.id, grandchild.id) is None
        assert await store.move_folder(root.id, root.id) is None
        assert (await store.get_folder_by_id(root.id)).parent_id is None

    @pytest.mark.asyncio
    async def test_move_to_missing_parent_is_rejected(self, store):
        folder = await store.create_folder("Lonely")

        assert await store.move_folder(folder.id, "nope") is None
        assert await store.move_folder("nope", None) is None
