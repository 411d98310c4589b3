"""
Journal entry endpoints.
"""

from typing import Optional

from fastapi import APIRouter

from ....models.requests import EntryCreateRequest, EntryUpdateRequest
from ....storage import UNCHANGED
from ....utils.result import not_found_error, validation_error
from ..dependencies import get_server
from ..error_formatting import failure_response

router = APIRouter(prefix="/api", tags=["entries"])


@router.get("/entries")
async def list_entries(folder_id: Optional[str] = None):
    """List entries, newest first, optionally limited to one folder."""
    store = get_server().get_store()
    entries = await store.get_all_entries()
    if folder_id is not None:
        entries = [e for e in entries if e.folder_id == folder_id]

    return {
        "success": True,
        "entries": [e.to_json_dict() for e in entries],
        "count": len(entries),
        "mode": store.mode.value,
    }


@router.post("/entries", status_code=201)
async def create_entry(request: EntryCreateRequest):
    if not request.title.strip():
        return failure_response(validation_error("Title is required"))

    store = get_server().get_store()
    entry = await store.create_entry(request.title, request.content, request.folder_id)
    return {"success": True, "entry": entry.to_json_dict(), "mode": store.mode.value}


@router.get("/entries/{entry_id}")
async def get_entry(entry_id: str):
    store = get_server().get_store()
    entry = await store.get_entry_by_id(entry_id)
    if entry is None:
        return failure_response(not_found_error(f"Entry {entry_id} not found"))

    return {
        "success": True,
        "entry": entry.to_json_dict(),
        "folder_name": await store.resolve_folder_name(entry.folder_id),
    }


@router.put("/entries/{entry_id}")
async def update_entry(entry_id: str, request: EntryUpdateRequest):
    """Update an entry; ``folderId`` is only changed when present in the body."""
    if not request.title.strip():
        return failure_response(validation_error("Title is required"))

    store = get_server().get_store()
    folder_id = (
        request.folder_id if "folder_id" in request.model_fields_set else UNCHANGED
    )
    entry = await store.update_entry(
        entry_id, request.title, request.content, folder_id=folder_id
    )
    if entry is None:
        return failure_response(
            not_found_error(
                f"Entry {entry_id} not found or modified concurrently",
                {"entry_id": entry_id},
            )
        )
    return {"success": True, "entry": entry.to_json_dict()}


@router.delete("/entries/{entry_id}")
async def delete_entry(entry_id: str):
    store = get_server().get_store()
    if not await store.delete_entry(entry_id):
        return failure_response(not_found_error(f"Entry {entry_id} not found"))
    return {"success": True, "deleted": entry_id}
