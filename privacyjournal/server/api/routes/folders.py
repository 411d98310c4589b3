"""
Folder endpoints.
"""

from fastapi import APIRouter

from ....models.requests import FolderCreateRequest, FolderMoveRequest, FolderUpdateRequest
from ....utils.result import not_found_error, validation_error
from ..dependencies import get_server
from ..error_formatting import failure_response

router = APIRouter(prefix="/api", tags=["folders"])


def _folder_list_response(folders):
    return {
        "success": True,
        "folders": [f.to_json_dict() for f in folders],
        "count": len(folders),
    }


@router.get("/folders")
async def list_folders():
    store = get_server().get_store()
    return _folder_list_response(await store.get_all_folders())


@router.post("/folders", status_code=201)
async def create_folder(request: FolderCreateRequest):
    store = get_server().get_store()
    if request.parent_id and await store.get_folder_by_id(request.parent_id) is None:
        return failure_response(
            validation_error(f"Parent folder {request.parent_id} does not exist")
        )

    folder = await store.create_folder(
        request.name,
        description=request.description,
        parent_id=request.parent_id,
        color=request.color,
    )
    if folder is None:
        return failure_response(validation_error("Folder could not be created"))
    return {"success": True, "folder": folder.to_json_dict()}


@router.get("/folders/roots")
async def list_root_folders():
    store = get_server().get_store()
    return _folder_list_response(await store.get_root_folders())


@router.get("/folders/{folder_id}")
async def get_folder(folder_id: str):
    store = get_server().get_store()
    folder = await store.get_folder_by_id(folder_id)
    if folder is None:
        return failure_response(not_found_error(f"Folder {folder_id} not found"))
    return {"success": True, "folder": folder.to_json_dict()}


@router.put("/folders/{folder_id}")
async def update_folder(folder_id: str, request: FolderUpdateRequest):
    """Rename a folder; ``description`` and ``color`` change only when sent."""
    store = get_server().get_store()
    optional = {
        field: getattr(request, field)
        for field in ("description", "color")
        if field in request.model_fields_set
    }
    folder = await store.update_folder(folder_id, request.name, **optional)
    if folder is None:
        return failure_response(
            not_found_error(f"Folder {folder_id} not found or modified concurrently")
        )
    return {"success": True, "folder": folder.to_json_dict()}


@router.delete("/folders/{folder_id}")
async def delete_folder(folder_id: str):
    store = get_server().get_store()
    if not await store.delete_folder(folder_id):
        return failure_response(not_found_error(f"Folder {folder_id} not found"))
    return {"success": True, "deleted": folder_id}


@router.get("/folders/{folder_id}/children")
async def list_subfolders(folder_id: str):
    store = get_server().get_store()
    return _folder_list_response(await store.get_subfolders(folder_id))


@router.get("/folders/{folder_id}/path")
async def get_folder_path(folder_id: str):
    """Root-first path to a folder. A cyclic parent chain is a 409."""
    store = get_server().get_store()
    path = await store.get_folder_path(folder_id)
    if not path:
        return failure_response(not_found_error(f"Folder {folder_id} not found"))
    return _folder_list_response(path)


@router.post("/folders/{folder_id}/move")
async def move_folder(folder_id: str, request: FolderMoveRequest):
    store = get_server().get_store()
    folder = await store.move_folder(folder_id, request.new_parent_id)
    if folder is None:
        return failure_response(
            validation_error(
                "Folder cannot be moved there",
                {"folder_id": folder_id, "new_parent_id": request.new_parent_id},
            )
        )
    return {"success": True, "folder": folder.to_json_dict()}
