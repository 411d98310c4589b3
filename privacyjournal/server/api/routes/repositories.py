"""
Backing repository management endpoints.
"""

from fastapi import APIRouter

from ....models.requests import RepositoryCreateRequest, RepositorySelectRequest
from ....utils.result import conflict_error, service_unavailable
from ..dependencies import get_server
from ..error_formatting import failure_response

router = APIRouter(prefix="/api", tags=["repositories"])


@router.get("/repositories")
async def list_repositories():
    store = get_server().get_store()
    repositories = await store.list_journal_repositories()
    return {
        "success": True,
        "repositories": [r.to_json_dict() for r in repositories],
        "current": store.current_repository,
    }


@router.post("/repositories", status_code=201)
async def create_repository(request: RepositoryCreateRequest):
    """Create a journal repository and make it current."""
    store = get_server().get_store()
    name = await store.create_repository(request.name)
    if name is None:
        return failure_response(
            conflict_error(
                "Repository could not be created",
                {"name": request.name} if request.name else None,
            )
        )
    return {"success": True, "repository": name}


@router.post("/repositories/select")
async def select_repository(request: RepositorySelectRequest):
    store = get_server().get_store()
    store.select_repository(request.name)
    return {"success": True, "repository": store.current_repository}


@router.post("/repositories/retry")
async def retry_connection():
    """Create a fresh repository and move locally held records into it."""
    store = get_server().get_store()
    if not await store.retry_remote_connection():
        return failure_response(
            service_unavailable(
                "Could not connect to a new repository",
                {"mode": store.mode.value},
            )
        )
    return {
        "success": True,
        "repository": store.current_repository,
        "mode": store.mode.value,
    }
