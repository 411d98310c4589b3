"""
User profile endpoints.
"""

from fastapi import APIRouter

from ....models import UserProfile
from ....models.requests import ProfileUpdateRequest
from ....utils.result import conflict_error
from ..dependencies import get_server
from ..error_formatting import failure_response

router = APIRouter(prefix="/api", tags=["profile"])


@router.get("/profile")
async def get_profile():
    profile = await get_server().get_store().get_user_profile()
    return {"success": True, "profile": profile.to_json_dict() if profile else None}


@router.put("/profile")
async def update_profile(request: ProfileUpdateRequest):
    store = get_server().get_store()
    saved = await store.save_user_profile(
        UserProfile(
            name=request.name,
            bio=request.bio,
            additional_info=request.additional_info,
        )
    )
    if saved is None:
        return failure_response(conflict_error("Profile was modified concurrently"))
    return {"success": True, "profile": saved.to_json_dict()}
