"""
Chat session endpoints.
"""

from fastapi import APIRouter

from ....models.requests import ChatMessageRequest, ChatSessionCreateRequest
from ....utils.result import not_found_error, validation_error
from ..dependencies import get_server
from ..error_formatting import failure_response

router = APIRouter(prefix="/api", tags=["chats"])


@router.get("/chats")
async def list_chat_sessions():
    """Chat sessions, newest first."""
    store = get_server().get_store()
    sessions = await store.get_all_chat_sessions()
    return {
        "success": True,
        "sessions": [s.to_json_dict() for s in sessions],
        "count": len(sessions),
    }


@router.post("/chats", status_code=201)
async def create_chat_session(request: ChatSessionCreateRequest):
    store = get_server().get_store()
    session = await store.create_chat_session(request.title)
    if session is None:
        return failure_response(validation_error("Chat session could not be created"))
    return {"success": True, "session": session.to_json_dict()}


@router.get("/chats/{session_id}")
async def get_chat_session(session_id: str):
    store = get_server().get_store()
    session = await store.get_chat_session(session_id)
    if session is None:
        return failure_response(not_found_error(f"Chat session {session_id} not found"))
    return {"success": True, "session": session.to_json_dict()}


@router.delete("/chats/{session_id}")
async def delete_chat_session(session_id: str):
    store = get_server().get_store()
    if not await store.delete_chat_session(session_id):
        return failure_response(not_found_error(f"Chat session {session_id} not found"))
    return {"success": True, "deleted": session_id}


@router.post("/chats/{session_id}/messages")
async def append_message(session_id: str, request: ChatMessageRequest):
    store = get_server().get_store()
    session = await store.append_message_to_session(
        session_id, request.role, request.content
    )
    if session is None:
        return failure_response(
            not_found_error(
                f"Chat session {session_id} not found or modified concurrently"
            )
        )
    return {"success": True, "session": session.to_json_dict()}
