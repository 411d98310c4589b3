"""
Semantic search and index maintenance endpoints.
"""

from typing import Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..dependencies import get_server

router = APIRouter(prefix="/api", tags=["search"])

MAX_SEARCH_LIMIT = 50


def _validate_search_params(q: str, limit: int) -> Optional[JSONResponse]:
    """Returns an error response if validation fails, None if valid."""
    if not q.strip():
        return JSONResponse(
            content={
                "success": False,
                "error": "Query must not be empty",
                "error_type": "ValidationError",
            },
            status_code=400,
        )

    if limit < 1 or limit > MAX_SEARCH_LIMIT:
        return JSONResponse(
            content={
                "success": False,
                "error": f"Limit must be between 1 and {MAX_SEARCH_LIMIT}",
                "error_type": "ValidationError",
            },
            status_code=400,
        )

    return None


@router.get("/search")
async def semantic_search(q: str = "", limit: Optional[int] = None):
    """Entries most similar in meaning to ``q``, best first."""
    server = get_server()
    if limit is None:
        limit = server.settings.search_default_limit

    error_response = _validate_search_params(q, limit)
    if error_response:
        return error_response

    hits = await server.get_store().semantic_search_with_scores(q, limit)
    return {
        "success": True,
        "results": [
            {"entry": hit.entry.to_json_dict(), "score": hit.score} for hit in hits
        ],
        "count": len(hits),
        "query": q,
    }


@router.post("/index/rebuild")
async def rebuild_index():
    """Embed every entry not yet in the index."""
    summary = await get_server().get_store().rebuild_vector_index()
    return {"success": True, **summary.model_dump()}
