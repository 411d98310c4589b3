"""
Guided flow endpoints.
"""

from fastapi import APIRouter

from ....models.requests import FlowCreateRequest, FlowResponsesRequest, FlowUpdateRequest
from ....utils.result import not_found_error, validation_error
from ..dependencies import get_server
from ..error_formatting import failure_response

router = APIRouter(prefix="/api", tags=["flows"])


@router.get("/flows")
async def list_flows():
    store = get_server().get_store()
    flows = await store.get_all_flows()
    return {
        "success": True,
        "flows": [f.to_json_dict() for f in flows],
        "count": len(flows),
    }


@router.post("/flows", status_code=201)
async def create_flow(request: FlowCreateRequest):
    store = get_server().get_store()
    flow = await store.create_flow(
        request.title, description=request.description, steps=request.steps
    )
    if flow is None:
        return failure_response(validation_error("Flow could not be created"))
    return {"success": True, "flow": flow.to_json_dict()}


@router.get("/flows/{flow_id}")
async def get_flow(flow_id: str):
    store = get_server().get_store()
    flow = await store.get_flow_by_id(flow_id)
    if flow is None:
        return failure_response(not_found_error(f"Flow {flow_id} not found"))
    return {"success": True, "flow": flow.to_json_dict()}


@router.put("/flows/{flow_id}")
async def update_flow(flow_id: str, request: FlowUpdateRequest):
    """Retitle a flow; ``description`` and ``steps`` change only when sent."""
    store = get_server().get_store()
    optional = {
        field: getattr(request, field)
        for field in ("description", "steps")
        if field in request.model_fields_set
    }
    flow = await store.update_flow(flow_id, request.title, **optional)
    if flow is None:
        return failure_response(
            not_found_error(f"Flow {flow_id} not found or modified concurrently")
        )
    return {"success": True, "flow": flow.to_json_dict()}


@router.delete("/flows/{flow_id}")
async def delete_flow(flow_id: str):
    store = get_server().get_store()
    if not await store.delete_flow(flow_id):
        return failure_response(not_found_error(f"Flow {flow_id} not found"))
    return {"success": True, "deleted": flow_id}


@router.post("/flows/{flow_id}/responses", status_code=201)
async def submit_flow_responses(flow_id: str, request: FlowResponsesRequest):
    """Save one completed run of a flow as a journal entry."""
    store = get_server().get_store()
    entry = await store.submit_flow_responses(flow_id, request.answers)
    if entry is None:
        return failure_response(not_found_error(f"Flow {flow_id} not found"))
    return {"success": True, "entry": entry.to_json_dict(), "mode": store.mode.value}
