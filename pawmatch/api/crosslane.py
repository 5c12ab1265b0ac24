"""
pawmatch/api/crosslane.py

Cross-lane pending pairs: read the pending state and let the chooser pick
the lane.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.crosslane.service import get_cross_lane_pending, resolve_cross_lane_connection

router = APIRouter(prefix="/v1/cross-lane", tags=["cross-lane"])


class ResolveRequest(BaseModel):
    lane: str


@router.get("/{other_id}")
def get_pending(other_id: str, user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    view = get_cross_lane_pending(user_id, other_id)
    if not view.ok:
        raise error_from_result(view.error)
    return {"data": view.model_dump(mode="json")}


@router.post("/{other_id}/resolve")
def post_resolve(other_id: str, body: ResolveRequest, user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    result = resolve_cross_lane_connection(user_id, other_id, body.lane)
    if not result.ok:
        details = {"resolved_lane": result.resolved_lane.value} if result.resolved_lane else None
        raise error_from_result(result.error, details)
    return {"data": result.model_dump(mode="json")}
