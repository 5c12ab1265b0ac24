"""
pawmatch/api/swipes.py

Swipe endpoints: submit a decision, undo the last pass, read today's quota.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.quota.service import get_quota_status
from pawmatch.features.swipes.service import submit_swipe, undo_last_pass

router = APIRouter(prefix="/v1/swipes", tags=["swipes"])


class SwipeRequest(BaseModel):
    candidate_id: str = Field(..., min_length=1)
    lane: str
    action: str


@router.post("")
def post_swipe(body: SwipeRequest, user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    result = submit_swipe(user_id, body.candidate_id, body.lane, body.action)
    if not result.ok:
        details = None
        if result.error == "daily_limit_reached":
            details = {"lane": result.lane.value, "limit": result.limit, "used": result.used}
        raise error_from_result(result.error, details)
    return {"data": result.model_dump(mode="json")}


@router.post("/undo-pass")
def post_undo_pass(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    """Undo the caller's most recent pass in any lane."""
    result = undo_last_pass(user_id)
    if not result.ok:
        raise error_from_result(result.error)
    return {"data": result.model_dump(mode="json")}


@router.get("/quota")
def get_quota(
    lane: Optional[str] = Query(None, description="friendship | romantic"),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    status = get_quota_status(user_id, lane)
    if status is None:
        raise error_from_result("invalid_lane")
    return {"data": status.model_dump(mode="json")}
