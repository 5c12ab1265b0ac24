"""
pawmatch/api/subscription.py

Plus subscription lifecycle and the caller's current entitlement tier.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.entitlements.service import get_my_entitlements
from pawmatch.features.subscriptions.service import (
    cancel_my_subscription,
    get_my_subscription,
    purchase_plus_subscription,
)

router = APIRouter(tags=["subscription"])


class PlusPurchaseRequest(BaseModel):
    months: int


@router.get("/v1/subscription")
def get_subscription(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    result = get_my_subscription(user_id)
    return {"data": result.model_dump(mode="json")}


@router.post("/v1/subscription/plus")
def post_plus(body: PlusPurchaseRequest, user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    """Start or extend Plus for 1, 3 or 6 months."""
    result = purchase_plus_subscription(user_id, body.months)
    if not result.ok:
        raise error_from_result(result.error)
    return {"data": result.model_dump(mode="json")}


@router.post("/v1/subscription/cancel")
def post_cancel(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    result = cancel_my_subscription(user_id)
    if not result.ok:
        raise error_from_result(result.error)
    return {"data": result.model_dump(mode="json")}


@router.get("/v1/entitlements")
def get_entitlements(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    return {"data": get_my_entitlements(user_id).model_dump(mode="json")}
