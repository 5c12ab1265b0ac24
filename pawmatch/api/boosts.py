from typing import Any, Dict

from fastapi import APIRouter, Depends

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.boosts.service import get_boost_status, start_boost

router = APIRouter(prefix="/v1/boosts", tags=["boosts"])


@router.post("/start")
def post_start(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    result = start_boost(user_id)
    if not result.ok:
        details = result.model_dump(mode="json", include={"ends_at"}) if result.ends_at else None
        raise error_from_result(result.error, details)
    return {"data": result.model_dump(mode="json")}


@router.get("/status")
def get_status(user_id: str = Depends(get_current_user_id)) -> Dict[str, Any]:
    return {"data": get_boost_status(user_id).model_dump(mode="json")}
