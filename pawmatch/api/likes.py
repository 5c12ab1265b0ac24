from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.likes.service import get_liked_you_page

router = APIRouter(prefix="/v1/likes", tags=["likes"])


@router.get("/incoming")
def get_incoming(
    limit: Optional[int] = Query(None, ge=1),
    cursor: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    """People who liked the caller and are still actionable, newest first."""
    page = get_liked_you_page(user_id, limit, cursor)
    if not page.ok:
        raise error_from_result(page.error)
    return {"data": page.model_dump(mode="json")}
