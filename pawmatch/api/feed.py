"""
pawmatch/api/feed.py

Candidate feed, one lane and one page at a time.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from pawmatch.core.auth import get_current_user_id
from pawmatch.core.errors import error_from_result
from pawmatch.features.feed.service import get_feed_page

router = APIRouter(prefix="/v1/feed", tags=["feed"])


@router.get("")
def get_feed(
    lane: str = Query(..., description="friendship | romantic"),
    limit: Optional[int] = Query(None, ge=1, description="Page size, capped by FEED_MAX_PAGE_SIZE"),
    cursor: Optional[str] = Query(None, description="next_cursor from the previous page"),
    user_id: str = Depends(get_current_user_id),
) -> Dict[str, Any]:
    page = get_feed_page(user_id, lane, limit, cursor)
    if not page.ok:
        raise error_from_result(page.error)
    return {"data": page.model_dump(mode="json")}
