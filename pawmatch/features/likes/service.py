"""
pawmatch/features/likes/service.py

"Liked you": people who accepted the caller and are still actionable.

Excludes blocked pairs, invisible profiles, people the caller already
accepted or rejected, hard suppressions, and pairs sitting in a cross-lane
pending state (those surface through the cross-lane flow instead).
Keyset paginated on (liked_at, liker_id) descending.
"""

from typing import Any, Optional
import logging

from sqlalchemy import and_, exists, func, or_, select

from pawmatch.core.clock import as_utc, normalize_now
from pawmatch.core.config import settings
from pawmatch.core.database import (
    blocked_users,
    cross_lane_connections,
    get_db_session,
    profiles,
    swipes,
    user_suppressions,
)
from pawmatch.features.feed.ranking import InvalidCursor, SortKey, decode_cursor, encode_cursor
from pawmatch.models.crosslane import CrossLaneStatus
from pawmatch.models.feed import LikedYouEntry, LikedYouPage
from pawmatch.models.lane import Lane
from pawmatch.models.swipe import SwipeAction


logger = logging.getLogger(__name__)


def get_liked_you_page(
    user_id: Optional[str],
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
    *,
    now: Optional[Any] = None,
) -> LikedYouPage:
    if not user_id:
        return LikedYouPage(ok=False, error="not_authenticated")
    try:
        after = decode_cursor(cursor)
    except InvalidCursor:
        return LikedYouPage(ok=False, error="invalid_cursor")

    page_size = max(1, min(limit or settings.FEED_DEFAULT_PAGE_SIZE, settings.FEED_MAX_PAGE_SIZE))
    normalized_now = normalize_now(now)

    mine = swipes.alias("mine")
    blocked = exists().where(
        or_(
            and_(blocked_users.c.blocker_id == user_id, blocked_users.c.blocked_id == swipes.c.viewer_id),
            and_(blocked_users.c.blocker_id == swipes.c.viewer_id, blocked_users.c.blocked_id == user_id),
        )
    )
    already_acted = exists().where(
        mine.c.viewer_id == user_id,
        mine.c.candidate_id == swipes.c.viewer_id,
        mine.c.action.in_((SwipeAction.ACCEPT.value, SwipeAction.REJECT.value)),
    )
    suppressed = exists().where(
        user_suppressions.c.actor_id == user_id,
        user_suppressions.c.target_id == swipes.c.viewer_id,
        or_(
            user_suppressions.c.blocked_at.is_not(None),
            user_suppressions.c.reported_at.is_not(None),
            user_suppressions.c.friendship_pass_until > normalized_now,
            user_suppressions.c.romantic_pass_until > normalized_now,
        ),
    )
    pending_pair = exists().where(
        cross_lane_connections.c.status == CrossLaneStatus.PENDING.value,
        or_(
            and_(cross_lane_connections.c.user_low == user_id, cross_lane_connections.c.user_high == swipes.c.viewer_id),
            and_(cross_lane_connections.c.user_low == swipes.c.viewer_id, cross_lane_connections.c.user_high == user_id),
        ),
    )

    stmt = (
        select(
            swipes.c.viewer_id.label("liker_id"),
            swipes.c.created_at.label("liked_at"),
            swipes.c.lane,
            profiles.c.display_name,
            profiles.c.city,
        )
        .select_from(swipes.join(profiles, profiles.c.user_id == swipes.c.viewer_id))
        .where(swipes.c.candidate_id == user_id)
        .where(swipes.c.action == SwipeAction.ACCEPT.value)
        .where(profiles.c.lifecycle_status.in_(("active", "limited")))
        .where(func.coalesce(profiles.c.is_hidden, False).is_(False))
        .where(profiles.c.deleted_at.is_(None))
        .where(~blocked)
        .where(~already_acted)
        .where(~suppressed)
        .where(~pending_pair)
    )
    if after is not None:
        stmt = stmt.where(
            or_(
                swipes.c.created_at < after.effective_ts,
                and_(swipes.c.created_at == after.effective_ts, swipes.c.viewer_id < after.user_id),
            )
        )
    stmt = stmt.order_by(swipes.c.created_at.desc(), swipes.c.viewer_id.desc()).limit(page_size + 1)

    with get_db_session() as session:
        rows = session.execute(stmt).all()

    has_more = len(rows) > page_size
    rows = rows[:page_size]
    entries = [
        LikedYouEntry(
            liker_id=row.liker_id,
            liked_at=as_utc(row.liked_at),
            lane=Lane(row.lane),
            display_name=row.display_name,
            city=row.city,
        )
        for row in rows
    ]
    next_cursor = None
    if has_more and entries:
        last = entries[-1]
        next_cursor = encode_cursor(SortKey(effective_ts=last.liked_at, user_id=last.liker_id))

    logger.info("[likes] liked-you page", extra={"user_id": user_id, "returned": len(entries)})
    return LikedYouPage(entries=entries, next_cursor=next_cursor)
