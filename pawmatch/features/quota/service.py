"""
pawmatch/features/quota/service.py

Daily accept quota counter.

One row per (user, UTC day, lane). The counter moves only when a swipe
transitions into accept for the first time; a new day starts a new row.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pawmatch.core.clock import normalize_now
from pawmatch.core.database import daily_like_usage, get_db_session, upsert
from pawmatch.features.entitlements.service import get_daily_like_limit
from pawmatch.models.lane import Lane, parse_lane
from pawmatch.models.swipe import QuotaStatus


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    limit: Optional[int]
    used: int

    @property
    def remaining(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(self.limit - self.used, 0)


def read_usage(session: Session, user_id: str, lane: Lane, day: date) -> int:
    used = session.execute(
        select(daily_like_usage.c.likes_used)
        .where(daily_like_usage.c.user_id == user_id)
        .where(daily_like_usage.c.day_utc == day)
        .where(daily_like_usage.c.lane == lane.value)
    ).scalar()
    return used or 0


def consume_daily_accept(
    session: Session,
    user_id: str,
    lane: Lane,
    limit: Optional[int],
    now: Optional[Any] = None,
) -> QuotaDecision:
    """Atomically check and increment today's counter for a new accept.

    Nothing is written when the limit is already reached.
    """
    normalized_now = normalize_now(now)
    day = normalized_now.date()

    if limit is None:
        return QuotaDecision(allowed=True, limit=None, used=read_usage(session, user_id, lane, day))

    session.execute(
        upsert(session, daily_like_usage)
        .values(user_id=user_id, day_utc=day, lane=lane.value, likes_used=0, updated_at=normalized_now)
        .on_conflict_do_nothing(index_elements=["user_id", "day_utc", "lane"])
    )
    used = session.execute(
        select(daily_like_usage.c.likes_used)
        .where(daily_like_usage.c.user_id == user_id)
        .where(daily_like_usage.c.day_utc == day)
        .where(daily_like_usage.c.lane == lane.value)
        .with_for_update()
    ).scalar() or 0

    if used >= limit:
        logger.warning(
            "[quota] BLOCK",
            extra={"user_id": user_id, "lane": lane.value, "limit": limit, "used": used},
        )
        return QuotaDecision(allowed=False, limit=limit, used=used)

    session.execute(
        update(daily_like_usage)
        .where(daily_like_usage.c.user_id == user_id)
        .where(daily_like_usage.c.day_utc == day)
        .where(daily_like_usage.c.lane == lane.value)
        .values(likes_used=used + 1, updated_at=normalized_now)
    )
    return QuotaDecision(allowed=True, limit=limit, used=used + 1)


def current_quota(session: Session, user_id: str, lane: Lane, now: Optional[Any] = None) -> QuotaDecision:
    normalized_now = normalize_now(now)
    limit = get_daily_like_limit(session, user_id, lane, normalized_now)
    used = read_usage(session, user_id, lane, normalized_now.date())
    return QuotaDecision(allowed=limit is None or used < limit, limit=limit, used=used)


def get_quota_status(user_id: str, lane, now: Optional[Any] = None) -> Optional[QuotaStatus]:
    """Read-only view of today's usage; None for an unknown lane."""
    parsed = parse_lane(lane)
    if parsed is None:
        return None
    with get_db_session() as session:
        decision = current_quota(session, user_id, parsed, now)
    return QuotaStatus(lane=parsed, limit=decision.limit, used=decision.used, remaining=decision.remaining)
