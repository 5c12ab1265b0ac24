"""
pawmatch/features/swipes/service.py

Swipe submission.

Each call is one unit of work serialized per viewer, so two concurrent
accepts cannot both pass the daily quota check on a stale read. Only a new
transition into accept consumes quota; repeating an accept is free.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from pawmatch.core.clock import normalize_now
from pawmatch.core.database import swipes
from pawmatch.core.locks import locked_session, swipe_lock_key
from pawmatch.features.entitlements.service import ensure_entitlement, get_daily_like_limit
from pawmatch.features.matching.resolver import on_new_accept
from pawmatch.features.quota.service import QuotaDecision, consume_daily_accept, read_usage
from pawmatch.features.swipes.ledger import get_swipe, upsert_swipe
from pawmatch.models.lane import Lane, parse_lane
from pawmatch.models.swipe import ConnectionEvent, SwipeAction, SwipeResult, UndoPassResult


logger = logging.getLogger(__name__)


def parse_action(value) -> Optional[SwipeAction]:
    if isinstance(value, SwipeAction):
        return value
    try:
        return SwipeAction(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class AcceptOutcome:
    new_accept: bool
    connection_event: Optional[ConnectionEvent]


def record_free_accept(session: Session, viewer_id: str, candidate_id: str, lane: Lane, now: datetime) -> AcceptOutcome:
    """Write an accept without touching the daily counter (compliments, reconciliation).

    The caller must hold the viewer's swipe lock.
    """
    previous = get_swipe(session, viewer_id, candidate_id, lane, for_update=True)
    new_accept = previous is None or previous.action != SwipeAction.ACCEPT
    upsert_swipe(session, viewer_id, candidate_id, lane, SwipeAction.ACCEPT, now)
    event = on_new_accept(session, viewer_id, candidate_id, lane, now) if new_accept else None
    return AcceptOutcome(new_accept=new_accept, connection_event=event)


def submit_swipe(
    viewer_id: Optional[str],
    candidate_id: Optional[str],
    lane,
    action,
    now: Optional[Any] = None,
) -> SwipeResult:
    """
    Record a pass, reject or accept from `viewer_id` on `candidate_id` in `lane`.

    Only a new transition into accept consumes the daily quota; a blocked
    accept writes nothing.

    Args:
        viewer_id: User swiping
        candidate_id: User being swiped on
        lane: friendship | romantic
        action: pass | reject | accept
        now: Override for the current time (defaults to UTC now)

    Returns:
        SwipeResult with remaining_accepts and any connection_event, or
        ok=False with an error code (daily_limit_reached carries limit and used)
    """
    if not viewer_id:
        return SwipeResult(ok=False, error="not_authenticated")
    if not candidate_id or candidate_id == viewer_id:
        return SwipeResult(ok=False, error="invalid_candidate")
    parsed_lane = parse_lane(lane)
    if parsed_lane is None:
        return SwipeResult(ok=False, error="invalid_lane")
    parsed_action = parse_action(action)
    if parsed_action is None:
        return SwipeResult(ok=False, error="invalid_action")

    normalized_now = normalize_now(now)
    event = None

    with locked_session(swipe_lock_key(viewer_id)) as session:
        ensure_entitlement(session, viewer_id, normalized_now)
        previous = get_swipe(session, viewer_id, candidate_id, parsed_lane, for_update=True)
        new_accept = parsed_action == SwipeAction.ACCEPT and (
            previous is None or previous.action != SwipeAction.ACCEPT
        )
        limit = get_daily_like_limit(session, viewer_id, parsed_lane, normalized_now)

        if new_accept:
            quota = consume_daily_accept(session, viewer_id, parsed_lane, limit, normalized_now)
            if not quota.allowed:
                return SwipeResult(
                    ok=False,
                    error="daily_limit_reached",
                    lane=parsed_lane,
                    limit=quota.limit,
                    used=quota.used,
                    remaining_accepts=0,
                )
        else:
            quota = QuotaDecision(
                allowed=True,
                limit=limit,
                used=read_usage(session, viewer_id, parsed_lane, normalized_now.date()),
            )

        upsert_swipe(session, viewer_id, candidate_id, parsed_lane, parsed_action, normalized_now)

        if new_accept:
            event = on_new_accept(session, viewer_id, candidate_id, parsed_lane, normalized_now)

    logger.info(
        "[swipes] submitted",
        extra={
            "user_id": viewer_id,
            "other_user_id": candidate_id,
            "lane": parsed_lane.value,
            "action": parsed_action.value,
            "new_accept": new_accept,
            "remaining_accepts": quota.remaining,
        },
    )
    return SwipeResult(
        ok=True,
        lane=parsed_lane,
        remaining_accepts=quota.remaining,
        connection_event=event,
    )


def undo_last_pass(viewer_id: Optional[str]) -> UndoPassResult:
    """Delete the viewer's most recent pass (any lane) so the candidate can reappear."""
    if not viewer_id:
        return UndoPassResult(ok=False, error="not_authenticated")

    with locked_session(swipe_lock_key(viewer_id)) as session:
        row = session.execute(
            select(swipes)
            .where(swipes.c.viewer_id == viewer_id)
            .where(swipes.c.action == SwipeAction.PASS.value)
            .order_by(swipes.c.created_at.desc(), swipes.c.id.desc())
            .limit(1)
            .with_for_update()
        ).first()
        if row is None:
            return UndoPassResult(ok=False, error="nothing_to_undo")
        session.execute(delete(swipes).where(swipes.c.id == row.id))

    logger.info(
        "[swipes] pass undone",
        extra={"user_id": viewer_id, "other_user_id": row.candidate_id, "lane": row.lane},
    )
    return UndoPassResult(ok=True, candidate_id=row.candidate_id, lane=Lane(row.lane))
