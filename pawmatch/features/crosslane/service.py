"""
pawmatch/features/crosslane/service.py

Resolution of cross-lane pending connections, by the chooser or by the
expiry sweep. Both paths finish the same way: the missing reciprocal accept
is written in the chosen lane without charging quota, the conversation is
activated in that lane and any held first message is replayed exactly once.
"""

from datetime import datetime
from typing import Any, Optional
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from pawmatch.core.clock import normalize_now
from pawmatch.core.config import settings
from pawmatch.core.database import cross_lane_connections, get_db_session
from pawmatch.core.logging import log_event
from pawmatch.features.conversations.service import activate, append_message
from pawmatch.features.crosslane.state import (
    CrossLanePolicy,
    connection_from_row,
    load,
    mark_resolved,
    resolution_error,
)
from pawmatch.features.swipes.ledger import upsert_swipe
from pawmatch.models.crosslane import (
    AutoResolveResult,
    CrossLaneConnection,
    CrossLanePendingView,
    CrossLaneStatus,
    ResolveResult,
)
from pawmatch.models.lane import Lane, PairKey, parse_lane
from pawmatch.models.swipe import SwipeAction


logger = logging.getLogger(__name__)

MAX_SWEEP_BATCH = 500


def _finalize(session: Session, connection: CrossLaneConnection, lane: Lane, now: datetime) -> str:
    # The friendship-lane acceptor is pals_user_id, the romantic one match_user_id
    if lane == Lane.ROMANTIC:
        upsert_swipe(session, connection.pals_user_id, connection.match_user_id, lane, SwipeAction.ACCEPT, now)
    else:
        upsert_swipe(session, connection.match_user_id, connection.pals_user_id, lane, SwipeAction.ACCEPT, now)

    conversation_id = activate(session, connection.pals_user_id, connection.match_user_id, lane, now)

    held = connection.message
    if held is not None:
        append_message(
            session,
            conversation_id,
            held.sender_id,
            held.body,
            held.client_message_id,
            now,
            metadata=held.metadata,
            created_at=held.created_at,
        )
    return conversation_id


def resolve_cross_lane_connection(
    user_id: Optional[str],
    other_id: Optional[str],
    selected_lane,
    now: Optional[Any] = None,
    policy: Optional[CrossLanePolicy] = None,
) -> ResolveResult:
    """
    Chooser picks the lane for a pending pair.

    Args:
        user_id: Caller, who must be the chooser for the pair
        other_id: The other participant
        selected_lane: friendship | romantic
        now: Override for the current time (defaults to UTC now)
        policy: Chooser and default lanes (defaults to settings)

    Returns:
        ResolveResult with conversation_id and lane; already_resolved also
        reports resolved_lane
    """
    if not user_id:
        return ResolveResult(ok=False, error="not_authenticated")
    if not other_id or other_id == user_id:
        return ResolveResult(ok=False, error="invalid_target")
    lane = parse_lane(selected_lane)
    if lane is None:
        return ResolveResult(ok=False, error="invalid_lane")

    policy = policy or CrossLanePolicy.from_settings()
    normalized_now = normalize_now(now)
    pair = PairKey.of(user_id, other_id)

    with get_db_session() as session:
        row = load(session, pair, for_update=True)
        if row is None:
            return ResolveResult(ok=False, error="not_found")
        connection = connection_from_row(row, policy)

        error = resolution_error(connection, user_id, normalized_now)
        if error == "already_resolved":
            return ResolveResult(ok=False, error=error, resolved_lane=connection.state.lane)
        if error:
            log_event("info", "[crosslane] resolve rejected", user_id=user_id, other_user_id=other_id, error_code=error)
            return ResolveResult(ok=False, error=error)

        if not mark_resolved(session, pair, lane, user_id, normalized_now):
            return ResolveResult(ok=False, error="already_resolved")
        conversation_id = _finalize(session, connection, lane, normalized_now)

    log_event(
        "info",
        "[crosslane] resolved by chooser",
        user_id=user_id,
        other_user_id=other_id,
        lane=lane.value,
        event_type="cross_lane.resolved",
        extra={"conversation_id": conversation_id},
    )
    return ResolveResult(ok=True, conversation_id=conversation_id, lane=lane)


def auto_resolve_cross_lane_connections(
    limit: int = 200,
    now: Optional[Any] = None,
    policy: Optional[CrossLanePolicy] = None,
) -> AutoResolveResult:
    """Resolve up to `limit` expired pending pairs to the default lane.

    Rows another worker already holds are skipped, so concurrent sweeps never
    resolve the same pair twice; re-running over resolved rows does nothing.
    """
    policy = policy or CrossLanePolicy.from_settings()
    normalized_now = normalize_now(now)
    batch = max(1, min(int(limit or settings.AUTO_RESOLVE_BATCH_LIMIT), MAX_SWEEP_BATCH))
    resolved = 0

    with get_db_session() as session:
        rows = session.execute(
            select(cross_lane_connections)
            .where(cross_lane_connections.c.status == CrossLaneStatus.PENDING.value)
            .where(cross_lane_connections.c.expires_at <= normalized_now)
            .order_by(cross_lane_connections.c.expires_at)
            .limit(batch)
            .with_for_update(skip_locked=True)
        ).all()

        for row in rows:
            connection = connection_from_row(row, policy)
            if not mark_resolved(session, connection.pair, policy.default_lane, None, normalized_now):
                continue
            _finalize(session, connection, policy.default_lane, normalized_now)
            resolved += 1

    logger.info(
        "[crosslane] auto-resolve sweep",
        extra={"candidates": len(rows), "resolved": resolved, "lane": policy.default_lane.value},
    )
    return AutoResolveResult(ok=True, resolved=resolved)


def get_cross_lane_pending(
    user_id: Optional[str],
    other_id: Optional[str],
    policy: Optional[CrossLanePolicy] = None,
) -> CrossLanePendingView:
    """Pending pair details for either participant, including the held message."""
    if not user_id:
        return CrossLanePendingView(ok=False, error="not_authenticated")
    if not other_id or other_id == user_id:
        return CrossLanePendingView(ok=False, error="invalid_target")

    policy = policy or CrossLanePolicy.from_settings()
    with get_db_session() as session:
        row = load(session, PairKey.of(user_id, other_id))
        if row is None:
            return CrossLanePendingView(ok=False, error="not_found")
        connection = connection_from_row(row, policy)

    if not connection.is_pending:
        return CrossLanePendingView(ok=False, error="not_pending")

    return CrossLanePendingView(
        ok=True,
        pals_user_id=connection.pals_user_id,
        match_user_id=connection.match_user_id,
        created_at=connection.created_at,
        expires_at=connection.state.expires_at,
        is_chooser=connection.state.chooser_id == user_id,
        message=connection.message,
    )
