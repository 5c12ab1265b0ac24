"""
pawmatch/features/matching/resolver.py

Match resolver, invoked after a new accept has been persisted.

- Same-lane reverse accept: mutual. An incoming request conversation from
  the other user is promoted to active.
- Reverse accept only in the other lane: a cross-lane pending row is opened
  for the pair (idempotent), and the acceptor is told to choose when they
  accepted in the chooser lane.
"""

from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.orm import Session

from pawmatch.features.conversations.service import promote_incoming_request
from pawmatch.features.crosslane.state import CrossLanePolicy, is_pending, open_pending
from pawmatch.features.swipes.ledger import has_accept
from pawmatch.models.lane import Lane, PairKey
from pawmatch.models.swipe import ConnectionEvent, ConnectionEventType


logger = logging.getLogger(__name__)


def decide_connection(
    *,
    lane: Lane,
    other_user_id: str,
    reverse_same: bool,
    pending: bool,
    chooser_lane: Lane,
) -> Optional[ConnectionEvent]:
    """Pure decision over the reverse-accept facts for one new accept."""
    if reverse_same:
        return ConnectionEvent(type=ConnectionEventType.MUTUAL, lane=lane, other_user_id=other_user_id)
    if pending and lane == chooser_lane:
        return ConnectionEvent(type=ConnectionEventType.CROSS_LANE_CHOOSER, other_user_id=other_user_id)
    return None


def open_cross_lane_if_needed(
    session: Session,
    viewer_id: str,
    candidate_id: str,
    lane: Lane,
    now: datetime,
    policy: CrossLanePolicy,
) -> bool:
    """Open a pending row when the pair is mutual across lanes only.

    Returns whether a pending row exists for the pair afterwards.
    """
    if has_accept(session, candidate_id, viewer_id, lane):
        return False
    if not has_accept(session, candidate_id, viewer_id, lane.other):
        return False
    open_pending(session, viewer_id, candidate_id, lane, now, policy)
    return is_pending(session, PairKey.of(viewer_id, candidate_id))


def on_new_accept(
    session: Session,
    viewer_id: str,
    candidate_id: str,
    lane: Lane,
    now: datetime,
    policy: Optional[CrossLanePolicy] = None,
) -> Optional[ConnectionEvent]:
    policy = policy or CrossLanePolicy.from_settings()
    reverse_same = has_accept(session, candidate_id, viewer_id, lane)
    pending = open_cross_lane_if_needed(session, viewer_id, candidate_id, lane, now, policy)

    if reverse_same:
        promote_incoming_request(session, viewer_id, candidate_id, lane, now)

    event = decide_connection(
        lane=lane,
        other_user_id=candidate_id,
        reverse_same=reverse_same,
        pending=pending,
        chooser_lane=policy.chooser_lane,
    )
    if event is not None:
        logger.info(
            "[matching] connection event",
            extra={
                "user_id": viewer_id,
                "other_user_id": candidate_id,
                "lane": lane.value,
                "event_type": event.type.value,
            },
        )
    return event
