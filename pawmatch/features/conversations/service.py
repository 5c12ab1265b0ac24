"""
pawmatch/features/conversations/service.py

Conversation collaborator surface used by the matching core.

The core only creates, upgrades and appends to conversations; listing,
reading and delivery belong to the messaging service. All functions run
inside the caller's unit of work.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, Optional
from uuid import uuid4
import logging

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from pawmatch.core.database import (
    conversation_messages,
    conversation_participants,
    conversations,
    upsert,
)
from pawmatch.models.lane import Lane, PairKey


logger = logging.getLogger(__name__)

STATUS_REQUEST = "request"
STATUS_ACTIVE = "active"
PREVIEW_LENGTH = 140


def _select_for_update(session: Session, pair: PairKey):
    return session.execute(
        select(conversations)
        .where(conversations.c.user_low == pair.low)
        .where(conversations.c.user_high == pair.high)
        .with_for_update()
    ).first()


def _insert_if_missing(session: Session, pair: PairKey, lane: Lane, status: str, requested_by: Optional[str], now: datetime) -> bool:
    result = session.execute(
        upsert(session, conversations)
        .values(
            id=str(uuid4()),
            user_low=pair.low,
            user_high=pair.high,
            lane=lane.value,
            status=status,
            requested_by=requested_by,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["user_low", "user_high"])
    )
    return bool(result.rowcount)


def add_participants(session: Session, conversation_id: str, user_ids: Iterable[str]) -> None:
    for user_id in user_ids:
        session.execute(
            upsert(session, conversation_participants)
            .values(conversation_id=conversation_id, user_id=user_id)
            .on_conflict_do_nothing(index_elements=["conversation_id", "user_id"])
        )


def open_request(session: Session, sender_id: str, target_id: str, lane: Lane, is_mutual: bool, now: datetime) -> str:
    """Create or upgrade the pair's conversation for a compliment send.

    A mutual like makes it active; otherwise it is a request from the sender.
    An already active conversation keeps its lane and status, and an existing
    request keeps its original requester.
    """
    pair = PairKey.of(sender_id, target_id)
    desired_status = STATUS_ACTIVE if is_mutual else STATUS_REQUEST
    created = _insert_if_missing(session, pair, lane, desired_status, sender_id, now)
    row = _select_for_update(session, pair)

    if not created:
        if row.status == STATUS_ACTIVE:
            status, new_lane, requested_by = row.status, row.lane, row.requested_by
        elif is_mutual:
            status, new_lane = STATUS_ACTIVE, lane.value
            requested_by = row.requested_by or sender_id
        else:
            status, new_lane = row.status or STATUS_REQUEST, lane.value
            requested_by = row.requested_by or sender_id
        session.execute(
            update(conversations)
            .where(conversations.c.id == row.id)
            .values(status=status, lane=new_lane, requested_by=requested_by, updated_at=now)
        )

    add_participants(session, row.id, (sender_id, target_id))
    return row.id


def activate(session: Session, user_a: str, user_b: str, lane: Lane, now: datetime) -> str:
    """Create or force the pair's conversation to active in `lane`."""
    pair = PairKey.of(user_a, user_b)
    _insert_if_missing(session, pair, lane, STATUS_ACTIVE, None, now)
    row = _select_for_update(session, pair)
    session.execute(
        update(conversations)
        .where(conversations.c.id == row.id)
        .values(status=STATUS_ACTIVE, requested_by=None, lane=lane.value, updated_at=now)
    )
    add_participants(session, row.id, (user_a, user_b))
    return row.id


def promote_incoming_request(session: Session, viewer_id: str, requester_id: str, lane: Lane, now: datetime) -> bool:
    """Turn a request from `requester_id` into an active conversation.

    Applies only while the viewer still participates in the thread.
    """
    pair = PairKey.of(viewer_id, requester_id)
    viewer_present = exists().where(
        conversation_participants.c.conversation_id == conversations.c.id,
        conversation_participants.c.user_id == viewer_id,
        conversation_participants.c.removed_at.is_(None),
    )
    result = session.execute(
        update(conversations)
        .where(conversations.c.user_low == pair.low)
        .where(conversations.c.user_high == pair.high)
        .where(conversations.c.status == STATUS_REQUEST)
        .where(conversations.c.requested_by == requester_id)
        .where(viewer_present)
        .values(status=STATUS_ACTIVE, requested_by=None, lane=lane.value, updated_at=now)
    )
    promoted = bool(result.rowcount)
    if promoted:
        logger.info(
            "[conversations] request promoted to active",
            extra={"user_id": viewer_id, "other_user_id": requester_id, "lane": lane.value},
        )
    return promoted


def append_message(
    session: Session,
    conversation_id: str,
    sender_id: str,
    body: str,
    client_message_id: str,
    now: datetime,
    *,
    metadata: Optional[Dict[str, Any]] = None,
    kind: str = "compliment",
    created_at: Optional[datetime] = None,
) -> bool:
    """Append a message once per client_message_id; returns True if it was written."""
    sent_at = created_at or now
    result = session.execute(
        upsert(session, conversation_messages)
        .values(
            conversation_id=conversation_id,
            sender_id=sender_id,
            kind=kind,
            body=body,
            metadata=metadata or {},
            client_message_id=client_message_id,
            created_at=sent_at,
        )
        .on_conflict_do_nothing(index_elements=["client_message_id"])
    )
    if not result.rowcount:
        return False

    session.execute(
        update(conversations)
        .where(conversations.c.id == conversation_id)
        .values(
            last_message_at=sent_at,
            last_message_preview=body[:PREVIEW_LENGTH],
            last_message_sender_id=sender_id,
            updated_at=now,
        )
    )
    return True
