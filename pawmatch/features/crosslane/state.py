"""
pawmatch/features/crosslane/state.py

Cross-lane pending state machine.

States: pending -> resolved. The stored row is read into a CrossLaneConnection
whose `state` is either PendingState or ResolvedState; the functions below are
the only writers of cross_lane_connections.

Which side chooses is policy: the user who accepted in `chooser_lane` may
resolve manually, and the expiry sweep resolves to `default_lane`.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pawmatch.core.clock import as_utc
from pawmatch.core.config import settings
from pawmatch.core.database import cross_lane_connections, upsert
from pawmatch.models.crosslane import (
    CrossLaneConnection,
    CrossLaneStatus,
    HeldMessage,
    PendingState,
    ResolvedState,
)
from pawmatch.models.lane import Lane, PairKey


@dataclass(frozen=True)
class CrossLanePolicy:
    chooser_lane: Lane = Lane.FRIENDSHIP
    default_lane: Lane = Lane.FRIENDSHIP
    ttl: timedelta = timedelta(hours=72)

    @classmethod
    def from_settings(cls) -> "CrossLanePolicy":
        return cls(
            chooser_lane=Lane(settings.CROSS_LANE_CHOOSER_LANE),
            default_lane=Lane(settings.CROSS_LANE_DEFAULT_LANE),
            ttl=timedelta(hours=settings.CROSS_LANE_TTL_HOURS),
        )

    def chooser_of(self, pals_user_id: str, match_user_id: str) -> str:
        return pals_user_id if self.chooser_lane == Lane.FRIENDSHIP else match_user_id


def connection_from_row(row, policy: CrossLanePolicy) -> CrossLaneConnection:
    if row.status == CrossLaneStatus.PENDING.value:
        state = PendingState(
            expires_at=as_utc(row.expires_at),
            chooser_id=policy.chooser_of(row.pals_user_id, row.match_user_id),
        )
    else:
        state = ResolvedState(
            lane=Lane(row.resolved_lane),
            resolved_by=row.resolved_by,
            resolved_at=as_utc(row.resolved_at),
        )

    message = None
    if row.message_body is not None and row.message_sender_id and row.message_client_message_id:
        message = HeldMessage(
            sender_id=row.message_sender_id,
            body=row.message_body,
            client_message_id=row.message_client_message_id,
            lane=Lane(row.message_lane) if row.message_lane else None,
            metadata=row.message_metadata,
            created_at=as_utc(row.message_created_at),
        )

    return CrossLaneConnection(
        pair=PairKey(row.user_low, row.user_high),
        pals_user_id=row.pals_user_id,
        match_user_id=row.match_user_id,
        created_at=as_utc(row.created_at),
        state=state,
        message=message,
    )


def load(session: Session, pair: PairKey, *, for_update: bool = False):
    stmt = (
        select(cross_lane_connections)
        .where(cross_lane_connections.c.user_low == pair.low)
        .where(cross_lane_connections.c.user_high == pair.high)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).first()


def is_pending(session: Session, pair: PairKey) -> bool:
    row = load(session, pair)
    return row is not None and row.status == CrossLaneStatus.PENDING.value


def open_pending(session: Session, acceptor_id: str, other_id: str, lane: Lane, now: datetime, policy: CrossLanePolicy) -> None:
    """Create the pending row for the pair unless one already exists."""
    pals_user_id, match_user_id = (acceptor_id, other_id) if lane == Lane.FRIENDSHIP else (other_id, acceptor_id)
    pair = PairKey.of(acceptor_id, other_id)
    session.execute(
        upsert(session, cross_lane_connections)
        .values(
            user_low=pair.low,
            user_high=pair.high,
            pals_user_id=pals_user_id,
            match_user_id=match_user_id,
            status=CrossLaneStatus.PENDING.value,
            created_at=now,
            expires_at=now + policy.ttl,
        )
        .on_conflict_do_nothing(index_elements=["user_low", "user_high"])
    )


def hold_message(
    session: Session,
    pair: PairKey,
    sender_id: str,
    body: str,
    client_message_id: str,
    lane: Lane,
    now: datetime,
    metadata: Optional[Dict[str, Any]] = None,
) -> bool:
    """Store the first message on a pending row; returns True only if it was written."""
    result = session.execute(
        update(cross_lane_connections)
        .where(cross_lane_connections.c.user_low == pair.low)
        .where(cross_lane_connections.c.user_high == pair.high)
        .where(cross_lane_connections.c.status == CrossLaneStatus.PENDING.value)
        .where(cross_lane_connections.c.message_body.is_(None))
        .values(
            message_sender_id=sender_id,
            message_body=body,
            message_metadata=metadata or {},
            message_client_message_id=client_message_id,
            message_lane=lane.value,
            message_created_at=now,
        )
    )
    return bool(result.rowcount)


def resolution_error(connection: CrossLaneConnection, user_id: str, now: datetime) -> Optional[str]:
    """Guard for a manual pending -> resolved transition by `user_id`."""
    if not connection.is_pending:
        return "already_resolved"
    if user_id != connection.state.chooser_id:
        return "not_authorized"
    if now >= connection.state.expires_at:
        return "expired"
    return None


def mark_resolved(session: Session, pair: PairKey, lane: Lane, resolved_by: Optional[str], now: datetime) -> bool:
    """Move a pending row to resolved; False if another writer resolved it first."""
    result = session.execute(
        update(cross_lane_connections)
        .where(cross_lane_connections.c.user_low == pair.low)
        .where(cross_lane_connections.c.user_high == pair.high)
        .where(cross_lane_connections.c.status == CrossLaneStatus.PENDING.value)
        .values(
            status=CrossLaneStatus.RESOLVED.value,
            resolved_lane=lane.value,
            resolved_at=now,
            resolved_by=resolved_by,
        )
    )
    return bool(result.rowcount)
