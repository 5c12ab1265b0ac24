"""
pawmatch/features/swipes/ledger.py

Swipe ledger: one decision per (viewer, candidate, lane), last write wins.
Functions run inside the caller's unit of work.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from pawmatch.core.clock import as_utc
from pawmatch.core.database import swipes, upsert
from pawmatch.models.lane import Lane
from pawmatch.models.swipe import SwipeAction, SwipeRecord


def get_swipe(
    session: Session, viewer_id: str, candidate_id: str, lane: Lane, *, for_update: bool = False
) -> Optional[SwipeRecord]:
    stmt = (
        select(swipes)
        .where(swipes.c.viewer_id == viewer_id)
        .where(swipes.c.candidate_id == candidate_id)
        .where(swipes.c.lane == lane.value)
    )
    if for_update:
        stmt = stmt.with_for_update()
    row = session.execute(stmt).first()
    return record_from_row(row) if row is not None else None


def has_accept(session: Session, viewer_id: str, candidate_id: str, lane: Lane) -> bool:
    row = session.execute(
        select(swipes.c.id)
        .where(swipes.c.viewer_id == viewer_id)
        .where(swipes.c.candidate_id == candidate_id)
        .where(swipes.c.lane == lane.value)
        .where(swipes.c.action == SwipeAction.ACCEPT.value)
    ).first()
    return row is not None


def upsert_swipe(session: Session, viewer_id: str, candidate_id: str, lane: Lane, action: SwipeAction, now: datetime) -> None:
    stmt = upsert(session, swipes).values(
        viewer_id=viewer_id,
        candidate_id=candidate_id,
        lane=lane.value,
        action=action.value,
        created_at=now,
    )
    session.execute(
        stmt.on_conflict_do_update(
            index_elements=["viewer_id", "candidate_id", "lane"],
            set_={"action": stmt.excluded.action, "created_at": stmt.excluded.created_at},
        )
    )


def record_from_row(row) -> SwipeRecord:
    return SwipeRecord(
        viewer_id=row.viewer_id,
        candidate_id=row.candidate_id,
        lane=Lane(row.lane),
        action=SwipeAction(row.action),
        created_at=as_utc(row.created_at),
    )
