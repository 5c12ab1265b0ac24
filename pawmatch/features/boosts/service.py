"""
pawmatch/features/boosts/service.py

Boost sessions: a time-boxed ranking bonus paid with one boost credit.

At most one active session per user. Expired sessions are closed lazily by
whichever call reads them first.
"""

from datetime import datetime, timedelta
from typing import Any, Optional, Set
import logging

from sqlalchemy import insert, select, update
from sqlalchemy.orm import Session

from pawmatch.core.clock import as_utc, normalize_now
from pawmatch.core.config import settings
from pawmatch.core.database import boost_sessions, get_db_session
from pawmatch.core.locks import boost_lock_key, locked_session
from pawmatch.features.consumables.service import consume_consumable
from pawmatch.models.boost import BoostStartResult, BoostStatus
from pawmatch.models.consumable import ConsumableKind


logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_ENDED = "ended"


def end_expired_sessions(session: Session, user_id: str, now: datetime) -> int:
    result = session.execute(
        update(boost_sessions)
        .where(boost_sessions.c.user_id == user_id)
        .where(boost_sessions.c.status == STATUS_ACTIVE)
        .where(boost_sessions.c.ends_at <= now)
        .values(status=STATUS_ENDED)
    )
    return result.rowcount or 0


def active_session(session: Session, user_id: str, now: datetime):
    return session.execute(
        select(boost_sessions)
        .where(boost_sessions.c.user_id == user_id)
        .where(boost_sessions.c.status == STATUS_ACTIVE)
        .where(boost_sessions.c.ends_at > now)
        .order_by(boost_sessions.c.ends_at.desc())
        .limit(1)
    ).first()


def active_boosted_user_ids(session: Session, now: datetime) -> Set[str]:
    """Users with a live session; checks ends_at too since closing is lazy."""
    rows = session.execute(
        select(boost_sessions.c.user_id)
        .where(boost_sessions.c.status == STATUS_ACTIVE)
        .where(boost_sessions.c.ends_at > now)
        .distinct()
    ).all()
    return {row.user_id for row in rows}


def start_boost(user_id: Optional[str], now: Optional[Any] = None) -> BoostStartResult:
    """
    Start a boost session, spending one boost credit.

    Args:
        user_id: User to boost
        now: Override for the current time (defaults to UTC now)

    Returns:
        BoostStartResult with started_at and ends_at; already_active carries the
        live session's ends_at and charges nothing
    """
    if not user_id:
        return BoostStartResult(ok=False, error="not_authenticated")

    normalized_now = normalize_now(now)
    duration = timedelta(minutes=settings.BOOST_DURATION_MINUTES)

    with locked_session(boost_lock_key(user_id)) as session:
        end_expired_sessions(session, user_id, normalized_now)

        existing = active_session(session, user_id, normalized_now)
        if existing is not None:
            return BoostStartResult(ok=False, error="already_active", ends_at=as_utc(existing.ends_at))

        charge = consume_consumable(session, user_id, ConsumableKind.BOOST, 1, normalized_now)
        if not charge.ok:
            error = "insufficient_boosts" if charge.error == "insufficient_balance" else charge.error
            logger.info("[boosts] start blocked", extra={"user_id": user_id, "error_code": error})
            return BoostStartResult(ok=False, error=error)

        ends_at = normalized_now + duration
        session.execute(
            insert(boost_sessions).values(
                user_id=user_id,
                started_at=normalized_now,
                ends_at=ends_at,
                status=STATUS_ACTIVE,
            )
        )

    logger.info(
        "[boosts] started",
        extra={"user_id": user_id, "ends_at": ends_at.isoformat(), "from_included": charge.from_included},
    )
    return BoostStartResult(ok=True, started_at=normalized_now, ends_at=ends_at)


def get_boost_status(user_id: str, now: Optional[Any] = None) -> BoostStatus:
    normalized_now = normalize_now(now)
    with get_db_session() as session:
        end_expired_sessions(session, user_id, normalized_now)
        row = active_session(session, user_id, normalized_now)

    if row is None:
        return BoostStatus(is_active=False)

    ends_at = as_utc(row.ends_at)
    return BoostStatus(
        is_active=True,
        started_at=as_utc(row.started_at),
        ends_at=ends_at,
        remaining_seconds=max(int((ends_at - normalized_now).total_seconds()), 0),
    )
