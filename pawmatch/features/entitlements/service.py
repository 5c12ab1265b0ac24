"""
pawmatch/features/entitlements/service.py

Entitlement ledger.

Handles:
- Lazy creation of the per-user tier record ("free" by default)
- Subscription catch-up (auto-renew periods, expiry at period end)
- Mirroring the subscription onto the entitlement tier
- Per-tier daily accept limits
"""

from datetime import datetime
from typing import Optional, Any
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pawmatch.core.clock import as_utc, normalize_now
from pawmatch.core.config import settings
from pawmatch.core.database import get_db_session, upsert, user_entitlements, user_subscriptions
from pawmatch.models.entitlement import Entitlement, PlanCode, Subscription, SubscriptionStatus
from pawmatch.models.lane import Lane


logger = logging.getLogger(__name__)


def daily_like_limit(plan_code: PlanCode, lane: Lane) -> Optional[int]:
    """Per-lane daily accept limit for a tier; None means unlimited."""
    if plan_code == PlanCode.PLUS:
        value = settings.PLUS_ROMANTIC_DAILY_LIKES if lane == Lane.ROMANTIC else settings.PLUS_FRIENDSHIP_DAILY_LIKES
    else:
        value = settings.FREE_ROMANTIC_DAILY_LIKES if lane == Lane.ROMANTIC else settings.FREE_FRIENDSHIP_DAILY_LIKES
    if value is None or value <= 0:
        return None
    return value


def ensure_entitlement(session: Session, user_id: str, now: Optional[Any] = None) -> None:
    normalized_now = normalize_now(now)
    session.execute(
        upsert(session, user_entitlements)
        .values(
            user_id=user_id,
            plan_code=PlanCode.FREE.value,
            expires_at=None,
            created_at=normalized_now,
            updated_at=normalized_now,
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )


def _set_entitlement(session: Session, user_id: str, plan_code: PlanCode, expires_at: Optional[datetime], now: datetime) -> None:
    session.execute(
        update(user_entitlements)
        .where(user_entitlements.c.user_id == user_id)
        .values(plan_code=plan_code.value, expires_at=expires_at, updated_at=now)
    )


def subscription_from_row(row) -> Subscription:
    return Subscription(
        user_id=row.user_id,
        product_code=row.product_code,
        status=SubscriptionStatus(row.status),
        renews_every_months=row.renews_every_months,
        current_period_start=as_utc(row.current_period_start),
        current_period_end=as_utc(row.current_period_end),
        auto_renews=bool(row.auto_renews),
        cancel_at_period_end=bool(row.cancel_at_period_end),
        canceled_at=as_utc(row.canceled_at),
    )


def sync_subscription(session: Session, user_id: str, now: Optional[Any] = None) -> Optional[Subscription]:
    """Bring the subscription and entitlement up to date as of `now`.

    Auto-renewing subscriptions advance one period at a time until the current
    period ends in the future; a user returning after several periods catches
    up in one call. Canceled or non-renewing subscriptions expire once their
    period has ended.
    """
    normalized_now = normalize_now(now)
    ensure_entitlement(session, user_id, normalized_now)

    row = session.execute(
        select(user_subscriptions)
        .where(user_subscriptions.c.user_id == user_id)
        .with_for_update()
    ).first()

    if row is None:
        ent = session.execute(
            select(user_entitlements).where(user_entitlements.c.user_id == user_id)
        ).first()
        expires_at = as_utc(ent.expires_at)
        if ent.plan_code == PlanCode.PLUS.value and (expires_at is None or expires_at <= normalized_now):
            _set_entitlement(session, user_id, PlanCode.FREE, None, normalized_now)
        return None

    status = row.status
    period_start = as_utc(row.current_period_start)
    period_end = as_utc(row.current_period_end)
    step = relativedelta(months=row.renews_every_months)
    renewals = 0

    if status == SubscriptionStatus.ACTIVE.value and row.auto_renews and not row.cancel_at_period_end:
        while period_end <= normalized_now:
            period_start = period_end
            period_end = period_end + step
            renewals += 1
    elif status == SubscriptionStatus.ACTIVE.value and period_end <= normalized_now:
        status = SubscriptionStatus.EXPIRED.value

    if renewals or status != row.status:
        session.execute(
            update(user_subscriptions)
            .where(user_subscriptions.c.user_id == user_id)
            .values(
                status=status,
                current_period_start=period_start,
                current_period_end=period_end,
                updated_at=normalized_now,
            )
        )
        logger.info(
            "[entitlements] subscription synced",
            extra={"user_id": user_id, "renewals": renewals, "status": status},
        )

    if status == SubscriptionStatus.ACTIVE.value and period_end > normalized_now:
        _set_entitlement(session, user_id, PlanCode.PLUS, period_end, normalized_now)
    else:
        _set_entitlement(session, user_id, PlanCode.FREE, None, normalized_now)

    refreshed = session.execute(
        select(user_subscriptions).where(user_subscriptions.c.user_id == user_id)
    ).first()
    return subscription_from_row(refreshed)


def read_entitlement(session: Session, user_id: str, now: Optional[Any] = None) -> Entitlement:
    """Sync, then return the user's current tier."""
    normalized_now = normalize_now(now)
    sync_subscription(session, user_id, normalized_now)
    row = session.execute(
        select(user_entitlements).where(user_entitlements.c.user_id == user_id)
    ).first()
    return Entitlement(
        user_id=user_id,
        plan_code=PlanCode(row.plan_code),
        expires_at=as_utc(row.expires_at),
    )


def is_plus(session: Session, user_id: str, now: Optional[Any] = None) -> bool:
    return read_entitlement(session, user_id, now).plan_code == PlanCode.PLUS


def get_daily_like_limit(session: Session, user_id: str, lane: Lane, now: Optional[Any] = None) -> Optional[int]:
    return daily_like_limit(read_entitlement(session, user_id, now).plan_code, lane)


def get_my_entitlements(user_id: str, now: Optional[Any] = None) -> Entitlement:
    with get_db_session() as session:
        return read_entitlement(session, user_id, now)
