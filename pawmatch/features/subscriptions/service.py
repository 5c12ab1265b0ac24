"""
pawmatch/features/subscriptions/service.py

Plus subscription lifecycle for already-authorized purchase events.
"""

from typing import Any, Optional
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update

from pawmatch.core.clock import as_utc, normalize_now
from pawmatch.core.database import upsert, user_subscriptions
from pawmatch.core.locks import locked_session, subscription_lock_key
from pawmatch.features.consumables.service import sync_consumables
from pawmatch.features.entitlements.service import read_entitlement, sync_subscription
from pawmatch.models.entitlement import SubscriptionResult, SubscriptionStatus


logger = logging.getLogger(__name__)

PLUS_TERMS_MONTHS = (1, 3, 6)


def product_code_for(months: int) -> str:
    return f"plus_m{months}"


def purchase_plus_subscription(user_id: str, months: int, now: Optional[Any] = None) -> SubscriptionResult:
    """Start or extend Plus for `months`.

    An active, unexpired subscription is extended from its current period end;
    otherwise a new period starts now.
    """
    if months not in PLUS_TERMS_MONTHS:
        return SubscriptionResult(ok=False, error="invalid_months")

    normalized_now = normalize_now(now)
    step = relativedelta(months=months)

    with locked_session(subscription_lock_key(user_id)) as session:
        sync_subscription(session, user_id, normalized_now)
        row = session.execute(
            select(user_subscriptions)
            .where(user_subscriptions.c.user_id == user_id)
            .with_for_update()
        ).first()

        current_end = as_utc(row.current_period_end) if row else None
        extending = (
            row is not None
            and row.status == SubscriptionStatus.ACTIVE.value
            and current_end > normalized_now
        )
        period_start = as_utc(row.current_period_start) if extending else normalized_now
        period_end = (current_end if extending else normalized_now) + step

        values = dict(
            product_code=product_code_for(months),
            status=SubscriptionStatus.ACTIVE.value,
            renews_every_months=months,
            current_period_start=period_start,
            current_period_end=period_end,
            auto_renews=True,
            cancel_at_period_end=False,
            canceled_at=None,
            updated_at=normalized_now,
        )
        stmt = upsert(session, user_subscriptions).values(user_id=user_id, created_at=normalized_now, **values)
        session.execute(stmt.on_conflict_do_update(index_elements=["user_id"], set_=values))

        subscription = sync_subscription(session, user_id, normalized_now)
        sync_consumables(session, user_id, normalized_now)
        entitlement = read_entitlement(session, user_id, normalized_now)

    logger.info(
        "[subscriptions] plus purchased",
        extra={
            "user_id": user_id,
            "months": months,
            "extended": extending,
            "current_period_end": period_end.isoformat(),
        },
    )
    return SubscriptionResult(ok=True, subscription=subscription, entitlement=entitlement)


def cancel_my_subscription(user_id: str, now: Optional[Any] = None) -> SubscriptionResult:
    """Stop auto-renewal; Plus stays in effect until the current period ends."""
    normalized_now = normalize_now(now)
    with locked_session(subscription_lock_key(user_id)) as session:
        subscription = sync_subscription(session, user_id, normalized_now)
        if subscription is None or subscription.status != SubscriptionStatus.ACTIVE:
            return SubscriptionResult(ok=False, error="not_found")

        session.execute(
            update(user_subscriptions)
            .where(user_subscriptions.c.user_id == user_id)
            .values(
                cancel_at_period_end=True,
                auto_renews=False,
                canceled_at=normalized_now,
                updated_at=normalized_now,
            )
        )
        subscription = sync_subscription(session, user_id, normalized_now)
        entitlement = read_entitlement(session, user_id, normalized_now)

    logger.info("[subscriptions] canceled at period end", extra={"user_id": user_id})
    return SubscriptionResult(ok=True, subscription=subscription, entitlement=entitlement)


def get_my_subscription(user_id: str, now: Optional[Any] = None) -> SubscriptionResult:
    normalized_now = normalize_now(now)
    with locked_session(subscription_lock_key(user_id)) as session:
        subscription = sync_subscription(session, user_id, normalized_now)
        sync_consumables(session, user_id, normalized_now)
        entitlement = read_entitlement(session, user_id, normalized_now)
    return SubscriptionResult(ok=True, subscription=subscription, entitlement=entitlement)
