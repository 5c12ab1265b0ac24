"""
pawmatch/features/consumables/service.py

Consumable inventory (boosts, rewinds, compliments, dislike resets).

Each (user, kind) row carries a renewing included allotment sized by the
entitlement tier plus a purchased allotment that never expires. Renewal is
lazy: whenever a balance is read or spent, elapsed periods are caught up by
advancing `renews_at` until it is in the future, crediting the allotment once.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
import logging

from dateutil.relativedelta import relativedelta
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pawmatch.core.clock import as_utc, normalize_now
from pawmatch.core.config import settings
from pawmatch.core.database import get_db_session, purchase_events, upsert, user_consumables
from pawmatch.features.entitlements.service import is_plus
from pawmatch.models.consumable import (
    UNLIMITED_BALANCE,
    ConsumableBalance,
    ConsumableKind,
    ConsumeResult,
    PurchaseResult,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Allowance:
    included_total: int = 0
    unlimited: bool = False
    period_days: Optional[int] = None
    period_months: Optional[int] = None


def plus_allowances() -> Dict[ConsumableKind, Allowance]:
    return {
        ConsumableKind.REWIND: Allowance(unlimited=True),
        ConsumableKind.BOOST: Allowance(included_total=settings.PLUS_WEEKLY_BOOSTS, period_days=7),
        ConsumableKind.COMPLIMENT: Allowance(included_total=settings.PLUS_WEEKLY_COMPLIMENTS, period_days=7),
        ConsumableKind.RESET_DISLIKES: Allowance(included_total=settings.PLUS_MONTHLY_RESET_DISLIKES, period_months=1),
    }


def parse_kind(value) -> Optional[ConsumableKind]:
    if isinstance(value, ConsumableKind):
        return value
    try:
        return ConsumableKind(value)
    except ValueError:
        return None


def renewal_step(period_days: Optional[int], period_months: Optional[int]):
    if period_months:
        return relativedelta(months=period_months)
    if period_days:
        return timedelta(days=period_days)
    return None


def next_renewal(renews_at: datetime, now: datetime, step) -> datetime:
    """Advance `renews_at` one period at a time until it is after `now`."""
    while renews_at <= now:
        renews_at = renews_at + step
    return renews_at


def ensure_consumables(session: Session, user_id: str, now: Optional[Any] = None) -> None:
    normalized_now = normalize_now(now)
    for kind in ConsumableKind:
        session.execute(
            upsert(session, user_consumables)
            .values(
                user_id=user_id,
                kind=kind.value,
                purchased_balance=0,
                included_total=0,
                included_remaining=0,
                unlimited=False,
                updated_at=normalized_now,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "kind"])
        )


def _apply_tier(session: Session, user_id: str, plus: bool, now: datetime) -> None:
    rows = session.execute(
        select(user_consumables)
        .where(user_consumables.c.user_id == user_id)
        .with_for_update()
    ).all()

    if not plus:
        for row in rows:
            if row.unlimited or row.included_total or row.included_remaining or row.renews_at is not None:
                session.execute(
                    update(user_consumables)
                    .where(user_consumables.c.user_id == user_id)
                    .where(user_consumables.c.kind == row.kind)
                    .values(
                        unlimited=False,
                        included_total=0,
                        included_remaining=0,
                        renews_at=None,
                        renewal_period_days=None,
                        renewal_period_months=None,
                        updated_at=now,
                    )
                )
        return

    allowances = plus_allowances()
    for row in rows:
        allowance = allowances.get(parse_kind(row.kind))
        if allowance is None:
            continue
        if allowance.unlimited:
            values = dict(
                unlimited=True,
                included_total=0,
                included_remaining=0,
                renews_at=None,
                renewal_period_days=None,
                renewal_period_months=None,
            )
        else:
            step = renewal_step(allowance.period_days, allowance.period_months)
            newly_granted = row.included_total == 0 and row.included_remaining == 0
            values = dict(
                unlimited=False,
                included_total=allowance.included_total,
                included_remaining=allowance.included_total if newly_granted else row.included_remaining,
                renews_at=as_utc(row.renews_at) or now + step,
                renewal_period_days=allowance.period_days,
                renewal_period_months=allowance.period_months,
            )
        session.execute(
            update(user_consumables)
            .where(user_consumables.c.user_id == user_id)
            .where(user_consumables.c.kind == row.kind)
            .values(updated_at=now, **values)
        )


def _renew_elapsed(session: Session, user_id: str, now: datetime) -> None:
    rows = session.execute(
        select(user_consumables)
        .where(user_consumables.c.user_id == user_id)
        .where(user_consumables.c.renews_at.is_not(None))
        .where(user_consumables.c.renews_at <= now)
        .where(user_consumables.c.included_total > 0)
        .with_for_update()
    ).all()
    for row in rows:
        step = renewal_step(row.renewal_period_days, row.renewal_period_months)
        if step is None:
            continue
        renews_at = next_renewal(as_utc(row.renews_at), now, step)
        session.execute(
            update(user_consumables)
            .where(user_consumables.c.user_id == user_id)
            .where(user_consumables.c.kind == row.kind)
            .values(renews_at=renews_at, included_remaining=row.included_total, updated_at=now)
        )
        logger.info(
            "[consumables] included allowance renewed",
            extra={"user_id": user_id, "kind": row.kind, "renews_at": renews_at.isoformat()},
        )


def sync_consumables(session: Session, user_id: str, now: Optional[Any] = None) -> None:
    """Sync the subscription, then align allowances with the tier and renew elapsed periods."""
    normalized_now = normalize_now(now)
    plus = is_plus(session, user_id, normalized_now)
    ensure_consumables(session, user_id, normalized_now)
    _apply_tier(session, user_id, plus, normalized_now)
    _renew_elapsed(session, user_id, normalized_now)


def balance_from_row(row) -> ConsumableBalance:
    unlimited = bool(row.unlimited)
    return ConsumableBalance(
        kind=ConsumableKind(row.kind),
        balance=UNLIMITED_BALANCE if unlimited else row.purchased_balance + row.included_remaining,
        purchased_balance=row.purchased_balance,
        included_remaining=row.included_remaining,
        included_total=row.included_total,
        unlimited=unlimited,
        renews_at=as_utc(row.renews_at),
        renewal_period_days=row.renewal_period_days,
        renewal_period_months=row.renewal_period_months,
    )


def read_balance(session: Session, user_id: str, kind: ConsumableKind) -> Optional[ConsumableBalance]:
    row = session.execute(
        select(user_consumables)
        .where(user_consumables.c.user_id == user_id)
        .where(user_consumables.c.kind == kind.value)
    ).first()
    return balance_from_row(row) if row else None


def consume_consumable(
    session: Session,
    user_id: str,
    kind,
    quantity: int = 1,
    now: Optional[Any] = None,
) -> ConsumeResult:
    """Spend `quantity` units inside the caller's unit of work.

    Included units are spent before purchased ones; unlimited kinds never
    decrement. A short balance leaves the row untouched.
    """
    parsed = parse_kind(kind)
    if parsed is None:
        return ConsumeResult(ok=False, error="invalid_type")
    if quantity is None or quantity <= 0:
        return ConsumeResult(ok=False, error="invalid_quantity")

    normalized_now = normalize_now(now)
    sync_consumables(session, user_id, normalized_now)

    row = session.execute(
        select(user_consumables)
        .where(user_consumables.c.user_id == user_id)
        .where(user_consumables.c.kind == parsed.value)
        .with_for_update()
    ).first()

    if row.unlimited:
        return ConsumeResult(ok=True, unlimited=True)

    if row.included_remaining + row.purchased_balance < quantity:
        logger.info(
            "[consumables] insufficient balance",
            extra={"user_id": user_id, "kind": parsed.value, "requested": quantity},
        )
        return ConsumeResult(ok=False, error="insufficient_balance")

    from_included = min(row.included_remaining, quantity)
    from_purchased = quantity - from_included
    session.execute(
        update(user_consumables)
        .where(user_consumables.c.user_id == user_id)
        .where(user_consumables.c.kind == parsed.value)
        .values(
            included_remaining=row.included_remaining - from_included,
            purchased_balance=row.purchased_balance - from_purchased,
            updated_at=normalized_now,
        )
    )
    logger.info(
        "[consumables] consumed",
        extra={
            "user_id": user_id,
            "kind": parsed.value,
            "from_included": from_included,
            "from_purchased": from_purchased,
        },
    )
    return ConsumeResult(ok=True, from_included=from_included, from_purchased=from_purchased)


def purchase_consumable(
    user_id: str,
    kind,
    quantity: int,
    *,
    event_id: Optional[str] = None,
    now: Optional[Any] = None,
) -> PurchaseResult:
    """Credit an already-authorized purchase to the purchased allotment.

    When `event_id` is given, replays of the same event credit nothing.
    """
    parsed = parse_kind(kind)
    if parsed is None:
        return PurchaseResult(ok=False, error="invalid_type")
    if quantity is None or quantity <= 0:
        return PurchaseResult(ok=False, error="invalid_quantity")

    normalized_now = normalize_now(now)
    with get_db_session() as session:
        sync_consumables(session, user_id, normalized_now)

        if event_id:
            inserted = session.execute(
                upsert(session, purchase_events)
                .values(
                    event_id=event_id,
                    user_id=user_id,
                    kind=parsed.value,
                    quantity=quantity,
                    created_at=normalized_now,
                )
                .on_conflict_do_nothing(index_elements=["event_id"])
            ).rowcount
            if not inserted:
                current = read_balance(session, user_id, parsed)
                logger.info(
                    "[consumables] duplicate purchase event ignored",
                    extra={"user_id": user_id, "kind": parsed.value, "event_id": event_id},
                )
                return PurchaseResult(
                    ok=True,
                    kind=parsed,
                    purchased_balance=current.purchased_balance,
                    duplicate=True,
                )

        session.execute(
            update(user_consumables)
            .where(user_consumables.c.user_id == user_id)
            .where(user_consumables.c.kind == parsed.value)
            .values(
                purchased_balance=user_consumables.c.purchased_balance + quantity,
                updated_at=normalized_now,
            )
        )
        current = read_balance(session, user_id, parsed)

    logger.info(
        "[consumables] purchase credited",
        extra={"user_id": user_id, "kind": parsed.value, "quantity": quantity, "event_id": event_id},
    )
    return PurchaseResult(ok=True, kind=parsed, purchased_balance=current.purchased_balance)


def get_my_consumables(user_id: str, now: Optional[Any] = None) -> List[ConsumableBalance]:
    normalized_now = normalize_now(now)
    with get_db_session() as session:
        sync_consumables(session, user_id, normalized_now)
        rows = session.execute(
            select(user_consumables)
            .where(user_consumables.c.user_id == user_id)
            .order_by(user_consumables.c.kind)
        ).all()
        return [balance_from_row(row) for row in rows]
