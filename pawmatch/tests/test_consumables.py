"""Consumable inventory: tier allowances, lazy renewal and purchases."""

from datetime import datetime, timedelta, timezone

from pawmatch.core.database import get_db_session
from pawmatch.features.consumables.service import (
    consume_consumable,
    get_my_consumables,
    next_renewal,
    purchase_consumable,
)
from pawmatch.features.subscriptions.service import cancel_my_subscription, purchase_plus_subscription
from pawmatch.models.consumable import UNLIMITED_BALANCE

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _balances(user_id, now=NOW):
    return {b.kind.value: b for b in get_my_consumables(user_id, now=now)}


def _consume(user_id, kind, quantity, now=NOW):
    with get_db_session() as session:
        return consume_consumable(session, user_id, kind, quantity, now)


class TestFreeTier:
    def test_every_kind_starts_empty(self):
        balances = _balances("user")
        assert sorted(balances) == ["boost", "compliment", "reset_dislikes", "rewind"]
        assert all(b.balance == 0 and not b.unlimited for b in balances.values())

    def test_short_balance_leaves_row_untouched(self):
        purchase_consumable("user", "boost", 1, now=NOW)
        result = _consume("user", "boost", 2)
        assert not result.ok
        assert result.error == "insufficient_balance"
        assert _balances("user")["boost"].purchased_balance == 1

    def test_invalid_requests(self):
        assert _consume("user", "superlike", 1).error == "invalid_type"
        assert _consume("user", "boost", 0).error == "invalid_quantity"
        assert purchase_consumable("user", "superlike", 1).error == "invalid_type"
        assert purchase_consumable("user", "boost", -1).error == "invalid_quantity"


class TestPurchases:
    def test_purchase_credits_purchased_allotment(self):
        result = purchase_consumable("user", "compliment", 3, now=NOW)
        assert result.ok
        assert result.purchased_balance == 3
        assert _balances("user")["compliment"].balance == 3

    def test_replayed_event_credits_nothing(self):
        first = purchase_consumable("user", "boost", 3, event_id="evt-1", now=NOW)
        replay = purchase_consumable("user", "boost", 3, event_id="evt-1", now=NOW)

        assert first.duplicate is False
        assert replay.ok
        assert replay.duplicate is True
        assert replay.purchased_balance == 3


class TestPlusAllowances:
    def test_plus_grants_allowances(self):
        purchase_plus_subscription("user", 1, now=NOW)
        balances = _balances("user")

        assert balances["rewind"].unlimited
        assert balances["rewind"].balance == UNLIMITED_BALANCE
        assert balances["boost"].included_total == 2
        assert balances["boost"].included_remaining == 2
        assert balances["boost"].renews_at == NOW + timedelta(days=7)
        assert balances["compliment"].included_total == 5
        assert balances["reset_dislikes"].included_total == 1
        assert balances["reset_dislikes"].renews_at == datetime(2026, 4, 2, 15, 0, tzinfo=timezone.utc)

    def test_unlimited_kinds_never_decrement(self):
        purchase_plus_subscription("user", 1, now=NOW)
        result = _consume("user", "rewind", 5)
        assert result.ok
        assert result.unlimited

    def test_included_spent_before_purchased(self):
        purchase_plus_subscription("user", 1, now=NOW)
        purchase_consumable("user", "boost", 3, now=NOW)

        result = _consume("user", "boost", 3)
        assert result.from_included == 2
        assert result.from_purchased == 1

        boost = _balances("user")["boost"]
        assert boost.included_remaining == 0
        assert boost.purchased_balance == 2

    def test_renewal_after_many_periods_credits_once(self):
        purchase_plus_subscription("user", 6, now=NOW)
        _consume("user", "boost", 2)

        later = NOW + timedelta(days=30)
        boost = _balances("user", now=later)["boost"]

        assert boost.included_remaining == 2
        assert boost.renews_at == NOW + timedelta(days=35)
        assert boost.renews_at > later

    def test_lapsed_plus_keeps_purchased_units(self):
        purchase_plus_subscription("user", 1, now=NOW)
        purchase_consumable("user", "boost", 1, now=NOW)
        cancel_my_subscription("user", now=NOW)

        boost = _balances("user", now=NOW + timedelta(days=60))["boost"]
        assert boost.included_total == 0
        assert boost.included_remaining == 0
        assert boost.renews_at is None
        assert boost.balance == 1


def test_next_renewal_lands_after_now():
    start = NOW
    assert next_renewal(start, NOW + timedelta(days=20), timedelta(days=7)) == NOW + timedelta(days=21)
    assert next_renewal(NOW + timedelta(days=1), NOW, timedelta(days=7)) == NOW + timedelta(days=1)
