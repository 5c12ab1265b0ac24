"""Compliment sends: credit charging, idempotency and rollback."""

from datetime import datetime, timezone

from sqlalchemy import func, select

from pawmatch.core.database import conversation_messages, conversations, get_db_session, swipes
from pawmatch.features.chat.service import send_chat_request
from pawmatch.features.consumables.service import get_my_consumables, purchase_consumable
from pawmatch.features.subscriptions.service import purchase_plus_subscription
from pawmatch.features.swipes.service import submit_swipe
from pawmatch.models.lane import PairKey

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _conversation(a, b):
    pair = PairKey.of(a, b)
    with get_db_session() as session:
        return session.execute(
            select(conversations)
            .where(conversations.c.user_low == pair.low)
            .where(conversations.c.user_high == pair.high)
        ).first()


def _count(table):
    with get_db_session() as session:
        return session.execute(select(func.count()).select_from(table)).scalar()


def _compliment_balance(user_id):
    return next(b for b in get_my_consumables(user_id, now=NOW) if b.kind.value == "compliment")


class TestChargingAndRollback:
    def test_without_credits_nothing_is_written(self):
        result = send_chat_request("alice", "bob", "romantic", "Hello!", "cm-1", now=NOW)

        assert not result.ok
        assert result.error == "insufficient_compliments"
        assert _count(swipes) == 0
        assert _count(conversations) == 0
        assert _count(conversation_messages) == 0

    def test_retry_with_same_client_message_id_charges_once(self):
        purchase_consumable("alice", "compliment", 1, now=NOW)

        first = send_chat_request("alice", "bob", "romantic", "Hello!", "cm-1", now=NOW)
        retry = send_chat_request("alice", "bob", "romantic", "Hello!", "cm-1", now=NOW)

        assert first.ok and retry.ok
        assert retry.conversation_id == first.conversation_id
        assert _count(conversation_messages) == 1
        assert _compliment_balance("alice").purchased_balance == 0

    def test_included_compliments_spent_before_purchased(self):
        purchase_plus_subscription("alice", 1, now=NOW)
        purchase_consumable("alice", "compliment", 2, now=NOW)

        send_chat_request("alice", "bob", "romantic", "Hello!", "cm-1", now=NOW)

        balance = _compliment_balance("alice")
        assert balance.included_remaining == 4
        assert balance.purchased_balance == 2


class TestConversationState:
    def test_one_sided_compliment_opens_request(self):
        purchase_consumable("alice", "compliment", 1, now=NOW)
        result = send_chat_request("alice", "bob", "friendship", "Dog park?", "cm-1", now=NOW)

        conversation = _conversation("alice", "bob")
        assert conversation.id == result.conversation_id
        assert conversation.status == "request"
        assert conversation.requested_by == "alice"
        assert conversation.lane == "friendship"
        assert conversation.last_message_preview == "Dog park?"

    def test_compliment_to_existing_liker_is_active(self):
        submit_swipe("bob", "alice", "romantic", "accept", now=NOW)
        purchase_consumable("alice", "compliment", 1, now=NOW)

        result = send_chat_request("alice", "bob", "romantic", "Hi!", "cm-1", now=NOW)

        assert result.connection_event.type.value == "mutual"
        assert _conversation("alice", "bob").status == "active"

    def test_compliments_bypass_the_daily_quota(self):
        for i in range(7):
            submit_swipe("alice", f"cand-{i}", "romantic", "accept", now=NOW)
        purchase_consumable("alice", "compliment", 1, now=NOW)

        result = send_chat_request("alice", "bob", "romantic", "Hi!", "cm-1", now=NOW)
        assert result.ok
        assert result.remaining_accepts == 0

    def test_preview_is_truncated(self):
        purchase_consumable("alice", "compliment", 1, now=NOW)
        send_chat_request("alice", "bob", "romantic", "x" * 300, "cm-1", now=NOW)

        assert len(_conversation("alice", "bob").last_message_preview) == 140


def test_validation_errors():
    assert send_chat_request(None, "bob", "romantic", "hi", "cm").error == "not_authenticated"
    assert send_chat_request("alice", "alice", "romantic", "hi", "cm").error == "invalid_target"
    assert send_chat_request("alice", "bob", "work", "hi", "cm").error == "invalid_lane"
    assert send_chat_request("alice", "bob", "romantic", "   ", "cm").error == "empty_message"
    assert send_chat_request("alice", "bob", "romantic", "hi", "").error == "missing_client_message_id"
