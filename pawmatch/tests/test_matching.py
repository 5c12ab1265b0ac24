"""Match resolver: same-lane mutuals, request promotion and chooser events."""

from datetime import datetime, timezone

from sqlalchemy import select

from pawmatch.core.database import conversations, get_db_session
from pawmatch.features.chat.service import send_chat_request
from pawmatch.features.consumables.service import purchase_consumable
from pawmatch.features.matching.resolver import decide_connection
from pawmatch.features.swipes.service import submit_swipe
from pawmatch.models.lane import Lane, PairKey
from pawmatch.models.swipe import ConnectionEventType

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _conversation(a, b):
    pair = PairKey.of(a, b)
    with get_db_session() as session:
        return session.execute(
            select(conversations)
            .where(conversations.c.user_low == pair.low)
            .where(conversations.c.user_high == pair.high)
        ).first()


class TestDecideConnection:
    def test_same_lane_reverse_accept_is_mutual(self):
        event = decide_connection(
            lane=Lane.ROMANTIC, other_user_id="b", reverse_same=True, pending=False, chooser_lane=Lane.FRIENDSHIP
        )
        assert event.type == ConnectionEventType.MUTUAL
        assert event.lane == Lane.ROMANTIC

    def test_chooser_lane_acceptor_is_told_to_choose(self):
        event = decide_connection(
            lane=Lane.FRIENDSHIP, other_user_id="b", reverse_same=False, pending=True, chooser_lane=Lane.FRIENDSHIP
        )
        assert event.type == ConnectionEventType.CROSS_LANE_CHOOSER
        assert event.lane is None

    def test_other_lane_acceptor_gets_nothing(self):
        assert (
            decide_connection(
                lane=Lane.ROMANTIC, other_user_id="b", reverse_same=False, pending=True, chooser_lane=Lane.FRIENDSHIP
            )
            is None
        )

    def test_one_sided_accept_gets_nothing(self):
        assert (
            decide_connection(
                lane=Lane.ROMANTIC, other_user_id="b", reverse_same=False, pending=False, chooser_lane=Lane.FRIENDSHIP
            )
            is None
        )


class TestResolverThroughSwipes:
    def test_mutual_same_lane(self):
        first = submit_swipe("alice", "bob", "romantic", "accept", now=NOW)
        second = submit_swipe("bob", "alice", "romantic", "accept", now=NOW)

        assert first.connection_event is None
        assert second.connection_event.type == ConnectionEventType.MUTUAL
        assert second.connection_event.other_user_id == "alice"
        assert second.connection_event.lane == Lane.ROMANTIC

    def test_repeated_accept_does_not_reemit(self):
        submit_swipe("alice", "bob", "romantic", "accept", now=NOW)
        submit_swipe("bob", "alice", "romantic", "accept", now=NOW)
        again = submit_swipe("bob", "alice", "romantic", "accept", now=NOW)
        assert again.connection_event is None

    def test_cross_lane_chooser_event(self):
        submit_swipe("bob", "alice", "romantic", "accept", now=NOW)
        result = submit_swipe("alice", "bob", "friendship", "accept", now=NOW)

        assert result.connection_event.type == ConnectionEventType.CROSS_LANE_CHOOSER
        assert result.connection_event.other_user_id == "bob"

    def test_incoming_request_promoted_on_mutual(self):
        purchase_consumable("alice", "compliment", 1, now=NOW)
        sent = send_chat_request("alice", "bob", "romantic", "Cute pup!", "cm-1", now=NOW)
        assert sent.ok
        assert _conversation("alice", "bob").status == "request"

        result = submit_swipe("bob", "alice", "romantic", "accept", now=NOW)
        assert result.connection_event.type == ConnectionEventType.MUTUAL

        conversation = _conversation("alice", "bob")
        assert conversation.status == "active"
        assert conversation.requested_by is None
        assert conversation.lane == "romantic"
