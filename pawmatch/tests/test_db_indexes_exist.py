"""
Test that the matching tables carry the indexes and constraints the
services rely on for idempotency and sweep performance.
"""

from sqlalchemy import inspect

from pawmatch.core.database import get_engine


def _index_names(table):
    return {idx["name"] for idx in inspect(get_engine()).get_indexes(table)}


def _unique_columns(table):
    inspector = inspect(get_engine())
    uniques = [tuple(c["column_names"]) for c in inspector.get_unique_constraints(table)]
    uniques += [tuple(idx["column_names"]) for idx in inspector.get_indexes(table) if idx.get("unique")]
    return uniques


def test_swipes_indexes():
    assert {"idx_swipes_candidate_action", "idx_swipes_viewer_created"} <= _index_names("swipes")
    assert ("viewer_id", "candidate_id", "lane") in _unique_columns("swipes")


def test_cross_lane_sweep_index():
    assert "idx_cross_lane_status_expires" in _index_names("cross_lane_connections")
    pk = inspect(get_engine()).get_pk_constraint("cross_lane_connections")
    assert pk["constrained_columns"] == ["user_low", "user_high"]


def test_message_client_ids_are_unique():
    assert ("client_message_id",) in _unique_columns("conversation_messages")
    assert ("message_client_message_id",) in _unique_columns("cross_lane_connections")


def test_usage_and_balances_primary_keys():
    inspector = inspect(get_engine())
    assert inspector.get_pk_constraint("daily_like_usage")["constrained_columns"] == ["user_id", "day_utc", "lane"]
    assert inspector.get_pk_constraint("user_consumables")["constrained_columns"] == ["user_id", "kind"]


def test_boost_sessions_indexes():
    assert {"idx_boost_sessions_user_status", "idx_boost_sessions_status_ends"} <= _index_names("boost_sessions")
