"""Pure feed predicates and ranking helpers (no database)."""

from datetime import date, datetime, timezone

import pytest

from pawmatch.features.feed.eligibility import (
    LanePreferences,
    Person,
    admits,
    age_on,
    feed_eligible,
    haversine_miles,
)
from pawmatch.features.feed.ranking import (
    EPOCH,
    InvalidCursor,
    SortKey,
    decode_cursor,
    effective_timestamp,
    encode_cursor,
    paginate,
)
from pawmatch.models.lane import Lane

TODAY = date(2026, 3, 2)
OPEN = LanePreferences(enabled=True)


def person(user_id, gender="female", born=date(1995, 6, 1), friendship=OPEN, romantic=OPEN):
    return Person(
        user_id=user_id,
        gender=gender,
        birth_date=born,
        latitude=30.0,
        longitude=-97.0,
        friendship=friendship,
        romantic=romantic,
    )


class TestAdmits:
    def test_gender_list(self):
        prefs = LanePreferences(enabled=True, preferred_genders=("male", "nonbinary"))
        assert admits(prefs, person("a", gender="nonbinary"), 0.0, TODAY)
        assert not admits(prefs, person("a", gender="female"), 0.0, TODAY)
        assert not admits(prefs, person("a", gender=None), 0.0, TODAY)

    def test_age_bounds_are_inclusive(self):
        prefs = LanePreferences(enabled=True, age_min=25, age_max=30)
        assert admits(prefs, person("a", born=date(2001, 3, 2)), 0.0, TODAY)
        assert not admits(prefs, person("a", born=date(2001, 3, 3)), 0.0, TODAY)
        assert admits(prefs, person("a", born=date(1995, 3, 3)), 0.0, TODAY)
        assert not admits(prefs, person("a", born=date(1995, 3, 2)), 0.0, TODAY)

    def test_unknown_distance_fails_a_distance_limit(self):
        prefs = LanePreferences(enabled=True, distance_miles=10)
        assert admits(prefs, person("a"), 9.9, TODAY)
        assert not admits(prefs, person("a"), 10.1, TODAY)
        assert not admits(prefs, person("a"), None, TODAY)


def test_age_on():
    assert age_on(date(2000, 3, 2), TODAY) == 26
    assert age_on(date(2000, 3, 3), TODAY) == 25


def test_haversine_known_distance():
    # Austin to Dallas, roughly 182 miles
    miles = haversine_miles(30.2672, -97.7431, 32.7767, -96.7970)
    assert 175 < miles < 190
    assert haversine_miles(None, 0, 0, 0) is None


class TestFeedEligible:
    def test_custom_predicate_is_used(self):
        viewer, candidate = person("v"), person("c")
        assert feed_eligible(viewer, candidate, Lane.ROMANTIC, 0.0, TODAY)
        assert not feed_eligible(viewer, candidate, Lane.ROMANTIC, 0.0, TODAY, predicate=lambda *args: False)

    def test_suppressed_lane_is_excluded(self):
        viewer, candidate = person("v"), person("c", romantic=LanePreferences(enabled=False))
        assert feed_eligible(viewer, candidate, Lane.FRIENDSHIP, 0.0, TODAY)
        assert not feed_eligible(viewer, candidate, Lane.FRIENDSHIP, 0.0, TODAY, suppressed_lanes=(Lane.FRIENDSHIP,))

    def test_romantic_suppression_returns_candidate_to_friendship(self):
        viewer, candidate = person("v"), person("c")
        assert not feed_eligible(viewer, candidate, Lane.FRIENDSHIP, 0.0, TODAY)
        assert feed_eligible(viewer, candidate, Lane.FRIENDSHIP, 0.0, TODAY, suppressed_lanes=(Lane.ROMANTIC,))


class TestRanking:
    def test_effective_timestamp_offsets(self):
        updated = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert effective_timestamp(updated, boosted=False, moderation_status=None) == updated
        assert effective_timestamp(updated, boosted=True, moderation_status="normal").year == 2126
        assert effective_timestamp(updated, boosted=True, moderation_status="low").year == 1126
        assert effective_timestamp(None, boosted=False, moderation_status=None) == EPOCH

    def test_cursor_encodes_the_sort_key(self):
        key = SortKey(effective_ts=datetime(2126, 1, 1, 12, 30, tzinfo=timezone.utc), user_id="u-1")
        assert decode_cursor(encode_cursor(key)) == key
        assert decode_cursor(None) is None

    @pytest.mark.parametrize("bad", ["%%%", "bm90LWpzb24", "eyJ0cyI6IjIwMjYifQ"])
    def test_malformed_cursor(self, bad):
        with pytest.raises(InvalidCursor):
            decode_cursor(bad)

    def test_paginate_uses_strict_keyset(self):
        ts = datetime(2026, 1, 1, tzinfo=timezone.utc)
        items = [(SortKey(ts, uid), uid) for uid in ("a", "b", "c")]

        page, cursor = paginate(items, 2)
        assert [v for _, v in page] == ["c", "b"]

        rest, last = paginate(items, 2, decode_cursor(cursor))
        assert [v for _, v in rest] == ["a"]
        assert last is None
