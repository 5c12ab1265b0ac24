"""Swipe submission, daily accept quota and pass undo."""

import threading
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select

from pawmatch.core.database import daily_like_usage, get_db_session, swipes
from pawmatch.features.quota.service import get_quota_status
from pawmatch.features.subscriptions.service import purchase_plus_subscription
from pawmatch.features.swipes.service import submit_swipe, undo_last_pass

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _action(viewer_id, candidate_id, lane):
    with get_db_session() as session:
        return session.execute(
            select(swipes.c.action)
            .where(swipes.c.viewer_id == viewer_id)
            .where(swipes.c.candidate_id == candidate_id)
            .where(swipes.c.lane == lane)
        ).scalar()


class TestDailyQuota:
    def test_free_romantic_limit_is_seven(self):
        for i in range(7):
            result = submit_swipe("viewer", f"cand-{i}", "romantic", "accept", now=NOW)
            assert result.ok
            assert result.remaining_accepts == 6 - i

        blocked = submit_swipe("viewer", "cand-7", "romantic", "accept", now=NOW)
        assert not blocked.ok
        assert blocked.error == "daily_limit_reached"
        assert blocked.limit == 7
        assert blocked.used == 7
        assert blocked.remaining_accepts == 0
        assert _action("viewer", "cand-7", "romantic") is None

    def test_lanes_have_separate_counters(self):
        for i in range(7):
            submit_swipe("viewer", f"cand-{i}", "romantic", "accept", now=NOW)

        result = submit_swipe("viewer", "cand-0", "friendship", "accept", now=NOW)
        assert result.ok
        assert result.remaining_accepts == 14

    def test_new_utc_day_resets_counter(self):
        for i in range(7):
            submit_swipe("viewer", f"cand-{i}", "romantic", "accept", now=NOW)

        tomorrow = NOW + timedelta(days=1)
        result = submit_swipe("viewer", "cand-7", "romantic", "accept", now=tomorrow)
        assert result.ok
        assert result.remaining_accepts == 6

    def test_repeated_accept_is_free(self):
        first = submit_swipe("viewer", "cand", "romantic", "accept", now=NOW)
        again = submit_swipe("viewer", "cand", "romantic", "accept", now=NOW + timedelta(minutes=1))
        assert first.remaining_accepts == 6
        assert again.ok
        assert again.remaining_accepts == 6

    def test_passes_and_rejects_do_not_consume(self):
        submit_swipe("viewer", "a", "romantic", "pass", now=NOW)
        result = submit_swipe("viewer", "b", "romantic", "reject", now=NOW)
        assert result.ok
        assert result.remaining_accepts == 7

    def test_plus_raises_the_limit(self):
        purchase_plus_subscription("viewer", 1, now=NOW)
        result = submit_swipe("viewer", "cand", "romantic", "accept", now=NOW)
        assert result.remaining_accepts == 19

        status = get_quota_status("viewer", "friendship", now=NOW)
        assert status.limit == 40
        assert status.used == 0

    def test_quota_status_reports_usage(self):
        submit_swipe("viewer", "a", "romantic", "accept", now=NOW)
        submit_swipe("viewer", "b", "romantic", "accept", now=NOW)

        status = get_quota_status("viewer", "romantic", now=NOW)
        assert status.limit == 7
        assert status.used == 2
        assert status.remaining == 5
        assert get_quota_status("viewer", "work", now=NOW) is None

    def test_offset_clock_counts_on_the_utc_day(self):
        # 22:00 at UTC-5 is 03:00 UTC the next day
        evening = datetime(2026, 3, 2, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
        result = submit_swipe("viewer", "cand", "romantic", "accept", now=evening)
        assert result.ok

        with get_db_session() as session:
            days = session.execute(
                select(daily_like_usage.c.day_utc).where(daily_like_usage.c.user_id == "viewer")
            ).scalars().all()
        assert days == [date(2026, 3, 3)]
        assert get_quota_status("viewer", "romantic", now=NOW).used == 0
        assert get_quota_status("viewer", "romantic", now=evening).used == 1

    def test_concurrent_accepts_cannot_overrun_the_limit(self):
        for i in range(6):
            submit_swipe("viewer", f"cand-{i}", "romantic", "accept", now=NOW)

        barrier = threading.Barrier(4)
        results = []
        results_guard = threading.Lock()

        def accept(candidate_id):
            barrier.wait()
            result = submit_swipe("viewer", candidate_id, "romantic", "accept", now=NOW)
            with results_guard:
                results.append(result)

        threads = [threading.Thread(target=accept, args=(f"racer-{i}",)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(results) == 4
        assert sum(1 for r in results if r.ok) == 1
        assert {r.error for r in results if not r.ok} == {"daily_limit_reached"}
        assert get_quota_status("viewer", "romantic", now=NOW).used == 7


class TestLedger:
    def test_last_write_wins(self):
        submit_swipe("viewer", "cand", "romantic", "accept", now=NOW)
        submit_swipe("viewer", "cand", "romantic", "reject", now=NOW + timedelta(minutes=1))
        assert _action("viewer", "cand", "romantic") == "reject"

    def test_accept_after_reject_counts_again(self):
        submit_swipe("viewer", "cand", "romantic", "accept", now=NOW)
        submit_swipe("viewer", "cand", "romantic", "reject", now=NOW)
        result = submit_swipe("viewer", "cand", "romantic", "accept", now=NOW)
        assert result.remaining_accepts == 5

    def test_validation_order(self):
        assert submit_swipe(None, "cand", "romantic", "accept").error == "not_authenticated"
        assert submit_swipe("viewer", "viewer", "romantic", "accept").error == "invalid_candidate"
        assert submit_swipe("viewer", "", "romantic", "accept").error == "invalid_candidate"
        assert submit_swipe("viewer", "cand", "work", "accept").error == "invalid_lane"
        assert submit_swipe("viewer", "cand", "romantic", "superlike").error == "invalid_action"


class TestUndoPass:
    def test_undoes_most_recent_pass_first(self):
        submit_swipe("viewer", "first", "romantic", "pass", now=NOW)
        submit_swipe("viewer", "second", "friendship", "pass", now=NOW + timedelta(minutes=1))
        submit_swipe("viewer", "liked", "romantic", "accept", now=NOW + timedelta(minutes=2))

        undone = undo_last_pass("viewer")
        assert undone.ok
        assert undone.candidate_id == "second"
        assert undone.lane.value == "friendship"

        assert undo_last_pass("viewer").candidate_id == "first"

        nothing = undo_last_pass("viewer")
        assert not nothing.ok
        assert nothing.error == "nothing_to_undo"
        assert _action("viewer", "liked", "romantic") == "accept"

    def test_requires_user(self):
        assert undo_last_pass(None).error == "not_authenticated"
