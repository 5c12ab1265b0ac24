from datetime import datetime, timedelta, timezone

from pawmatch.features.likes.service import get_liked_you_page
from pawmatch.features.swipes.service import submit_swipe

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def _likers(page):
    return [entry.liker_id for entry in page.entries]


def test_newest_likes_first(seed_user):
    seed_user("me")
    seed_user("bob")
    seed_user("carol")
    submit_swipe("bob", "me", "romantic", "accept", now=NOW - timedelta(hours=2))
    submit_swipe("carol", "me", "friendship", "accept", now=NOW - timedelta(hours=1))

    page = get_liked_you_page("me", now=NOW)
    assert _likers(page) == ["carol", "bob"]
    assert page.entries[0].lane.value == "friendship"
    assert page.entries[0].liked_at == NOW - timedelta(hours=1)
    assert page.entries[1].display_name == "Bob"


def test_non_actionable_likers_are_hidden(seed_user, block, suppress):
    seed_user("me")
    for user_id in ("fan", "answered", "blocked", "hidden", "reported", "passer"):
        seed_user(user_id, is_hidden=(user_id == "hidden"))
        submit_swipe(user_id, "me", "romantic", "accept", now=NOW - timedelta(hours=1))
    submit_swipe("passer", "me", "romantic", "pass", now=NOW - timedelta(minutes=30))
    submit_swipe("me", "answered", "romantic", "reject", now=NOW - timedelta(minutes=10))
    block("blocked", "me")
    suppress("me", "reported", reported_at=NOW - timedelta(days=1))

    assert _likers(get_liked_you_page("me", now=NOW)) == ["fan"]


def test_keyset_pages(seed_user):
    seed_user("me")
    for i in range(3):
        seed_user(f"fan-{i}")
        submit_swipe(f"fan-{i}", "me", "romantic", "accept", now=NOW - timedelta(hours=3 - i))

    first = get_liked_you_page("me", limit=2, now=NOW)
    assert _likers(first) == ["fan-2", "fan-1"]
    assert first.next_cursor

    second = get_liked_you_page("me", limit=2, cursor=first.next_cursor, now=NOW)
    assert _likers(second) == ["fan-0"]
    assert second.next_cursor is None


def test_errors():
    assert get_liked_you_page(None).error == "not_authenticated"
    assert get_liked_you_page("me", cursor="%%%").error == "invalid_cursor"
