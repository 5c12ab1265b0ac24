# pawmatch/conftest.py
import os
from datetime import date, datetime, timezone

import pytest

# Must be set before pawmatch.core.config is imported
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SKIP_ENV_VALIDATION", "1")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from pawmatch.core.database import (  # noqa: E402
    blocked_users,
    clear_all_tables,
    create_all_tables,
    get_db_session,
    init_engine,
    moderation_states,
    preferences,
    profiles,
    user_suppressions,
)


DEFAULT_UPDATED_AT = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    """Create every table once per test session."""
    init_engine()
    create_all_tables()
    yield


@pytest.fixture(scope="function", autouse=True)
def reset_db():
    """Each test starts with empty tables."""
    clear_all_tables()
    yield


@pytest.fixture
def seed_user():
    """Insert a visible profile with preferences; returns the user id.

    Both lanes are enabled with no gender, age or distance constraints
    unless overridden.
    """

    def _seed(
        user_id: str,
        *,
        display_name=None,
        city="Austin",
        gender="female",
        birth_date=date(1995, 6, 1),
        latitude=30.2672,
        longitude=-97.7431,
        lifecycle_status="active",
        is_hidden=False,
        deleted_at=None,
        updated_at=DEFAULT_UPDATED_AT,
        friendship_enabled=True,
        romantic_enabled=True,
        **prefs,
    ) -> str:
        with get_db_session() as session:
            session.execute(
                profiles.insert().values(
                    user_id=user_id,
                    display_name=display_name or user_id.title(),
                    city=city,
                    gender=gender,
                    birth_date=birth_date,
                    latitude=latitude,
                    longitude=longitude,
                    lifecycle_status=lifecycle_status,
                    is_hidden=is_hidden,
                    deleted_at=deleted_at,
                    updated_at=updated_at,
                )
            )
            session.execute(
                preferences.insert().values(
                    user_id=user_id,
                    friendship_enabled=friendship_enabled,
                    romantic_enabled=romantic_enabled,
                    **prefs,
                )
            )
        return user_id

    return _seed


@pytest.fixture
def block():
    def _block(blocker_id: str, blocked_id: str) -> None:
        with get_db_session() as session:
            session.execute(blocked_users.insert().values(blocker_id=blocker_id, blocked_id=blocked_id))

    return _block


@pytest.fixture
def set_moderation():
    def _set(user_id: str, status: str) -> None:
        with get_db_session() as session:
            session.execute(moderation_states.insert().values(user_id=user_id, status=status))

    return _set


@pytest.fixture
def suppress():
    def _suppress(actor_id: str, target_id: str, **values) -> None:
        with get_db_session() as session:
            session.execute(user_suppressions.insert().values(actor_id=actor_id, target_id=target_id, **values))

    return _suppress
