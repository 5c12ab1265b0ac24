"""
Per-user named mutexes.

A process-local lock serializes callers inside one worker; on PostgreSQL a
transaction-scoped advisory lock extends the same key across workers and is
released automatically on commit or rollback.
"""

import threading
from contextlib import contextmanager
from typing import Iterator
from weakref import WeakValueDictionary

from sqlalchemy import text
from sqlalchemy.orm import Session

from pawmatch.core.database import dialect_name, get_db_session

_registry_guard = threading.Lock()
_locks: "WeakValueDictionary[str, threading.Lock]" = WeakValueDictionary()


def _named_lock(key: str) -> threading.Lock:
    with _registry_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _locks[key] = lock
        return lock


def swipe_lock_key(user_id: str) -> str:
    return user_id


def boost_lock_key(user_id: str) -> str:
    return f"{user_id}:boost"


def subscription_lock_key(user_id: str) -> str:
    return f"{user_id}:subscription"


def advisory_xact_lock(session: Session, key: str) -> None:
    """Take a transaction-scoped advisory lock when the store supports one."""
    if dialect_name(session) == "postgresql":
        session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})


@contextmanager
def locked_session(key: str) -> Iterator[Session]:
    """Open a unit of work serialized on `key` until it commits or rolls back."""
    lock = _named_lock(key)
    with lock:
        with get_db_session() as session:
            advisory_xact_lock(session, key)
            yield session
