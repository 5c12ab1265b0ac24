"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (in-memory SQLite or a dedicated Postgres)
- Table definitions for the matching core and the collaborator tables it reads
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Boolean,
    Float,
    JSON,
    Text,
    Index,
    UniqueConstraint,
    PrimaryKeyConstraint,
    text,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker, Session
import logging
import os

from pawmatch.core.config import settings


logger = logging.getLogger(__name__)

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if url.startswith("sqlite"):
        # In-memory databases only exist per connection, so every session shares one
        pool_kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/").endswith("sqlite:"):
            pool_kwargs["poolclass"] = StaticPool
        _engine = create_engine(url, echo=False, **pool_kwargs)
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            pool_pre_ping=True,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Commits when the block exits cleanly and rolls back on any exception,
    so every public operation is a single all-or-nothing unit of work.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def dialect_name(session: Session) -> str:
    return session.get_bind().dialect.name


def upsert(session: Session, table: Table):
    """Return an INSERT for `table` that supports ON CONFLICT on the bound dialect."""
    name = dialect_name(session)
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise RuntimeError(f"Unsupported database dialect for upserts: {name}")


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def clear_all_tables():
    """Delete every row while keeping the schema (test helper)."""
    engine = get_engine()
    with engine.begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database connection check failed", extra={"error": str(e)})
        return False


# ---------------------------------------------------------------------------
# Matching core tables
# ---------------------------------------------------------------------------

# One decision per (viewer, candidate, lane); last write wins
swipes = Table(
    'swipes',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('viewer_id', String(64), nullable=False),
    Column('candidate_id', String(64), nullable=False),
    Column('lane', String(16), nullable=False),
    Column('action', String(16), nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('viewer_id', 'candidate_id', 'lane', name='uq_swipes_viewer_candidate_lane'),
    Index('idx_swipes_candidate_action', 'candidate_id', 'action'),
    Index('idx_swipes_viewer_created', 'viewer_id', 'created_at'),
)

# Accept quota counter, one row per user/day/lane
daily_like_usage = Table(
    'daily_like_usage',
    metadata,
    Column('user_id', String(64), nullable=False),
    Column('day_utc', Date, nullable=False),
    Column('lane', String(16), nullable=False),
    Column('likes_used', Integer, nullable=False, default=0),
    Column('updated_at', DateTime(timezone=True), nullable=True),
    PrimaryKeyConstraint('user_id', 'day_utc', 'lane', name='pk_daily_like_usage'),
)

# Cross-lane pending connections, keyed by the canonical (low, high) pair
cross_lane_connections = Table(
    'cross_lane_connections',
    metadata,
    Column('user_low', String(64), nullable=False),
    Column('user_high', String(64), nullable=False),
    Column('pals_user_id', String(64), nullable=False),
    Column('match_user_id', String(64), nullable=False),
    Column('status', String(16), nullable=False, default='pending'),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('expires_at', DateTime(timezone=True), nullable=False),
    Column('resolved_lane', String(16), nullable=True),
    Column('resolved_at', DateTime(timezone=True), nullable=True),
    Column('resolved_by', String(64), nullable=True),
    Column('message_sender_id', String(64), nullable=True),
    Column('message_body', Text, nullable=True),
    Column('message_metadata', JSON, nullable=True),
    Column('message_client_message_id', String(128), nullable=True),
    Column('message_lane', String(16), nullable=True),
    Column('message_created_at', DateTime(timezone=True), nullable=True),
    PrimaryKeyConstraint('user_low', 'user_high', name='pk_cross_lane_connections'),
    UniqueConstraint('message_client_message_id', name='uq_cross_lane_message_client_id'),
    Index('idx_cross_lane_status_expires', 'status', 'expires_at'),
)

# Per-user entitlement tier, lazily created as "free"
user_entitlements = Table(
    'user_entitlements',
    metadata,
    Column('user_id', String(64), primary_key=True),
    Column('plan_code', String(16), nullable=False, default='free'),
    Column('expires_at', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
)

# Plus subscription state (already-authorized purchases only)
user_subscriptions = Table(
    'user_subscriptions',
    metadata,
    Column('user_id', String(64), primary_key=True),
    Column('product_code', String(32), nullable=False),
    Column('status', String(16), nullable=False),
    Column('renews_every_months', Integer, nullable=False),
    Column('current_period_start', DateTime(timezone=True), nullable=False),
    Column('current_period_end', DateTime(timezone=True), nullable=False),
    Column('auto_renews', Boolean, nullable=False, default=True),
    Column('cancel_at_period_end', Boolean, nullable=False, default=False),
    Column('canceled_at', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
)

# Consumable balances, one row per (user, kind)
user_consumables = Table(
    'user_consumables',
    metadata,
    Column('user_id', String(64), nullable=False),
    Column('kind', String(32), nullable=False),
    Column('purchased_balance', Integer, nullable=False, default=0),
    Column('included_total', Integer, nullable=False, default=0),
    Column('included_remaining', Integer, nullable=False, default=0),
    Column('unlimited', Boolean, nullable=False, default=False),
    Column('renews_at', DateTime(timezone=True), nullable=True),
    Column('renewal_period_days', Integer, nullable=True),
    Column('renewal_period_months', Integer, nullable=True),
    Column('updated_at', DateTime(timezone=True), nullable=True),
    PrimaryKeyConstraint('user_id', 'kind', name='pk_user_consumables'),
)

# Processed purchase events (idempotency for credited purchases)
purchase_events = Table(
    'purchase_events',
    metadata,
    Column('event_id', String(128), primary_key=True),
    Column('user_id', String(64), nullable=False),
    Column('kind', String(32), nullable=False),
    Column('quantity', Integer, nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Index('idx_purchase_events_user', 'user_id'),
)

boost_sessions = Table(
    'boost_sessions',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(64), nullable=False),
    Column('started_at', DateTime(timezone=True), nullable=False),
    Column('ends_at', DateTime(timezone=True), nullable=False),
    Column('status', String(16), nullable=False, default='active'),
    Index('idx_boost_sessions_user_status', 'user_id', 'status'),
    Index('idx_boost_sessions_status_ends', 'status', 'ends_at'),
)

# ---------------------------------------------------------------------------
# Collaborator tables (owned by profile, safety and messaging services)
# ---------------------------------------------------------------------------

profiles = Table(
    'profiles',
    metadata,
    Column('user_id', String(64), primary_key=True),
    Column('display_name', String(100), nullable=True),
    Column('city', String(100), nullable=True),
    Column('gender', String(32), nullable=True),
    Column('birth_date', Date, nullable=True),
    Column('latitude', Float, nullable=True),
    Column('longitude', Float, nullable=True),
    Column('lifecycle_status', String(16), nullable=False, default='active'),
    Column('is_hidden', Boolean, nullable=False, default=False),
    Column('deleted_at', DateTime(timezone=True), nullable=True),
    Column('updated_at', DateTime(timezone=True), nullable=True),
    Index('idx_profiles_lat_lon', 'latitude', 'longitude'),
)

preferences = Table(
    'preferences',
    metadata,
    Column('user_id', String(64), primary_key=True),
    Column('friendship_enabled', Boolean, nullable=False, default=False),
    Column('friendship_preferred_genders', JSON, nullable=True),
    Column('friendship_age_min', Integer, nullable=True),
    Column('friendship_age_max', Integer, nullable=True),
    Column('friendship_distance_miles', Float, nullable=True),
    Column('romantic_enabled', Boolean, nullable=False, default=False),
    Column('romantic_preferred_genders', JSON, nullable=True),
    Column('romantic_age_min', Integer, nullable=True),
    Column('romantic_age_max', Integer, nullable=True),
    Column('romantic_distance_miles', Float, nullable=True),
)

moderation_states = Table(
    'moderation_states',
    metadata,
    Column('user_id', String(64), primary_key=True),
    Column('status', String(16), nullable=False, default='normal'),
    Column('updated_at', DateTime(timezone=True), nullable=True),
)

blocked_users = Table(
    'blocked_users',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('blocker_id', String(64), nullable=False),
    Column('blocked_id', String(64), nullable=False),
    Column('created_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('blocker_id', 'blocked_id', name='uq_blocked_users_pair'),
)

# Hard "no" suppressions (report, block, lane pass cooldowns) from actor toward target
user_suppressions = Table(
    'user_suppressions',
    metadata,
    Column('actor_id', String(64), nullable=False),
    Column('target_id', String(64), nullable=False),
    Column('blocked_at', DateTime(timezone=True), nullable=True),
    Column('reported_at', DateTime(timezone=True), nullable=True),
    Column('friendship_pass_until', DateTime(timezone=True), nullable=True),
    Column('romantic_pass_until', DateTime(timezone=True), nullable=True),
    PrimaryKeyConstraint('actor_id', 'target_id', name='pk_user_suppressions'),
)

conversations = Table(
    'conversations',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_low', String(64), nullable=False),
    Column('user_high', String(64), nullable=False),
    Column('lane', String(16), nullable=False),
    Column('status', String(16), nullable=False),
    Column('requested_by', String(64), nullable=True),
    Column('last_message_at', DateTime(timezone=True), nullable=True),
    Column('last_message_preview', String(140), nullable=True),
    Column('last_message_sender_id', String(64), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('user_low', 'user_high', name='uq_conversations_pair'),
)

conversation_participants = Table(
    'conversation_participants',
    metadata,
    Column('conversation_id', String(36), nullable=False),
    Column('user_id', String(64), nullable=False),
    Column('removed_at', DateTime(timezone=True), nullable=True),
    PrimaryKeyConstraint('conversation_id', 'user_id', name='pk_conversation_participants'),
)

conversation_messages = Table(
    'conversation_messages',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('conversation_id', String(36), nullable=False),
    Column('sender_id', String(64), nullable=False),
    Column('kind', String(16), nullable=False, default='text'),
    Column('body', Text, nullable=False),
    Column('metadata', JSON, nullable=True),
    Column('client_message_id', String(128), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('client_message_id', name='uq_conversation_messages_client_id'),
    Index('idx_conversation_messages_conversation', 'conversation_id', 'created_at'),
)
