"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (in-memory SQLite)
- Table definitions for shops, users, plans, subscriptions and the admin ledger
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Generator
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, String, DateTime, Boolean, JSON, Text, Numeric, LargeBinary, Index, ForeignKey, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker, Session
import os

from shopledger.core.config import settings

logger = logging.getLogger("shopledger.database")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Global engine and session factory
_engine = None
_SessionLocal = None


def utc_now() -> datetime:
    """Timezone-aware UTC now for column defaults."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored timestamp to tz-aware UTC (SQLite drops tzinfo)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL") or settings.TEST_DATABASE_URL
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
        # One shared connection so in-memory databases survive across sessions
        _engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
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
def get_db_session(session_factory: Optional[Callable[[], Session]] = None):
    """
    Context manager for database sessions.

    Commits on clean exit, rolls back and re-raises on any exception.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = session_factory or get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI-friendly DB dependency that yields a Session and closes it.

    Use this with `Depends(get_db)` in route functions to ensure the session
    lifecycle works with both sync and async endpoints under FastAPI.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


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
        logger.warning(f"Database connection check failed: {e}")
        return False


# Shops (tenants)
shops = Table(
    'shops',
    metadata,
    Column('id', LargeBinary(16), primary_key=True),
    Column('name', String(255), nullable=False),
    Column('email', String(255), nullable=True),
    Column('phone', String(50), nullable=True),
    Column('address', Text, nullable=True),
    Column('logo', String(255), nullable=True),
    Column('currency', String(10), nullable=False, server_default='PKR'),
    Column('primary_color', String(20), nullable=True),
    Column('secondary_color', String(20), nullable=True),
    # Denormalized copy of the current subscription's plan name
    Column('plan', String(100), nullable=False, server_default='Free'),
    Column('status', String(20), nullable=False, server_default='active'),
    Column('created_at', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated_at', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
    Index('idx_shops_email', 'email'),
    Index('idx_shops_status', 'status'),
)

# Shop staff accounts (owned by the identity service, cascaded by shop status)
app_users = Table(
    'app_users',
    metadata,
    Column('id', LargeBinary(16), primary_key=True),
    Column('shop_id', LargeBinary(16), ForeignKey('shops.id'), nullable=False),
    Column('name', String(255), nullable=True),
    Column('email', String(255), nullable=True),
    Column('role', String(50), nullable=False, server_default='staff'),
    Column('status', String(20), nullable=False, server_default='active'),
    Column('created_at', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated_at', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
    Index('idx_app_users_shop_status', 'shop_id', 'status'),
)

# Pricing plan catalog (read-only here)
pricing_plans = Table(
    'pricing_plans',
    metadata,
    Column('id', LargeBinary(16), primary_key=True),
    Column('name', String(100), nullable=False),
    Column('description', Text, nullable=True),
    Column('monthly_price', Numeric(10, 2), nullable=False),
    Column('quarterly_price', Numeric(10, 2), nullable=False),
    Column('yearly_price', Numeric(10, 2), nullable=False),
    Column('features', JSON, nullable=True),
    Column('status', String(20), nullable=False, server_default='active'),
    Column('created_at', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated_at', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
    Index('idx_pricing_plans_status_monthly', 'status', 'monthly_price'),
)

# Subscription terms; several historical rows may still read status=active
subscriptions = Table(
    'subscriptions',
    metadata,
    Column('id', LargeBinary(16), primary_key=True),
    Column('shop_id', LargeBinary(16), ForeignKey('shops.id'), nullable=False),
    Column('plan_name', String(100), nullable=False),
    Column('price', Numeric(10, 2), nullable=False),
    Column('duration', String(20), nullable=False),
    Column('started_at', DateTime(timezone=True), nullable=False),
    Column('expires_at', DateTime(timezone=True), nullable=False),
    Column('status', String(20), nullable=False, server_default='active'),
    Column('payment_method', String(50), nullable=False, server_default='manual'),
    Column('auto_renew', Boolean, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), default=utc_now, nullable=False),
    Column('updated_at', DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False),
    Index('idx_subscriptions_shop_status_expires', 'shop_id', 'status', 'expires_at'),
    Index('idx_subscriptions_shop_started', 'shop_id', 'started_at'),
)

# Admin action ledger (append-only)
admin_actions = Table(
    'admin_actions',
    metadata,
    Column('id', LargeBinary(16), primary_key=True),
    Column('admin_id', LargeBinary(16), nullable=False),
    Column('shop_id', LargeBinary(16), ForeignKey('shops.id'), nullable=False),
    Column('action_type', String(50), nullable=False),
    Column('details', Text, nullable=True),  # JSON text
    Column('created_at', DateTime(timezone=True), default=utc_now, nullable=False),
    Index('idx_admin_actions_shop_created', 'shop_id', 'created_at'),
    Index('idx_admin_actions_admin', 'admin_id'),
    Index('idx_admin_actions_type', 'action_type'),
)

# Backup tracking rows (file generation happens elsewhere)
backups = Table(
    'backups',
    metadata,
    Column('id', LargeBinary(16), primary_key=True),
    Column('shop_id', LargeBinary(16), ForeignKey('shops.id'), nullable=False),
    Column('filename', String(255), nullable=False),
    Column('status', String(20), nullable=False, server_default='pending'),
    Column('created_at', DateTime(timezone=True), default=utc_now, nullable=False),
    Index('idx_backups_shop_created', 'shop_id', 'created_at'),
)
