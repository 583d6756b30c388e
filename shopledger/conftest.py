# shopledger/conftest.py
import os
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import insert, select

TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture(scope="session", autouse=True)
def engine():
    """
    Single in-memory SQLite engine (StaticPool) shared by the whole session.

    Services and endpoints use the global session factory, so pointing the
    global engine at it is enough; no dependency overrides are needed.
    """
    os.environ["TEST_DATABASE_URL"] = TEST_DB_URL
    from shopledger.core.database import init_engine, create_all_tables

    eng = init_engine(TEST_DB_URL)
    create_all_tables()
    yield eng
    eng.dispose()


@pytest.fixture(scope="function", autouse=True)
def reset_db(engine):
    """Drop and recreate every table so each test starts clean."""
    from shopledger.core.database import reset_database

    reset_database()
    yield


@pytest.fixture
def session_factory(engine):
    from shopledger.core.database import get_session_factory

    return get_session_factory()


@pytest.fixture
def db_session(session_factory):
    """Read-only session for assertions."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def make_shop(engine):
    from shopledger.core.database import shops

    def _make(name: str = "Corner Store", plan: str = "Free", status: str = "active", email=None) -> str:
        shop_id = str(uuid4())
        now = datetime.now(timezone.utc)
        with engine.begin() as conn:
            conn.execute(
                insert(shops).values(
                    id=uuid_bytes(shop_id),
                    name=name,
                    email=email,
                    currency="PKR",
                    plan=plan,
                    status=status,
                    created_at=now,
                    updated_at=now,
                )
            )
        return shop_id

    return _make


@pytest.fixture
def make_user(engine):
    from shopledger.core.database import app_users

    def _make(shop_id: str, role: str = "staff", status: str = "active") -> str:
        user_id = str(uuid4())
        now = datetime.now(timezone.utc)
        with engine.begin() as conn:
            conn.execute(
                insert(app_users).values(
                    id=uuid_bytes(user_id),
                    shop_id=uuid_bytes(shop_id),
                    name=f"user-{user_id[:8]}",
                    role=role,
                    status=status,
                    created_at=now,
                    updated_at=now,
                )
            )
        return user_id

    return _make


@pytest.fixture
def make_plan(engine):
    from shopledger.core.database import pricing_plans

    def _make(
        name: str = "Pro",
        monthly: str = "10",
        quarterly: str = "27",
        yearly: str = "100",
        status: str = "active",
    ) -> str:
        plan_id = str(uuid4())
        now = datetime.now(timezone.utc)
        with engine.begin() as conn:
            conn.execute(
                insert(pricing_plans).values(
                    id=uuid_bytes(plan_id),
                    name=name,
                    monthly_price=Decimal(monthly),
                    quarterly_price=Decimal(quarterly),
                    yearly_price=Decimal(yearly),
                    features=["inventory", "billing"],
                    status=status,
                    created_at=now,
                    updated_at=now,
                )
            )
        return plan_id

    return _make


@pytest.fixture
def shop(make_shop):
    return make_shop()


@pytest.fixture
def admin(make_user, shop):
    """Acting admin: a user of `shop` with the owner role."""
    return make_user(shop, role="owner")


@pytest.fixture
def plan(make_plan):
    return make_plan()


@pytest.fixture
def fetch_rows(engine):
    """Read all rows of a table (optionally filtered by shop) outside any service code."""

    def _fetch(table, shop_id=None):
        query = select(table)
        if shop_id is not None:
            query = query.where(table.c.shop_id == uuid_bytes(shop_id))
        with engine.connect() as conn:
            return conn.execute(query).fetchall()

    return _fetch


def uuid_bytes(value: str) -> bytes:
    from shopledger.core.identity import to_internal_key

    return to_internal_key(value)
