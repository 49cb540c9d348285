"""
Pytest fixtures for testing
"""
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from subtrack.api.deps import get_db, get_today
from subtrack.domain.date_index import date_to_day_number, parse_iso_date
from subtrack.domain.subscription import Subscription
from subtrack.infrastructure.db import models  # noqa: F401  (registers tables)
from subtrack.infrastructure.db.session import Base
from subtrack.main import create_app


TODAY = date(2025, 3, 1)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every connection of one test"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_engine):
    """Test client with the DB and "today" dependencies overridden"""
    app = create_app(create_tables=False)
    SessionLocal = sessionmaker(bind=db_engine)

    def _override_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_today] = lambda: date_to_day_number(TODAY)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_sub():
    """Factory for Subscription snapshots with ISO dates"""
    def _make(
        sub_id="s1", price=30.0, cycle="monthly", start="2025-01-01", end=None,
        currency="CNY", name=None, created_at=None,
    ) -> Subscription:
        return Subscription(
            id=sub_id,
            name=name or sub_id,
            price=price,
            currency=currency,
            cycle=cycle,
            start_day=parse_iso_date(start),
            end_day=parse_iso_date(end) if end else None,
            created_at=created_at,
        )
    return _make
