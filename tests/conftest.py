"""
Soft Delete Test Configuration

Provides pytest fixtures for in-memory SQLite database and session management.
"""

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from models import Base, Gadget, Part, Widget
from soft_delete import SoftDeleteRepo

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture(scope="session")
def db_engine():
    """Create an in-memory SQLite database for testing"""
    engine = create_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """
    Create a new database session for each test function.
    Rolls back all changes after the test completes.
    """
    connection = db_engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(bind=connection)
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def repo(db_session: Session) -> SoftDeleteRepo:
    """Repository with the read hook installed on the test session"""
    return SoftDeleteRepo(db_session)


@pytest.fixture
def widgets(db_session: Session):
    """Three live widgets"""
    rows = [
        Widget(name="bolt", sku="W-1"),
        Widget(name="nut", sku="W-2"),
        Widget(name="washer", sku="W-3"),
    ]
    db_session.add_all(rows)
    db_session.flush()
    return rows


@pytest.fixture
def gadgets(db_session: Session):
    """Two gadgets; gadgets cannot be soft deleted"""
    rows = [Gadget(name="lever"), Gadget(name="pulley")]
    db_session.add_all(rows)
    db_session.flush()
    return rows


@pytest.fixture
def locked_part(db_session: Session, widgets) -> Part:
    part = Part(widget_id=widgets[0].id, name="spring", locked=1)
    db_session.add(part)
    db_session.flush()
    return part
