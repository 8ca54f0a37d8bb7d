"""
Pytest configuration and shared fixtures.
"""

import os
import sys
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

sys.path.append(os.path.join(os.getcwd(), "src"))

from credx.storage.models import Base, TicketModel, UserModel
from credx.storage.postgres_adapter import enable_sqlite_savepoints
from credx.rules.models import RuleModel


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> None:
    """Set up test environment variables."""
    os.environ.setdefault("APP_ENV", "test")
    os.environ.setdefault("DEBUG", "true")
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture
def db_engine():
    """In-memory SQLite with every table registered on the shared metadata."""
    engine = create_engine("sqlite:///:memory:", echo=False)
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.close()


BASE_TIME = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def make_rule(db_session):
    """Persist a rule; ``offset`` minutes after a fixed base time sets created_at."""
    def _make(name="Rule", clauses=None, actions=None, priority=3, is_active=True, offset=0):
        rule = RuleModel(
            id=str(uuid4()),
            name=name,
            conditions={"version": 1, "clauses": clauses or []},
            actions=actions or [{"type": "notify"}],
            priority=priority,
            is_active=is_active,
            version=1,
            created_at=BASE_TIME + timedelta(minutes=offset),
            updated_at=BASE_TIME + timedelta(minutes=offset),
        )
        db_session.add(rule)
        db_session.flush()
        return rule
    return _make


@pytest.fixture
def make_ticket(db_session):
    def _make(**fields):
        data = {
            "id": str(uuid4()),
            "title": "Issue with Loan Marketplace",
            "description": "Customer reported an issue",
            "status": "open",
            "priority": "medium",
            "category": "service",
            "created_by": "customer-1",
            "assigned_to": None,
            "ticket_metadata": {},
        }
        data.update(fields)
        ticket = TicketModel(**data)
        db_session.add(ticket)
        db_session.flush()
        return ticket
    return _make


@pytest.fixture
def make_user(db_session):
    def _make(role="admin", offset=0, **fields):
        user_id = fields.pop("id", str(uuid4()))
        user = UserModel(
            id=user_id,
            email=fields.pop("email", f"{user_id}@credx.test"),
            full_name=fields.pop("full_name", "Test User"),
            role=role,
            created_at=BASE_TIME + timedelta(minutes=offset),
        )
        db_session.add(user)
        db_session.flush()
        return user
    return _make
