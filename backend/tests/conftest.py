import os

# Must be set before leadflow.core.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadflow import models  # noqa: F401  (registers tables)
from leadflow.api.deps import get_clock
from leadflow.core.clock import FixedClock
from leadflow.core.config import get_settings
from leadflow.core.database import Base, get_db
from leadflow.main import app
from leadflow.models import Agent, Lead, LeadStage
from leadflow.services.workflow import WorkflowService


# Monday 10:00 in Dubai
T0 = datetime(2025, 3, 10, 6, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def workflow(db, clock, settings):
    return WorkflowService(db, clock, settings)


def _add_agent(db, name, email, is_active=True):
    agent = Agent(name=name, email=email, is_active=is_active)
    db.add(agent)
    db.commit()
    return agent


@pytest.fixture
def agent(db):
    return _add_agent(db, "Sara Khan", "sara@example.com")


@pytest.fixture
def other_agent(db):
    return _add_agent(db, "Omar Ali", "omar@example.com")


@pytest.fixture
def add_agent(db):
    def _add(name, email, is_active=True):
        return _add_agent(db, name, email, is_active)
    return _add


@pytest.fixture
def make_lead(db, clock, agent):
    """Create a committed lead; defaults to a fresh 'new' lead assigned now."""
    def _make(stage=LeadStage.NEW, **fields):
        fields.setdefault("name", "Layla Haddad")
        fields.setdefault("owner_agent_id", agent.id)
        fields.setdefault("assigned_at", clock.now())
        fields.setdefault("outcomes_selected", [])
        lead = Lead(stage=stage, **fields)
        db.add(lead)
        db.commit()
        return lead
    return _make


@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
