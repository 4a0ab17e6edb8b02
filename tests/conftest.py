# tests/conftest.py
"""
Shared fixtures.

- ENV is set *before* any conduct_log import: the module-level engine points at
  a throwaway in-memory SQLite and startup create_all is disabled.
- Every test gets its own in-memory database (StaticPool: one connection shared
  by the test session and the sessions FastAPI opens per request).
- `ref` seeds departments, teams, processes, an incident type and users.
"""
from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENABLE_CREATE_ALL"] = "0"

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conduct_log.db.session import build_engine, get_db
from conduct_log.main import app
from conduct_log.models import Base
from conduct_log.models.reference import Department, IncidentType, Process, Team
from conduct_log.models.user import User
from conduct_log.schemas.incident import IncidentCreate

# fixed clock for crud/service tests
NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    eng = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def ref(db):
    trading = Department(name="Trading", code="TRD")
    ops = Department(name="Operations", code="OPS")
    db.add_all([trading, ops])
    db.flush()

    equities = Team(name="Equities Desk", department_id=trading.id)
    settlements = Team(name="Settlements", department_id=ops.id)
    onboarding = Process(name="Client Onboarding")
    capture = Process(name="Trade Capture")
    policy = IncidentType(name="Policy Breach")
    db.add_all([equities, settlements, onboarding, capture, policy])
    db.flush()

    alice = User(email="alice@example.com", display_name="Alice Reporter", department_id=trading.id, team_id=equities.id)
    bob = User(email="bob@example.com", display_name="Bob Head", department_id=trading.id, role="hod")
    carol = User(email="carol@example.com", display_name="Carol Risk", department_id=ops.id, role="risk_office")
    gone = User(email="gone@example.com", display_name="Former Staff", is_active=False)
    db.add_all([alice, bob, carol, gone])
    db.commit()

    return SimpleNamespace(
        trading=trading,
        ops=ops,
        equities=equities,
        settlements=settlements,
        onboarding=onboarding,
        capture=capture,
        policy=policy,
        alice=alice,
        bob=bob,
        carol=carol,
        gone=gone,
    )


@pytest.fixture
def make_payload(ref):
    """IncidentCreate with sensible defaults; keyword overrides use python field names."""

    def _make(**overrides) -> IncidentCreate:
        data = {
            "reporter_id": ref.alice.id,
            "department_id": ref.trading.id,
            "occurred_at": datetime(2025, 1, 10, tzinfo=timezone.utc),
            "category": "near_miss",
            "description": "Near miss on trading floor",
        }
        data.update(overrides)
        return IncidentCreate(**data)

    return _make


@pytest.fixture
def client(session_factory, ref):
    def _override_get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def as_alice(ref):
    return {"X-User-Id": ref.alice.id}


@pytest.fixture
def as_bob(ref):
    return {"X-User-Id": ref.bob.id}
