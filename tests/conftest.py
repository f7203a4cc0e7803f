import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from core.database import build_engine, create_db_and_tables, get_session
from models.user import Actor, UserRole
from services import applications, evidence, issues, payments
from utils.security import create_access_token


@pytest.fixture
def engine(tmp_path):
    # File-backed so that several threads can open their own connections
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}", lock_timeout=10)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


def _actor(role: UserRole, name: str) -> Actor:
    return Actor(id=uuid.uuid4(), role=role, username=name)


@pytest.fixture
def reporter():
    return _actor(UserRole.reporter, "rahim")


@pytest.fixture
def fixer1():
    return _actor(UserRole.fixer, "karim")


@pytest.fixture
def fixer2():
    return _actor(UserRole.fixer, "salma")


@pytest.fixture
def arbiter():
    return _actor(UserRole.arbiter, "admin")


@pytest.fixture
def make_issue(session, reporter):
    def _make(title="Broken streetlight"):
        return issues.create_issue(
            session,
            reporter,
            title=title,
            description="Light on road 12 has been out for a week",
            category="electrical",
            location="Road 12, Dhanmondi",
        )

    return _make


@pytest.fixture
def assigned_issue(session, make_issue, fixer1, fixer2, arbiter):
    """Scenario A end state: fixer1's bid accepted, fixer2's rejected."""
    issue = make_issue()
    first = applications.submit_application(session, fixer1, issue.id, Decimal("50"), "2 days", "Replace the bulb")
    applications.submit_application(session, fixer2, issue.id, Decimal("60"), "1 day", "Replace the fitting")
    applications.accept_application(session, arbiter, issue.id, first.id)
    return issues.get_issue(session, issue.id)


@pytest.fixture
def resolved_issue(session, assigned_issue, fixer1, arbiter):
    proof = evidence.submit_evidence(session, fixer1, assigned_issue.id, "proofs/after.jpg", "Bulb replaced")
    evidence.approve_evidence(session, arbiter, proof.id)
    return issues.get_issue(session, assigned_issue.id)


@pytest.fixture
def paid_issue(session, resolved_issue, arbiter):
    payments.record_payment(session, arbiter, resolved_issue.id, Decimal("50"))
    return issues.get_issue(session, resolved_issue.id)


@pytest.fixture
def client(session):
    from main import app

    def _get_session_override():
        yield session

    app.dependency_overrides[get_session] = _get_session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(actor: Actor) -> dict:
        token = create_access_token(actor.id, actor.role, actor.username)
        return {"Authorization": f"Bearer {token}"}

    return _headers
