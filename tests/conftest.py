"""
Pytest fixtures for loyalty ledger tests.

Each test gets its own SQLite file so that tests needing two independent
sessions (concurrent redemption, concurrent enrollment) see real commits.
"""

import pytest
from fastapi.testclient import TestClient

from app.db import Base, create_db_engine, create_session_factory
from app.main import create_app
from app.services import enrollment_service
from app.services.account_service import create_account
from app.services.program_service import create_program


@pytest.fixture(scope='function')
def engine(tmp_path):
    """Create a fresh database for each test."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'loyalty.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture(scope='function')
def db_session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope='function')
def client(engine):
    with TestClient(create_app(engine)) as client:
        yield client


@pytest.fixture(scope='function')
def admin(db_session):
    account = create_account(db_session, role="admin", name="Platform Admin")
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def business(db_session):
    """Business A (first tenant)."""
    account = create_account(db_session, role="business", name="Cafe Acme", email="owner@acme.test")
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def other_business(db_session):
    """Business B (second tenant)."""
    account = create_account(db_session, role="business", name="Beta Bakery", email="owner@beta.test")
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def customer(db_session):
    account = create_account(db_session, role="customer", name="Alice", email="alice@example.test")
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def other_customer(db_session):
    account = create_account(db_session, role="customer", name="Bob", email="bob@example.test")
    db_session.commit()
    return account


@pytest.fixture(scope='function')
def make_staff(db_session):
    def _make(business, **flags):
        account = create_account(
            db_session,
            role="staff",
            name="Counter Staff",
            business_id=business.id,
            permissions=flags,
        )
        db_session.commit()
        return account

    return _make


@pytest.fixture(scope='function')
def program(db_session, business):
    """Active points program with a 50-point and a 100-point reward tier."""
    prog = create_program(
        db_session,
        business,
        business.id,
        {
            "name": "Coffee Club",
            "type": "points",
            "point_value": 1,
            "reward_tiers": [
                {"threshold": 50, "reward": "Free Coffee"},
                {"threshold": 100, "reward": "Free Lunch"},
            ],
        },
    )
    db_session.commit()
    return prog


@pytest.fixture(scope='function')
def enrolled(db_session, customer, program):
    enrollment = enrollment_service.enroll(db_session, customer.id, program.id)
    db_session.commit()
    return enrollment


@pytest.fixture(scope='function')
def tier_for():
    def _tier(program, threshold):
        return next(t for t in program.tiers if t.threshold == threshold)

    return _tier
