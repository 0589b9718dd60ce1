"""
Pytest fixtures for the warehouse backend tests.

Provides the application, a clean database per test, seeded users (one per
role) and helpers for bearer headers.
"""

from datetime import timedelta

import pytest

from warehouse_control import create_app
from warehouse_control.config import TestConfig
from warehouse_control.extensions import db
from warehouse_control.models import Role
from warehouse_control.services import auth_service, token_service
from warehouse_control.services.token_service import IdentityClaims

# Cheap bcrypt cost for fixtures; production uses auth_service.BCRYPT_ROUNDS
TEST_BCRYPT_ROUNDS = 4
TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(username: str, role: Role):
    return auth_service.create_user(username, TEST_PASSWORD, role, rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("alice", Role.ADMIN)


@pytest.fixture(scope='function')
def manager_user(db_session):
    return _make_user("mike", Role.MANAGER)


@pytest.fixture(scope='function')
def viewer_user(db_session):
    return _make_user("vera", Role.VIEWER)


def token_for(app, user) -> str:
    """Sign a token for user directly, bypassing the login route."""
    claims = IdentityClaims(user_id=user.id, username=user.username, role=Role(user.role))
    token, _ = token_service.issue_token(
        claims,
        app.config["JWT_SECRET"],
        timedelta(hours=app.config["JWT_EXP_HOURS"]),
    )
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(app, admin_user):
    return auth_headers(token_for(app, admin_user))


@pytest.fixture(scope='function')
def manager_headers(app, manager_user):
    return auth_headers(token_for(app, manager_user))


@pytest.fixture(scope='function')
def viewer_headers(app, viewer_user):
    return auth_headers(token_for(app, viewer_user))
