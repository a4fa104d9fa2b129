# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from fastapi.testclient import TestClient
from typing import Generator
from unittest.mock import Mock, patch

from app.main import app as fastapi_app
from app.api.deps import get_current_user
from app.core.config import Settings, get_settings
from app.db.firestore import get_db
from app.models.user import CurrentUser
from app.services.access import AuthorizationResolver

from fake_firestore import FakeFirestore

SUPER = CurrentUser(uid="super-1", email="boss@example.com")
ADMIN = CurrentUser(uid="admin-1", email="helper@example.com")
VISITOR = CurrentUser(uid="visitor-1", email="x@example.com")
GUEST = CurrentUser(uid="guest-1", is_anonymous=True)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        admin_uids=["env-admin"],
        super_admin_uids=["env-super"],
        app_id="test-app",
        sendgrid_api_key="SG.test-key",
        sendgrid_from="seva@example.com",
        firebase_api_key="web-key",
    )


@pytest.fixture
def db() -> FakeFirestore:
    """Firestore double seeded with one super admin and one admin."""
    fake = FakeFirestore()
    fake.put("admins/super-1", {"role": "super_admin", "email": "boss@example.com"})
    fake.put("admins/admin-1", {"role": "admin", "email": "helper@example.com"})
    return fake


@pytest.fixture
def resolver(db, settings) -> AuthorizationResolver:
    return AuthorizationResolver(db, settings)


@pytest.fixture
def current_user():
    """Mutable holder for the identity the API sees; tests call `set`."""
    class Holder:
        user = VISITOR

        def set(self, user):
            self.user = user

    return Holder()


@pytest.fixture
def client(db, settings, current_user) -> Generator[TestClient, None, None]:
    """Test client wired to the Firestore double and test settings."""
    fastapi_app.dependency_overrides[get_db] = lambda: db
    fastapi_app.dependency_overrides[get_settings] = lambda: settings
    fastapi_app.dependency_overrides[get_current_user] = lambda: current_user.user
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sendgrid():
    """Patched SendGrid client class so no test reaches the network; every send is accepted."""
    with patch("app.services.notifications.SendGridAPIClient") as client_cls:
        client_cls.return_value.send.return_value = Mock(status_code=202, body="")
        yield client_cls


def sent_messages(client_cls):
    """Request bodies of every message handed to the patched SendGrid client."""
    return [c.args[0].get() for c in client_cls.return_value.send.call_args_list]
