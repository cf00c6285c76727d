# tests/conftest.py

"""
Pytest configuration and shared fixtures.

Supabase is replaced by tests.fakes.FakeSupabase through
app.dependency_overrides; the session context is injected the same way,
so no test touches global state or the network.
"""

import os

os.environ["ENV"] = "test"
os.environ.setdefault("SUPABASE_URL", "https://stia-test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")

import pytest
from fastapi.testclient import TestClient
from typing import Generator

from main import create_app
from core.rate_limiter import reset_rate_limits
from core.session import SessionContext
from core.supabase_client import get_admin_client, get_public_client
from dependencies.auth import get_current_user, get_session_context
from tests.fakes import FakeSupabase, make_context


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture(scope="function")
def app(fake_db):
    """Test FastAPI application wired to the fake client."""
    app = create_app()
    app.dependency_overrides[get_admin_client] = lambda: fake_db
    app.dependency_overrides[get_public_client] = lambda: fake_db
    yield app
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login_as(app):
    """
    login_as("manager") / login_as(context) → every request runs as that session.
    """

    def _login(roles_or_context, permission_rows=None, user=None) -> SessionContext:
        if isinstance(roles_or_context, SessionContext):
            context = roles_or_context
        else:
            roles = [roles_or_context] if isinstance(roles_or_context, str) else list(roles_or_context)
            context = make_context(roles, permission_rows, user)

        app.dependency_overrides[get_session_context] = lambda: context
        app.dependency_overrides[get_current_user] = lambda: context.user
        return context

    return _login


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()
