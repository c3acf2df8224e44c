# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Sets known secrets in the environment before app.config is imported, and
# provides an in-memory Supabase plus a TestClient wired to it.
# =============================================================================

import base64
import os

os.environ["SUPABASE_URL"] = "https://test-project.supabase.co"
os.environ["SUPABASE_KEY"] = "test-anon-key"
os.environ["BOLD_SECRET_KEY"] = "test-bold-secret"
os.environ["BOLD_WEBHOOK_SECRET_KEY"] = "test-bold-vip-secret"
os.environ["CLERK_WEBHOOK_SECRET"] = "whsec_" + base64.b64encode(b"test-clerk-webhook-secret").decode()
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["SITE_URL"] = "https://motormania.test"
os.environ["ENVIRONMENT"] = "development"
os.environ["RESEND_API_KEY"] = ""
os.environ["META_PIXEL_ID"] = ""
os.environ["META_CAPI_TOKEN"] = ""
os.environ["EXCHANGE_RATE_API_KEY"] = ""
os.environ["PENDING_CLEANUP_ENABLED"] = "false"

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.core.dependencies import get_current_user_id, get_optional_user_id
from app.database.supabase_client import get_supabase
from app.main import app
from tests.fake_supabase import FakeSupabase

TEST_USER_ID = "user_2abcTEST"


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def email():
    """EmailService double; every send_* call is recorded."""
    return MagicMock()


@pytest.fixture
def tracker():
    return MagicMock()


@pytest.fixture
def client(db):
    """TestClient with Supabase swapped for the in-memory fake and a signed-in user."""
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_current_user_id] = lambda: TEST_USER_ID
    app.dependency_overrides[get_optional_user_id] = lambda: TEST_USER_ID
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(db):
    """TestClient with no signed-in user on optional-auth routes."""
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_optional_user_id] = lambda: None
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    from app.core.rate_limit import limiter
    limiter.reset()
    yield
