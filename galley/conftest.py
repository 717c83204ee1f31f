# galley/conftest.py
import os

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("ENV", "test")
os.environ["TEST_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("ADMIN_KEY", "test-admin-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("CATALOG_PACING_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient

from galley.core.database import reset_database
from galley.core.metrics import METRICS
from galley.features.ai.client import get_gemini_client, get_openai_client
from galley.main import app
from galley.realtime.hub import hub
from galley.tests.mocks import FakeModelClient


@pytest.fixture(scope="function", autouse=True)
def clean_state():
    """Fresh tables, counters and call rooms for every test."""
    reset_database()
    METRICS.reset()
    hub.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user_1"}


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": "test-admin-key"}


@pytest.fixture
def gemini():
    """Fake Gemini client installed on the app; queue answers on `.responses`."""
    fake = FakeModelClient()
    app.dependency_overrides[get_gemini_client] = lambda: fake
    return fake


@pytest.fixture
def openai_fake():
    fake = FakeModelClient()
    app.dependency_overrides[get_openai_client] = lambda: fake
    return fake
