"""Pytest configuration and fixtures."""

import os

import pytest

# Settings are cached on first use, so the environment is fixed before any
# dossier module is imported by a test module.
for _var in (
    "SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
    "BRAVE_SEARCH_API_KEY",
    "ANTHROPIC_BASE_URL",
):
    os.environ.pop(_var, None)
os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
os.environ["DOSSIER_ENV"] = "test"


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
    os.environ["DOSSIER_ENV"] = "test"


@pytest.fixture
def memory_stores():
    from dossier.db.stores import StorageBackend, build_stores

    return build_stores(StorageBackend.MEMORY)


@pytest.fixture
def api(memory_stores):
    """TestClient over the app with in-memory stores; overrides are reset afterwards."""
    from fastapi.testclient import TestClient

    from dossier.db.stores import get_stores
    from dossier.main import app

    app.dependency_overrides[get_stores] = lambda: memory_stores
    yield TestClient(app)
    app.dependency_overrides.clear()
