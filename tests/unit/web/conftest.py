"""Fixtures for route tests: the real app over a per-test SQLite store."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from lemrecon.web.app import app
from lemrecon.web.dependencies import get_store


@pytest.fixture
def client(sync_store):
    """Create test client with the store dependency overridden."""
    app.dependency_overrides[get_store] = lambda: sync_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
