"""Fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient

from querywatch.api.app import create_app
from querywatch.config import Settings


@pytest.fixture
def settings():
    return Settings(
        store_path=":memory:",
        store_pool_size=4,
        store_threads=1,
        store_memory_limit="256MB",
        cors_allowed_origins=["http://localhost:3000"],
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app, log_rows, seed_rows):
    """Client over a running app whose in-memory store holds ``log_rows``."""
    with TestClient(app, raise_server_exceptions=False) as client:
        seed_rows(app.state.store.pool.root, log_rows)
        yield client


@pytest.fixture
def bare_client(app):
    """Client whose lifespan has not run, so no store is attached."""
    return TestClient(app, raise_server_exceptions=False)
