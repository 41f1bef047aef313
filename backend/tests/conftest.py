"""Shared fixtures: in-memory content store and an authenticated API client."""

from __future__ import annotations

from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from backend.src.api.dependencies import get_db
from backend.src.api.middleware import get_auth_service
from backend.src.services import config as config_module
from backend.src.services.allow_list import EmailAllowListService
from backend.src.services.database import DatabaseService, init_database

JWT_SECRET = "a-secure-secret-value-123"
ADMIN_KEY = "admin-key-for-tests"


@pytest.fixture(autouse=True)
def test_environment(monkeypatch) -> Iterator[None]:
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("JWT_SECRET_KEY", JWT_SECRET)
    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_KEY)
    monkeypatch.setenv("ENABLE_LOCAL_MODE", "true")
    monkeypatch.setenv("LOCAL_DEV_TOKEN", "local-dev-token")
    config_module.reload_config()
    get_auth_service.cache_clear()
    yield
    config_module.get_config.cache_clear()
    get_auth_service.cache_clear()


@pytest.fixture
def db() -> Iterator[DatabaseService]:
    service = init_database("sqlite://")
    yield service
    service.dispose()


@pytest.fixture
def app(db: DatabaseService):
    from backend.src.api.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_db] = lambda: db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers(client: TestClient, db: DatabaseService) -> Dict[str, str]:
    """Sign in an allow-listed user through the API and return its headers."""
    EmailAllowListService(db).add("ada@example.com")
    response = client.post("/api/auth/token", json={"email": "ada@example.com"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
