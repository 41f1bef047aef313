import logging

import httpx
import pytest
from fastapi.testclient import TestClient

from haku.config import Settings
from haku.daemon.server import WORKER_VERSION, WorkerState, create_app


@pytest.fixture
def backend_calls():
    return []


@pytest.fixture
def installed():
    return {"version": WORKER_VERSION}


@pytest.fixture
def worker(backend_calls, installed):
    def backend(request: httpx.Request) -> httpx.Response:
        backend_calls.append((request.method, request.url.path, request.url.query, request.content))
        return httpx.Response(201, json={"echo": request.url.path}, headers={"X-Backend": "yes"})

    settings = Settings(api_url="http://backend.test", _env_file=None)
    app = create_app(
        settings,
        transport=httpx.MockTransport(backend),
        installed_version=lambda: installed["version"],
    )
    with TestClient(app) as client:
        yield client


def test_health_reports_versions(worker) -> None:
    response = worker.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["active_version"] == WORKER_VERSION
    assert body["waiting_version"] is None
    assert body["backend_url"] == "http://backend.test"


def test_upgraded_package_waits_until_update(worker, installed) -> None:
    installed["version"] = "0.2.0"
    assert worker.get("/health").json()["waiting_version"] == "0.2.0"

    response = worker.post("/message", json={"type": "UPDATE"})

    assert response.status_code == 200
    assert response.json() == {"accepted": True, "active_version": "0.2.0", "waiting_version": None}


def test_update_without_waiting_version_is_harmless(worker) -> None:
    response = worker.post("/message", json={"type": "UPDATE"})

    assert response.json()["accepted"] is True
    assert response.json()["active_version"] == WORKER_VERSION


def test_unknown_message_is_logged_and_ignored(worker, installed, caplog) -> None:
    installed["version"] = "0.2.0"

    with caplog.at_level(logging.WARNING, logger="haku.daemon.server"):
        response = worker.post("/message", json={"type": "CLAIM", "payload": 1})

    assert response.json()["accepted"] is False
    assert response.json()["waiting_version"] == "0.2.0"
    assert "CLAIM" in caplog.text


def test_other_requests_pass_through(worker, backend_calls) -> None:
    response = worker.post("/api/inbox?x=1", json={"text": "hello"})

    assert response.status_code == 201
    assert response.json() == {"echo": "/api/inbox"}
    assert response.headers["X-Backend"] == "yes"
    method, path, query, content = backend_calls[0]
    assert (method, path, query) == ("POST", "/api/inbox", b"x=1")
    assert b"hello" in content


def test_unreachable_backend_returns_network_error() -> None:
    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    settings = Settings(api_url="http://backend.test", _env_file=None)
    with TestClient(create_app(settings, transport=httpx.MockTransport(down))) as client:
        response = client.get("/api/files")

    assert response.status_code == 503
    assert response.json()["error"] == "network_error"


def test_worker_started_after_an_upgrade_has_a_waiting_version() -> None:
    settings = Settings(api_url="http://backend.test", _env_file=None)
    app = create_app(
        settings,
        transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        installed_version=lambda: "0.3.0",
    )

    with TestClient(app):
        state = app.state.worker
        assert state.active_version == WORKER_VERSION
        assert state.waiting_version == "0.3.0"


def test_missing_distribution_installs_nothing() -> None:
    settings = Settings(api_url="http://backend.test", _env_file=None)
    state = WorkerState(settings, installed_version=lambda: None)

    assert state.check_for_update() is None
    assert state.skip_waiting() is False
