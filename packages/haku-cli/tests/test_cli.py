"""CLI commands against a mocked backend."""

import functools
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from haku import main
from haku.config import Settings
from haku.core.api_client import HakuApiClient
from haku.core.store import OFFLINE_CONTENT_KEY, JsonFileKeyValueStore

runner = CliRunner()

NOTE = {"id": "n1", "name": "Groceries", "text": "oat milk"}
TODO_NODES = {
    "name": "Weekend",
    "children": {"root": ["a"], "a": []},
    "nodes": {"a": {"id": "a", "content": "laundry", "status": "ACTIVE"}},
}


@pytest.fixture
def backend(monkeypatch, tmp_path: Path):
    server = {"up": True, "nodes": TODO_NODES}

    def handler(request: httpx.Request) -> httpx.Response:
        if not server["up"]:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/api/notes/n1":
            return httpx.Response(200, json=NOTE)
        if request.url.path == "/api/todos/t1/nodes":
            return httpx.Response(200, json=server["nodes"])
        return httpx.Response(404, json={"error": "not_found", "message": "Not found"})

    settings = Settings(
        api_url="http://haku.test",
        token="secret-token",
        state_path=tmp_path / "state.json",
        _env_file=None,
    )
    monkeypatch.setattr(main, "_settings", lambda: settings)
    monkeypatch.setattr(
        main, "HakuApiClient", functools.partial(HakuApiClient, transport=httpx.MockTransport(handler))
    )
    server["settings"] = settings
    return server


def test_note_show_falls_back_to_the_saved_copy(backend) -> None:
    result = runner.invoke(main.app, ["note", "show", "n1"])
    assert result.exit_code == 0
    assert "Offline" not in result.stdout

    backend["up"] = False
    result = runner.invoke(main.app, ["note", "show", "n1"])

    assert result.exit_code == 0
    assert "Offline" in result.stdout
    assert "oat milk" in result.stdout


def test_note_never_opened_fails_offline(backend) -> None:
    backend["up"] = False

    result = runner.invoke(main.app, ["note", "show", "n1"])

    assert result.exit_code == 1
    assert "Could not reach" in result.stdout


def test_todo_show_keeps_a_copy_for_offline_use(backend) -> None:
    runner.invoke(main.app, ["todo", "show", "t1"])
    saved = JsonFileKeyValueStore(backend["settings"].state_path).read(OFFLINE_CONTENT_KEY)
    assert saved["/todos/t1"]["name"] == "Weekend"

    backend["up"] = False
    result = runner.invoke(main.app, ["todo", "show", "t1"])

    assert result.exit_code == 0
    assert "Offline" in result.stdout
    assert "laundry" in result.stdout
