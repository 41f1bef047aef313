import json

import httpx
import pytest

from haku.core.api_client import HakuApiClient
from haku.core.content import ContentType
from haku.core.errors import (
    AuthorizationError,
    ConflictError,
    CycleError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from haku.core.store import MemoryKeyValueStore, Store


def client_for(handler, token="secret-token") -> HakuApiClient:
    return HakuApiClient("http://haku.test", token, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_requests_carry_bearer_token_and_api_prefix() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=[{"id": "n1", "name": "Note", "type": "NOTE"}])

    files = await client_for(handler).get_files()

    assert files[0]["id"] == "n1"
    assert seen == {"url": "http://haku.test/api/files", "auth": "Bearer secret-token"}


@pytest.mark.asyncio
async def test_tree_route_follows_content_type() -> None:
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=[])

    client = client_for(handler)
    await client.get_tree(ContentType.NOTE)
    await client.get_tree(ContentType.TODO)

    assert paths == ["/api/notes", "/api/todos"]


@pytest.mark.asyncio
async def test_login_stores_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"email": "ada@example.com"}
        return httpx.Response(200, json={"token": "jwt", "user": {"email": "ada@example.com"}})

    client = client_for(handler, token=None)
    await client.login("ada@example.com")

    assert client.token == "jwt"


@pytest.mark.asyncio
async def test_update_todo_nodes_sends_batch() -> None:
    batch = {"children": {"root": ["a"]}, "mutations": {"insert": {}, "update": {}, "delete": []}}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.path == "/api/todos/t1/nodes"
        assert json.loads(request.content) == batch
        return httpx.Response(200, json={"children": batch["children"], "nodes": {}})

    response = await client_for(handler).update_todo_nodes("t1", batch)

    assert response["children"] == {"root": ["a"]}


@pytest.mark.asyncio
async def test_delete_returns_none_on_empty_body() -> None:
    client = client_for(lambda request: httpx.Response(204))
    assert await client.delete_note("n1") is None


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (400, {"error": "validation_error", "message": "bad"}, ValidationError),
        (401, {"error": "unauthorized", "message": "no"}, AuthorizationError),
        (403, {"error": "forbidden", "message": "no"}, AuthorizationError),
        (404, {"error": "not_found", "message": "gone"}, NotFoundError),
        (409, {"error": "conflict", "message": "taken"}, ConflictError),
        (409, {"error": "cycle_error", "message": "loop"}, CycleError),
        (422, {"detail": [{"msg": "field required"}]}, ValidationError),
        (500, {"error": "internal_error", "message": "Something went wrong!"}, NetworkError),
        (502, None, NetworkError),
    ],
)
@pytest.mark.asyncio
async def test_error_responses_map_to_domain_errors(status, body, expected) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if body is None:
            return httpx.Response(status, text="bad gateway")
        return httpx.Response(status, json=body)

    with pytest.raises(expected) as excinfo:
        await client_for(handler).get_history()

    assert excinfo.type is expected
    if body and "message" in body:
        assert excinfo.value.message == body["message"]


@pytest.mark.asyncio
async def test_transport_failures_are_network_errors() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NetworkError) as excinfo:
        await client_for(refuse).get_inbox()
    assert excinfo.value.retryable is True

    with pytest.raises(NetworkError):
        await client_for(slow).get_inbox()


@pytest.mark.asyncio
async def test_admin_calls_send_api_key_header() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("Api-Key"))
        return httpx.Response(200, json={"id": 1, "email": "ada@example.com"})

    await client_for(handler).add_allowed_email("admin-key", "ada@example.com")

    assert seen == ["admin-key"]


@pytest.mark.asyncio
async def test_every_request_reports_reachability() -> None:
    store = Store(MemoryKeyValueStore())
    answers = [
        httpx.Response(200, json=[]),
        httpx.Response(503, json={"error": "network_error", "message": "down"}),
        httpx.Response(404, json={"error": "not_found", "message": "gone"}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        if not answers:
            raise httpx.ConnectError("connection refused", request=request)
        return answers.pop(0)

    client = HakuApiClient(
        "http://haku.test",
        transport=httpx.MockTransport(handler),
        on_network_status=store.set_online,
    )
    seen = []
    store.subscribe(lambda state: state.online, seen.append)

    await client.get_inbox()
    assert store.state.online is True
    with pytest.raises(NetworkError):
        await client.get_inbox()
    assert store.state.online is False
    with pytest.raises(NotFoundError):
        await client.get_inbox()
    assert store.state.online is True
    with pytest.raises(NetworkError):
        await client.get_inbox()

    assert seen == [False, True, False]
