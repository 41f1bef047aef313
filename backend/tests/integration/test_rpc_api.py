"""Typed RPC surface and admin guard."""

import json

import pytest

ADMIN_KEY = "admin-key-for-tests"

pytestmark = pytest.mark.integration


def _query(client, procedure, payload=None, headers=None):
    params = {"input": json.dumps(payload)} if payload is not None else None
    return client.get(f"/api/trpc/{procedure}", params=params, headers=headers)


def test_queries_and_mutations(client, auth_headers):
    added = client.post("/api/trpc/note.add", json={"name": "Plan"}, headers=auth_headers)
    assert added.status_code == 200
    note = added.json()["result"]["data"]

    by_id = _query(client, "note.byId", {"id": note["id"]}, auth_headers).json()
    assert by_id["result"]["data"]["name"] == "Plan"

    files = _query(client, "file.list", headers=auth_headers).json()["result"]["data"]
    assert [f["id"] for f in files] == [note["id"]]

    updated = client.post(
        "/api/trpc/note.update", json={"id": note["id"], "name": "Plan B"}, headers=auth_headers
    ).json()
    assert updated["result"]["data"]["slug"] == "plan-b"

    deleted = client.post("/api/trpc/note.delete", json={"id": note["id"]}, headers=auth_headers)
    assert deleted.json() == {"result": {"data": None}}


def test_todo_node_procedures(client, auth_headers):
    todo = client.post("/api/trpc/todo.add", json={"name": "Weekend"}, headers=auth_headers).json()
    todo_id = todo["result"]["data"]["id"]
    nodes = _query(client, "todo.node.byId", {"id": todo_id}, auth_headers).json()["result"]["data"]
    (first,) = nodes["children"]["root"]

    response = client.post(
        "/api/trpc/todo.node.update",
        json={
            "id": todo_id,
            "children": {"root": [first]},
            "mutations": {"update": {first: {"id": first, "content": "done"}}},
        },
        headers=auth_headers,
    )

    assert response.json()["result"]["data"]["nodes"][first]["content"] == "done"


def test_errors_use_codes(client, auth_headers):
    missing = _query(client, "note.byId", {"id": "nope"}, auth_headers)
    assert missing.status_code == 404
    assert missing.json() == {
        "error": {"code": "NOT_FOUND", "message": "The note specified does not exist."}
    }

    unauthenticated = _query(client, "file.list")
    assert unauthenticated.json()["error"]["code"] == "UNAUTHORIZED"

    bad_input = client.post("/api/trpc/inbox.add", json={}, headers=auth_headers)
    assert bad_input.json()["error"]["code"] == "BAD_REQUEST"

    wrong_kind = client.post("/api/trpc/file.list", headers=auth_headers)
    assert wrong_kind.status_code == 405

    unknown = _query(client, "nope.nope", headers=auth_headers)
    assert unknown.json()["error"]["code"] == "NOT_FOUND"


def test_internal_errors_are_generic(client, auth_headers, monkeypatch):
    from backend.src.api.routes import rpc

    def explode(ctx, data):
        raise RuntimeError("database password is hunter2")

    monkeypatch.setattr(rpc.PROCEDURES["file.list"], "handler", explode)

    response = _query(client, "file.list", headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {
        "error": {"code": "INTERNAL_SERVER_ERROR", "message": "Something went wrong!"}
    }


def test_admin_email_procedures(client):
    headers = {"Api-Key": ADMIN_KEY}

    added = client.post("/api/trpc/admin.email.add", json={"email": "ada@example.com"}, headers=headers)
    email_id = added.json()["result"]["data"]["id"]
    listed = _query(client, "admin.email.list", headers=headers).json()["result"]["data"]
    assert [e["email"] for e in listed] == ["ada@example.com"]

    duplicate = client.post("/api/trpc/admin.email.add", json={"email": "ada@example.com"}, headers=headers)
    assert duplicate.json()["error"] == {"code": "BAD_REQUEST", "message": "This email already exists."}

    client.post("/api/trpc/admin.email.delete", json={"id": email_id}, headers=headers)
    assert _query(client, "admin.email.list", headers=headers).json()["result"]["data"] == []

    refused = _query(client, "admin.email.list", headers={"Api-Key": "wrong"})
    assert refused.json()["error"]["code"] == "UNAUTHORIZED"


def test_admin_rest_routes(client):
    assert client.get("/api/admin/email").status_code == 401
    assert client.get("/api/admin/email", headers={"Api-Key": "wrong"}).status_code == 401

    headers = {"Api-Key": ADMIN_KEY}
    created = client.post("/api/admin/email", json={"email": "ada@example.com"}, headers=headers)
    assert created.status_code == 201

    email_id = created.json()["id"]
    assert client.delete(f"/api/admin/email/{email_id}", headers=headers).status_code == 204
    gone = client.delete(f"/api/admin/email/{email_id}", headers=headers)
    assert gone.status_code == 404
    assert gone.json()["message"] == "This email does not exist."
