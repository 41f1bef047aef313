import asyncio
from typing import Any, Dict, Optional

import pytest

from backend.src.models.note import TodoCreate
from backend.src.models.todo import TodoNodesUpdate
from backend.src.services.todos import TodoNodeService, TodoService
from haku.core.content import TodoNodeStatus
from haku.core.errors import ConflictError, IntegrityError, NotFoundError, ValidationError
from haku.core.ordering import ROOT_ID, TodoNodeTree
from haku.core.sync import TodoSync

USER = "user-1"


@pytest.fixture
def nodes(db) -> TodoNodeService:
    return TodoNodeService(db)


@pytest.fixture
def todo_id(db) -> str:
    return TodoService(db).add(USER, TodoCreate(name="Weekend")).id


def _load(nodes: TodoNodeService, todo_id: str) -> TodoNodeTree:
    return TodoNodeTree.from_data(nodes.get_nodes(USER, todo_id).model_dump(mode="json"))


def _send(nodes: TodoNodeService, todo_id: str, tree: TodoNodeTree):
    result = nodes.update_nodes(USER, todo_id, TodoNodesUpdate.model_validate(tree.pending_update()))
    tree.clear_mutations()
    return result


def _batch(root, children=None, insert=None, update=None, delete=None) -> TodoNodesUpdate:
    payload: Dict[str, Any] = {
        "children": {ROOT_ID: root, **(children or {})},
        "mutations": {"insert": insert or {}, "update": update or {}, "delete": delete or []},
    }
    return TodoNodesUpdate.model_validate(payload)


def test_client_journal_round_trips_through_the_store(nodes, todo_id):
    tree = _load(nodes, todo_id)
    (first,) = tree.root
    tree.update_content(first, "groceries")
    tree.add_after(first, "milk", content="milk")
    tree.nest("milk")
    tree.add_after("milk", "eggs", content="eggs")
    tree.set_status("eggs", TodoNodeStatus.COMPLETED)

    _send(nodes, todo_id, tree)
    stored = _load(nodes, todo_id)

    assert stored.root == [first]
    assert stored.children(first) == ["milk", "eggs"]
    assert stored.get(first).content == "groceries"
    assert stored.get("eggs").status == TodoNodeStatus.COMPLETED
    assert stored.to_data() == tree.to_data()


def test_move_and_delete_subtree(nodes, todo_id):
    tree = _load(nodes, todo_id)
    (first,) = tree.root
    tree.add_after(first, "a")
    tree.add_after("a", "b")
    tree.insert("a", "a1", 0)
    tree.insert("a1", "a2", 0)
    _send(nodes, todo_id, tree)

    tree.move("b", ROOT_ID, 0)
    tree.remove("a")
    result = _send(nodes, todo_id, tree)

    assert result.children[ROOT_ID] == ["b", first]
    assert set(result.nodes) == {first, "b"}
    assert _load(nodes, todo_id).to_data() == tree.to_data()


def test_deleting_a_node_keeps_children_moved_out(nodes, todo_id):
    tree = _load(nodes, todo_id)
    (first,) = tree.root
    tree.insert(first, "child", 0)
    _send(nodes, todo_id, tree)

    # Only the parent is deleted, its child is relisted at the top level.
    batch = _batch(root=["child"], delete=[first])
    result = nodes.update_nodes(USER, todo_id, batch)

    assert result.children[ROOT_ID] == ["child"]
    assert set(result.nodes) == {"child"}


def test_root_must_not_be_empty(nodes, todo_id):
    with pytest.raises(ValidationError, match="A todo must have at least 1 root todo node."):
        nodes.update_nodes(USER, todo_id, _batch(root=[]))


def test_root_nodes_must_exist(nodes, todo_id):
    with pytest.raises(ValidationError, match="A root todo node does not exist."):
        nodes.update_nodes(USER, todo_id, _batch(root=["ghost"]))


def test_inserted_id_must_be_new(nodes, todo_id):
    (first,) = _load(nodes, todo_id).root

    with pytest.raises(ConflictError, match="A todo node with the same ID already exists."):
        nodes.update_nodes(USER, todo_id, _batch(root=[first], insert={first: {"id": first}}))


def test_delete_rules(nodes, todo_id):
    tree = _load(nodes, todo_id)
    (first,) = tree.root
    tree.add_after(first, "second")
    tree.insert("second", "child", 0)
    _send(nodes, todo_id, tree)

    with pytest.raises(ValidationError, match="A todo node to delete does not exist."):
        nodes.update_nodes(USER, todo_id, _batch(root=[first, "second"], delete=["ghost"]))
    with pytest.raises(IntegrityError, match="A todo node referenced as a root node cannot be deleted."):
        nodes.update_nodes(USER, todo_id, _batch(root=[first, "second"], delete=["second"]))
    with pytest.raises(IntegrityError, match="A todo node to update cannot be deleted."):
        nodes.update_nodes(
            USER,
            todo_id,
            _batch(root=[first], update={"second": {"id": "second"}}, delete=["second"]),
        )
    with pytest.raises(IntegrityError, match="A todo node referenced by its parent cannot be deleted."):
        nodes.update_nodes(USER, todo_id, _batch(root=[first, "second"], delete=["child"]))


def test_children_rules(nodes, todo_id):
    tree = _load(nodes, todo_id)
    (first,) = tree.root
    tree.add_after(first, "second")
    _send(nodes, todo_id, tree)

    with pytest.raises(ValidationError, match="A new todo node child does not exist."):
        nodes.update_nodes(
            USER,
            todo_id,
            _batch(root=[first, "second", "new"], children={"new": ["ghost"]}, insert={"new": {"id": "new"}}),
        )
    with pytest.raises(IntegrityError, match="A new todo node child cannot be deleted."):
        nodes.update_nodes(
            USER,
            todo_id,
            _batch(
                root=[first, "new"],
                children={"new": ["second"]},
                insert={"new": {"id": "new"}},
                delete=["second"],
            ),
        )
    with pytest.raises(ValidationError, match="A todo node to update does not exist."):
        nodes.update_nodes(USER, todo_id, _batch(root=[first, "second"], update={"ghost": {"id": "ghost"}}))
    with pytest.raises(ValidationError, match="An updated todo node child does not exist."):
        nodes.update_nodes(
            USER,
            todo_id,
            _batch(root=[first, "second"], children={first: ["ghost"]}, update={first: {"id": first}}),
        )


def test_note_needs_html_and_text(nodes, todo_id):
    (first,) = _load(nodes, todo_id).root

    with pytest.raises(ValidationError, match="A todo node note html or text content is missing."):
        nodes.update_nodes(
            USER,
            todo_id,
            _batch(root=[first], update={first: {"id": first, "note_html": "<p>x</p>"}}),
        )


def test_invalid_final_tree_is_rolled_back(nodes, todo_id):
    tree = _load(nodes, todo_id)
    (first,) = tree.root
    before = nodes.get_nodes(USER, todo_id)

    # "orphan" is inserted but listed by nobody.
    with pytest.raises(IntegrityError):
        nodes.update_nodes(
            USER,
            todo_id,
            _batch(root=[first], insert={"orphan": {"id": "orphan", "content": "lost"}}),
        )

    assert nodes.get_nodes(USER, todo_id) == before


def test_nodes_of_another_user_are_not_found(nodes, todo_id):
    with pytest.raises(NotFoundError, match="The todo specified does not exist."):
        nodes.get_nodes("user-2", todo_id)


def test_field_only_batch_keeps_the_stored_order(nodes, todo_id):
    tree = _load(nodes, todo_id)
    (first,) = tree.root
    tree.add_after(first, "second")
    _send(nodes, todo_id, tree)

    result = nodes.update_nodes(
        USER,
        todo_id,
        TodoNodesUpdate.model_validate(
            {"mutations": {"update": {"second": {"id": "second", "content": "renamed"}}}}
        ),
    )

    assert result.children[ROOT_ID] == [first, "second"]
    assert result.nodes["second"].content == "renamed"


class ServiceApi:
    """Async API client stand-in calling the node service directly."""

    def __init__(self, nodes: TodoNodeService):
        self.nodes = nodes
        self.hold: Dict[int, asyncio.Event] = {}
        self.calls = 0

    async def get_todo_nodes(self, todo_id: str) -> Dict[str, Any]:
        return self.nodes.get_nodes(USER, todo_id).model_dump(mode="json")

    async def update_todo_nodes(self, todo_id: str, batch: Dict[str, Any]) -> Dict[str, Any]:
        call = self.calls
        self.calls += 1
        gate: Optional[asyncio.Event] = self.hold.get(call)
        if gate is not None:
            await gate.wait()
        result = self.nodes.update_nodes(USER, todo_id, TodoNodesUpdate.model_validate(batch))
        return result.model_dump(mode="json")


async def _concurrently(api: ServiceApi, first, second):
    api.hold[0] = asyncio.Event()
    t1 = asyncio.create_task(first())
    await asyncio.sleep(0)
    t2 = asyncio.create_task(second())
    await asyncio.sleep(0)
    api.hold[0].set()
    return await asyncio.gather(t1, t2)


@pytest.mark.asyncio
async def test_rename_while_an_insert_is_in_flight(nodes, todo_id):
    api = ServiceApi(nodes)
    sync = TodoSync(api, todo_id)
    await sync.load()
    (first,) = sync.tree.root

    (_, inserted), renamed = await _concurrently(
        api,
        lambda: sync.add_after(first, "newnode"),
        lambda: sync.rename(first, "hello"),
    )

    assert inserted.ok and renamed.ok
    stored = _load(nodes, todo_id)
    assert stored.root == [first, "newnode"]
    assert stored.get(first).content == "hello"
    assert sync.tree.to_data() == stored.to_data()


@pytest.mark.asyncio
async def test_rename_landing_after_a_move_keeps_the_move(nodes, todo_id):
    api = ServiceApi(nodes)
    sync = TodoSync(api, todo_id)
    await sync.load()
    (first,) = sync.tree.root
    await sync.add_after(first, "second")
    api.calls = 0

    renamed, moved = await _concurrently(
        api,
        lambda: sync.rename(first, "hello"),
        lambda: sync.move("second", ROOT_ID, 0),
    )

    assert renamed.ok and moved.ok
    stored = _load(nodes, todo_id)
    assert stored.root == ["second", first]
    assert sync.tree.to_data() == stored.to_data()
