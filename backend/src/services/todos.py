"""Todo and todo node services."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set
import uuid

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from haku.core.content import ContentType, TodoNodeStatus, slugify
from haku.core.errors import ConflictError, IntegrityError, NotFoundError, ValidationError
from haku.core.ordering import ROOT_ID, TodoNodeTree

from ..models.note import Todo, TodoCreate, TodoUpdate
from ..models.todo import TodoNodeData, TodoNodes, TodoNodesUpdate
from . import schema
from .database import DatabaseService, get_database_service
from .folders import validate_folder
from .notes import ensure_unique_content_name

logger = logging.getLogger(__name__)

TODO_DOES_NOT_EXIST = "The todo specified does not exist."
TODO_ALREADY_EXISTS = "A todo with the same name already exists."

NODE_ALREADY_EXISTS = "A todo node with the same ID already exists."
NODE_ROOT_EMPTY = "A todo must have at least 1 root todo node."
NODE_ROOT_DOES_NOT_EXIST = "A root todo node does not exist."
NODE_DELETE_DOES_NOT_EXIST = "A todo node to delete does not exist."
NODE_DELETE_UPDATE_CONFLICT = "A todo node to update cannot be deleted."
NODE_DELETE_ROOT_CONFLICT = "A todo node referenced as a root node cannot be deleted."
NODE_DELETE_PARENT_CONFLICT = "A todo node referenced by its parent cannot be deleted."
NODE_INSERT_CHILD_DOES_NOT_EXIST = "A new todo node child does not exist."
NODE_INSERT_CHILD_DELETE_CONFLICT = "A new todo node child cannot be deleted."
NODE_UPDATE_DOES_NOT_EXIST = "A todo node to update does not exist."
NODE_UPDATE_CHILD_DOES_NOT_EXIST = "An updated todo node child does not exist."
NODE_UPDATE_CHILD_DELETE_CONFLICT = "An updated todo node child cannot be deleted."
NODE_NOTE_MISSING = "A todo node note html or text content is missing."

# Columns a batch may write, ``id`` and ``parent_id`` are derived.
_NODE_FIELDS = ("content", "status", "collapsed", "note_html", "note_text")


def get_owned_todo(session: Session, user_id: str, todo_id: str) -> schema.Todo:
    todo = session.get(schema.Todo, todo_id)
    if todo is None or todo.user_id != user_id:
        raise NotFoundError(TODO_DOES_NOT_EXIST, {"todo_id": todo_id})
    return todo


def _check_note(node: TodoNodeData) -> None:
    if bool(node.note_html) != bool(node.note_text):
        raise ValidationError(NODE_NOTE_MISSING, {"node_id": node.id})


def _parents(root: Iterable[str], children: Dict[str, List[str]]) -> Dict[str, Optional[str]]:
    parents: Dict[str, Optional[str]] = {node_id: None for node_id in root}
    for parent_id, child_ids in children.items():
        for child_id in child_ids:
            parents[child_id] = parent_id
    return parents


class TodoService:
    """Get, add, update and remove todos."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def get(self, user_id: str, todo_id: str) -> Todo:
        with self._db.session() as session:
            return Todo.model_validate(get_owned_todo(session, user_id, todo_id))

    def add(self, user_id: str, data: TodoCreate) -> Todo:
        """Create a todo holding a single empty top-level node."""
        folder_id = data.folder_id or None
        with self._db.session() as session:
            validate_folder(session, user_id, folder_id, ContentType.TODO)
            ensure_unique_content_name(
                session, schema.Todo, user_id, folder_id, data.name, TODO_ALREADY_EXISTS
            )
            todo_id = str(uuid.uuid4())
            node = schema.TodoNode(id=str(uuid.uuid4()), todo_id=todo_id, content="", children=[])
            todo = schema.Todo(
                id=todo_id,
                user_id=user_id,
                name=data.name,
                slug=slugify(data.name),
                folder_id=folder_id,
                root=[node.id],
            )
            session.add(todo)
            session.flush()
            session.add(node)
            session.flush()
            logger.info("Created todo %s for user %s", todo.id, user_id)
            return Todo.model_validate(todo)

    def update(self, user_id: str, todo_id: str, data: TodoUpdate) -> Todo:
        with self._db.session() as session:
            todo = get_owned_todo(session, user_id, todo_id)

            folder_id = todo.folder_id
            if "folder_id" in data.model_fields_set:
                folder_id = data.folder_id or None
                validate_folder(session, user_id, folder_id, ContentType.TODO)

            name = data.name if data.name is not None else todo.name
            if name != todo.name or folder_id != todo.folder_id:
                ensure_unique_content_name(
                    session,
                    schema.Todo,
                    user_id,
                    folder_id,
                    name,
                    TODO_ALREADY_EXISTS,
                    exclude_id=todo.id,
                )

            if name != todo.name:
                todo.name = name
                todo.slug = slugify(name)
            todo.folder_id = folder_id
            todo.modified_at = schema.utcnow()
            session.flush()
            return Todo.model_validate(todo)

    def remove(self, user_id: str, todo_id: str) -> None:
        with self._db.session() as session:
            todo = get_owned_todo(session, user_id, todo_id)
            session.execute(delete(schema.TodoNode).where(schema.TodoNode.todo_id == todo.id))
            session.delete(todo)
            logger.info("Removed todo %s", todo_id)


class TodoNodeService:
    """Read and batch-update the nodes of a todo."""

    def __init__(self, db_service: Optional[DatabaseService] = None):
        self._db = db_service or get_database_service()

    def get_nodes(self, user_id: str, todo_id: str) -> TodoNodes:
        with self._db.session() as session:
            todo = get_owned_todo(session, user_id, todo_id)
            rows = session.scalars(
                select(schema.TodoNode).where(schema.TodoNode.todo_id == todo.id)
            ).all()
            return self._to_nodes(todo, rows)

    def update_nodes(self, user_id: str, todo_id: str, data: TodoNodesUpdate) -> TodoNodes:
        """Apply a batch of inserted, updated and deleted nodes atomically.

        The batch is checked against the stored nodes before anything is
        written, and the resulting tree must be valid or nothing is kept.
        """
        with self._db.session() as session:
            todo = get_owned_todo(session, user_id, todo_id)
            rows = {
                row.id: row
                for row in session.scalars(
                    select(schema.TodoNode).where(schema.TodoNode.todo_id == todo.id)
                )
            }
            stored_children = {node_id: list(row.children or []) for node_id, row in rows.items()}

            final_root = list(data.root) if data.root is not None else list(todo.root or [])
            deleted = self._validate(session, todo, rows, stored_children, final_root, data)
            mutations = data.mutations

            final_children: Dict[str, List[str]] = {ROOT_ID: final_root}
            for node_id in rows:
                if node_id in deleted:
                    continue
                if node_id in mutations.update and node_id in data.children:
                    final_children[node_id] = list(data.children[node_id])
                else:
                    final_children[node_id] = stored_children[node_id]
            for node_id in mutations.insert:
                final_children[node_id] = list(data.children.get(node_id, []))

            for node_id in deleted:
                session.delete(rows.pop(node_id))
            for node_id, node in mutations.update.items():
                row = rows[node_id]
                for name in _NODE_FIELDS:
                    setattr(row, name, getattr(node, name))
                row.children = final_children[node_id]
            for node_id, node in mutations.insert.items():
                row = schema.TodoNode(
                    id=node_id,
                    todo_id=todo.id,
                    children=final_children[node_id],
                    **{name: getattr(node, name) for name in _NODE_FIELDS},
                )
                session.add(row)
                rows[node_id] = row

            todo.root = final_children[ROOT_ID]
            todo.modified_at = schema.utcnow()

            result = self._to_nodes(todo, rows.values())
            TodoNodeTree.from_data(result.model_dump(mode="json"))
            session.flush()
            logger.info(
                "Updated todo %s nodes: %d inserted, %d updated, %d deleted",
                todo.id,
                len(mutations.insert),
                len(mutations.update),
                len(deleted),
            )
            return result

    def _validate(
        self,
        session: Session,
        todo: schema.Todo,
        rows: Dict[str, schema.TodoNode],
        stored_children: Dict[str, List[str]],
        root: List[str],
        data: TodoNodesUpdate,
    ) -> List[str]:
        """Check a batch against the stored nodes and return every node id to delete.

        ``root`` is the top-level list the todo ends up with, the batch one or
        the stored one when the batch leaves it out.
        """
        mutations = data.mutations
        to_delete = set(mutations.delete)

        if not root:
            raise ValidationError(NODE_ROOT_EMPTY)
        for root_id in root:
            if root_id not in rows and root_id not in mutations.insert:
                raise ValidationError(NODE_ROOT_DOES_NOT_EXIST, {"node_id": root_id})

        stored_parents = _parents(todo.root or [], stored_children)
        for node_id in mutations.delete:
            if node_id not in rows:
                raise ValidationError(NODE_DELETE_DOES_NOT_EXIST, {"node_id": node_id})
            if node_id in mutations.update:
                raise IntegrityError(NODE_DELETE_UPDATE_CONFLICT, {"node_id": node_id})
            if node_id in root:
                raise IntegrityError(NODE_DELETE_ROOT_CONFLICT, {"node_id": node_id})
            parent_id = stored_parents.get(node_id)
            if parent_id is not None and parent_id not in to_delete:
                parent_children = data.children.get(parent_id)
                if parent_children is None or node_id in parent_children:
                    raise IntegrityError(
                        NODE_DELETE_PARENT_CONFLICT, {"node_id": node_id, "parent_id": parent_id}
                    )

        for node_id, node in mutations.insert.items():
            if node_id in rows or session.get(schema.TodoNode, node_id) is not None:
                raise ConflictError(NODE_ALREADY_EXISTS, {"node_id": node_id})
            _check_note(node)
            for child_id in data.children.get(node_id, []):
                if child_id not in rows and child_id not in mutations.insert:
                    raise ValidationError(NODE_INSERT_CHILD_DOES_NOT_EXIST, {"node_id": child_id})
                if child_id in to_delete:
                    raise IntegrityError(NODE_INSERT_CHILD_DELETE_CONFLICT, {"node_id": child_id})

        for node_id, node in mutations.update.items():
            if node_id not in rows:
                raise ValidationError(NODE_UPDATE_DOES_NOT_EXIST, {"node_id": node_id})
            _check_note(node)
            for child_id in data.children.get(node_id, []):
                if child_id not in rows and child_id not in mutations.insert:
                    raise ValidationError(NODE_UPDATE_CHILD_DOES_NOT_EXIST, {"node_id": child_id})
                if child_id in to_delete:
                    raise IntegrityError(NODE_UPDATE_CHILD_DELETE_CONFLICT, {"node_id": child_id})

        # Descendants of deleted nodes go with them unless the batch lists them elsewhere.
        relisted: Set[str] = set(root) | set(mutations.update)
        for node_id in (*mutations.insert, *mutations.update):
            relisted.update(data.children.get(node_id, []))

        deleted: List[str] = []
        pending = list(reversed(mutations.delete))
        while pending:
            node_id = pending.pop()
            if node_id in deleted or node_id not in rows:
                continue
            deleted.append(node_id)
            for child_id in reversed(stored_children.get(node_id, [])):
                if child_id not in relisted:
                    pending.append(child_id)
        return deleted

    @staticmethod
    def _to_nodes(todo: schema.Todo, rows: Iterable[schema.TodoNode]) -> TodoNodes:
        rows = list(rows)
        children: Dict[str, List[str]] = {ROOT_ID: list(todo.root or [])}
        for row in rows:
            children[row.id] = list(row.children or [])
        parents = _parents(children[ROOT_ID], {k: v for k, v in children.items() if k != ROOT_ID})
        nodes = {
            row.id: TodoNodeData(
                id=row.id,
                content=row.content or "",
                status=row.status or TodoNodeStatus.ACTIVE,
                collapsed=bool(row.collapsed),
                note_html=row.note_html,
                note_text=row.note_text,
                parent_id=parents.get(row.id),
            )
            for row in rows
        }
        return TodoNodes(name=todo.name, children=children, nodes=nodes)


__all__ = ["TodoService", "TodoNodeService", "get_owned_todo"]
