"""HTTP API routes for todos and their nodes."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response, status

from ...models.note import Todo, TodoCreate, TodoUpdate
from ...models.todo import TodoNodes, TodoNodesUpdate
from ...services.files import TreeService
from ...services.todos import TodoNodeService, TodoService
from ..dependencies import get_todo_node_service, get_todo_service, get_tree_service
from ..middleware import AuthContext, get_auth_context

router = APIRouter()


@router.get("/api/todos", response_model=List[Dict[str, Any]])
async def get_todo_tree(
    auth: AuthContext = Depends(get_auth_context),
    trees: TreeService = Depends(get_tree_service),
):
    return [node.model_dump(mode="json") for node in trees.get_todo_tree(auth.user_id)]


@router.post("/api/todos", response_model=Todo, status_code=201)
async def create_todo(
    create: TodoCreate,
    auth: AuthContext = Depends(get_auth_context),
    todos: TodoService = Depends(get_todo_service),
):
    """Create a todo with one empty node."""
    return todos.add(auth.user_id, create)


@router.patch("/api/todos/{todo_id}", response_model=Todo)
async def update_todo(
    todo_id: str,
    update: TodoUpdate,
    auth: AuthContext = Depends(get_auth_context),
    todos: TodoService = Depends(get_todo_service),
):
    return todos.update(auth.user_id, todo_id, update)


@router.delete("/api/todos/{todo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo(
    todo_id: str,
    auth: AuthContext = Depends(get_auth_context),
    todos: TodoService = Depends(get_todo_service),
):
    todos.remove(auth.user_id, todo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/api/todos/{todo_id}/nodes", response_model=TodoNodes)
async def get_todo_nodes(
    todo_id: str,
    auth: AuthContext = Depends(get_auth_context),
    nodes: TodoNodeService = Depends(get_todo_node_service),
):
    return nodes.get_nodes(auth.user_id, todo_id)


@router.patch("/api/todos/{todo_id}/nodes", response_model=TodoNodes)
async def update_todo_nodes(
    todo_id: str,
    update: TodoNodesUpdate,
    auth: AuthContext = Depends(get_auth_context),
    nodes: TodoNodeService = Depends(get_todo_node_service),
):
    """Apply a batch of node insertions, updates and deletions atomically."""
    return nodes.update_nodes(auth.user_id, todo_id, update)


__all__ = ["router"]
