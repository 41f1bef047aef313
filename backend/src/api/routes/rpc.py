"""Typed RPC surface mirroring the REST routes.

Queries are ``GET /api/trpc/{procedure}?input=<json>`` and mutations
``POST /api/trpc/{procedure}`` with a JSON body. Results are wrapped as
``{"result": {"data": ...}}`` and failures as ``{"error": {"code", "message"}}``.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
import logging
from typing import Annotated, Any, Callable, Dict, Literal, Optional, Tuple, Type

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from haku.core.errors import (
    AuthorizationError,
    ConflictError,
    HakuError,
    IntegrityError,
    NotFoundError,
    ValidationError,
)

from ...models.inbox import AllowedEmailCreate, InboxEntryCreate
from ...models.note import FolderCreate, FolderUpdate, NoteCreate, NoteUpdate, TodoCreate, TodoUpdate
from ...models.todo import TodoNodesUpdate
from ...services.allow_list import EmailAllowListService
from ...services.auth import AuthService
from ...services.database import DatabaseService
from ...services.files import FileService, HistoryService, TreeService
from ...services.folders import FolderService
from ...services.inbox import InboxService
from ...services.notes import NoteService
from ...services.todos import TodoNodeService, TodoService
from ..dependencies import get_db
from ..middleware import GENERIC_ERROR_MESSAGE, check_admin_key, get_auth_service, resolve_auth_context

logger = logging.getLogger(__name__)

router = APIRouter()

Kind = Literal["query", "mutation"]
Guard = Literal["user", "admin"]


class IdInput(BaseModel):
    id: str


class IntIdInput(BaseModel):
    id: int


class FolderUpdateInput(FolderUpdate):
    id: str


class NoteUpdateInput(NoteUpdate):
    id: str


class TodoUpdateInput(TodoUpdate):
    id: str


class TodoNodesUpdateInput(TodoNodesUpdate):
    id: str


@dataclass
class RpcContext:
    db: DatabaseService
    user_id: Optional[str] = None


@dataclass
class Procedure:
    kind: Kind
    handler: Callable[[RpcContext, Any], Any]
    input_model: Optional[Type[BaseModel]] = None
    guard: Guard = "user"


def _forest(ctx: RpcContext, content_type: str) -> Any:
    tree = TreeService(ctx.db)
    nodes = tree.get_note_tree(ctx.user_id) if content_type == "note" else tree.get_todo_tree(ctx.user_id)
    return [node.model_dump(mode="json") for node in nodes]


PROCEDURES: Dict[str, Procedure] = {
    "file.list": Procedure("query", lambda ctx, _: FileService(ctx.db).get_files(ctx.user_id)),
    "history.history": Procedure(
        "query", lambda ctx, _: HistoryService(ctx.db).get_history(ctx.user_id)
    ),
    "inbox.list": Procedure("query", lambda ctx, _: InboxService(ctx.db).list(ctx.user_id)),
    "inbox.add": Procedure(
        "mutation",
        lambda ctx, data: InboxService(ctx.db).add(ctx.user_id, data.text),
        InboxEntryCreate,
    ),
    "inbox.delete": Procedure(
        "mutation", lambda ctx, data: InboxService(ctx.db).remove(ctx.user_id, data.id), IdInput
    ),
    "folder.add": Procedure(
        "mutation", lambda ctx, data: FolderService(ctx.db).add(ctx.user_id, data), FolderCreate
    ),
    "folder.update": Procedure(
        "mutation",
        lambda ctx, data: FolderService(ctx.db).update(ctx.user_id, data.id, data),
        FolderUpdateInput,
    ),
    "folder.delete": Procedure(
        "mutation", lambda ctx, data: FolderService(ctx.db).remove(ctx.user_id, data.id), IdInput
    ),
    "note.list": Procedure("query", lambda ctx, _: _forest(ctx, "note")),
    "note.byId": Procedure(
        "query", lambda ctx, data: NoteService(ctx.db).get(ctx.user_id, data.id), IdInput
    ),
    "note.add": Procedure(
        "mutation", lambda ctx, data: NoteService(ctx.db).add(ctx.user_id, data), NoteCreate
    ),
    "note.update": Procedure(
        "mutation",
        lambda ctx, data: NoteService(ctx.db).update(ctx.user_id, data.id, data),
        NoteUpdateInput,
    ),
    "note.delete": Procedure(
        "mutation", lambda ctx, data: NoteService(ctx.db).remove(ctx.user_id, data.id), IdInput
    ),
    "todo.list": Procedure("query", lambda ctx, _: _forest(ctx, "todo")),
    "todo.add": Procedure(
        "mutation", lambda ctx, data: TodoService(ctx.db).add(ctx.user_id, data), TodoCreate
    ),
    "todo.update": Procedure(
        "mutation",
        lambda ctx, data: TodoService(ctx.db).update(ctx.user_id, data.id, data),
        TodoUpdateInput,
    ),
    "todo.delete": Procedure(
        "mutation", lambda ctx, data: TodoService(ctx.db).remove(ctx.user_id, data.id), IdInput
    ),
    "todo.node.byId": Procedure(
        "query", lambda ctx, data: TodoNodeService(ctx.db).get_nodes(ctx.user_id, data.id), IdInput
    ),
    "todo.node.update": Procedure(
        "mutation",
        lambda ctx, data: TodoNodeService(ctx.db).update_nodes(ctx.user_id, data.id, data),
        TodoNodesUpdateInput,
    ),
    "admin.email.list": Procedure(
        "query", lambda ctx, _: EmailAllowListService(ctx.db).list(), guard="admin"
    ),
    "admin.email.add": Procedure(
        "mutation",
        lambda ctx, data: EmailAllowListService(ctx.db).add(data.email),
        AllowedEmailCreate,
        guard="admin",
    ),
    "admin.email.delete": Procedure(
        "mutation",
        lambda ctx, data: EmailAllowListService(ctx.db).remove(data.id),
        IntIdInput,
        guard="admin",
    ),
}


def _error_code(exc: HakuError) -> Tuple[str, int]:
    if isinstance(exc, AuthorizationError):
        return ("FORBIDDEN", 403) if exc.status_code == 403 else ("UNAUTHORIZED", 401)
    if isinstance(exc, NotFoundError):
        return "NOT_FOUND", 404
    if isinstance(exc, (ConflictError, IntegrityError)):
        return "CONFLICT", 409
    if isinstance(exc, ValidationError):
        return "BAD_REQUEST", 400
    return "INTERNAL_SERVER_ERROR", 500


def _error(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


def _call(
    name: str,
    kind: Kind,
    raw: Any,
    *,
    db: DatabaseService,
    auth_service: AuthService,
    authorization: Optional[str],
    api_key: Optional[str],
) -> JSONResponse:
    procedure = PROCEDURES.get(name)
    if procedure is None:
        return _error("NOT_FOUND", f"No procedure named {name!r}", 404)
    if procedure.kind != kind:
        return _error("METHOD_NOT_SUPPORTED", f"{name!r} is a {procedure.kind}", 405)

    try:
        ctx = RpcContext(db=db)
        if procedure.guard == "admin":
            check_admin_key(api_key)
        else:
            ctx.user_id = resolve_auth_context(authorization, auth_service).user_id

        data = procedure.input_model.model_validate(raw or {}) if procedure.input_model else None
        result = procedure.handler(ctx, data)
    except PydanticValidationError as exc:
        message = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'input'}: {error['msg']}"
            for error in exc.errors()
        )
        return _error("BAD_REQUEST", message, 400)
    except HakuError as exc:
        code, status_code = _error_code(exc)
        if status_code >= 500:
            logger.error("RPC %s failed: %s", name, exc.message)
            return _error(code, GENERIC_ERROR_MESSAGE, status_code)
        return _error(code, exc.message, status_code)
    except Exception:
        logger.exception("RPC %s crashed", name)
        return _error("INTERNAL_SERVER_ERROR", GENERIC_ERROR_MESSAGE, 500)

    return JSONResponse(content={"result": {"data": jsonable_encoder(result)}})


@router.get("/api/trpc/{procedure}")
async def rpc_query(
    procedure: str,
    raw_input: Optional[str] = Query(None, alias="input"),
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
    api_key: Annotated[Optional[str], Header(alias="Api-Key")] = None,
    db: DatabaseService = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        payload = json.loads(raw_input) if raw_input else None
    except ValueError:
        return _error("PARSE_ERROR", "The input is not valid JSON", 400)
    return _call(
        procedure,
        "query",
        payload,
        db=db,
        auth_service=auth_service,
        authorization=authorization,
        api_key=api_key,
    )


@router.post("/api/trpc/{procedure}")
async def rpc_mutation(
    procedure: str,
    request: Request,
    authorization: Annotated[Optional[str], Header(alias="Authorization")] = None,
    api_key: Annotated[Optional[str], Header(alias="Api-Key")] = None,
    db: DatabaseService = Depends(get_db),
    auth_service: AuthService = Depends(get_auth_service),
):
    body = await request.body()
    try:
        payload = json.loads(body) if body else None
    except ValueError:
        return _error("PARSE_ERROR", "The body is not valid JSON", 400)
    return _call(
        procedure,
        "mutation",
        payload,
        db=db,
        auth_service=auth_service,
        authorization=authorization,
        api_key=api_key,
    )


__all__ = ["router", "PROCEDURES"]
