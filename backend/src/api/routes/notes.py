"""HTTP API routes for note operations."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Response, status

from ...models.note import Note, NoteCreate, NoteUpdate
from ...services.files import TreeService
from ...services.notes import NoteService
from ..dependencies import get_note_service, get_tree_service
from ..middleware import AuthContext, get_auth_context

router = APIRouter()


@router.get("/api/notes", response_model=List[Dict[str, Any]])
async def get_note_tree(
    auth: AuthContext = Depends(get_auth_context),
    trees: TreeService = Depends(get_tree_service),
):
    """Return the note folders of the user as a forest, loose notes last."""
    return [node.model_dump(mode="json") for node in trees.get_note_tree(auth.user_id)]


@router.post("/api/notes", response_model=Note, status_code=201)
async def create_note(
    create: NoteCreate,
    auth: AuthContext = Depends(get_auth_context),
    notes: NoteService = Depends(get_note_service),
):
    return notes.add(auth.user_id, create)


@router.get("/api/notes/{note_id}", response_model=Note)
async def get_note(
    note_id: str,
    auth: AuthContext = Depends(get_auth_context),
    notes: NoteService = Depends(get_note_service),
):
    return notes.get(auth.user_id, note_id)


@router.patch("/api/notes/{note_id}", response_model=Note)
async def update_note(
    note_id: str,
    update: NoteUpdate,
    auth: AuthContext = Depends(get_auth_context),
    notes: NoteService = Depends(get_note_service),
):
    """Rename, move or rewrite a note. ``folder_id: null`` moves it out of its folder."""
    return notes.update(auth.user_id, note_id, update)


@router.delete("/api/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_note(
    note_id: str,
    auth: AuthContext = Depends(get_auth_context),
    notes: NoteService = Depends(get_note_service),
):
    notes.remove(auth.user_id, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
