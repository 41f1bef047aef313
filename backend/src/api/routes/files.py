"""Read-only routes: file list, history and search."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query

from ...models.note import FileEntry, History, SearchResults
from ...services.files import FileService, HistoryService
from ...services.search import SearchService
from ..dependencies import get_file_service, get_history_service, get_search_service
from ..middleware import AuthContext, get_auth_context

router = APIRouter()


@router.get("/api/files", response_model=List[FileEntry])
async def list_files(
    auth: AuthContext = Depends(get_auth_context),
    files: FileService = Depends(get_file_service),
):
    """List every note and todo of the user, ordered by name."""
    return files.get_files(auth.user_id)


@router.get("/api/history", response_model=History)
async def get_history(
    auth: AuthContext = Depends(get_auth_context),
    history: HistoryService = Depends(get_history_service),
):
    """Return the most recently modified notes and todos."""
    return history.get_history(auth.user_id)


@router.get("/api/search", response_model=SearchResults)
async def search(
    query: str = Query(..., description="Text to look for (at least 3 characters)"),
    page: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    search_service: SearchService = Depends(get_search_service),
):
    return search_service.search(auth.user_id, query, page)


__all__ = ["router"]
