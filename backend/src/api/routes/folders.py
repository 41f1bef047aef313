"""HTTP API routes for folders."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ...models.note import Folder, FolderCreate, FolderUpdate
from ...services.folders import FolderService
from ..dependencies import get_folder_service
from ..middleware import AuthContext, get_auth_context

router = APIRouter()


@router.post("/api/folders", response_model=Folder, status_code=201)
async def create_folder(
    create: FolderCreate,
    auth: AuthContext = Depends(get_auth_context),
    folders: FolderService = Depends(get_folder_service),
):
    return folders.add(auth.user_id, create)


@router.patch("/api/folders/{folder_id}", response_model=Folder)
async def update_folder(
    folder_id: str,
    update: FolderUpdate,
    auth: AuthContext = Depends(get_auth_context),
    folders: FolderService = Depends(get_folder_service),
):
    return folders.update(auth.user_id, folder_id, update)


@router.delete("/api/folders/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_folder(
    folder_id: str,
    auth: AuthContext = Depends(get_auth_context),
    folders: FolderService = Depends(get_folder_service),
):
    """Delete a folder, its nested folders and their content."""
    folders.remove(auth.user_id, folder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
