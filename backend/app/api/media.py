"""Serves images stored by the local media uploader."""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from app.core.storage import resolve_path

router = APIRouter(prefix="/media", tags=["media"])


@router.get("/{file_path:path}", response_class=FileResponse)
def get_media(file_path: str) -> FileResponse:
    return FileResponse(resolve_path(file_path))
