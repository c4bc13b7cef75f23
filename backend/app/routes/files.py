"""
ContactBook Backend — Stored File Route
=========================================

What:  GET /files/{path}, serving photos saved by LocalMediaStorage.
Who:   Browsers following the `photo` URL of a contact.

With MEDIA_BACKEND=cloudinary photos live on the CDN and this route
always answers 404.
"""

import mimetypes

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse

from app.deps import get_media_storage
from app.exceptions import NotFoundError
from app.schemas.common import ErrorResponse
from app.services.media_service import LocalMediaStorage, MediaStorage

router = APIRouter(tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve a locally stored photo",
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(file_path: str, media: MediaStorage = Depends(get_media_storage)) -> FileResponse:
    # resolve() refuses anything outside storage_root
    path = media.resolve(file_path) if isinstance(media, LocalMediaStorage) else None
    if path is None:
        raise NotFoundError(resource="file", message="File not found")

    media_type, _ = mimetypes.guess_type(path.name)
    return FileResponse(
        path=str(path),
        media_type=media_type or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=86400"},
    )
