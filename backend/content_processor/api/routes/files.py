"""
Content Processor Files API Router

Endpoints:
- POST /upload/video, /upload/audio, /upload/document: Validate and store a file
- GET /: List the caller's files (paginated, newest first)
- GET /{file_id}: File metadata
- GET /download/{file_id}: File bytes as an attachment
- DELETE /{file_id}: Remove the stored file and its metadata

Every endpoint except upload and list checks that the caller owns the file.
"""

import logging
import math

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import FileResponse

from content_processor.config import Settings, get_settings
from content_processor.core.auth import get_current_user
from content_processor.core.database import get_db_client
from content_processor.core.exceptions import PermissionDeniedError
from content_processor.models.common import ApiResponse
from content_processor.models.file_metadata import (
    FileListResponse,
    FileMetadata,
    FileType,
    FileUploadResponse,
)
from content_processor.models.user import User
from content_processor.services.file_storage_service import FileStorageService
from content_processor.utils.file_validator import validate_upload


logger = logging.getLogger(__name__)

router = APIRouter()

_AUTH_RESPONSES = {
    401: {"description": "Not authenticated or invalid token"},
}

_OWNED_FILE_RESPONSES = {
    **_AUTH_RESPONSES,
    403: {"description": "File belongs to another user"},
    404: {"description": "File not found"},
}


def get_file_storage_service(settings: Settings = Depends(get_settings)) -> FileStorageService:
    return FileStorageService(get_db_client(), settings)


def _ensure_owner(metadata: FileMetadata, user: User) -> None:
    if not metadata.is_owned_by(user.id):
        logger.warning("User %s denied access to file %s", user.id, metadata.id)
        raise PermissionDeniedError("You don't have permission to access this file")


async def _upload(
    file: UploadFile,
    file_type: FileType,
    user: User,
    storage: FileStorageService,
    settings: Settings,
) -> ApiResponse[FileUploadResponse]:
    validate_upload(file, file_type, settings.max_upload_size_bytes)
    metadata = await storage.store_file(file, user, file_type)
    return ApiResponse.ok(
        f"{file_type.value.title()} File Uploaded Successfully",
        FileUploadResponse.from_metadata(metadata),
    )


# =============================================================================
# Uploads
# =============================================================================


@router.post(
    "/upload/video",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[FileUploadResponse],
    response_model_exclude_none=True,
    summary="Upload a video file",
    responses={400: {"description": "Invalid video file"}, **_AUTH_RESPONSES},
)
async def upload_video(
    file: UploadFile | None = File(default=None),
    current_user: User = Depends(get_current_user),
    storage: FileStorageService = Depends(get_file_storage_service),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[FileUploadResponse]:
    return await _upload(file, FileType.VIDEO, current_user, storage, settings)


@router.post(
    "/upload/audio",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[FileUploadResponse],
    response_model_exclude_none=True,
    summary="Upload an audio file",
    responses={400: {"description": "Invalid audio file"}, **_AUTH_RESPONSES},
)
async def upload_audio(
    file: UploadFile | None = File(default=None),
    current_user: User = Depends(get_current_user),
    storage: FileStorageService = Depends(get_file_storage_service),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[FileUploadResponse]:
    return await _upload(file, FileType.AUDIO, current_user, storage, settings)


@router.post(
    "/upload/document",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[FileUploadResponse],
    response_model_exclude_none=True,
    summary="Upload a PDF or plain text document",
    responses={400: {"description": "Invalid document file"}, **_AUTH_RESPONSES},
)
async def upload_document(
    file: UploadFile | None = File(default=None),
    current_user: User = Depends(get_current_user),
    storage: FileStorageService = Depends(get_file_storage_service),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[FileUploadResponse]:
    return await _upload(file, FileType.DOCUMENT, current_user, storage, settings)


# =============================================================================
# Queries
# =============================================================================


@router.get(
    "",
    response_model=ApiResponse[FileListResponse],
    response_model_exclude_none=True,
    summary="List the caller's files",
    responses=_AUTH_RESPONSES,
)
async def list_files(
    page: int = Query(default=0, ge=0, description="Zero-based page number"),
    size: int = Query(default=20, ge=1, le=100, description="Page size (1-100)"),
    current_user: User = Depends(get_current_user),
    storage: FileStorageService = Depends(get_file_storage_service),
) -> ApiResponse[FileListResponse]:
    files, total = await storage.get_user_files(current_user.id, skip=page * size, limit=size)
    logger.info("Returning %d of %d files for user %s", len(files), total, current_user.id)
    return ApiResponse.ok(
        "Files retrieved successfully",
        FileListResponse(
            items=[FileUploadResponse.from_metadata(f) for f in files],
            total=total,
            page=page,
            size=size,
            total_pages=math.ceil(total / size) if total else 0,
        ),
    )


@router.get(
    "/download/{file_id}",
    response_class=FileResponse,
    summary="Download a file",
    responses=_OWNED_FILE_RESPONSES,
)
async def download_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    storage: FileStorageService = Depends(get_file_storage_service),
) -> FileResponse:
    metadata = await storage.get_file_metadata(file_id)
    _ensure_owner(metadata, current_user)

    path = await storage.load_file_as_resource(file_id)
    return FileResponse(
        path,
        media_type=metadata.content_type or "application/octet-stream",
        filename=metadata.original_file_name,
    )


@router.get(
    "/{file_id}",
    response_model=ApiResponse[FileUploadResponse],
    response_model_exclude_none=True,
    summary="Get file metadata",
    responses=_OWNED_FILE_RESPONSES,
)
async def get_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    storage: FileStorageService = Depends(get_file_storage_service),
) -> ApiResponse[FileUploadResponse]:
    metadata = await storage.get_file_metadata(file_id)
    _ensure_owner(metadata, current_user)
    return ApiResponse.ok("File retrieved successfully", FileUploadResponse.from_metadata(metadata))


@router.delete(
    "/{file_id}",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    summary="Delete a file",
    responses=_OWNED_FILE_RESPONSES,
)
async def delete_file(
    file_id: str,
    current_user: User = Depends(get_current_user),
    storage: FileStorageService = Depends(get_file_storage_service),
) -> ApiResponse[None]:
    metadata = await storage.get_file_metadata(file_id)
    _ensure_owner(metadata, current_user)

    await storage.delete_file(file_id)
    return ApiResponse.ok("File deleted successfully")
