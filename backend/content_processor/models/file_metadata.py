"""
FileMetadata Pydantic models for the Content Processor.

A FileMetadata document describes one stored upload, separate from the
physical bytes. Exactly one storage location is authoritative at a time:
``cloud_url`` when set, otherwise ``local_file_path``.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from content_processor.models.common import CamelModel, stringify_object_id, utc_now


class FileType(str, Enum):
    """
    Declared category of an uploaded file.

    - VIDEO: mp4, mpeg, quicktime, avi, matroska
    - AUDIO: mpeg, mp3, wav, ogg, mp4, aac
    - DOCUMENT: pdf, plain text
    """

    VIDEO = "VIDEO"
    AUDIO = "AUDIO"
    DOCUMENT = "DOCUMENT"


class FileMetadata(BaseModel):
    """
    Stored upload metadata document.

    Attributes:
        id: MongoDB ObjectId as string (aliased from _id)
        original_file_name: User-supplied name after normalization
        stored_file_name: ``<uuid4>_<sanitized name>``, unique system-wide
        file_type: Declared category
        local_file_path: Absolute path under the storage root
        cloud_url: Remote location once cloud storage exists
        cloud_public_id: Remote identifier used for cloud deletion
        file_size: Size in bytes
        content_type: Declared MIME type
        uploaded_by: Owning user's id
        processed: Set once downstream processing has consumed the file
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: str | None = Field(default=None, alias="_id", description="MongoDB ObjectId as string")
    original_file_name: str = Field(..., min_length=1, max_length=255)
    stored_file_name: str = Field(..., min_length=1)
    file_type: FileType
    local_file_path: str | None = None
    cloud_url: str | None = None
    cloud_public_id: str | None = None
    file_size: int = Field(..., ge=0)
    content_type: str | None = None
    uploaded_by: str = Field(..., min_length=1)
    processed: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    @field_validator("id", "uploaded_by", mode="before")
    @classmethod
    def validate_object_ids(cls, v):
        return stringify_object_id(v)

    @field_validator("original_file_name")
    @classmethod
    def validate_original_file_name(cls, v: str) -> str:
        """Reject path traversal sequences and separators."""
        if ".." in v or "/" in v or "\\" in v:
            raise ValueError("File name cannot contain path separators or '..'")
        return v

    @property
    def file_path(self) -> str | None:
        """Cloud URL when present, else the local path."""
        if self.cloud_url is not None:
            return self.cloud_url
        return self.local_file_path

    @property
    def is_cloud_stored(self) -> bool:
        return self.cloud_url is not None

    @property
    def is_local_stored(self) -> bool:
        return self.local_file_path is not None

    def is_owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and self.uploaded_by == user_id

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})


class FileUploadResponse(CamelModel):
    """
    File information returned to the client.

    Example:
        {
          "fileId": "672bf8a5e4b0c1234567890a",
          "fileName": "lecture_recording.mp4",
          "fileSize": 15728640,
          "contentType": "video/mp4",
          "fileType": "VIDEO",
          "uploadedAt": "2025-10-25T10:30:00+00:00"
        }
    """

    file_id: str
    file_name: str
    file_size: int
    content_type: str | None = None
    file_type: FileType
    file_path: str | None = None
    processed: bool = False
    uploaded_at: datetime

    @classmethod
    def from_metadata(cls, metadata: FileMetadata) -> "FileUploadResponse":
        return cls(
            file_id=metadata.id,
            file_name=metadata.original_file_name,
            file_size=metadata.file_size,
            content_type=metadata.content_type,
            file_type=metadata.file_type,
            file_path=metadata.file_path,
            processed=metadata.processed,
            uploaded_at=metadata.created_at,
        )


class FileListResponse(CamelModel):
    """One page of the caller's files, newest first."""

    items: list[FileUploadResponse]
    total: int
    page: int
    size: int
    total_pages: int
