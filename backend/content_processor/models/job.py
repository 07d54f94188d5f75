"""
Job Pydantic models for the Content Processor.

A job is one processing request. Its ``source_type`` decides which payload
field is authoritative:

    VIDEO_FILE / AUDIO_FILE / PDF_FILE -> file_id
    YOUTUBE                            -> url
    TEXT                               -> text_content

Status flow: PENDING -> PROCESSING -> COMPLETED | FAILED. COMPLETED and FAILED
are terminal. Transitions are driven by an external processing pipeline.

Job creation requests are a union of three request models tagged by
``sourceType``; the router validates it as a discriminated union so unknown
source types fail request validation before reaching the service.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from content_processor.models.common import CamelModel, stringify_object_id, utc_now


class SourceType(str, Enum):
    """Discriminator selecting the job's payload field."""

    YOUTUBE = "YOUTUBE"
    VIDEO_FILE = "VIDEO_FILE"
    AUDIO_FILE = "AUDIO_FILE"
    PDF_FILE = "PDF_FILE"
    TEXT = "TEXT"


class JobStatus(str, Enum):
    """Job lifecycle states."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Job(BaseModel):
    """
    Job document model.

    Attributes:
        id: MongoDB ObjectId as string (aliased from _id)
        user_id: Owning user's id
        source_type: Payload discriminator
        file_id: Referenced FileMetadata id (file-backed sources only)
        url: Source URL (YOUTUBE only)
        text_content: Raw text (TEXT only)
        title: Optional user-supplied title
        notes: Optional user-supplied notes
        status: Lifecycle state
        progress: Percentage 0-100, meaningful while PROCESSING
        result_url: Location of the generated output once completed
        error_message: Set only when FAILED
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
        completed_at: Set when the job reaches COMPLETED
    """

    id: str | None = Field(default=None, alias="_id", description="MongoDB ObjectId as string")
    user_id: str = Field(..., min_length=1)
    source_type: SourceType
    file_id: str | None = None
    url: str | None = None
    text_content: str | None = None
    title: str | None = None
    notes: str | None = None
    status: JobStatus = JobStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    result_url: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    @field_validator("id", "user_id", "file_id", mode="before")
    @classmethod
    def validate_object_ids(cls, v):
        return stringify_object_id(v)

    def is_owned_by(self, user_id: str | None) -> bool:
        return user_id is not None and self.user_id == user_id

    def to_document(self) -> dict:
        """Serialize for insertion; payload fields not used by the source type stay unset."""
        return self.model_dump(exclude={"id"}, exclude_none=True)


# =============================================================================
# CREATION REQUESTS (tagged union on sourceType)
# =============================================================================


class _JobRequestBase(CamelModel):
    title: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=10_000)


class FileJobRequest(_JobRequestBase):
    """Job backed by a previously uploaded file."""

    source_type: Literal["VIDEO_FILE", "AUDIO_FILE", "PDF_FILE"]
    file_id: str | None = None


class YoutubeJobRequest(_JobRequestBase):
    """Job backed by a remote video URL."""

    source_type: Literal["YOUTUBE"]
    url: str | None = None


class TextJobRequest(_JobRequestBase):
    """Job backed by raw text."""

    source_type: Literal["TEXT"]
    text_content: str | None = None


CreateJobRequest = FileJobRequest | YoutubeJobRequest | TextJobRequest


# =============================================================================
# RESPONSES
# =============================================================================


class JobResponse(CamelModel):
    """
    Job information returned to the client.

    Example:
        {
          "id": "672bf8a5e4b0c1234567890a",
          "sourceType": "VIDEO_FILE",
          "status": "PROCESSING",
          "title": "Lecture on distributed systems",
          "progress": 45,
          "fileId": "672bf8a5e4b0c1234567890b",
          "createdAt": "2025-10-25T10:30:00+00:00",
          "updatedAt": "2025-10-25T10:35:00+00:00"
        }
    """

    id: str
    source_type: SourceType
    status: JobStatus
    title: str | None = None
    notes: str | None = None
    progress: int
    file_id: str | None = None
    url: str | None = None
    text_content: str | None = None
    error_message: str | None = None
    result_url: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None

    @classmethod
    def from_job(cls, job: Job) -> "JobResponse":
        return cls(
            id=job.id,
            source_type=job.source_type,
            status=job.status,
            title=job.title,
            notes=job.notes,
            progress=job.progress,
            file_id=job.file_id,
            url=job.url,
            text_content=job.text_content,
            error_message=job.error_message,
            result_url=job.result_url,
            created_at=job.created_at,
            updated_at=job.updated_at,
            completed_at=job.completed_at,
        )


class JobPage(CamelModel):
    """One page of the caller's jobs, newest first."""

    items: list[JobResponse]
    total: int
    page: int
    size: int
    total_pages: int
