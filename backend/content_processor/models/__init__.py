"""
Models Package for the Content Processor.

Pydantic models for users, stored files and processing jobs, plus the shared
response envelope. Documents use an ``_id`` alias so MongoDB records load
directly; API DTOs serialize with camelCase keys.

Example Usage:
    ```python
    from content_processor.models import ApiResponse, Job, JobResponse

    return ApiResponse.ok("Job created successfully", JobResponse.from_job(job))
    ```
"""

from content_processor.models.common import ApiResponse, CamelModel
from content_processor.models.file_metadata import (
    FileListResponse,
    FileMetadata,
    FileType,
    FileUploadResponse,
)
from content_processor.models.job import (
    CreateJobRequest,
    FileJobRequest,
    Job,
    JobPage,
    JobResponse,
    JobStatus,
    SourceType,
    TextJobRequest,
    YoutubeJobRequest,
)
from content_processor.models.user import AuthProvider, User, UserResponse


__all__ = [
    "ApiResponse",
    "AuthProvider",
    "CamelModel",
    "CreateJobRequest",
    "FileJobRequest",
    "FileListResponse",
    "FileMetadata",
    "FileType",
    "FileUploadResponse",
    "Job",
    "JobPage",
    "JobResponse",
    "JobStatus",
    "SourceType",
    "TextJobRequest",
    "User",
    "UserResponse",
    "YoutubeJobRequest",
]
