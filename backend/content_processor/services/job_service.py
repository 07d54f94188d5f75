"""
Content Processor Job Service Module

Creates, reads, lists and deletes processing jobs and applies the status
updates reported by an external processing pipeline.

Lifecycle:
    PENDING -> PROCESSING -> COMPLETED | FAILED

The service validates the source payload of new jobs and enforces ownership on
every user-facing operation. It never drives transitions on its own and does
not reject out-of-order updates.
"""

import logging

from typing import Any, assert_never

from content_processor.core.database import DatabaseClient
from content_processor.core.exceptions import (
    NotFoundError,
    PermissionDeniedError,
    ValidationFailedError,
)
from content_processor.models.common import to_object_id, utc_now
from content_processor.models.file_metadata import FileMetadata
from content_processor.models.job import (
    CreateJobRequest,
    FileJobRequest,
    Job,
    JobStatus,
    SourceType,
    TextJobRequest,
    YoutubeJobRequest,
)
from content_processor.models.user import User
from content_processor.utils.file_validator import is_valid_url


logger = logging.getLogger(__name__)


class JobService:
    """
    Job persistence and validation.

    Example:
        ```python
        service = JobService(get_db_client())
        job = await service.create_job(
            TextJobRequest(source_type="TEXT", text_content="Lecture notes"),
            current_user,
        )
        await service.update_job_status(job.id, JobStatus.PROCESSING, 10)
        ```
    """

    def __init__(self, db_client: DatabaseClient) -> None:
        self.db_client = db_client

    def _jobs(self):
        return self.db_client.get_jobs_collection()

    async def _find_job(self, job_id: str) -> Job:
        object_id = to_object_id(job_id)
        if object_id is None:
            raise NotFoundError("Job not found")

        document = await self._jobs().find_one({"_id": object_id})
        if document is None:
            raise NotFoundError("Job not found")
        return Job(**document)

    # =========================================================================
    # Creation
    # =========================================================================

    async def _validate_file_source(self, request: FileJobRequest, user: User) -> dict[str, Any]:
        if not request.file_id or not request.file_id.strip():
            raise ValidationFailedError("Video/Audio/PDF source requires a fileId")

        object_id = to_object_id(request.file_id)
        document = None
        if object_id is not None:
            document = await self.db_client.get_files_collection().find_one({"_id": object_id})
        if document is None:
            raise NotFoundError("File not found")

        if not FileMetadata(**document).is_owned_by(user.id):
            logger.warning(
                "User %s attempted to create a job from file %s they do not own",
                user.id,
                request.file_id,
            )
            raise PermissionDeniedError("You don't have permission to use this file")

        return {"file_id": request.file_id}

    @staticmethod
    def _validate_youtube_source(request: YoutubeJobRequest) -> dict[str, Any]:
        if not request.url or not request.url.strip():
            raise ValidationFailedError("YouTube source requires a URL")
        url = request.url.strip()
        if not is_valid_url(url):
            raise ValidationFailedError("Invalid URL format")
        return {"url": url}

    @staticmethod
    def _validate_text_source(request: TextJobRequest) -> dict[str, Any]:
        if not request.text_content or not request.text_content.strip():
            raise ValidationFailedError("Text source requires textContent")
        return {"text_content": request.text_content}

    async def create_job(
        self,
        request: CreateJobRequest,
        requesting_user: User,
    ) -> Job:
        """
        Validate a creation request and persist a new PENDING job.

        Only the payload field belonging to the request's source type is
        stored; the others stay unset.

        Raises:
            ValidationFailedError: Missing or malformed payload
            NotFoundError: Referenced file does not exist
            PermissionDeniedError: Referenced file belongs to another user
        """
        if isinstance(request, FileJobRequest):
            payload = await self._validate_file_source(request, requesting_user)
        elif isinstance(request, YoutubeJobRequest):
            payload = self._validate_youtube_source(request)
        elif isinstance(request, TextJobRequest):
            payload = self._validate_text_source(request)
        else:
            assert_never(request)

        job = Job(
            user_id=requesting_user.id,
            source_type=SourceType(request.source_type),
            title=request.title,
            notes=request.notes,
            status=JobStatus.PENDING,
            progress=0,
            **payload,
        )

        result = await self._jobs().insert_one(job.to_document())
        job.id = str(result.inserted_id)

        logger.info(
            "Created %s job %s for user %s", job.source_type, job.id, requesting_user.id
        )
        return job

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_job_by_id(self, job_id: str, requesting_user: User) -> Job:
        job = await self._find_job(job_id)
        if not job.is_owned_by(requesting_user.id):
            logger.warning("User %s denied access to job %s", requesting_user.id, job_id)
            raise PermissionDeniedError("You don't have permission to access this job")
        return job

    async def _list_jobs(
        self, query_filter: dict[str, Any], skip: int, limit: int
    ) -> tuple[list[Job], int]:
        collection = self._jobs()
        total = await collection.count_documents(query_filter)
        cursor = collection.find(query_filter).sort("created_at", -1).skip(skip).limit(limit)
        documents = await cursor.to_list(length=limit)
        return [Job(**doc) for doc in documents], total

    async def get_user_jobs(
        self, user: User, skip: int = 0, limit: int = 20
    ) -> tuple[list[Job], int]:
        """The user's jobs, newest first, with the total count."""
        return await self._list_jobs({"user_id": user.id}, skip, limit)

    async def get_user_jobs_by_status(
        self, user: User, status: JobStatus, skip: int = 0, limit: int = 20
    ) -> tuple[list[Job], int]:
        return await self._list_jobs(
            {"user_id": user.id, "status": JobStatus(status).value}, skip, limit
        )

    # =========================================================================
    # Pipeline updates
    # =========================================================================

    async def update_job_status(self, job_id: str, status: JobStatus, progress: int) -> Job:
        """
        Overwrite a job's status and progress.

        Intended for the processing pipeline; there is no ownership check.

        Raises:
            ValidationFailedError: If progress is outside 0..100
            NotFoundError: If the job does not exist
        """
        if progress < 0 or progress > 100:
            raise ValidationFailedError("Progress must be between 0 and 100")

        job = await self._find_job(job_id)
        status = JobStatus(status)
        now = utc_now()

        updates: dict[str, Any] = {
            "status": status.value,
            "progress": progress,
            "updated_at": now,
        }
        if status is JobStatus.COMPLETED:
            updates["completed_at"] = now

        await self._jobs().update_one({"_id": to_object_id(job_id)}, {"$set": updates})

        logger.info("Job %s moved to %s (%d%%)", job_id, status.value, progress)
        return job.model_copy(update=updates)

    async def mark_job_as_failed(self, job_id: str, error_message: str) -> Job:
        job = await self._find_job(job_id)
        updates: dict[str, Any] = {
            "status": JobStatus.FAILED.value,
            "progress": 0,
            "error_message": error_message,
            "updated_at": utc_now(),
        }

        await self._jobs().update_one({"_id": to_object_id(job_id)}, {"$set": updates})

        logger.warning("Job %s failed: %s", job_id, error_message)
        return job.model_copy(update=updates)

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_job(self, job_id: str, requesting_user: User) -> None:
        job = await self._find_job(job_id)
        if not job.is_owned_by(requesting_user.id):
            logger.warning("User %s denied deletion of job %s", requesting_user.id, job_id)
            raise PermissionDeniedError("You don't have permission to delete this job")

        await self._jobs().delete_one({"_id": to_object_id(job_id)})
        logger.info("Deleted job %s", job_id)
