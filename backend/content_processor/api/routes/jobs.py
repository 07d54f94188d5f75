"""
Content Processor Jobs API Router

Endpoints:
- POST /: Create a job from an uploaded file, a YouTube URL or raw text
- GET /: List the caller's jobs, optionally filtered by status
- GET /{job_id}: Job details
- DELETE /{job_id}: Delete a job

Status changes come from the processing pipeline and are not exposed here.
"""

import logging
import math

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query, status

from content_processor.core.auth import get_current_user
from content_processor.core.database import get_db_client
from content_processor.models.common import ApiResponse
from content_processor.models.job import CreateJobRequest, JobPage, JobResponse, JobStatus
from content_processor.models.user import User
from content_processor.services.job_service import JobService


logger = logging.getLogger(__name__)

router = APIRouter()


def get_job_service() -> JobService:
    return JobService(get_db_client())


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[JobResponse],
    response_model_exclude_none=True,
    summary="Create a processing job",
    responses={
        400: {"description": "Missing or malformed source payload"},
        401: {"description": "Not authenticated or invalid token"},
        403: {"description": "Referenced file belongs to another user"},
        404: {"description": "Referenced file not found"},
    },
)
async def create_job(
    request: Annotated[CreateJobRequest, Body(discriminator="source_type")],
    current_user: User = Depends(get_current_user),
    job_service: JobService = Depends(get_job_service),
) -> ApiResponse[JobResponse]:
    """
    Create a new PENDING job.

    The body is discriminated on ``sourceType``:

    - VIDEO_FILE / AUDIO_FILE / PDF_FILE: ``fileId`` of one of the caller's files
    - YOUTUBE: ``url``
    - TEXT: ``textContent``
    """
    job = await job_service.create_job(request, current_user)
    return ApiResponse.ok("Job created successfully", JobResponse.from_job(job))


@router.get(
    "",
    response_model=ApiResponse[JobPage],
    response_model_exclude_none=True,
    summary="List the caller's jobs",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def list_jobs(
    page: int = Query(default=0, ge=0, description="Zero-based page number"),
    size: int = Query(default=20, ge=1, le=100, description="Page size (1-100)"),
    job_status: JobStatus | None = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    job_service: JobService = Depends(get_job_service),
) -> ApiResponse[JobPage]:
    skip = page * size
    if job_status is None:
        jobs, total = await job_service.get_user_jobs(current_user, skip=skip, limit=size)
    else:
        jobs, total = await job_service.get_user_jobs_by_status(
            current_user, job_status, skip=skip, limit=size
        )

    return ApiResponse.ok(
        "Jobs retrieved successfully",
        JobPage(
            items=[JobResponse.from_job(job) for job in jobs],
            total=total,
            page=page,
            size=size,
            total_pages=math.ceil(total / size) if total else 0,
        ),
    )


@router.get(
    "/{job_id}",
    response_model=ApiResponse[JobResponse],
    response_model_exclude_none=True,
    summary="Get job details",
    responses={
        401: {"description": "Not authenticated or invalid token"},
        403: {"description": "Job belongs to another user"},
        404: {"description": "Job not found"},
    },
)
async def get_job(
    job_id: str,
    current_user: User = Depends(get_current_user),
    job_service: JobService = Depends(get_job_service),
) -> ApiResponse[JobResponse]:
    job = await job_service.get_job_by_id(job_id, current_user)
    return ApiResponse.ok("Job retrieved successfully", JobResponse.from_job(job))


@router.delete(
    "/{job_id}",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    summary="Delete a job",
    responses={
        401: {"description": "Not authenticated or invalid token"},
        403: {"description": "Job belongs to another user"},
        404: {"description": "Job not found"},
    },
)
async def delete_job(
    job_id: str,
    current_user: User = Depends(get_current_user),
    job_service: JobService = Depends(get_job_service),
) -> ApiResponse[None]:
    await job_service.delete_job(job_id, current_user)
    return ApiResponse.ok("Job deleted successfully")
