"""
Content Processor API router aggregator.

Router Structure:
    - /auth: OIDC login, callback and current user profile
    - /api/files: Upload, list, inspect, download and delete files
    - /jobs: Create, list, inspect and delete processing jobs
"""

from fastapi import APIRouter

from content_processor.api.routes.auth import router as auth_router
from content_processor.api.routes.files import router as files_router
from content_processor.api.routes.jobs import router as jobs_router


api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["authentication"])
api_router.include_router(files_router, prefix="/api/files", tags=["files"])
api_router.include_router(jobs_router, prefix="/jobs", tags=["jobs"])

__all__ = ["api_router"]
