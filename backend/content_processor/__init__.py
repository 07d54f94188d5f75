"""
Content Processor Backend Application Package

FastAPI service where authenticated users upload media files and register
processing jobs that reference an uploaded file, a YouTube URL or raw text.

Package Structure:
- api/: HTTP routers and the exception translator
- core/: Infrastructure (database, authentication, OIDC, error taxonomy)
- models/: Pydantic documents and API DTOs
- services/: File storage, job and user business logic
- utils/: Upload validation and logging setup
"""

__version__ = "1.0.0"
__app_name__ = "content-processor"
