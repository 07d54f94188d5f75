"""
Business logic services for the Content Processor backend.

- file_storage_service: Local file storage with MongoDB metadata
- job_service: Job creation, ownership checks and status updates
- user_service: User lookup, registration and provider linking

Services receive their database client explicitly and are wired into routes
through FastAPI dependencies.
"""
