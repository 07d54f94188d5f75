"""
Content Processor API Package.

Package Structure:
    - routes/: Endpoint routers
        - auth.py: OIDC login, callback and current user profile
        - files.py: Upload, list, get, download and delete files
        - jobs.py: Create, list, get and delete processing jobs
    - error_handlers.py: Maps exceptions to the standard error envelope
"""
