"""
Utilities Package for the Content Processor Backend.

Modules:
    file_validator: Pre-storage upload checks, filename sanitization and URL
        validation
    logger: Application-wide logging setup with JSON or text output
"""
