#!/usr/bin/env python3
"""
Content Processor API server entry point.

Usage:
    # Run with uvicorn directly
    uvicorn content_processor.main:app --host 0.0.0.0 --port 8080 --reload

    # Run as Python script
    python main.py
"""

import uvicorn

from content_processor.config import get_settings


def run() -> None:
    """Start Uvicorn with host, port and reload taken from settings."""
    settings = get_settings()
    uvicorn.run(
        "content_processor.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    run()
