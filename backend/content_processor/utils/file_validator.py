"""
File Validation Utilities Module for the Content Processor

Pre-storage checks performed by the HTTP surface before a file reaches the
storage manager:
- File must be present and non-empty
- 500 MB maximum file size
- Filename must be non-empty and free of '..', '/' and '\\'
- Declared content type must be in the allow-list for the declared category

Also provides filename sanitization for stored names and URL validation for
YouTube job sources.

All failures raise ValidationFailedError (HTTP 400).
"""

import re

from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from content_processor.core.exceptions import ValidationFailedError
from content_processor.models.file_metadata import FileType


# =============================================================================
# CONSTANTS
# =============================================================================

BYTES_PER_MB: int = 1024 * 1024

# Maximum allowed file size: 500 MB
MAX_FILE_SIZE_BYTES: int = 500 * BYTES_PER_MB

MAX_FILENAME_LENGTH: int = 255

ALLOWED_VIDEO_TYPES: list[str] = [
    "video/mp4",
    "video/mpeg",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
]

ALLOWED_AUDIO_TYPES: list[str] = [
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/ogg",
    "audio/mp4",
    "audio/aac",
]

ALLOWED_DOCUMENT_TYPES: list[str] = [
    "application/pdf",
    "text/plain",
]

ALLOWED_CONTENT_TYPES: dict[FileType, list[str]] = {
    FileType.VIDEO: ALLOWED_VIDEO_TYPES,
    FileType.AUDIO: ALLOWED_AUDIO_TYPES,
    FileType.DOCUMENT: ALLOWED_DOCUMENT_TYPES,
}

ALLOWED_URL_SCHEMES: frozenset[str] = frozenset({"http", "https"})


class UploadedFile(Protocol):
    """The subset of ``fastapi.UploadFile`` the validators read."""

    filename: str | None
    content_type: str | None
    size: int | None


# =============================================================================
# BASIC CHECKS
# =============================================================================


def validate_file_exists(file: UploadedFile | None) -> None:
    """Reject a missing or zero-byte upload."""
    if file is None or not file.size:
        raise ValidationFailedError("File is Required and cannot be empty")


def validate_file_size(file: UploadedFile, max_size: int = MAX_FILE_SIZE_BYTES) -> None:
    """
    Reject uploads larger than ``max_size`` bytes.

    Args:
        file: Upload to check
        max_size: Limit in bytes (defaults to 500 MB)

    Raises:
        ValidationFailedError: If the file is too large
    """
    if (file.size or 0) > max_size:
        raise ValidationFailedError(
            f"File size exceeds maximum allowed size of {max_size // BYTES_PER_MB} MB"
        )


def validate_file_name(file: UploadedFile) -> None:
    """Reject empty, overlong, traversing or separator-carrying names."""
    file_name = file.filename
    if file_name is None or not file_name.strip():
        raise ValidationFailedError("File must have a valid name")

    if ".." in file_name or "/" in file_name or "\\" in file_name:
        raise ValidationFailedError("File name contains invalid characters")

    if len(file_name) > MAX_FILENAME_LENGTH:
        raise ValidationFailedError(
            f"File name must not exceed {MAX_FILENAME_LENGTH} characters"
        )


def validate_file(file: UploadedFile | None, max_size: int = MAX_FILE_SIZE_BYTES) -> None:
    """Generic checks shared by every category."""
    validate_file_exists(file)
    validate_file_size(file, max_size)
    validate_file_name(file)


# =============================================================================
# CATEGORY CHECKS
# =============================================================================


def _validate_content_type(file: UploadedFile, file_type: FileType) -> None:
    allowed = ALLOWED_CONTENT_TYPES[file_type]
    content_type = file.content_type
    if content_type is None or content_type.lower() not in allowed:
        raise ValidationFailedError(
            f"Invalid {file_type.value.lower()} file type. Allowed types: {', '.join(allowed)}"
        )


def validate_video_file(file: UploadedFile | None, max_size: int = MAX_FILE_SIZE_BYTES) -> None:
    validate_file(file, max_size)
    _validate_content_type(file, FileType.VIDEO)


def validate_audio_file(file: UploadedFile | None, max_size: int = MAX_FILE_SIZE_BYTES) -> None:
    validate_file(file, max_size)
    _validate_content_type(file, FileType.AUDIO)


def validate_document_file(
    file: UploadedFile | None, max_size: int = MAX_FILE_SIZE_BYTES
) -> None:
    """Validates document file type (PDF or plain text)."""
    validate_file(file, max_size)
    _validate_content_type(file, FileType.DOCUMENT)


_VALIDATORS_BY_TYPE = {
    FileType.VIDEO: validate_video_file,
    FileType.AUDIO: validate_audio_file,
    FileType.DOCUMENT: validate_document_file,
}


def validate_upload(
    file: UploadedFile | None, file_type: FileType, max_size: int = MAX_FILE_SIZE_BYTES
) -> None:
    """
    Run the full validation contract for the declared category.

    Args:
        file: Upload to check
        file_type: Declared category (decides the content-type allow-list)
        max_size: Limit in bytes

    Raises:
        ValidationFailedError: On the first failing check
    """
    _VALIDATORS_BY_TYPE[FileType(file_type)](file, max_size)


# =============================================================================
# SANITIZATION
# =============================================================================


def _truncate_utf8(value: str, max_bytes: int) -> str:
    return value.encode("utf-8")[:max_bytes].decode("utf-8", "ignore")


def sanitize_filename(filename: str, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """
    Sanitize a filename for use inside the stored name.

    - Drops any directory components
    - Removes control characters and filesystem/shell-special characters
    - Replaces whitespace with underscores
    - Keeps the (lower-cased) extension
    - Caps the UTF-8 encoded result at ``max_length`` bytes, extension included

    Example:
        >>> sanitize_filename("my lecture (1).MP4")
        'my_lecture_1.mp4'
        >>> sanitize_filename("../../etc/passwd")
        'passwd'
    """
    if not filename:
        return "unnamed_file"

    path = Path(filename.replace("\\", "/"))
    filename = path.name
    if not filename:
        return "unnamed_file"

    extension = path.suffix.lower()
    name = path.stem

    # ".env" style names: treat the suffix as the name
    if not name and extension:
        name = extension[1:]
        extension = ""

    name = re.sub(r"[\x00-\x1f\x7f]", "", name)
    name = re.sub(r'[<>:"/\\|?*]', "", name)
    name = re.sub(r"\.\.+", ".", name)
    name = re.sub(r"\s+", "_", name)
    name = re.sub(r"[()]", "", name)
    name = re.sub(r"[^\w\-.]", "", name)
    name = re.sub(r"_+", "_", name)
    name = re.sub(r"-+", "-", name)
    name = name.strip("_-.")

    if not name:
        name = "unnamed_file"

    extension = _truncate_utf8(re.sub(r"[^\w.]", "", extension), max_length - 1)
    name = _truncate_utf8(name, max_length - len(extension.encode("utf-8")))
    return f"{name}{extension}"


# =============================================================================
# URL VALIDATION
# =============================================================================


def is_valid_url(url: str | None) -> bool:
    """True for absolute http(s) URLs with a host."""
    if not url or any(ch.isspace() for ch in url):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme.lower() in ALLOWED_URL_SCHEMES and bool(parsed.netloc)
