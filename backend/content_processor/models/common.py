"""
Shared response envelope and model helpers.

Every endpoint answers with the same JSON shape:

    {
      "success": true,
      "message": "Job created successfully",
      "data": { ... },
      "timestamp": "2025-10-25T10:30:00+00:00"
    }

Error responses carry ``success: false`` and omit ``data`` unless there is
structured detail (for example per-field validation messages).
"""

from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


T = TypeVar("T")


def utc_now() -> datetime:
    """Timestamp used for every explicit created/updated write."""
    return datetime.now(UTC)


def stringify_object_id(value: Any) -> Any:
    """Convert a Mongo ObjectId to its hex string, leaving other values alone."""
    if isinstance(value, ObjectId):
        return str(value)
    return value


def to_object_id(value: str | None) -> ObjectId | None:
    """Parse a string id, returning None when it is not a valid ObjectId."""
    if value is None or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


class CamelModel(BaseModel):
    """Base for API-facing DTOs serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiResponse(BaseModel, Generic[T]):
    """
    Generic wrapper for all API responses.

    Attributes:
        success: Whether the request succeeded
        message: Human-readable outcome
        data: Payload, omitted when absent
        timestamp: UTC time the envelope was built
    """

    success: bool
    message: str
    data: T | None = None
    timestamp: datetime = Field(default_factory=utc_now)

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ApiResponse":
        return cls(success=True, message=message, data=data)

    @classmethod
    def error(cls, message: str, data: Any = None) -> "ApiResponse":
        return cls(success=False, message=message, data=data)
