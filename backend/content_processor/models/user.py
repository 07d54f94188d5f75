"""
User Pydantic models for the Content Processor.

A user is created on the first successful OIDC login, or on the first bearer
token lookup miss, and owns files and jobs by reference (``uploaded_by`` /
``user_id``). Users are never hard-deleted in normal flow.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from content_processor.models.common import CamelModel, stringify_object_id, utc_now


class AuthProvider(str, Enum):
    """Identity provider that owns the user's external identity."""

    MICROSOFT = "microsoft"
    AUTH0 = "auth0"
    OIDC = "oidc"
    LOCAL = "local"


class User(BaseModel):
    """
    User document model.

    Attributes:
        id: MongoDB ObjectId as string (aliased from _id)
        email: Unique email address, absent when the provider supplied none
        provider_id: Unique subject identifier at the external provider
        provider: Provider tag
        enabled: Disabled users cannot authenticate
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: str | None = Field(default=None, alias="_id", description="MongoDB ObjectId as string")
    email: str | None = Field(default=None, max_length=320)
    provider_id: str | None = Field(default=None, max_length=255)
    provider: AuthProvider = Field(default=AuthProvider.LOCAL)
    enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        return stringify_object_id(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    def to_document(self) -> dict:
        """Serialize for insertion, leaving out the id and unset unique keys."""
        document = self.model_dump(exclude={"id"})
        for key in ("email", "provider_id"):
            if document.get(key) is None:
                document.pop(key, None)
        return document


class UserResponse(CamelModel):
    """Public user profile returned by ``GET /auth/me``."""

    id: str
    email: str | None = None
    provider: str
    enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            provider=user.provider,
            enabled=user.enabled,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
