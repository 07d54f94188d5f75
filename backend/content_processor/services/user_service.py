"""
User directory service.

Looks users up by id, external provider subject or email, registers new users
and links existing accounts to an identity provider on OIDC login.
"""

import logging

from typing import Any

from pymongo.errors import DuplicateKeyError

from content_processor.core.database import DatabaseClient
from content_processor.core.exceptions import UnauthenticatedError
from content_processor.models.common import to_object_id, utc_now
from content_processor.models.user import AuthProvider, User


logger = logging.getLogger(__name__)


def find_email(claims: dict[str, Any]) -> str | None:
    """
    Pick the user's email from identity claims.

    Microsoft accounts often omit ``email``; ``upn`` or ``preferred_username``
    is used instead when it looks like an address.
    """
    email = claims.get("email")
    if email:
        return email

    for claim in ("upn", "preferred_username"):
        value = claims.get(claim)
        if value and "@" in value:
            return value
    return None


class UserService:
    """User lookups and registration against the ``users`` collection."""

    def __init__(self, db_client: DatabaseClient) -> None:
        self.db_client = db_client

    def _users(self):
        return self.db_client.get_users_collection()

    async def find_by_id(self, user_id: str) -> User | None:
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        document = await self._users().find_one({"_id": object_id})
        return User(**document) if document else None

    async def find_by_provider_id(self, provider_id: str) -> User | None:
        document = await self._users().find_one({"provider_id": provider_id})
        return User(**document) if document else None

    async def find_by_email(self, email: str) -> User | None:
        document = await self._users().find_one({"email": email})
        return User(**document) if document else None

    async def register_user(
        self,
        email: str | None,
        provider: AuthProvider | str,
        provider_id: str | None = None,
    ) -> User:
        """
        Insert a new enabled user.

        A concurrent registration of the same email or provider id loses the
        unique-index race; the winner's record is returned instead.
        """
        user = User(email=email, provider=provider, provider_id=provider_id)
        try:
            result = await self._users().insert_one(user.to_document())
        except DuplicateKeyError:
            logger.warning("Concurrent registration for %s, loading existing user", email or provider_id)
            existing = None
            if provider_id:
                existing = await self.find_by_provider_id(provider_id)
            if existing is None and email:
                existing = await self.find_by_email(email)
            if existing is None:
                raise
            return existing

        user.id = str(result.inserted_id)
        logger.info("Registered user %s (%s, provider=%s)", user.id, email, user.provider)
        return user

    async def link_provider(self, user: User, provider: AuthProvider | str, provider_id: str) -> User:
        """Attach an external identity to an existing account."""
        now = utc_now()
        provider_value = AuthProvider(provider).value
        await self._users().update_one(
            {"_id": to_object_id(user.id)},
            {"$set": {"provider": provider_value, "provider_id": provider_id, "updated_at": now}},
        )
        logger.info("Linked user %s to %s subject %s", user.id, provider_value, provider_id)
        return user.model_copy(
            update={"provider": provider_value, "provider_id": provider_id, "updated_at": now}
        )

    async def _update_email(self, user: User, email: str) -> User:
        now = utc_now()
        await self._users().update_one(
            {"_id": to_object_id(user.id)},
            {"$set": {"email": email, "updated_at": now}},
        )
        logger.info("Updated email for user %s", user.id)
        return user.model_copy(update={"email": email, "updated_at": now})

    async def process_oidc_login(self, claims: dict[str, Any], provider: AuthProvider | str) -> User:
        """
        Find or create the user behind a validated ID token.

        Order: provider subject, then email (linking the provider), then a new
        registration.

        Raises:
            UnauthenticatedError: If the claims carry no subject
        """
        subject = claims.get("sub")
        if not subject:
            raise UnauthenticatedError("Identity token is missing the subject claim")

        email = find_email(claims)

        user = await self.find_by_provider_id(subject)
        if user is not None:
            if email and user.email != email:
                user = await self._update_email(user, email)
            return user

        if email:
            user = await self.find_by_email(email)
            if user is not None:
                return await self.link_provider(user, provider, subject)

        return await self.register_user(email=email, provider=provider, provider_id=subject)

    async def resolve_token_subject(self, subject: str, email: str | None) -> User:
        """
        Map a bearer token's subject to a user, registering one on a miss.

        Lookup order: database id, provider subject, email claim.
        """
        user = await self.find_by_id(subject)
        if user is None:
            user = await self.find_by_provider_id(subject)
        if user is None and email:
            user = await self.find_by_email(email)

        if user is None:
            logger.info("No user for token subject %s, registering", subject)
            provider_id = None if to_object_id(subject) is not None else subject
            user = await self.register_user(
                email=email, provider=AuthProvider.LOCAL, provider_id=provider_id
            )
        return user
