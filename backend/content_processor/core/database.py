"""
MongoDB access for the Content Processor.

One Motor client per process, owned by the FastAPI lifespan:

    init_db(settings)   -> connect (with retries) and ensure indexes
    get_db_client()     -> the live DatabaseClient, used by services
    close_db()          -> release the connection pool

Collections:
    users  - identities, unique on email and provider_id when present
    files  - FileMetadata, one document per stored upload
    jobs   - processing jobs, listed per owner newest first
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from content_processor.config import Settings


logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"
FILES_COLLECTION = "files"
JOBS_COLLECTION = "jobs"

CONNECT_MAX_RETRIES = 3
SERVER_SELECTION_TIMEOUT_MS = 5000


class DatabaseClient:
    """
    Motor client bound to the configured database.

    Example:
        ```python
        client = DatabaseClient(get_settings())
        if await client.connect():
            total = await client.get_jobs_collection().count_documents({"user_id": uid})
        await client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._pool = (settings.mongodb_min_pool_size, settings.mongodb_max_pool_size)
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

    async def connect(self) -> bool:
        """
        Open the pool and confirm the server answers a ping.

        Retries up to ``CONNECT_MAX_RETRIES`` times, doubling the pause
        between attempts from one second. Returns False when every attempt
        failed.
        """
        delay = 1.0
        min_pool, max_pool = self._pool

        for attempt in range(1, CONNECT_MAX_RETRIES + 1):
            logger.info(
                "Connecting to MongoDB database %s (attempt %d/%d)",
                self._db_name,
                attempt,
                CONNECT_MAX_RETRIES,
            )
            try:
                self._client = AsyncIOMotorClient(
                    self._uri,
                    minPoolSize=min_pool,
                    maxPoolSize=max_pool,
                    serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
                    tz_aware=True,
                )
                self._database = self._client[self._db_name]
                await self._client.admin.command("ping")
            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception("MongoDB unreachable on attempt %d", attempt)
            else:
                logger.info("Connected to MongoDB database %s", self._db_name)
                return True

            if attempt < CONNECT_MAX_RETRIES:
                logger.warning("Retrying MongoDB connection in %.0f s", delay)
                await asyncio.sleep(delay)
                delay *= 2

        logger.error("Giving up on MongoDB after %d attempts", CONNECT_MAX_RETRIES)
        return False

    async def close(self) -> None:
        if self._client is None:
            logger.warning("close() called on a DatabaseClient that is not connected")
            return

        try:
            self._client.close()
            logger.info("Closed MongoDB connection pool for %s", self._db_name)
        finally:
            self._client = None
            self._database = None

    async def ping(self) -> bool:
        """True when connected and the server answers ``ping``."""
        if self._client is None:
            return False

        try:
            await self._client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError):
            logger.exception("MongoDB ping failed")
            return False
        return True

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Raises:
            RuntimeError: If connect() has not succeeded.
        """
        if self._database is None:
            raise RuntimeError(f"Not connected to MongoDB database {self._db_name}")
        return self._database

    def get_users_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[USERS_COLLECTION]

    def get_files_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[FILES_COLLECTION]

    def get_jobs_collection(self) -> AsyncIOMotorCollection:
        return self.get_database()[JOBS_COLLECTION]

    async def create_indexes(self) -> None:
        """
        Ensure the indexes every query and uniqueness rule relies on.

        Unique user keys are partial so that users without an email or
        provider subject do not collide on null.
        """
        database = self.get_database()

        users = database[USERS_COLLECTION]
        for key in ("email", "provider_id"):
            await users.create_index(
                key, unique=True, partialFilterExpression={key: {"$type": "string"}}
            )

        files = database[FILES_COLLECTION]
        await files.create_index("stored_file_name", unique=True)
        await files.create_index([("uploaded_by", ASCENDING), ("created_at", DESCENDING)])

        jobs = database[JOBS_COLLECTION]
        await jobs.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        await jobs.create_index(
            [("user_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)]
        )

        logger.info(
            "Indexes ensured on %s, %s and %s",
            USERS_COLLECTION,
            FILES_COLLECTION,
            JOBS_COLLECTION,
        )


class _DatabaseClientContainer:
    """Holds the process-wide client."""

    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings | None = None) -> DatabaseClient:
    """
    Connect the process-wide client and ensure indexes.

    Calling it again returns the existing client.

    Raises:
        RuntimeError: If MongoDB stays unreachable after all retries.
    """
    if _container.client is not None:
        return _container.client

    client = DatabaseClient(settings or Settings())
    if not await client.connect():
        raise RuntimeError("Failed to establish MongoDB connection")

    await client.create_indexes()
    _container.client = client
    return client


async def close_db() -> None:
    if _container.client is None:
        return

    await _container.client.close()
    _container.client = None


def get_db_client() -> DatabaseClient:
    """
    Raises:
        RuntimeError: If init_db() has not completed.
    """
    if _container.client is None:
        raise RuntimeError("Database client not initialized")
    return _container.client
