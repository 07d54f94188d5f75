"""
Content Processor File Storage Service Module

Stores uploaded bytes on the local filesystem under a single storage root and
keeps one FileMetadata document per stored file in the ``files`` collection.

Storage rules:
- Stored names are ``<uuid4>_<sanitized original name>`` so concurrent uploads
  of the same name never collide
- Bytes are streamed to disk with aiofiles before any metadata is written; a
  failed write or metadata insert leaves neither a file nor a record
- Deletion removes the physical file first and the metadata record last
- Cloud storage is represented in the data model only. Records without a
  local copy cannot be read and cloud deletes are logged no-ops

Ownership is not checked here. Callers compare ``uploaded_by`` with the
requesting user before exposing or deleting a file.
"""

import contextlib
import logging
import os
import posixpath
import uuid

from pathlib import Path

import aiofiles
import aiofiles.os

from fastapi import UploadFile
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from content_processor.config import Settings
from content_processor.core.database import DatabaseClient
from content_processor.core.exceptions import NotFoundError, StorageError
from content_processor.models.common import to_object_id, utc_now
from content_processor.models.file_metadata import FileMetadata, FileType
from content_processor.models.user import User
from content_processor.utils.file_validator import MAX_FILENAME_LENGTH, sanitize_filename


logger = logging.getLogger(__name__)

# Upload streaming chunk size (1 MiB)
CHUNK_SIZE = 1024 * 1024

# Room left for the sanitized name after the "<uuid4>_" prefix
STORED_NAME_BUDGET = MAX_FILENAME_LENGTH - 37


class FileStorageService:
    """
    Local filesystem storage with MongoDB-backed metadata.

    Attributes:
        db_client: Database client used to reach the ``files`` collection
        storage_root: Absolute directory holding every stored file

    Example:
        ```python
        service = FileStorageService(get_db_client(), get_settings())
        metadata = await service.store_file(upload, current_user, FileType.VIDEO)
        path = await service.load_file_as_resource(metadata.id)
        ```
    """

    def __init__(self, db_client: DatabaseClient, settings: Settings) -> None:
        self.db_client = db_client
        self.storage_root: Path = settings.upload_path

        try:
            self.storage_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.exception("Could not create upload directory %s", self.storage_root)
            raise StorageError("Could not create the directory for file uploads") from e

        logger.debug("FileStorageService using storage root %s", self.storage_root)

    def _collection(self):
        return self.db_client.get_files_collection()

    async def _find_metadata(self, file_id: str) -> FileMetadata:
        object_id = to_object_id(file_id)
        if object_id is None:
            raise NotFoundError.for_resource("File", "id", file_id)

        document = await self._collection().find_one({"_id": object_id})
        if document is None:
            raise NotFoundError.for_resource("File", "id", file_id)
        return FileMetadata(**document)

    @staticmethod
    def _normalize_original_name(filename: str | None) -> str:
        """
        Collapse the client-supplied name to a bare file name.

        Raises:
            StorageError: If the name carries a parent directory reference
        """
        raw_name = (filename or "").replace("\\", "/")
        if ".." in raw_name:
            raise StorageError(f"Filename contains invalid path sequence: {filename}")

        name = posixpath.basename(posixpath.normpath(raw_name)) if raw_name else ""
        if not name or name == ".":
            raise StorageError(f"Filename contains invalid path sequence: {filename}")
        return name

    async def store_file(self, upload: UploadFile, owner: User, file_type: FileType) -> FileMetadata:
        """
        Persist an uploaded file and record its metadata.

        The stored bytes are removed again when the metadata insert fails.

        Args:
            upload: Incoming multipart file (already validated)
            owner: Authenticated uploader
            file_type: Declared category

        Returns:
            FileMetadata: The stored record, including its new id

        Raises:
            StorageError: On an invalid name, a filesystem write failure or
                a failed metadata insert
        """
        original_name = self._normalize_original_name(upload.filename)
        stored_name = f"{uuid.uuid4()}_{sanitize_filename(original_name, STORED_NAME_BUDGET)}"
        target_path = self.storage_root / stored_name

        logger.info(
            "Storing %s upload '%s' for user %s as %s",
            FileType(file_type).value,
            original_name,
            owner.id,
            stored_name,
        )

        bytes_written = 0
        try:
            async with aiofiles.open(target_path, "wb") as out_file:
                while chunk := await upload.read(CHUNK_SIZE):
                    await out_file.write(chunk)
                    bytes_written += len(chunk)
        except OSError as e:
            logger.exception("Failed writing upload to %s", target_path)
            self._discard(target_path)
            raise StorageError(f"Could not store file {original_name}. Please try again!") from e

        try:
            metadata = FileMetadata(
                original_file_name=original_name,
                stored_file_name=stored_name,
                file_type=file_type,
                local_file_path=str(target_path),
                file_size=bytes_written,
                content_type=upload.content_type,
                uploaded_by=owner.id,
                processed=False,
            )
            result = await self._collection().insert_one(metadata.to_document())
        except (ValidationError, PyMongoError) as e:
            logger.exception("Failed recording metadata for %s", target_path)
            self._discard(target_path)
            raise StorageError(f"Could not store file {original_name}. Please try again!") from e

        metadata.id = str(result.inserted_id)

        logger.info("Stored file %s (%d bytes) at %s", metadata.id, bytes_written, target_path)
        return metadata

    @staticmethod
    def _discard(path: Path) -> None:
        with contextlib.suppress(OSError):
            path.unlink(missing_ok=True)

    async def load_file_as_resource(self, file_id: str) -> Path:
        """
        Resolve a file id to a readable local path.

        A local copy is served even when the record also has a cloud URL.

        Raises:
            NotFoundError: If no metadata record exists
            StorageError: If the record has no local copy or the file is gone
        """
        metadata = await self._find_metadata(file_id)

        if not metadata.is_local_stored:
            raise StorageError("Cloud file download not yet implemented")

        path = Path(metadata.local_file_path)
        if not path.is_file() or not os.access(path, os.R_OK):
            logger.error("Metadata %s points at missing or unreadable file %s", file_id, path)
            raise StorageError(f"File not found or not readable: {metadata.original_file_name}")

        return path

    async def get_file_path(self, file_id: str) -> str:
        """Cloud URL when set, otherwise the local path."""
        metadata = await self._find_metadata(file_id)
        return metadata.file_path

    async def delete_file(self, file_id: str) -> None:
        """
        Remove a stored file and then its metadata record.

        Local and cloud copies are handled independently. A local file that
        is already gone is not an error.

        Raises:
            NotFoundError: If no metadata record exists
            StorageError: If the local file exists but cannot be removed
        """
        metadata = await self._find_metadata(file_id)

        if metadata.is_local_stored:
            try:
                await aiofiles.os.remove(metadata.local_file_path)
            except FileNotFoundError:
                logger.warning(
                    "Local file for %s already missing at %s", file_id, metadata.local_file_path
                )
            except OSError as e:
                logger.exception("Failed deleting %s", metadata.local_file_path)
                raise StorageError(f"Could not delete file with id: {file_id}") from e

        if metadata.is_cloud_stored:
            logger.info(
                "Cloud file deletion not yet implemented; skipping remote delete for %s (%s)",
                file_id,
                metadata.cloud_public_id,
            )

        await self._collection().delete_one({"_id": to_object_id(file_id)})
        logger.info("Deleted file %s", file_id)

    async def mark_file_as_processed(self, file_id: str) -> FileMetadata:
        metadata = await self._find_metadata(file_id)
        now = utc_now()

        await self._collection().update_one(
            {"_id": to_object_id(file_id)},
            {"$set": {"processed": True, "updated_at": now}},
        )

        metadata.processed = True
        metadata.updated_at = now
        logger.info("Marked file %s as processed", file_id)
        return metadata

    async def get_file_metadata(self, file_id: str) -> FileMetadata:
        return await self._find_metadata(file_id)

    async def get_user_files(
        self, owner_id: str, skip: int = 0, limit: int = 20
    ) -> tuple[list[FileMetadata], int]:
        """
        List one owner's files, newest first.

        Returns:
            tuple: (page of FileMetadata, total count for the owner)
        """
        query_filter = {"uploaded_by": owner_id}
        collection = self._collection()

        total = await collection.count_documents(query_filter)
        cursor = collection.find(query_filter).sort("created_at", -1).skip(skip).limit(limit)
        documents = await cursor.to_list(length=limit)

        return [FileMetadata(**doc) for doc in documents], total
