"""
Content Processor File Storage Service Test Suite

Covers content_processor/services/file_storage_service.py:
- Storage root creation
- Stored-name generation and streaming to disk
- Rejection of traversal names before any byte is written
- Cleanup when the disk write or the metadata insert fails
- Stored names kept within the filesystem name limit
- Load, path lookup, delete (local and cloud) and processed marking
- Owner-scoped listing
"""

import re

from io import BytesIO
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from bson import ObjectId
from fastapi import UploadFile
from pymongo.errors import PyMongoError
from starlette.datastructures import Headers

from content_processor.config import Settings
from content_processor.core.exceptions import NotFoundError, StorageError
from content_processor.models.file_metadata import FileType
from content_processor.models.user import User
from content_processor.services.file_storage_service import FileStorageService


STORED_NAME_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}_")


def make_upload_file(
    data: bytes, filename: str = "test-video.mp4", content_type: str = "video/mp4"
) -> UploadFile:
    return UploadFile(
        file=BytesIO(data),
        filename=filename,
        size=len(data),
        headers=Headers({"content-type": content_type}),
    )


class TestStorageRoot:
    """Constructor behavior."""

    def test_creates_missing_upload_directory(
        self, mock_db: MagicMock, mock_settings: Settings, upload_dir: Path
    ) -> None:
        assert not upload_dir.exists()
        service = FileStorageService(mock_db, mock_settings)
        assert upload_dir.is_dir()
        assert service.storage_root == upload_dir.resolve()

    def test_unwritable_root_raises_storage_error(
        self, mock_db: MagicMock, mock_settings: Settings
    ) -> None:
        with patch("pathlib.Path.mkdir", side_effect=PermissionError("read-only")):
            with pytest.raises(StorageError) as exc_info:
                FileStorageService(mock_db, mock_settings)
        assert exc_info.value.message == "Could not create the directory for file uploads"


class TestStoreFile:
    """store_file()"""

    async def test_stores_bytes_and_metadata(
        self,
        storage_service: FileStorageService,
        mock_db: MagicMock,
        test_user: User,
        upload_dir: Path,
    ) -> None:
        data = b"nineteen byte video"
        inserted_id = ObjectId()
        files = mock_db.get_files_collection()
        files.insert_one = AsyncMock(return_value=MagicMock(inserted_id=inserted_id))

        metadata = await storage_service.store_file(
            make_upload_file(data), test_user, FileType.VIDEO
        )

        assert metadata.id == str(inserted_id)
        assert metadata.original_file_name == "test-video.mp4"
        assert STORED_NAME_PATTERN.match(metadata.stored_file_name)
        assert metadata.stored_file_name.endswith("_test-video.mp4")
        assert metadata.file_size == len(data)
        assert metadata.content_type == "video/mp4"
        assert metadata.uploaded_by == test_user.id
        assert metadata.processed is False

        stored_path = Path(metadata.local_file_path)
        assert stored_path.parent == upload_dir.resolve()
        assert stored_path.read_bytes() == data

        document = files.insert_one.call_args.args[0]
        assert "id" not in document and "_id" not in document
        assert document["file_type"] == "VIDEO"
        assert document["processed"] is False

    async def test_same_name_twice_gets_distinct_stored_names(
        self, storage_service: FileStorageService, test_user: User
    ) -> None:
        first = await storage_service.store_file(
            make_upload_file(b"first"), test_user, FileType.VIDEO
        )
        second = await storage_service.store_file(
            make_upload_file(b"second"), test_user, FileType.VIDEO
        )

        assert first.stored_file_name != second.stored_file_name
        assert Path(first.local_file_path).read_bytes() == b"first"
        assert Path(second.local_file_path).read_bytes() == b"second"

    async def test_backslash_path_collapsed_to_base_name(
        self, storage_service: FileStorageService, test_user: User
    ) -> None:
        metadata = await storage_service.store_file(
            make_upload_file(b"pdf", filename="C:\\docs\\report.pdf", content_type="application/pdf"),
            test_user,
            FileType.DOCUMENT,
        )
        assert metadata.original_file_name == "report.pdf"

    @pytest.mark.parametrize("filename", ["../evil.mp4", "..\\evil.mp4", "videos/../../evil.mp4"])
    async def test_traversal_rejected_before_write(
        self,
        storage_service: FileStorageService,
        mock_db: MagicMock,
        test_user: User,
        upload_dir: Path,
        filename: str,
    ) -> None:
        with pytest.raises(StorageError, match="invalid path sequence"):
            await storage_service.store_file(
                make_upload_file(b"data", filename=filename), test_user, FileType.VIDEO
            )

        assert list(upload_dir.iterdir()) == []
        mock_db.get_files_collection().insert_one.assert_not_called()

    async def test_write_failure_removes_partial_file_and_skips_metadata(
        self,
        storage_service: FileStorageService,
        mock_db: MagicMock,
        test_user: User,
        upload_dir: Path,
    ) -> None:
        upload = make_upload_file(b"partial")
        upload.read = AsyncMock(side_effect=[b"partial", OSError("disk full")])

        with pytest.raises(StorageError) as exc_info:
            await storage_service.store_file(upload, test_user, FileType.VIDEO)

        assert "Could not store file test-video.mp4" in exc_info.value.message
        assert exc_info.value.client_message.startswith("File storage error: ")
        assert list(upload_dir.iterdir()) == []
        mock_db.get_files_collection().insert_one.assert_not_called()

    async def test_metadata_insert_failure_removes_stored_file(
        self,
        storage_service: FileStorageService,
        mock_db: MagicMock,
        test_user: User,
        upload_dir: Path,
    ) -> None:
        mock_db.get_files_collection().insert_one = AsyncMock(side_effect=PyMongoError("down"))

        with pytest.raises(StorageError, match="Could not store file test-video.mp4"):
            await storage_service.store_file(
                make_upload_file(b"orphan bytes"), test_user, FileType.VIDEO
            )

        assert list(upload_dir.iterdir()) == []

    async def test_long_name_fits_filesystem_limit(
        self, storage_service: FileStorageService, test_user: User
    ) -> None:
        filename = "a" * 251 + ".mp4"

        metadata = await storage_service.store_file(
            make_upload_file(b"long name", filename=filename), test_user, FileType.VIDEO
        )

        assert metadata.original_file_name == filename
        assert len(metadata.stored_file_name.encode("utf-8")) == 255
        assert metadata.stored_file_name.endswith(".mp4")
        assert Path(metadata.local_file_path).read_bytes() == b"long name"

    async def test_cleanup_error_still_raises_storage_error(
        self, storage_service: FileStorageService, test_user: User
    ) -> None:
        upload = make_upload_file(b"data")
        upload.read = AsyncMock(side_effect=OSError("File name too long"))

        with patch("pathlib.Path.unlink", side_effect=OSError("File name too long")):
            with pytest.raises(StorageError, match="Could not store file"):
                await storage_service.store_file(upload, test_user, FileType.VIDEO)


class TestLoadAndLookup:
    """load_file_as_resource(), get_file_path(), get_file_metadata()"""

    async def test_load_returns_path_for_local_file(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        mock_db.get_files_collection().find_one = AsyncMock(return_value=stored_video)

        path = await storage_service.load_file_as_resource(str(stored_video["_id"]))

        assert path == Path(stored_video["local_file_path"])

    async def test_load_missing_record_raises_not_found(
        self, storage_service: FileStorageService
    ) -> None:
        file_id = str(ObjectId())
        with pytest.raises(NotFoundError) as exc_info:
            await storage_service.load_file_as_resource(file_id)
        assert exc_info.value.message == f"File not found with id : '{file_id}'"

    async def test_invalid_object_id_is_not_found(
        self, storage_service: FileStorageService, mock_db: MagicMock
    ) -> None:
        with pytest.raises(NotFoundError):
            await storage_service.get_file_metadata("not-an-object-id")
        mock_db.get_files_collection().find_one.assert_not_called()

    async def test_load_with_file_missing_on_disk_raises_storage_error(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        Path(stored_video["local_file_path"]).unlink()
        mock_db.get_files_collection().find_one = AsyncMock(return_value=stored_video)

        with pytest.raises(StorageError, match="File not found or not readable: lecture.mp4"):
            await storage_service.load_file_as_resource(str(stored_video["_id"]))

    async def test_load_serves_local_copy_of_cloud_record(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        cloud_record = {**stored_video, "cloud_url": "https://cdn.example.com/lecture.mp4"}
        mock_db.get_files_collection().find_one = AsyncMock(return_value=cloud_record)

        path = await storage_service.load_file_as_resource(str(stored_video["_id"]))

        assert path == Path(stored_video["local_file_path"])

    async def test_load_cloud_only_file_not_implemented(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        cloud_record = {
            **stored_video,
            "local_file_path": None,
            "cloud_url": "https://cdn.example.com/lecture.mp4",
        }
        mock_db.get_files_collection().find_one = AsyncMock(return_value=cloud_record)

        with pytest.raises(StorageError, match="Cloud file download not yet implemented"):
            await storage_service.load_file_as_resource(str(stored_video["_id"]))

    async def test_get_file_path_prefers_cloud_url(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        files = mock_db.get_files_collection()

        files.find_one = AsyncMock(return_value=stored_video)
        assert await storage_service.get_file_path(str(stored_video["_id"])) == stored_video[
            "local_file_path"
        ]

        files.find_one = AsyncMock(
            return_value={**stored_video, "cloud_url": "https://cdn.example.com/lecture.mp4"}
        )
        assert (
            await storage_service.get_file_path(str(stored_video["_id"]))
            == "https://cdn.example.com/lecture.mp4"
        )


class TestDeleteFile:
    """delete_file()"""

    async def test_removes_file_then_metadata(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        files = mock_db.get_files_collection()
        files.find_one = AsyncMock(return_value=stored_video)

        await storage_service.delete_file(str(stored_video["_id"]))

        assert not Path(stored_video["local_file_path"]).exists()
        files.delete_one.assert_awaited_once_with({"_id": stored_video["_id"]})

    async def test_already_missing_file_still_deletes_metadata(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        Path(stored_video["local_file_path"]).unlink()
        files = mock_db.get_files_collection()
        files.find_one = AsyncMock(return_value=stored_video)

        await storage_service.delete_file(str(stored_video["_id"]))

        files.delete_one.assert_awaited_once()

    async def test_os_error_keeps_metadata(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        files = mock_db.get_files_collection()
        files.find_one = AsyncMock(return_value=stored_video)

        with patch(
            "aiofiles.os.remove",
            AsyncMock(side_effect=PermissionError("busy")),
        ):
            with pytest.raises(StorageError, match="Could not delete file with id"):
                await storage_service.delete_file(str(stored_video["_id"]))

        files.delete_one.assert_not_called()

    async def test_cloud_record_removes_local_copy_and_metadata(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        files = mock_db.get_files_collection()
        files.find_one = AsyncMock(
            return_value={
                **stored_video,
                "cloud_url": "https://cdn.example.com/lecture.mp4",
                "cloud_public_id": "lecture-123",
            }
        )

        await storage_service.delete_file(str(stored_video["_id"]))

        assert not Path(stored_video["local_file_path"]).exists()
        files.delete_one.assert_awaited_once_with({"_id": stored_video["_id"]})

    async def test_cloud_only_record_deletes_metadata(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        files = mock_db.get_files_collection()
        files.find_one = AsyncMock(
            return_value={
                **stored_video,
                "local_file_path": None,
                "cloud_url": "https://cdn.example.com/lecture.mp4",
            }
        )

        with patch("aiofiles.os.remove", AsyncMock()) as remove:
            await storage_service.delete_file(str(stored_video["_id"]))

        remove.assert_not_called()
        files.delete_one.assert_awaited_once()

    async def test_missing_record_raises_not_found(
        self, storage_service: FileStorageService, mock_db: MagicMock
    ) -> None:
        with pytest.raises(NotFoundError):
            await storage_service.delete_file(str(ObjectId()))
        mock_db.get_files_collection().delete_one.assert_not_called()


class TestMarkProcessedAndListing:
    """mark_file_as_processed(), get_user_files()"""

    async def test_mark_as_processed_sets_flag(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        files = mock_db.get_files_collection()
        files.find_one = AsyncMock(return_value=stored_video)

        metadata = await storage_service.mark_file_as_processed(str(stored_video["_id"]))

        assert metadata.processed is True
        update = files.update_one.call_args.args[1]["$set"]
        assert update["processed"] is True
        assert update["updated_at"] >= stored_video["updated_at"]

    async def test_mark_as_processed_is_idempotent(
        self, storage_service: FileStorageService, mock_db: MagicMock, stored_video: dict[str, Any]
    ) -> None:
        files = mock_db.get_files_collection()
        files.find_one = AsyncMock(return_value={**stored_video, "processed": True})

        metadata = await storage_service.mark_file_as_processed(str(stored_video["_id"]))

        assert metadata.processed is True

    async def test_mark_missing_file_raises_not_found(
        self, storage_service: FileStorageService
    ) -> None:
        with pytest.raises(NotFoundError):
            await storage_service.mark_file_as_processed(str(ObjectId()))

    async def test_get_user_files_scoped_and_sorted(
        self,
        storage_service: FileStorageService,
        mock_db: MagicMock,
        stored_video: dict[str, Any],
        test_user: User,
        cursor_factory,
    ) -> None:
        files = mock_db.get_files_collection()
        cursor = cursor_factory([stored_video])
        files.find = MagicMock(return_value=cursor)
        files.count_documents = AsyncMock(return_value=7)

        items, total = await storage_service.get_user_files(test_user.id, skip=5, limit=5)

        assert total == 7
        assert [item.original_file_name for item in items] == ["lecture.mp4"]
        files.find.assert_called_once_with({"uploaded_by": test_user.id})
        cursor.sort.assert_called_once_with("created_at", -1)
        cursor.skip.assert_called_once_with(5)
        cursor.limit.assert_called_once_with(5)
