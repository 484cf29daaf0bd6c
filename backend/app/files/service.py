"""File storage service for the chatroom.

Handles uploads into date partitions and listing of the storage tree.
Files are stored in: <root>/YYYY/MM/DD/<epoch-ms>-<original name>
"""
import contextlib
import logging
import os
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

import aiofiles
from fastapi.concurrency import run_in_threadpool

from app.config import get_config

from .partition import current_partition
from .paths import resolve_path, to_public_path
from .schemas import FileEntry, StoredFile

logger = logging.getLogger(__name__)

PUBLIC_URL_PREFIX = "/files"
UNNAMED_FILE = "unnamed"


class NoFileSuppliedError(ValueError):
    """Raised when an upload request carries no file."""


class UploadTooLargeError(ValueError):
    """Raised when an upload exceeds the configured size limit."""


class StorageIOError(OSError):
    """Raised when the filesystem fails underneath a store or list."""


class DirectoryNotFoundError(FileNotFoundError):
    """Raised when a listed path does not name an existing directory."""


def build_storage_name(original_name: str, now: datetime) -> str:
    """Derive the on-disk name ``<epoch-ms>-<name>`` for an upload.

    Only the final component of ``original_name`` is kept, so a name such
    as ``../../etc/x`` is written as ``<epoch-ms>-x`` inside the partition.
    """
    name = PurePosixPath(original_name.replace("\\", "/")).name
    if name in ("", ".", ".."):
        name = UNNAMED_FILE
    epoch_ms = int(now.timestamp() * 1000)
    return f"{epoch_ms}-{name}"


class FileStorageService:
    """Service for storing uploads and listing the storage tree."""

    _instance: Optional["FileStorageService"] = None

    def __init__(
        self,
        root_dir: Union[str, Path],
        max_upload_bytes: int = 0,
        chunk_size: int = 1024 * 1024,
    ) -> None:
        """Initialize the file storage service."""
        self._root_dir = Path(os.path.abspath(root_dir))
        self._max_upload_bytes = max_upload_bytes
        self._chunk_size = chunk_size
        self._ensure_root_dir()

    @classmethod
    def get_instance(cls) -> "FileStorageService":
        """Get or create the singleton instance from the app config."""
        if cls._instance is None:
            storage = get_config().storage
            cls._instance = cls(
                root_dir=storage.root_dir,
                max_upload_bytes=storage.max_upload_bytes,
                chunk_size=storage.chunk_size,
            )
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance (for testing)."""
        cls._instance = None

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def _ensure_root_dir(self) -> None:
        """Ensure the storage root exists."""
        self._root_dir.mkdir(parents=True, exist_ok=True)

    async def store(
        self,
        original_name: Optional[str],
        content,
        now: Optional[datetime] = None,
    ) -> StoredFile:
        """Write an upload into today's partition.

        Args:
            original_name: Filename as supplied by the client.
            content: ``bytes`` or an object with an async ``read(size)``
                method (e.g. FastAPI's UploadFile).
            now: Upload instant; defaults to the host's local wall clock.
                Determines both the partition and the name prefix.

        Returns:
            StoredFile describing where the bytes landed.

        Raises:
            NoFileSuppliedError: If no file content was supplied.
            UploadTooLargeError: If the upload exceeds max_upload_bytes.
            StorageIOError: If the filesystem write fails.
        """
        if content is None:
            raise NoFileSuppliedError("No file uploaded")

        now = now or datetime.now()
        original_name = original_name or UNNAMED_FILE
        storage_name = build_storage_name(original_name, now)

        try:
            partition = await run_in_threadpool(current_partition, self._root_dir, now)
        except OSError as e:
            logger.error(f"[Files] Could not create partition under {self._root_dir}: {e}")
            raise StorageIOError(str(e)) from e

        file_path = Path(partition.absolutePath) / storage_name

        try:
            size_bytes = await self._write(file_path, content)
        except UploadTooLargeError:
            await self._discard(file_path)
            raise
        except OSError as e:
            logger.error(f"[Files] Write failed for {file_path}: {e}")
            await self._discard(file_path)
            raise StorageIOError(str(e)) from e

        logger.info(f"[Files] Saved file: {file_path} ({size_bytes} bytes)")

        return StoredFile(
            storageName=storage_name,
            partitionPath=partition.relativePath,
            publicUrl=f"{PUBLIC_URL_PREFIX}/{to_public_path(partition.relativePath, storage_name)}",
            originalName=original_name,
            sizeBytes=size_bytes,
        )

    async def _write(self, file_path: Path, content) -> int:
        """Stream content to file_path, enforcing the size limit."""
        limit = self._max_upload_bytes
        written = 0

        async with aiofiles.open(file_path, "wb") as fh:
            if isinstance(content, (bytes, bytearray, memoryview)):
                if limit and len(content) > limit:
                    raise UploadTooLargeError(
                        f"File size ({len(content)} bytes) exceeds limit ({limit} bytes)"
                    )
                await fh.write(content)
                return len(content)

            while True:
                chunk = await content.read(self._chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                if limit and written > limit:
                    raise UploadTooLargeError(
                        f"File size exceeds limit ({limit} bytes)"
                    )
                await fh.write(chunk)

        return written

    async def _discard(self, file_path: Path) -> None:
        with contextlib.suppress(OSError):
            await run_in_threadpool(file_path.unlink)

    def list_directory(self, requested: str = "") -> List[FileEntry]:
        """List direct children of a directory under the storage root.

        Directories come first, then files; each group is ordered by
        case-folded name with the raw name as tie-breaker.

        Args:
            requested: Path relative to the storage root ("" = root).

        Returns:
            Ordered list of FileEntry.

        Raises:
            PathEscapeError: If requested resolves outside the root.
            DirectoryNotFoundError: If it does not name a directory.
            StorageIOError: If the directory cannot be read.
        """
        target = resolve_path(self._root_dir, requested)
        if not target.is_dir():
            raise DirectoryNotFoundError(f"Directory not found: {requested!r}")

        entries: List[FileEntry] = []
        try:
            with os.scandir(target) as it:
                for child in it:
                    try:
                        stat = child.stat()
                        is_dir = child.is_dir()
                    except FileNotFoundError:
                        # Removed (or a dangling link) between scandir and stat
                        logger.debug(f"[Files] Skipping vanished entry {child.path}")
                        continue
                    entries.append(FileEntry(
                        name=child.name,
                        isDirectory=is_dir,
                        sizeBytes=0 if is_dir else stat.st_size,
                        modifiedAt=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    ))
        except OSError as e:
            logger.error(f"[Files] Failed to list {target}: {e}")
            raise StorageIOError(str(e)) from e

        entries.sort(key=lambda e: (not e.isDirectory, e.name.casefold(), e.name))
        return entries

    def get_file_path(self, requested: str) -> Optional[Path]:
        """Get the on-disk path of a stored file, or None if absent.

        Raises:
            PathEscapeError: If requested resolves outside the root.
        """
        file_path = resolve_path(self._root_dir, requested)
        if not file_path.is_file():
            return None
        return file_path
