"""
File staging for document uploads.

Uploaded files are written under UPLOAD_ROOT before ingestion. A staged
file belongs to the upload until ingestion succeeds; after that it
belongs to the document and is removed when the document is deleted.
"""
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from django.conf import settings

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 8192


class StorageError(Exception):
    """Base exception for file staging operations."""
    pass


@dataclass
class StagedUpload:
    """A file written to the upload root, waiting to be ingested."""
    storage_path: str  # relative to the upload root
    full_path: Path
    size_bytes: int

    def read_bytes(self) -> bytes:
        return self.full_path.read_bytes()


class FileStorage:
    """
    Simple file storage for uploaded documents.

    Files are stored at: {UPLOAD_ROOT}/{uuid}{extension}
    """

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root or settings.UPLOAD_ROOT)
        self._ensure_root_exists()

    def _ensure_root_exists(self) -> None:
        """Create the upload root directory if it doesn't exist."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Failed to create upload root {self.root}: {e}")
            raise StorageError(f"Cannot create upload directory: {e}")

    def save(self, extension: str, file: BinaryIO) -> str:
        """
        Save a file-like object under a fresh name.

        Args:
            extension: File extension (e.g., '.pdf')
            file: File-like object with read()

        Returns:
            Relative storage path (e.g., 'abc123.pdf')

        Raises:
            StorageError: If file cannot be saved
        """
        if extension and not extension.startswith('.'):
            extension = f'.{extension}'

        filename = f"{uuid.uuid4()}{extension.lower()}"
        filepath = self.root / filename

        try:
            with open(filepath, 'wb') as dest:
                while True:
                    chunk = file.read(COPY_BUFFER_SIZE)
                    if not chunk:
                        break
                    dest.write(chunk)

            logger.info(f"Saved file: {filename} ({filepath.stat().st_size} bytes)")
            return filename

        except OSError as e:
            logger.error(f"Failed to save file {filename}: {e}")
            raise StorageError(f"Failed to save file: {e}")

    @contextmanager
    def staged(self, extension: str, file: BinaryIO) -> Iterator[StagedUpload]:
        """
        Stage an upload for the duration of a block.

        The staged file is removed if the block raises; otherwise it is
        kept and ownership passes to whatever the block recorded it on.
        """
        storage_path = self.save(extension, file)
        full_path = self.get_path(storage_path)
        staged = StagedUpload(
            storage_path=storage_path,
            full_path=full_path,
            size_bytes=full_path.stat().st_size,
        )
        try:
            yield staged
        except BaseException:
            self.release(storage_path)
            raise

    def get_path(self, storage_path: str) -> Path:
        """Get the full filesystem path for a stored file."""
        return self.root / storage_path

    def exists(self, storage_path: str) -> bool:
        """Check if a file exists in storage."""
        return bool(storage_path) and (self.root / storage_path).exists()

    def delete(self, storage_path: str) -> bool:
        """
        Delete a file from storage.

        Returns:
            True if deleted, False if file didn't exist
        """
        if not storage_path:
            return False
        filepath = self.root / storage_path
        try:
            if filepath.exists():
                filepath.unlink()
                logger.info(f"Deleted file: {storage_path}")
                return True
            return False
        except OSError as e:
            logger.error(f"Failed to delete file {storage_path}: {e}")
            raise StorageError(f"Failed to delete file: {e}")

    def release(self, storage_path: str) -> None:
        """Delete a staged file, logging instead of raising on failure."""
        try:
            self.delete(storage_path)
        except StorageError as e:
            logger.warning(f"Could not release staged file {storage_path}: {e}")


def get_storage() -> FileStorage:
    """Build a FileStorage rooted at the configured UPLOAD_ROOT."""
    return FileStorage()
