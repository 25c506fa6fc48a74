import uuid
from pathlib import Path
from typing import AsyncIterator

import aiofiles
import aiofiles.os

from uploads.errors import InternalError, NotFoundError
from uploads.logger_config import setup_logger

logger = setup_logger()

CHUNK_SIZE = 8192


class StorageManager:
    """Byte store: flat files under ``data_dir`` named by stored name.

    New content is first written to ``temp_dir`` and then renamed into
    ``data_dir``. Both directories must be on the same filesystem so the
    rename is atomic.
    """

    def __init__(self, data_dir: Path, temp_dir: Path):
        self.data_dir = Path(data_dir)
        self.temp_dir = Path(temp_dir)

    async def initialize(self):
        """Create the storage directories and clear leftover staged files."""
        logger.info("Initializing storage manager...")

        self.data_dir.mkdir(exist_ok=True, parents=True)
        self.temp_dir.mkdir(exist_ok=True, parents=True)
        logger.debug(f"Storage directories created/verified: {self.data_dir}, {self.temp_dir}")

        files_removed = 0
        for file in self.temp_dir.glob("*"):
            if file.is_file():
                await aiofiles.os.unlink(file)
                files_removed += 1
        logger.info(f"Cleaned temporary directory, removed {files_removed} files")

    def get_blob_path(self, stored_name: str) -> Path:
        """Get the path where the bytes for a stored name live."""
        return self.data_dir / stored_name

    async def write_blob(self, stored_name: str, data: bytes):
        """Create or overwrite the object for ``stored_name``."""
        try:
            async with aiofiles.open(self.get_blob_path(stored_name), 'wb') as f:
                await f.write(data)
        except OSError as e:
            raise InternalError(f"Failed to save file: {e}")

    async def stage_blob(self, data: bytes) -> Path:
        """Write ``data`` to a fresh file in the temp directory and return its path."""
        temp_path = self.temp_dir / f"{uuid.uuid4().hex}_temp.blob"
        try:
            async with aiofiles.open(temp_path, 'wb') as f:
                await f.write(data)
        except OSError as e:
            await self.discard_staged(temp_path)
            raise InternalError(f"Failed to create file on server: {e}")
        logger.debug(f"Staged {len(data)} bytes at {temp_path}")
        return temp_path

    async def publish_staged(self, temp_path: Path, stored_name: str):
        """Atomically move a staged file to its final stored name."""
        try:
            await aiofiles.os.replace(str(temp_path), str(self.get_blob_path(stored_name)))
        except OSError as e:
            raise InternalError(f"Failed to publish file {stored_name}: {e}")

    async def discard_staged(self, temp_path: Path):
        try:
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.unlink(temp_path)
        except OSError as e:
            logger.warning(f"Could not remove staged file {temp_path}: {e}")

    async def exists(self, stored_name: str) -> bool:
        return await aiofiles.os.path.isfile(self.get_blob_path(stored_name))

    async def has_objects(self) -> bool:
        """True if ``data_dir`` exists and holds at least one regular file."""
        if not await aiofiles.os.path.isdir(self.data_dir):
            return False
        return any(entry.is_file() for entry in self.data_dir.iterdir())

    async def stat(self, stored_name: str) -> int:
        """Return the size in bytes of a stored object."""
        path = self.get_blob_path(stored_name)
        if not await aiofiles.os.path.isfile(path):
            raise NotFoundError("File not found")
        try:
            stat = await aiofiles.os.stat(path)
        except OSError as e:
            raise InternalError(f"Failed to get file info: {e}")
        return stat.st_size

    async def open_for_read(self, stored_name: str) -> AsyncIterator[bytes]:
        """Yield the object's content in chunks."""
        async with aiofiles.open(self.get_blob_path(stored_name), 'rb') as file:
            while chunk := await file.read(CHUNK_SIZE):
                yield chunk

    async def delete_blob(self, stored_name: str):
        """Delete a stored object. NotFoundError if it is absent."""
        path = self.get_blob_path(stored_name)
        if not await aiofiles.os.path.isfile(path):
            raise NotFoundError("File not found")
        try:
            await aiofiles.os.unlink(path)
        except FileNotFoundError:
            raise NotFoundError("File not found")
        except OSError as e:
            raise InternalError(f"Failed to delete file: {e}")
