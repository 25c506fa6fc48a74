import asyncio
import time
from typing import AsyncIterator, Callable, List, Optional

from uploads import config
from uploads.errors import ConstraintError, InternalError, NotFoundError, UploadsError
from uploads.logger_config import setup_logger, structured_log
from uploads.models.file_record import FileRecord
from uploads.repository.file_repository import FileRepository
from uploads.services.naming import candidate_names, validate_stored_name
from uploads.services.storage_manager import StorageManager

logger = setup_logger()


class StorageCoordinator:
    """Keeps the byte store and the metadata store in step.

    Upload commits in three steps: stage the bytes under a private temp
    name, claim a stored name by inserting its record, then rename the
    staged file onto the claimed name. A name conflict only moves on to the
    next candidate name; it never deletes bytes another upload published.

    Delete removes the bytes first. If the record cannot be removed
    afterwards the delete still succeeds and the record is left as an
    orphan for ``sweep_orphans`` to collect.
    """

    def __init__(
        self,
        storage: StorageManager,
        repository: FileRepository,
        clock: Optional[Callable[[], float]] = None,
        max_name_attempts: int = config.MAX_NAME_ATTEMPTS,
    ):
        self.storage = storage
        self.repository = repository
        self.clock = clock or time.time
        self.max_name_attempts = max_name_attempts

    async def upload(self, original_name: str, data: bytes, upload_addr: str) -> str:
        """Store ``data`` and record it. Returns the stored name."""
        temp_path = await self.storage.stage_blob(data)

        try:
            stored_name = await self._claim_name(original_name, len(data), upload_addr)
        except UploadsError:
            await self.storage.discard_staged(temp_path)
            raise

        try:
            await self.storage.publish_staged(temp_path, stored_name)
        except InternalError:
            logger.error(f"Publishing {stored_name} failed, removing its record", exc_info=True)
            await self.storage.discard_staged(temp_path)
            try:
                await asyncio.to_thread(self.repository.delete_file, stored_name)
            except UploadsError as e:
                logger.warning(structured_log(
                    f"Could not remove record for unpublished file {stored_name}: {e.message}",
                    event="orphan_record",
                    stored_name=stored_name,
                ))
            raise

        logger.info(structured_log(
            f"Stored {original_name!r} as {stored_name} ({len(data)} bytes)",
            event="file_uploaded",
            stored_name=stored_name,
            file_size=len(data),
            upload_addr=upload_addr,
        ))
        return stored_name

    async def _claim_name(self, original_name: str, file_size: int, upload_addr: str) -> str:
        timestamp = self.clock()
        for stored_name in candidate_names(original_name, timestamp, self.max_name_attempts):
            try:
                await asyncio.to_thread(
                    self.repository.insert_file, original_name, stored_name, file_size, upload_addr
                )
                return stored_name
            except ConstraintError:
                logger.info(structured_log(
                    f"Stored name {stored_name} already taken, trying next candidate",
                    event="name_collision",
                    stored_name=stored_name,
                ))
            except InternalError as e:
                raise InternalError(f"Failed to save file record to database: {e.message}")

        raise InternalError(
            f"Failed to save file record to database: no free name after {self.max_name_attempts} attempts"
        )

    async def delete(self, stored_name: str):
        validate_stored_name(stored_name)

        if not await self.storage.exists(stored_name):
            raise NotFoundError("File not found")

        await self.storage.delete_blob(stored_name)

        try:
            await asyncio.to_thread(self.repository.delete_file, stored_name)
        except UploadsError as e:
            logger.warning(structured_log(
                f"Warning: Failed to delete file record from database: {e.message}",
                event="orphan_record",
                stored_name=stored_name,
            ))

        logger.info(f"Successfully deleted file: {stored_name}")

    async def file_size(self, stored_name: str) -> int:
        """Size of a readable object. The metadata store is not consulted."""
        validate_stored_name(stored_name)
        return await self.storage.stat(stored_name)

    def stream(self, stored_name: str) -> AsyncIterator[bytes]:
        """Lazily read an object already checked with ``file_size``."""
        return self.storage.open_for_read(stored_name)

    async def get_record(self, stored_name: str) -> FileRecord:
        return await asyncio.to_thread(self.repository.get_file_by_stored_name, stored_name)

    async def list_files(self) -> List[FileRecord]:
        return await asyncio.to_thread(self.repository.get_all_files)

    async def sweep_orphans(self) -> List[str]:
        """Remove records whose bytes are missing. Returns the removed names."""
        records = await self.list_files()
        if records and not await self.storage.has_objects():
            logger.error(structured_log(
                f"Refusing orphan sweep: {self.storage.data_dir} holds no files but {len(records)} records exist",
                event="orphan_sweep_refused",
                data_dir=str(self.storage.data_dir),
                records=len(records),
            ))
            raise InternalError(f"Data directory {self.storage.data_dir} is empty or missing")

        removed = []
        for record in records:
            if await self.storage.exists(record.stored_name):
                continue
            try:
                await asyncio.to_thread(self.repository.delete_file, record.stored_name)
            except NotFoundError:
                continue
            removed.append(record.stored_name)

        logger.info(structured_log(
            f"Orphan sweep removed {len(removed)} records",
            event="orphan_sweep",
            removed=removed,
        ))
        return removed
