import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from uploads.errors import ConstraintError, InternalError, NotFoundError
from uploads.models.file_record import FileRecord

_COLUMNS = "id, original_name, stored_name, upload_time, file_size, upload_addr"


class FileRepository:
    """Metadata store: one row per stored object in the ``files`` table.

    A single connection is shared by every request thread; ``_lock``
    serializes access to it so each statement runs on its own.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        try:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        except sqlite3.Error as e:
            raise InternalError(f"Failed to open database: {e}")
        self._lock = threading.Lock()

    def create_table(self):
        with self._lock:
            try:
                self._conn.execute('''
                    CREATE TABLE IF NOT EXISTS files (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        original_name TEXT NOT NULL,
                        stored_name TEXT NOT NULL UNIQUE,
                        upload_time DATETIME NOT NULL,
                        file_size INTEGER NOT NULL,
                        upload_addr TEXT NOT NULL
                    )
                ''')
                self._conn.commit()
            except sqlite3.Error as e:
                raise InternalError(f"Failed to create table: {e}")

    def insert_file(self, original_name: str, stored_name: str, file_size: int, upload_addr: str) -> int:
        """Insert a record and return its id.

        Raises ConstraintError when ``stored_name`` already belongs to a record.
        """
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            try:
                cur = self._conn.execute('''
                    INSERT INTO files (original_name, stored_name, upload_time, file_size, upload_addr)
                    VALUES (?, ?, ?, ?, ?)
                ''', (original_name, stored_name, now, file_size, upload_addr))
                self._conn.commit()
                return cur.lastrowid
            except sqlite3.IntegrityError as e:
                self._conn.rollback()
                raise ConstraintError(f"Stored name already exists: {stored_name} ({e})")
            except sqlite3.Error as e:
                self._conn.rollback()
                raise InternalError(f"Failed to insert file record: {e}")

    def get_file_by_stored_name(self, stored_name: str) -> FileRecord:
        with self._lock:
            try:
                row = self._conn.execute(f'''
                    SELECT {_COLUMNS}
                    FROM files
                    WHERE stored_name = ?
                ''', (stored_name,)).fetchone()
            except sqlite3.Error as e:
                raise InternalError(f"Failed to get file: {e}")

        if row is None:
            raise NotFoundError(f"File not found: {stored_name}")
        return self._to_record(row)

    def get_all_files(self) -> List[FileRecord]:
        """Return every record, newest upload first. Empty list when there are none."""
        with self._lock:
            try:
                rows = self._conn.execute(f'''
                    SELECT {_COLUMNS}
                    FROM files
                    ORDER BY upload_time DESC, id DESC
                ''').fetchall()
            except sqlite3.Error as e:
                raise InternalError(f"Failed to query files: {e}")

        return [self._to_record(row) for row in rows]

    def delete_file(self, stored_name: str):
        with self._lock:
            try:
                cur = self._conn.execute('''
                    DELETE FROM files WHERE stored_name = ?
                ''', (stored_name,))
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                raise InternalError(f"Failed to delete file from database: {e}")

        if cur.rowcount == 0:
            raise NotFoundError(f"File not found in database: {stored_name}")

    def close(self):
        with self._lock:
            self._conn.close()

    @staticmethod
    def _to_record(row) -> FileRecord:
        return FileRecord(
            id=row[0],
            original_name=row[1],
            stored_name=row[2],
            upload_time=datetime.fromisoformat(row[3]),
            file_size=row[4],
            upload_addr=row[5],
        )
