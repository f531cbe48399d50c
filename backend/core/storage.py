"""
File record store + persistence backends.

The store owns every FileRecord for the process lifetime. The full set is
serialized as a flat {id: record} mapping on every mutation and loaded once
at construction; missing or corrupt persisted state yields an empty store.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ingest.parse import detect_kind, parse_table
from ingest.summary import build_preview

from .config import Settings
from .errors import FileTooLarge, NotFound, StorageError
from .models import FileKind, FileListItem, FileRecord, Table
from .utils import generate_file_id, parse_iso_timestamp, utc_now_iso

logger = logging.getLogger("uvicorn.error")


# ---------------------------------------------------------------------------
# Persistence backends
# ---------------------------------------------------------------------------

class MemoryBackend:
    """Keeps the last saved payload in memory. Used by tests and when no path is set."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None) -> None:
        self._payload = copy.deepcopy(payload)

    def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._payload)

    def save(self, payload: Dict[str, Any]) -> None:
        self._payload = copy.deepcopy(payload)


class JsonFileBackend:
    """One JSON document on disk, replaced atomically on every save."""

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return None
        with open(self.path, "r", encoding="utf-8") as fh:
            return json.load(fh)

    def save(self, payload: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".files-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


Backend = Union[MemoryBackend, JsonFileBackend]


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class FileRecordStore:
    """
    Registry of uploaded files.

    Mutations build the next mapping, persist it, then swap it in while
    holding the lock, so readers never see an unpersisted insert/delete.
    Readers get deep copies; stored records are never mutated.
    """

    def __init__(
        self,
        backend: Optional[Backend] = None,
        settings: Optional[Settings] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.backend = backend if backend is not None else MemoryBackend()
        self.settings = settings or Settings()
        self._lock = threading.Lock()
        self._records: Dict[str, FileRecord] = {}   # insertion order
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.parse_workers, thread_name_prefix="parse"
        )
        self._slots: Optional[asyncio.Semaphore] = None
        self._slots_loop: Optional[asyncio.AbstractEventLoop] = None
        self._load()

    # -- startup -----------------------------------------------------------

    def _load(self) -> None:
        try:
            payload = self.backend.load()
        except (OSError, ValueError) as e:
            logger.warning("Persisted file store unreadable, starting empty: %s", e)
            return
        if not payload:
            return
        if not isinstance(payload, dict):
            logger.warning("Persisted file store has unexpected shape, starting empty.")
            return

        for file_id, raw in payload.items():
            try:
                record = FileRecord.model_validate(raw)
            except ValidationError as e:
                logger.warning("Dropping unreadable persisted record %s: %s", file_id, e)
                continue
            self._records[record.id] = record
        logger.info("Loaded %d persisted file record(s).", len(self._records))

    # -- persistence -------------------------------------------------------

    def _persist(self, records: Dict[str, FileRecord]) -> None:
        payload = {fid: rec.model_dump(mode="json") for fid, rec in records.items()}
        try:
            self.backend.save(payload)
        except Exception as e:
            logger.exception("Failed to persist file store")
            raise StorageError(f"Failed to persist file store: {e}") from e

    # -- ingestion ---------------------------------------------------------

    def check_size(self, content: Union[bytes, str], size_bytes: Optional[int] = None) -> int:
        """Return the effective size, raising FileTooLarge above the ceiling."""
        actual = len(content)
        size = max(actual, size_bytes or 0)
        limit = self.settings.max_upload_bytes
        if limit and size > limit:
            raise FileTooLarge(
                f"File is {size} bytes; the upload limit is {limit} bytes."
            )
        return size_bytes if size_bytes is not None else actual

    def _commit(self, name: str, size_bytes: int, kind: FileKind, table: Table) -> FileRecord:
        preview = build_preview(table)
        with self._lock:
            record = FileRecord(
                id=generate_file_id(self._records),
                name=name,
                size_bytes=size_bytes,
                uploaded_at=utc_now_iso(),
                kind=kind,
                table=table,
                preview=preview,
            )
            nxt = dict(self._records)
            nxt[record.id] = record
            self._persist(nxt)
            self._records = nxt
        logger.info(
            "Stored file %s (%s): %d rows, %d columns",
            record.id, record.name, record.row_count, len(record.columns),
        )
        return record.model_copy(deep=True)

    def ingest(
        self,
        content: Union[bytes, str],
        filename: str,
        size_bytes: Optional[int] = None,
    ) -> FileRecord:
        """Synchronous upload: size check, kind check, parse, insert + persist."""
        size = self.check_size(content, size_bytes)
        kind = detect_kind(filename)
        table = parse_table(content, kind)
        return self._commit(filename, size, kind, table)

    def _upload_slots(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._slots is None or self._slots_loop is not loop:
            self._slots = asyncio.Semaphore(self.settings.max_concurrent_uploads)
            self._slots_loop = loop
        return self._slots

    async def upload(
        self,
        content: Union[bytes, str],
        filename: str,
        size_bytes: Optional[int] = None,
    ) -> FileRecord:
        """
        Asynchronous upload; the parse runs on the worker pool.

        At most `max_concurrent_uploads` parses run at once, the rest wait.
        A started parse cannot be cancelled and has no timeout. Persisting the
        new record also runs on the pool so the event loop never waits on disk.
        """
        size = self.check_size(content, size_bytes)
        kind = detect_kind(filename)
        async with self._upload_slots():
            loop = asyncio.get_running_loop()
            table = await loop.run_in_executor(self._executor, parse_table, content, kind)
        return await loop.run_in_executor(
            self._executor, self._commit, filename, size, kind, table
        )

    # -- queries -----------------------------------------------------------

    def _newest_first(self) -> List[FileRecord]:
        with self._lock:
            ordered = list(enumerate(self._records.values()))
        ordered.sort(key=lambda item: (parse_iso_timestamp(item[1].uploaded_at), item[0]), reverse=True)
        return [rec for _, rec in ordered]

    def list(self) -> List[FileRecord]:
        """Newest first; ties go to the more recently inserted record."""
        return [rec.model_copy(deep=True) for rec in self._newest_first()]

    def list_items(self) -> List[FileListItem]:
        """Same order as `list`, metadata only; tables are never copied."""
        return [FileListItem.from_record(rec) for rec in self._newest_first()]

    def get(self, file_id: str) -> Optional[FileRecord]:
        with self._lock:
            record = self._records.get(file_id)
        return record.model_copy(deep=True) if record is not None else None

    def require(self, file_id: str) -> FileRecord:
        record = self.get(file_id)
        if record is None:
            raise NotFound(file_id)
        return record

    def search(self, file_id: str, query: str) -> List[Dict[str, Any]]:
        """Rows where any value contains `query`, case-insensitively."""
        with self._lock:
            record = self._records.get(file_id)
        if record is None:
            return []
        needle = (query or "").lower()
        return [
            dict(row)
            for row in record.table.rows
            if any(needle in str(v).lower() for v in row.values())
        ]

    def __len__(self) -> int:
        return len(self._records)

    # -- mutation ----------------------------------------------------------

    def delete(self, file_id: str) -> bool:
        """True iff a record existed and was removed."""
        with self._lock:
            if file_id not in self._records:
                return False
            nxt = {fid: rec for fid, rec in self._records.items() if fid != file_id}
            self._persist(nxt)
            self._records = nxt
        logger.info("Deleted file %s", file_id)
        return True

    async def remove(self, file_id: str) -> bool:
        """`delete` on the worker pool, for callers running on an event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.delete, file_id)

    def close(self) -> None:
        self._executor.shutdown(wait=False)


def create_store(settings: Optional[Settings] = None) -> FileRecordStore:
    """File-backed store when FILE_STORE_PATH is set, in-memory otherwise."""
    settings = settings or Settings.from_env()
    if settings.store_path:
        backend: Backend = JsonFileBackend(settings.store_path)
    else:
        backend = MemoryBackend()
    return FileRecordStore(backend, settings)
