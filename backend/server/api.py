"""
File API routes, mounted as a sub-router on the main FastAPI app.

The store lives on ``app.state.store``; routes translate ingestion and
lookup errors into HTTP statuses.
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile

from core.errors import IngestError, NotFound, StorageError
from core.models import FileListItem, FileRecord
from core.storage import FileRecordStore
from ingest.context import build_llm_context, render_llm_context
from ingest.summary import file_stats, summarize

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["files"])

ROWS_PAGE_MAX = 100


def get_store(request: Request) -> FileRecordStore:
    return request.app.state.store


def _require(store: FileRecordStore, file_id: str) -> FileRecord:
    try:
        return store.require(file_id)
    except NotFound as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)


def _log_response(ctx: str, payload) -> None:
    """Pretty-print JSON-able payloads; fall back to str()."""
    try:
        logger.info("%s response: %s", ctx, json.dumps(payload, indent=2, default=str))
    except Exception:
        logger.info("%s response (non-serializable): %s", ctx, str(payload))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/files")
async def upload_file(request: Request, file: UploadFile = File(...)):
    """Parse and store an uploaded CSV/XLSX file; returns the full record."""
    store = get_store(request)
    filename = file.filename or ""

    try:
        # reject on the declared part size before buffering the body
        if file.size is not None:
            store.check_size(b"", file.size)
        content = await file.read()
        record = await store.upload(content, filename, len(content))
    except IngestError as e:
        logger.warning("Upload of '%s' rejected: %s", filename, e.detail)
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.exception("Upload failed")
        raise HTTPException(status_code=500, detail=f"Upload failed: {e}")

    _log_response("UPLOAD", FileListItem.from_record(record).model_dump())
    return record.model_dump()


@router.get("/files")
async def list_files(request: Request):
    """List stored files, newest first (metadata only, no rows)."""
    store = get_store(request)
    files = [item.model_dump() for item in store.list_items()]
    resp = {"files": files}
    _log_response("FILES", resp)
    return resp


@router.get("/files/{file_id}")
async def get_file(request: Request, file_id: str):
    record = _require(get_store(request), file_id)
    return record.model_dump()


@router.delete("/files/{file_id}")
async def delete_file(request: Request, file_id: str):
    store = get_store(request)
    try:
        deleted = await store.remove(file_id)
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail=f"File '{file_id}' not found.")
    return {"ok": True, "id": file_id}


@router.get("/files/{file_id}/search")
async def search_file(request: Request, file_id: str, q: str = Query("", alias="q")):
    """Case-insensitive substring search; unknown ids yield no rows."""
    rows = get_store(request).search(file_id, q)
    return {"rows": rows, "count": len(rows)}


@router.get("/files/{file_id}/summary")
async def file_summary(request: Request, file_id: str):
    record = _require(get_store(request), file_id)
    return summarize(record.table).model_dump()


@router.get("/files/{file_id}/stats")
async def get_file_stats(request: Request, file_id: str):
    record = _require(get_store(request), file_id)
    return file_stats(record).model_dump()


@router.get("/files/{file_id}/context")
async def llm_context(request: Request, file_id: str):
    """Everything the chat layer may read about a file, plus the prompt block."""
    record = _require(get_store(request), file_id)
    context = build_llm_context(record)
    return {"context": context, "prompt": render_llm_context(context)}


@router.get("/files/{file_id}/rows")
async def file_rows(request: Request, file_id: str, offset: int = 0, limit: int = 50):
    """Paged rows for the visualization layer."""
    record = _require(get_store(request), file_id)

    offset = max(offset, 0)
    limit = max(min(limit, ROWS_PAGE_MAX), 1)
    total_rows = record.row_count
    end = min(offset + limit, total_rows)
    rows = record.table.rows[offset:end]

    has_more = end < total_rows
    return {
        "id": record.id,
        "columns": list(record.columns),
        "rows": rows,
        "total_rows": total_rows,
        "offset": offset,
        "limit": limit,
        "returned_rows": len(rows),
        "has_more": has_more,
        "next_offset": end if has_more else None,
    }
