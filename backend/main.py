from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from contextlib import asynccontextmanager
from typing import Optional
import logging

from core.config import Settings
from core.storage import FileRecordStore, create_store
from server.api import router as files_router

logger = logging.getLogger("uvicorn.error")
load_dotenv()


def create_app(settings: Optional[Settings] = None, store: Optional[FileRecordStore] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.store.close()
        logger.info("File store closed")

    app = FastAPI(
        title="Tabular Ingest",
        description="Upload spreadsheets, infer column types, summarize",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store if store is not None else create_store(settings)
    logger.info(
        "File store ready: %s (%d records, upload limit %d bytes)",
        settings.store_path or "in-memory",
        len(app.state.store),
        settings.max_upload_bytes,
    )

    app.include_router(files_router)
    return app


app = create_app()
