"""Runtime settings, read from the environment (``.env`` supported)."""

from __future__ import annotations

import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .errors import ConfigError

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip() or default


def _env_int(key: str, default: int, *, minimum: int = 0) -> int:
    raw = _env(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got '{raw}'.") from exc
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}, got {value}.")
    return value


class Settings(BaseModel):
    store_path: Optional[str] = None
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES   # 0 disables the ceiling
    max_concurrent_uploads: int = 4
    parse_workers: int = 2
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from env vars; blank values count as unset."""
        load_dotenv()
        origins = _env("CORS_ORIGINS", "*") or "*"
        return cls(
            store_path=_env("FILE_STORE_PATH"),
            max_upload_bytes=_env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
            max_concurrent_uploads=_env_int("MAX_CONCURRENT_UPLOADS", 4, minimum=1),
            parse_workers=_env_int("PARSE_WORKERS", 2, minimum=1),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )
