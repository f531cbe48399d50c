"""
Error taxonomy for ingestion and the file record store.

Every upload failure is an IngestError carrying the HTTP status the API
layer should report, so routes can map them without a lookup table.
"""

from __future__ import annotations


class IngestError(ValueError):
    """Base class for failures local to a single upload."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class UnsupportedFileType(IngestError):
    """Raised for an extension outside the recognized set; no parser runs."""

    status_code = 415


class MalformedInput(IngestError):
    """Raised when content cannot be parsed as CSV or as a workbook."""

    status_code = 400


class EmptyDocument(IngestError):
    """Raised when parsing succeeded but produced zero data rows."""

    status_code = 422


class FileTooLarge(IngestError):
    """Raised when the declared size exceeds the configured ceiling."""

    status_code = 413


class NotFound(KeyError):
    """Raised when a file id is unknown to the store."""

    status_code = 404

    def __init__(self, file_id: str) -> None:
        super().__init__(file_id)
        self.file_id = file_id
        self.detail = f"File '{file_id}' not found."

    def __str__(self) -> str:
        return self.detail


class StorageError(RuntimeError):
    """Raised when persisting the store fails; the store is left unchanged."""


class ConfigError(RuntimeError):
    """Raised when settings from the environment cannot be used."""
