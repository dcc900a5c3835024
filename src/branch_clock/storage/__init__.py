"""Storage abstractions for branch-clock."""

from .export import ExportFormat, dump_export, load_export
from .models import BranchTotal, DurationRecord, ExportDocument, RepositoryEntry, StoreDocument
from .store import (
    DurationStore,
    StoreCorruptedError,
    StoreError,
    StoreUnavailableError,
    StoreWriteError,
    write_document,
)

__all__ = [
    "BranchTotal",
    "DurationRecord",
    "DurationStore",
    "ExportDocument",
    "ExportFormat",
    "RepositoryEntry",
    "StoreCorruptedError",
    "StoreDocument",
    "StoreError",
    "StoreUnavailableError",
    "StoreWriteError",
    "dump_export",
    "load_export",
    "write_document",
]
