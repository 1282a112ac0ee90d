"""Record store collaborator: the source of truth for dataset records."""

from __future__ import annotations

from .models import Record
from .store import RecordStore, RecordStoreError, SqliteRecordStore

__all__ = ["Record", "RecordStore", "RecordStoreError", "SqliteRecordStore"]
