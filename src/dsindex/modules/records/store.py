"""Record store boundary and its SQLite implementation."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Iterable, Protocol, Sequence, runtime_checkable

from dsindex.core.logging import Logger, get_logger
from dsindex.modules.records.models import Record, ensure_utc

__all__ = ["RecordStore", "RecordStoreError", "SqliteRecordStore"]


class RecordStoreError(RuntimeError):
    """Raised when the record store cannot be read or written."""


@runtime_checkable
class RecordStore(Protocol):
    """Read-only view of the canonical dataset records."""

    def count_all(self, watermark: datetime) -> int:
        """Count records updated at or after ``watermark``."""

    def count_for_portals(
        self,
        portal_ids: Sequence[str],
        watermark: datetime,
    ) -> int:
        """Count records of ``portal_ids`` updated since ``watermark``."""

    def find_page(
        self,
        page_size: int,
        offset: int,
        portal_ids: Sequence[str] | None,
        watermark: datetime,
    ) -> Sequence[Record]:
        """Return one stable, id-ordered page of eligible records."""

    def find_by_ids(self, ids: Sequence[str]) -> Sequence[Record]:
        """Return the records matching ``ids`` (order unspecified)."""


_SCHEMA = """
CREATE TABLE IF NOT EXISTS datasets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    portal_id TEXT NOT NULL,
    department TEXT,
    categories TEXT NOT NULL DEFAULT '[]',
    column_fields TEXT NOT NULL DEFAULT '[]',
    is_test INTEGER NOT NULL DEFAULT 0,
    metadata_updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS datasets_portal_updated
    ON datasets (portal_id, metadata_updated_at);
"""

_COLUMNS = (
    "id, name, description, portal_id, department, categories, "
    "column_fields, is_test, metadata_updated_at"
)

# Bound parameters per statement stay well under SQLite's default limit.
_IN_CHUNK = 500


def _stamp(value: datetime) -> str:
    return ensure_utc(value).isoformat(timespec="microseconds")


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SqliteRecordStore(RecordStore):
    """Record store backed by a ``datasets`` table in a SQLite file."""

    def __init__(self, path: Path, *, logger: Logger | None = None) -> None:
        self.path = path
        self.logger = logger or get_logger(__name__, component="record-store")

    def _connect(self) -> sqlite3.Connection:
        try:
            connection = sqlite3.connect(self.path)
        except sqlite3.Error as exc:
            raise RecordStoreError(
                f"Cannot open record store at {self.path}: {exc}"
            ) from exc
        connection.row_factory = sqlite3.Row
        return connection

    def ensure_schema(self) -> None:
        """Create the ``datasets`` table when missing."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with closing(self._connect()) as connection, connection:
                connection.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise RecordStoreError(
                f"Cannot prepare record store at {self.path}: {exc}"
            ) from exc

    def upsert(self, records: Iterable[Record]) -> int:
        """Insert or replace ``records``; returns the number written."""

        rows = [
            (
                record.id,
                record.name,
                record.description,
                record.portal_id,
                record.department,
                json.dumps(list(record.categories)),
                json.dumps(list(record.column_fields)),
                int(record.is_test),
                _stamp(record.metadata_updated_at),
            )
            for record in records
        ]
        if not rows:
            return 0
        statement = (
            f"INSERT OR REPLACE INTO datasets ({_COLUMNS}) "
            f"VALUES ({_placeholders(9)})"
        )
        try:
            with closing(self._connect()) as connection, connection:
                connection.executemany(statement, rows)
        except sqlite3.Error as exc:
            raise RecordStoreError(
                f"Record store write failed at {self.path}: {exc}"
            ) from exc
        self.logger.debug("records-upserted", count=len(rows))
        return len(rows)

    def count_all(self, watermark: datetime) -> int:
        return self._count(None, watermark)

    def count_for_portals(
        self,
        portal_ids: Sequence[str],
        watermark: datetime,
    ) -> int:
        return self._count(portal_ids, watermark)

    def find_page(
        self,
        page_size: int,
        offset: int,
        portal_ids: Sequence[str] | None,
        watermark: datetime,
    ) -> Sequence[Record]:
        where, params = self._eligibility(portal_ids, watermark)
        statement = (
            f"SELECT {_COLUMNS} FROM datasets WHERE {where} "
            "ORDER BY id LIMIT ? OFFSET ?"
        )
        rows = self._query(statement, (*params, page_size, offset))
        return tuple(self._decode(row) for row in rows)

    def find_by_ids(self, ids: Sequence[str]) -> Sequence[Record]:
        unique = list(dict.fromkeys(ids))
        found: list[Record] = []
        for start in range(0, len(unique), _IN_CHUNK):
            chunk = unique[start : start + _IN_CHUNK]
            statement = (
                f"SELECT {_COLUMNS} FROM datasets "
                f"WHERE id IN ({_placeholders(len(chunk))})"
            )
            found.extend(
                self._decode(row) for row in self._query(statement, chunk)
            )
        return tuple(found)

    def _count(
        self,
        portal_ids: Sequence[str] | None,
        watermark: datetime,
    ) -> int:
        where, params = self._eligibility(portal_ids, watermark)
        rows = self._query(
            f"SELECT COUNT(*) AS total FROM datasets WHERE {where}",
            params,
        )
        return int(rows[0]["total"])

    @staticmethod
    def _eligibility(
        portal_ids: Sequence[str] | None,
        watermark: datetime,
    ) -> tuple[str, tuple[object, ...]]:
        clauses = ["metadata_updated_at >= ?"]
        params: list[object] = [_stamp(watermark)]
        if portal_ids is not None:
            clauses.append(f"portal_id IN ({_placeholders(len(portal_ids))})")
            params.extend(portal_ids)
        return " AND ".join(clauses), tuple(params)

    def _query(
        self,
        statement: str,
        params: Sequence[object],
    ) -> list[sqlite3.Row]:
        try:
            with closing(self._connect()) as connection:
                return connection.execute(statement, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            raise RecordStoreError(
                f"Record store query failed at {self.path}: {exc}"
            ) from exc

    def _decode(self, row: sqlite3.Row) -> Record:
        try:
            return Record.from_row(row)
        except (ValueError, KeyError, TypeError) as exc:
            raise RecordStoreError(
                f"Malformed record {row['id']!r} in {self.path}: {exc}"
            ) from exc
