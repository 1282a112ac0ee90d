"""Dataset record model shared by the record store and the sync pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

__all__ = ["Record", "ensure_utc"]


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_labels(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = json.loads(value) if value.strip() else []
    return tuple(str(item) for item in value)


@dataclass(frozen=True, slots=True)
class Record:
    """A dataset as held by the record store; never mutated by this package."""

    id: str
    name: str
    description: str
    portal_id: str
    metadata_updated_at: datetime
    department: str | None = None
    categories: tuple[str, ...] = field(default_factory=tuple)
    column_fields: tuple[str, ...] = field(default_factory=tuple)
    is_test: bool = False

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValueError("record id cannot be empty")
        object.__setattr__(self, "categories", tuple(self.categories))
        object.__setattr__(self, "column_fields", tuple(self.column_fields))
        object.__setattr__(
            self,
            "metadata_updated_at",
            ensure_utc(self.metadata_updated_at),
        )

    @property
    def embedding_text(self) -> str:
        """Text fed to the embedding model: ``"<name>. <description>"``."""

        return f"{self.name}. {self.description}"

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Record":
        """Build a record from a ``datasets`` table row."""

        updated = row["metadata_updated_at"]
        if isinstance(updated, str):
            updated = datetime.fromisoformat(updated.replace("Z", "+00:00"))
        return cls(
            id=str(row["id"]),
            name=row["name"] or "",
            description=row["description"] or "",
            portal_id=str(row["portal_id"]),
            department=row["department"],
            categories=_parse_labels(row["categories"]),
            column_fields=_parse_labels(row["column_fields"]),
            is_test=bool(row["is_test"]),
            metadata_updated_at=updated,
        )
