"""Fixtures wiring CLI commands to in-memory collaborators."""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("DSINDEX_WORKSPACE", raising=False)
    monkeypatch.setenv("DSINDEX_LOG_LEVEL", "warning")
    return tmp_path / "workspace"


@pytest.fixture
def patched_services(monkeypatch, fake_engine, make_vectorizer):
    """Route the CLI engine and vectorizer to in-memory fakes."""

    vectorizer = make_vectorizer()
    monkeypatch.setattr(
        "dsindex.cli.context.build_engine",
        lambda config, logger: fake_engine,
    )
    monkeypatch.setattr(
        "dsindex.cli.context.build_vectorizer",
        lambda config, logger: vectorizer,
    )
    return fake_engine


@pytest.fixture
def seed_records(workspace: Path, make_record):
    """Write records straight into the workspace SQLite store."""

    from dsindex.modules.records import SqliteRecordStore

    def _seed(*records):
        store = SqliteRecordStore(workspace / "records.sqlite3")
        store.ensure_schema()
        store.upsert(records)
        return store

    return _seed
