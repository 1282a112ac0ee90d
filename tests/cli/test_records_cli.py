from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from dsindex.cli import create_app
from dsindex.modules.records import SqliteRecordStore


def _write_jsonl(path: Path, rows: list[dict]) -> Path:
    path.write_text(
        "\n".join(json.dumps(row) for row in rows) + "\n",
        encoding="utf-8",
    )
    return path


def test_import_then_count(runner: CliRunner, workspace: Path, tmp_path) -> None:
    source = _write_jsonl(
        tmp_path / "records.jsonl",
        [
            {
                "id": "d1",
                "name": "Bike lanes",
                "portal_id": "p1",
                "categories": ["transport"],
                "metadata_updated_at": "2024-01-01T00:00:00Z",
            },
            {
                "id": "d2",
                "portal_id": "p2",
                "metadata_updated_at": "2022-06-01T00:00:00+00:00",
            },
        ],
    )
    app = create_app()

    imported = runner.invoke(
        app,
        ["records", "-w", str(workspace), "import", str(source)],
        catch_exceptions=False,
    )
    assert imported.exit_code == 0, imported.stdout
    assert "Imported 2 records" in imported.stdout

    store = SqliteRecordStore(workspace / "records.sqlite3")
    (record,) = store.find_by_ids(["d1"])
    assert record.categories == ("transport",)

    everything = runner.invoke(app, ["records", "-w", str(workspace), "count"])
    assert everything.stdout.strip() == "2"

    recent = runner.invoke(
        app,
        ["records", "-w", str(workspace), "count", "--since", "2023-01-01"],
    )
    assert recent.stdout.strip() == "1"

    scoped = runner.invoke(
        app,
        ["records", "-w", str(workspace), "count", "-p", "p2"],
    )
    assert scoped.stdout.strip() == "1"


def test_import_reports_bad_line(
    runner: CliRunner, workspace: Path, tmp_path
) -> None:
    source = tmp_path / "broken.jsonl"
    source.write_text('{"id": "d1"}\n', encoding="utf-8")

    result = runner.invoke(
        create_app(),
        ["records", "-w", str(workspace), "import", str(source)],
    )

    assert result.exit_code == 1
    assert "Record import failed" in result.stdout
    assert "broken.jsonl:1" in result.stdout
