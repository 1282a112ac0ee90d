from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from dsindex.cli import create_app


def test_ensure_creates_index(
    runner: CliRunner, workspace: Path, patched_services
) -> None:
    result = runner.invoke(
        create_app(),
        ["index", "-w", str(workspace), "--index", "catalog", "ensure"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.stdout
    assert "Index catalog is ready" in result.stdout
    assert patched_services.call_names() == ["index_exists", "create_index"]


def test_ensure_reports_creation_failure(
    runner: CliRunner, workspace: Path, patched_services
) -> None:
    patched_services.fail_create = True

    result = runner.invoke(
        create_app(),
        ["index", "-w", str(workspace), "ensure"],
    )

    assert result.exit_code == 0
    assert "could not be created" in result.stdout


def test_sync_writes_and_deletes(
    runner: CliRunner,
    workspace: Path,
    patched_services,
    seed_records,
    make_record,
) -> None:
    seed_records(make_record("d1"), make_record("d2"))

    result = runner.invoke(
        create_app(),
        [
            "index",
            "-w",
            str(workspace),
            "sync",
            "--since",
            "2019-01-01",
            "--delete",
            "old-1",
            "-d",
            "old-2",
            "--json",
        ],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["state"] == "done"
    assert payload["documents_written"] == 2
    assert payload["deleted_ids"] == ["old-1", "old-2"]
    assert len(patched_services.bulks) == 2
    assert patched_services.bulks[-1][0] == {
        "delete": {"_index": "datasets", "_id": "old-1"}
    }


def test_sync_text_summary_with_skip_embedding(
    runner: CliRunner,
    workspace: Path,
    patched_services,
    seed_records,
    make_record,
    stub_provider,
) -> None:
    seed_records(make_record("d1", portal="p1"), make_record("d2", portal="p2"))

    result = runner.invoke(
        create_app(),
        [
            "index",
            "-w",
            str(workspace),
            "sync",
            "--since",
            "2019-01-01",
            "-p",
            "p2",
            "--skip-embedding",
        ],
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.stdout
    assert "Sync complete" in result.stdout
    assert "eligible records: 1" in result.stdout
    assert stub_provider.calls == []


def test_sync_failure_exits_non_zero(
    runner: CliRunner,
    workspace: Path,
    patched_services,
    seed_records,
    make_record,
) -> None:
    seed_records(make_record("d1"))
    patched_services.fail_bulk_at = {0}

    result = runner.invoke(
        create_app(),
        ["index", "-w", str(workspace), "sync", "--since", "2019-01-01"],
    )

    assert result.exit_code == 1
    assert "Sync failed" in result.stdout
    assert "populating" in result.stdout


def test_sync_requires_since(
    runner: CliRunner, workspace: Path, patched_services
) -> None:
    result = runner.invoke(
        create_app(),
        ["index", "-w", str(workspace), "sync"],
    )

    assert result.exit_code != 0
    assert patched_services.calls == []
