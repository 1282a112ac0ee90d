"""Tests for :mod:`dsindex.core.paths`."""

from __future__ import annotations

from pathlib import Path

import pytest

from dsindex.core.paths import resolve_workspace


def test_defaults_to_home_dot_dsindex(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_home = Path("/tmp/dsindex-home")
    monkeypatch.setenv("HOME", fake_home.as_posix())

    paths = resolve_workspace()

    expected = (fake_home / ".dsindex").resolve(strict=False)
    assert paths.workspace == expected
    assert paths.config_file == expected / "dsindex.toml"
    assert paths.logs_dir == expected / "logs"


def test_cli_override_beats_env(tmp_path: Path) -> None:
    paths = resolve_workspace(
        workspace_override=tmp_path / "cli",
        env_override=tmp_path / "env",
    )

    assert paths.workspace == (tmp_path / "cli").resolve(strict=False)


def test_env_override_used_when_cli_missing(tmp_path: Path) -> None:
    paths = resolve_workspace(env_override=tmp_path / "env")

    assert paths.workspace == (tmp_path / "env").resolve(strict=False)


def test_relative_override_resolves_from_cwd(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.chdir(tmp_path)

    paths = resolve_workspace(workspace_override=Path("nested/ws"))

    assert paths.workspace == (tmp_path / "nested/ws").resolve(strict=False)


def test_file_path_is_rejected(tmp_path: Path) -> None:
    target = tmp_path / "not-a-dir"
    target.write_text("x", encoding="utf-8")

    with pytest.raises(ValueError, match="Workspace file path"):
        resolve_workspace(workspace_override=target)
