from __future__ import annotations

import os
from pathlib import Path

from typer.testing import CliRunner

from dotforge.cli import app
from dotforge.config import Settings
from dotforge.registry import DotfileRegistry

runner = CliRunner()


def _invoke(*args: str) -> str:
    result = runner.invoke(app, list(args))
    assert result.exit_code == 0, result.output
    return result.stdout


def test_cli_full_cycle_with_directory(tmp_path: Path, fake_home: Path) -> None:
    managed = tmp_path / "managed"
    app_dir = fake_home / ".config" / "app"
    (app_dir / "themes").mkdir(parents=True)
    (app_dir / "app.conf").write_text("color=blue\n")
    (app_dir / "themes" / "dark.conf").write_text("bg=black\n")
    (app_dir / "README.md").write_text("docs\n")

    _invoke("init", str(managed))
    _invoke("config", "filetypes", "add", ".conf")

    staged = _invoke("stage", str(app_dir), "--recursive", "--approved-only")
    assert "Staging files recursively" in staged
    assert (managed / "app" / "themes" / "dark.conf").is_symlink()
    assert not (managed / "app" / "README.md").exists()

    _invoke("link")
    assert (app_dir / "app.conf").is_symlink()
    assert os.path.samefile(app_dir / "themes" / "dark.conf", managed / "app" / "themes" / "dark.conf")

    purged = _invoke("purge", str(managed), "--recursive", "--yes")
    assert "Start purging tracked files" in purged
    assert not (app_dir / "app.conf").is_symlink()
    assert (app_dir / "themes" / "dark.conf").read_text() == "bg=black\n"
    assert sorted(path.name for path in managed.iterdir()) == [".forge"]

    with DotfileRegistry(Settings.from_environment().database_path) as registry:
        assert list(registry) == []


def test_cli_remove_and_delete(tmp_path: Path, fake_home: Path) -> None:
    managed = tmp_path / "managed"
    keep = fake_home / ".gitconfig"
    drop = fake_home / ".zshrc"
    keep.write_text("[user]\n")
    drop.write_text("setopt autocd\n")

    _invoke("init", str(managed))
    _invoke("stage", str(keep), str(drop))
    _invoke("link")

    _invoke("remove", str(keep), "--yes")
    assert not keep.is_symlink()
    assert keep.read_text() == "[user]\n"
    assert not (managed / ".gitconfig").exists()

    declined = runner.invoke(app, ["delete", str(drop)])
    assert declined.exit_code == 1
    assert drop.is_symlink()

    _invoke("delete", str(drop), "--yes")
    assert not os.path.lexists(drop)
    assert not (managed / ".zshrc").exists()

    listing = _invoke("list", "--all")
    assert "No dotfiles found." in listing


def test_cli_stage_with_depth(tmp_path: Path, fake_home: Path) -> None:
    managed = tmp_path / "managed"
    tree = fake_home / "notes"
    (tree / "deep").mkdir(parents=True)
    (tree / "top.txt").write_text("top\n")
    (tree / "deep" / "low.txt").write_text("low\n")

    _invoke("init", str(managed))
    output = _invoke("stage", str(tree), "--depth", "1")

    assert "Staging files (max depth: 1)" in output
    assert (managed / "notes" / "top.txt").is_symlink()
    assert not (managed / "notes" / "deep").exists()
