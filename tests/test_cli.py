from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from dotforge.cli import app
from dotforge.config import Settings
from dotforge.folders import ManagedFolderRegistry
from dotforge.models import DotfileStatus
from dotforge.registry import DotfileRegistry

runner = CliRunner()


def _init(managed: Path) -> None:
    result = runner.invoke(app, ["init", str(managed)])
    assert result.exit_code == 0, result.output


def test_cli_init_registers_folder(tmp_path: Path, fake_home: Path) -> None:
    managed = tmp_path / "managed"

    result = runner.invoke(app, ["init", str(managed), "--name", "dots"])

    assert result.exit_code == 0
    assert "Forge repository initialized successfully." in result.stdout
    assert (managed / ".forge").is_dir()
    folder = ManagedFolderRegistry(Settings.from_environment()).get("dots")
    assert folder is not None and folder.path == managed

    again = runner.invoke(app, ["init", str(managed), "--name", "dots"])
    assert again.exit_code == 0
    assert "already registered" in again.stdout

    listing = runner.invoke(app, ["folders"])
    assert listing.exit_code == 0
    assert "dots" in listing.stdout


def test_cli_stage_link_unlink_flow(tmp_path: Path, fake_home: Path) -> None:
    managed = tmp_path / "managed"
    _init(managed)
    bashrc = fake_home / ".bashrc"
    bashrc.write_text("alias ll='ls -l'\n")

    stage_result = runner.invoke(app, ["stage", "~/.bashrc", "--profile", "shell"])
    assert stage_result.exit_code == 0, stage_result.output
    assert "1 succeeded, 0 failed" in stage_result.stdout
    assert (managed / ".bashrc").is_symlink()

    link_result = runner.invoke(app, ["link"])
    assert link_result.exit_code == 0, link_result.output
    assert "Creating symlinks" in link_result.stdout
    assert bashrc.is_symlink()

    list_result = runner.invoke(app, ["list", "--profile", "shell"])
    assert list_result.exit_code == 0
    assert "Linked" in list_result.stdout

    unlink_result = runner.invoke(app, ["unlink", str(bashrc), "--yes"])
    assert unlink_result.exit_code == 0, unlink_result.output
    assert not bashrc.is_symlink()
    assert bashrc.read_text() == "alias ll='ls -l'\n"

    with DotfileRegistry(Settings.from_environment().database_path) as registry:
        record = registry.find(bashrc, active_only=False)
    assert record is not None
    assert record.status is DotfileStatus.UNLINKED
    assert record.active is False


def test_cli_stage_rejects_recursive_with_depth(tmp_path: Path, fake_home: Path) -> None:
    _init(tmp_path / "managed")

    result = runner.invoke(app, ["stage", str(fake_home), "--recursive", "--depth", "2"])

    assert result.exit_code == 1
    assert "--recursive and --depth cannot be combined" in result.stdout


def test_cli_stage_requires_managed_folder(fake_home: Path) -> None:
    (fake_home / ".vimrc").write_text("set number\n")

    result = runner.invoke(app, ["stage", "~/.vimrc"])

    assert result.exit_code == 1
    assert "No managed folder registered" in result.stdout


def test_cli_partial_failure_exits_nonzero(tmp_path: Path, fake_home: Path) -> None:
    _init(tmp_path / "managed")
    (fake_home / ".vimrc").write_text("set number\n")

    result = runner.invoke(app, ["stage", "~/.vimrc", "~/.does-not-exist"])

    assert result.exit_code == 1
    assert "1 succeeded, 1 failed" in result.stdout


def test_cli_link_without_staged_files(tmp_path: Path, fake_home: Path) -> None:
    _init(tmp_path / "managed")

    result = runner.invoke(app, ["link"])

    assert result.exit_code == 1
    assert "No staged files to link" in result.stdout


def test_cli_unlink_without_terminal_declines(tmp_path: Path, fake_home: Path) -> None:
    _init(tmp_path / "managed")
    bashrc = fake_home / ".bashrc"
    bashrc.write_text("export A=1\n")
    assert runner.invoke(app, ["stage", str(bashrc)]).exit_code == 0
    assert runner.invoke(app, ["link"]).exit_code == 0

    result = runner.invoke(app, ["unlink", str(bashrc)])

    assert result.exit_code == 1
    assert bashrc.is_symlink()


def test_cli_unstage_all_twice(tmp_path: Path, fake_home: Path) -> None:
    managed = tmp_path / "managed"
    _init(managed)
    (fake_home / ".vimrc").write_text("set number\n")
    assert runner.invoke(app, ["stage", "~/.vimrc"]).exit_code == 0

    first = runner.invoke(app, ["unstage"])
    second = runner.invoke(app, ["unstage"])

    assert first.exit_code == 0
    assert not (managed / ".vimrc").exists()
    assert second.exit_code == 0
    assert "Nothing to unstage." in second.stdout


@pytest.mark.parametrize("flag", ["-v", "-vv"])
def test_cli_verbose_flags_accepted(tmp_path: Path, fake_home: Path, flag: str) -> None:
    result = runner.invoke(app, [flag, "folders"])

    assert result.exit_code == 0
    assert "No managed folders registered" in result.stdout


def test_cli_config_lists(tmp_path: Path, fake_home: Path) -> None:
    add_types = runner.invoke(app, ["config", "filetypes", "add", "conf", ".toml"])
    assert add_types.exit_code == 0
    assert "'.conf'" in add_types.stdout

    list_types = runner.invoke(app, ["config", "filetypes", "list"])
    assert "- .conf" in list_types.stdout
    assert "- .toml" in list_types.stdout

    remove_types = runner.invoke(app, ["config", "filetypes", "remove", ".toml", ".lua"])
    assert "Some file types were not in the approved list." in remove_types.stdout

    add_ignore = runner.invoke(app, ["config", "ignore", "add", "~/.ssh"])
    assert add_ignore.exit_code == 0
    settings = Settings.from_environment()
    assert settings.ignored_paths_file.read_text() == f"{fake_home / '.ssh'}\n"

    empty_list = runner.invoke(app, ["config", "ignore", "remove", "~/.ssh"])
    assert empty_list.exit_code == 0
    assert "No items found." in runner.invoke(app, ["config", "ignore", "list"]).stdout


def test_cli_default_path(fake_home: Path) -> None:
    assert runner.invoke(app, ["config", "default-path"]).stdout.strip() == "~/dotforge"

    result = runner.invoke(app, ["config", "default-path", "~/dots"])

    assert result.exit_code == 0
    assert runner.invoke(app, ["config", "default-path"]).stdout.strip() == "~/dots"


def test_cli_folders_remove(tmp_path: Path, fake_home: Path) -> None:
    managed = tmp_path / "managed"
    _init(managed)

    removed = runner.invoke(app, ["folders", "--remove", "managed"])
    assert removed.exit_code == 0
    assert "unregistered" in removed.stdout
    assert managed.is_dir()
    assert ManagedFolderRegistry(Settings.from_environment()).folders() == []

    missing = runner.invoke(app, ["folders", "--remove", "managed"])
    assert missing.exit_code == 1


def test_cli_list_unknown_profile_shows_known_profiles(tmp_path: Path, fake_home: Path) -> None:
    _init(tmp_path / "managed")
    (fake_home / ".vimrc").write_text("set number\n")
    assert runner.invoke(app, ["stage", "~/.vimrc", "--profile", "editor"]).exit_code == 0

    result = runner.invoke(app, ["list", "--profile", "shell"])

    assert result.exit_code == 0
    assert "No dotfiles found." in result.stdout
    assert "Known profiles: editor" in result.stdout


def test_cli_default_path_updates_registry_setting(fake_home: Path) -> None:
    assert runner.invoke(app, ["config", "default-path", "~/dots"]).exit_code == 0

    with DotfileRegistry(Settings.from_environment().database_path) as registry:
        row = registry.conn.execute("SELECT value FROM settings WHERE key = 'default_path'").fetchone()
    assert row[0] == "~/dots"
