from __future__ import annotations

import os
from pathlib import Path

from dotforge.filesystem import (
    backup_aside,
    copy_entry,
    create_symlink,
    lexists,
    measure,
    prune_empty_parents,
    remove_path,
    replace_with_copy,
    symlink_points_to,
)


def test_copy_entry_copies_file_into_new_parent(tmp_path: Path) -> None:
    source = tmp_path / "source.txt"
    source.write_text("hello\n")
    destination = tmp_path / "deep" / "dest.txt"

    copy_entry(source, destination)

    assert destination.read_text() == "hello\n"


def test_copy_entry_copies_directory_and_preserves_symlinks(tmp_path: Path) -> None:
    source_dir = tmp_path / "src"
    (source_dir / "nested").mkdir(parents=True)
    (source_dir / "nested" / "file.txt").write_text("data\n")
    (source_dir / "alias").symlink_to("nested/file.txt")
    destination = tmp_path / "dst"

    copy_entry(source_dir, destination)

    assert (destination / "nested" / "file.txt").read_text() == "data\n"
    assert (destination / "alias").is_symlink()
    assert os.readlink(destination / "alias") == "nested/file.txt"


def test_measure_counts_files_and_bytes(tmp_path: Path) -> None:
    root = tmp_path / "tree"
    (root / "a").mkdir(parents=True)
    (root / "one").write_text("12345")
    (root / "a" / "two").write_text("123")
    (root / "link").symlink_to(root / "one")

    assert measure(root) == (3, 8)
    assert measure(root / "one") == (1, 5)


def test_create_symlink_is_absolute(tmp_path: Path) -> None:
    target = tmp_path / "target.txt"
    target.write_text("content")
    link = tmp_path / "links" / "link.txt"

    create_symlink(link, target)

    assert link.is_symlink()
    assert Path(os.readlink(link)).is_absolute()
    assert symlink_points_to(link, target)
    assert not symlink_points_to(target, link)


def test_lexists_sees_dangling_symlink(tmp_path: Path) -> None:
    link = tmp_path / "dangling"
    link.symlink_to(tmp_path / "missing")

    assert lexists(link)
    assert not link.exists()

    remove_path(link)
    assert not lexists(link)


def test_backup_aside_picks_free_name(tmp_path: Path) -> None:
    original = tmp_path / ".bashrc"
    original.write_text("first")
    (tmp_path / ".bashrc.bak").write_text("older")

    backup = backup_aside(original)

    assert backup == tmp_path / ".bashrc.bak2"
    assert backup.read_text() == "first"
    assert not lexists(original)


def test_remove_path_handles_directories(tmp_path: Path) -> None:
    tree = tmp_path / "tree"
    (tree / "nested").mkdir(parents=True)
    (tree / "nested" / "f").write_text("x")

    remove_path(tree)
    remove_path(tree)

    assert not tree.exists()


def test_replace_with_copy_swaps_symlink_for_file(tmp_path: Path) -> None:
    content = tmp_path / "managed" / "config"
    content.parent.mkdir()
    content.write_text("real content")
    destination = tmp_path / "home" / "config"
    destination.parent.mkdir()
    destination.symlink_to(content)

    replace_with_copy(content, destination)

    assert not destination.is_symlink()
    assert destination.read_text() == "real content"
    assert content.read_text() == "real content"
    assert sorted(p.name for p in destination.parent.iterdir()) == ["config"]


def test_replace_with_copy_handles_directories(tmp_path: Path) -> None:
    content = tmp_path / "managed" / "nvim"
    content.mkdir(parents=True)
    (content / "init.lua").write_text("-- lua")
    destination = tmp_path / "home" / "nvim"
    destination.parent.mkdir()
    destination.symlink_to(content, target_is_directory=True)

    replace_with_copy(content, destination)

    assert not destination.is_symlink()
    assert (destination / "init.lua").read_text() == "-- lua"


def test_prune_empty_parents_stops_at_boundary(tmp_path: Path) -> None:
    root = tmp_path / "managed"
    leaf = root / "a" / "b" / "file"
    leaf.parent.mkdir(parents=True)
    (root / "keep").write_text("x")

    prune_empty_parents(leaf, root)

    assert not (root / "a").exists()
    assert root.is_dir()
