"""Filesystem helpers for dotforge."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

import structlog

logger = structlog.get_logger()


def ensure_parent(path: Path) -> None:
    """Ensure the parent directory exists."""

    path.parent.mkdir(parents=True, exist_ok=True)


def lexists(path: Path) -> bool:
    """``True`` for existing paths and for dangling symlinks."""

    return path.exists() or path.is_symlink()


def create_symlink(link: Path, pointing_to: Path) -> None:
    """Create ``link`` as an absolute symlink to ``pointing_to``."""

    ensure_parent(link)
    link.symlink_to(pointing_to, target_is_directory=pointing_to.is_dir())


def symlink_points_to(source: Path, target: Path) -> bool:
    """Return ``True`` if ``source`` symlink resolves to ``target``."""

    if not source.is_symlink():
        return False
    current = Path(os.readlink(source))
    current_resolved = (source.parent / current).resolve(strict=False)
    target_resolved = target.resolve(strict=False)
    return current_resolved == target_resolved


def copy_entry(source: Path, destination: Path) -> None:
    """Copy the file or directory at ``source`` to a fresh ``destination``."""

    ensure_parent(destination)
    if source.is_dir():
        shutil.copytree(source, destination, symlinks=True, copy_function=shutil.copy2)
    else:
        shutil.copy2(source, destination)


def measure(path: Path) -> tuple[int, int]:
    """Return ``(file_count, total_bytes)`` for a file or directory tree.

    Symlinks inside a tree count as files of size zero.
    """

    if not path.is_dir():
        return 1, path.stat().st_size

    count = 0
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for name in filenames:
            child = Path(dirpath) / name
            count += 1
            if not child.is_symlink():
                total += child.lstat().st_size
    return count, total


def backup_aside(path: Path) -> Path:
    """Rename ``path`` to ``<name>.bak`` (or ``.bak2``, ``.bak3``...) and return the new path."""

    backup = path.with_name(f"{path.name}.bak")
    counter = 1
    while lexists(backup):
        counter += 1
        backup = path.with_name(f"{path.name}.bak{counter}")
    path.rename(backup)
    logger.info("moved existing file aside", path=str(path), backup=str(backup))
    return backup


def remove_path(path: Path) -> None:
    """Delete ``path`` whether it is a file, directory, or symlink."""

    if not lexists(path):
        return
    if path.is_symlink() or path.is_file():
        path.unlink()
        return
    shutil.rmtree(path)


def replace_with_copy(content: Path, destination: Path) -> None:
    """Replace whatever lives at ``destination`` with a copy of ``content``.

    The copy is written to a temporary sibling first, so ``destination`` is
    only touched once the copy is complete. For files the final swap is a
    single ``os.replace``.
    """

    ensure_parent(destination)
    prefix = f".{destination.name}.dotforge-tmp-"

    if not content.is_dir():
        fd, temp_name = tempfile.mkstemp(prefix=prefix, dir=destination.parent)
        os.close(fd)
        temp_path = Path(temp_name)
        try:
            shutil.copy2(content, temp_path)
            if destination.is_dir() and not destination.is_symlink():
                shutil.rmtree(destination)
            os.replace(temp_path, destination)
        except Exception:
            temp_path.unlink(missing_ok=True)
            raise
        return

    with tempfile.TemporaryDirectory(prefix=prefix, dir=destination.parent) as staging_root_name:
        payload = Path(staging_root_name) / "payload"
        shutil.copytree(content, payload, symlinks=True, copy_function=shutil.copy2)
        remove_path(destination)
        payload.replace(destination)


def prune_empty_parents(path: Path, stop_at: Path) -> None:
    """Remove empty directories from ``path.parent`` up to, not including, ``stop_at``."""

    current = path.parent
    while current != stop_at and current.is_relative_to(stop_at):
        try:
            current.rmdir()
        except OSError:
            return
        logger.debug("removed empty directory", path=str(current))
        current = current.parent
