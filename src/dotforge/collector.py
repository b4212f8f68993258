"""Depth-bounded directory traversal used when staging directories."""

from __future__ import annotations

from pathlib import Path
from typing import Collection, Iterator

import structlog

from .models import STATE_DIR_NAME, CollectedEntry

logger = structlog.get_logger()


def collect(
    root: Path,
    depth: int | None,
    *,
    ignored: Collection[Path] = (),
    extensions: Collection[str] | None = None,
) -> list[CollectedEntry]:
    """Expand ``root`` into files to stage.

    ``depth=None`` stages the directory as a single opaque entry, ``0`` walks
    the whole tree and ``n`` stops ``n`` levels below ``root`` (``1`` only
    yields direct children). Every relative path starts with ``root.name`` so
    that same-named files from different directories never collide in the
    managed folder.
    """

    if depth is None:
        return [CollectedEntry(source=root, relative=Path(root.name))]
    if depth < 0:
        raise ValueError(f"depth must be None or >= 0, got {depth}")

    limit = depth or None
    entries = [
        CollectedEntry(source=path, relative=Path(root.name) / path.relative_to(root))
        for path in _walk(root, 1, limit, ignored, extensions)
    ]
    return sorted(entries, key=lambda entry: entry.relative.as_posix())


def _walk(
    directory: Path,
    level: int,
    limit: int | None,
    ignored: Collection[Path],
    extensions: Collection[str] | None,
) -> Iterator[Path]:
    try:
        children = sorted(directory.iterdir())
    except OSError as exc:
        logger.warning("skipping unreadable directory", path=str(directory), error=str(exc))
        return

    for child in children:
        if child.name == STATE_DIR_NAME:
            continue
        if _is_ignored(child, ignored):
            logger.info("skipping ignored path", path=str(child))
            continue
        if child.is_symlink():
            logger.info("skipping symlink during traversal", path=str(child))
            continue
        if child.is_dir():
            if limit is None or level < limit:
                yield from _walk(child, level + 1, limit, ignored, extensions)
            continue
        if not child.is_file():
            continue
        if extensions is not None and child.suffix not in extensions:
            continue
        yield child


def _is_ignored(path: Path, ignored: Collection[Path]) -> bool:
    return any(path == entry or path.is_relative_to(entry) for entry in ignored)
