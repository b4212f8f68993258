"""Path normalization for user-supplied paths."""

from __future__ import annotations

import os
from pathlib import Path


def expand_tilde(raw: str | os.PathLike[str], *, home: Path | None = None) -> Path:
    """Replace a leading ``~`` with ``home``; other paths are returned unchanged."""

    text = os.fspath(raw)
    if text != "~" and not text.startswith(("~/", "~\\")):
        return Path(text)

    base = home if home is not None else Path.home()
    remainder = text[1:].lstrip("/\\")
    return base / remainder if remainder else base


def normalize(raw: str | os.PathLike[str], *, home: Path | None = None, cwd: Path | None = None) -> Path:
    """Return an absolute, lexically clean path.

    ``~`` is expanded against ``home`` and relative paths are joined onto
    ``cwd``. ``.`` segments are dropped and ``..`` pops the previous segment,
    never climbing above the root. Symlinks are not resolved: a tracked source
    is frequently a symlink itself and must keep its own name.
    """

    path = expand_tilde(raw, home=home)
    if not path.is_absolute():
        base = cwd if cwd is not None else Path.cwd()
        path = base / path
    return _clean_components(path)


def _clean_components(path: Path) -> Path:
    anchor = path.anchor
    parts: list[str] = []
    for part in path.parts[1:] if anchor else path.parts:
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)
    return Path(anchor, *parts)


def is_within(path: Path, folder: Path) -> bool:
    """``True`` if ``path`` equals ``folder`` or lies beneath it."""

    return path == folder or path.is_relative_to(folder)


def is_direct_child(path: Path, folder: Path) -> bool:
    return path.parent == folder
