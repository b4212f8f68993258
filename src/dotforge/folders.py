"""Registry of managed folders stored as ``name:path`` lines."""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from .config import ListFile, Settings
from .errors import PreconditionFailed
from .models import ManagedFolder

DEFAULT_FOLDER_NAME = "default"

logger = structlog.get_logger()


class ManagedFolderRegistry:
    """Persists managed folders and picks the active one.

    The active folder is the one named ``default`` if present, otherwise the
    first registered folder. It is derived on every call and never stored.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._file = ListFile(settings.managed_folders_file)

    def folders(self) -> list[ManagedFolder]:
        folders: list[ManagedFolder] = []
        for line in self._file.read():
            name, sep, raw_path = line.partition(":")
            if not sep or not name or not raw_path:
                logger.warning("skipping malformed managed folder record", record=line)
                continue
            folders.append(ManagedFolder(name=name, path=Path(raw_path)))
        return folders

    def get(self, name: str) -> ManagedFolder | None:
        for folder in self.folders():
            if folder.name == name:
                return folder
        return None

    def register(self, name: str, path: str | os.PathLike[str], *, cwd: Path | None = None) -> bool:
        """Append a folder; returns ``False`` without failing if ``name`` is taken."""

        name = name.strip()
        if not name or ":" in name or "\n" in name:
            raise PreconditionFailed(
                f"Invalid managed folder name '{name}'",
                hint="Folder names must be non-empty and must not contain ':' or newlines.",
            )

        existing = self.get(name)
        if existing is not None:
            logger.warning("managed folder already registered", name=name, path=str(existing.path))
            return False

        folder = ManagedFolder(name=name, path=self.settings.normalize(path, cwd=cwd))
        self._file.append(folder.to_line())
        logger.info("registered managed folder", name=name, path=str(folder.path))
        return True

    def unregister(self, name: str) -> bool:
        folders = self.folders()
        remaining = [folder for folder in folders if folder.name != name]
        if len(remaining) == len(folders):
            return False
        self._file.write(folder.to_line() for folder in remaining)
        logger.info("unregistered managed folder", name=name)
        return True

    def active_folder(self) -> ManagedFolder | None:
        folders = self.folders()
        if not folders:
            return None
        for folder in folders:
            if folder.name == DEFAULT_FOLDER_NAME:
                return folder
        return folders[0]

    def require_active(self) -> ManagedFolder:
        folder = self.active_folder()
        if folder is None:
            raise PreconditionFailed(
                "No managed folder registered",
                hint="Run 'forge init' inside the directory that should hold your dotfiles.",
            )
        return folder
