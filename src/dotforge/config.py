"""Process settings and the plain-text configuration directory."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Mapping

import structlog
from pydantic import BaseModel, ConfigDict

from .paths import normalize

DEFAULT_CONFIG_DIRNAME = ".dotforge"
DEFAULT_DATABASE_NAME = "dotforge.db"
DEFAULT_TARGET_PATH = "~/dotforge"

DEFAULT_PATH_FILENAME = "default_path"
FILETYPES_FILENAME = "filetypes"
IGNORED_PATHS_FILENAME = "ignored_paths"
MANAGED_FOLDERS_FILENAME = "managed_folders"

logger = structlog.get_logger()


class Settings(BaseModel):
    """Locations dotforge reads and writes, fixed for the lifetime of a process."""

    model_config = ConfigDict(frozen=True)

    home: Path
    config_dir: Path
    database_path: Path

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        ``DOTFORGE_HOME``, ``DOTFORGE_CONFIG_DIR`` and ``DOTFORGE_DB`` override
        the home directory, the configuration directory and the database file.
        """

        env = os.environ if environ is None else environ

        home_raw = env.get("DOTFORGE_HOME") or env.get("HOME")
        home = Path(home_raw) if home_raw else Path.home()
        home = normalize(home, home=home)

        config_raw = env.get("DOTFORGE_CONFIG_DIR")
        config_dir = normalize(config_raw, home=home) if config_raw else home / DEFAULT_CONFIG_DIRNAME

        db_raw = env.get("DOTFORGE_DB")
        if db_raw:
            database_path = normalize(db_raw, home=home)
        else:
            xdg = env.get("XDG_CONFIG_HOME")
            base = normalize(xdg, home=home) if xdg else home / ".config"
            database_path = base / "dotforge" / DEFAULT_DATABASE_NAME

        return cls(home=home, config_dir=config_dir, database_path=database_path)

    @property
    def default_path_file(self) -> Path:
        return self.config_dir / DEFAULT_PATH_FILENAME

    @property
    def filetypes_file(self) -> Path:
        return self.config_dir / FILETYPES_FILENAME

    @property
    def ignored_paths_file(self) -> Path:
        return self.config_dir / IGNORED_PATHS_FILENAME

    @property
    def managed_folders_file(self) -> Path:
        return self.config_dir / MANAGED_FOLDERS_FILENAME

    def normalize(self, raw: str | os.PathLike[str], *, cwd: Path | None = None) -> Path:
        """Normalize ``raw`` against this process's home directory."""

        return normalize(raw, home=self.home, cwd=cwd)


class ListFile:
    """A newline-delimited list of items stored in a plain-text file."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> list[str]:
        if not self.path.exists():
            return []
        return [line.strip() for line in self.path.read_text().splitlines() if line.strip()]

    def contains(self, item: str) -> bool:
        return item in self.read()

    def append(self, item: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a") as handle:
            handle.write(f"{item}\n")

    def write(self, items: Iterable[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lines = list(items)
        self.path.write_text("".join(f"{line}\n" for line in lines))

    def remove(self, item: str) -> bool:
        lines = self.read()
        if item not in lines:
            return False
        self.write(line for line in lines if line != item)
        return True


class ConfigStore:
    """Reads and updates the files in the configuration directory."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.filetypes_list = ListFile(settings.filetypes_file)
        self.ignored_list = ListFile(settings.ignored_paths_file)

    def ensure_dir(self) -> None:
        self.settings.config_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # default target path

    def read_default_path(self) -> str:
        path = self.settings.default_path_file
        if not path.exists():
            return DEFAULT_TARGET_PATH
        value = path.read_text().strip()
        return value or DEFAULT_TARGET_PATH

    def set_default_path(self, value: str) -> None:
        self.ensure_dir()
        self.settings.default_path_file.write_text(value.strip())

    # ------------------------------------------------------------------
    # approved file types

    def filetypes(self) -> list[str]:
        return self.filetypes_list.read()

    def add_filetypes(self, extensions: Iterable[str]) -> list[str]:
        """Append new extensions and return the ones actually added."""

        added: list[str] = []
        for raw in extensions:
            ext = _canonical_extension(raw)
            if not ext:
                continue
            if self.filetypes_list.contains(ext):
                logger.info("filetype already approved", filetype=ext)
                continue
            self.filetypes_list.append(ext)
            added.append(ext)
        return added

    def remove_filetypes(self, extensions: Iterable[str]) -> list[str]:
        removed: list[str] = []
        for raw in extensions:
            ext = _canonical_extension(raw)
            if ext and self.filetypes_list.remove(ext):
                removed.append(ext)
            else:
                logger.info("filetype not in approved list", filetype=raw)
        return removed

    # ------------------------------------------------------------------
    # ignored paths

    def ignored_paths(self) -> list[Path]:
        return [Path(line) for line in self.ignored_list.read()]

    def add_ignored_paths(self, paths: Iterable[str | os.PathLike[str]], *, cwd: Path | None = None) -> list[Path]:
        added: list[Path] = []
        for raw in paths:
            path = self.settings.normalize(raw, cwd=cwd)
            if self.ignored_list.contains(str(path)):
                logger.info("path already ignored", path=str(path))
                continue
            self.ignored_list.append(str(path))
            added.append(path)
        return added

    def remove_ignored_paths(self, paths: Iterable[str | os.PathLike[str]], *, cwd: Path | None = None) -> list[Path]:
        removed: list[Path] = []
        for raw in paths:
            path = self.settings.normalize(raw, cwd=cwd)
            if self.ignored_list.remove(str(path)):
                removed.append(path)
            else:
                logger.info("path not in ignored list", path=str(path))
        return removed

    def is_ignored(self, path: Path) -> bool:
        return any(path == ignored or path.is_relative_to(ignored) for ignored in self.ignored_paths())


def _canonical_extension(raw: str) -> str:
    ext = raw.strip()
    if not ext:
        return ""
    return ext if ext.startswith(".") else f".{ext}"
