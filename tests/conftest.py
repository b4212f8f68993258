from __future__ import annotations

import logging
from pathlib import Path

import pytest
import structlog

from dotforge.config import ConfigStore, Settings
from dotforge.folders import ManagedFolderRegistry
from dotforge.orchestrator import SymlinkOrchestrator
from dotforge.prompt import StaticConfirmer
from dotforge.registry import DotfileRegistry


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def fake_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("DOTFORGE_HOME", raising=False)
    monkeypatch.delenv("DOTFORGE_CONFIG_DIR", raising=False)
    monkeypatch.delenv("DOTFORGE_DB", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    return home


@pytest.fixture
def settings(fake_home: Path) -> Settings:
    return Settings.from_environment()


@pytest.fixture
def managed_dir(tmp_path: Path) -> Path:
    path = tmp_path / "managed"
    (path / ".forge").mkdir(parents=True)
    return path


@pytest.fixture
def folders(settings: Settings, managed_dir: Path) -> ManagedFolderRegistry:
    registry = ManagedFolderRegistry(settings)
    registry.register("dots", managed_dir)
    return registry


@pytest.fixture
def registry(settings: Settings):
    with DotfileRegistry(settings.database_path, default_path=ConfigStore(settings).read_default_path()) as reg:
        yield reg


@pytest.fixture
def confirmer() -> StaticConfirmer:
    return StaticConfirmer(True)


@pytest.fixture
def orchestrator(
    settings: Settings,
    registry: DotfileRegistry,
    folders: ManagedFolderRegistry,
    confirmer: StaticConfirmer,
) -> SymlinkOrchestrator:
    return SymlinkOrchestrator(settings, registry, folders, confirmer)
