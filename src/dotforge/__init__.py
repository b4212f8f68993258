"""Core package for the dotforge project."""

from .cli import app, run
from .config import ConfigStore, Settings
from .errors import (
    AlreadyExists,
    CorruptRecordError,
    ForgeError,
    IoFailure,
    NotFound,
    PreconditionFailed,
    UserDeclined,
    ValidationFailed,
)
from .folders import ManagedFolderRegistry
from .models import BatchReport, DotfileRecord, DotfileStatus, ItemResult, ManagedFolder
from .orchestrator import SymlinkOrchestrator
from .registry import DotfileRegistry

__all__ = [
    "Settings",
    "ConfigStore",
    "ManagedFolderRegistry",
    "DotfileRegistry",
    "SymlinkOrchestrator",
    "BatchReport",
    "DotfileRecord",
    "DotfileStatus",
    "ItemResult",
    "ManagedFolder",
    "ForgeError",
    "NotFound",
    "AlreadyExists",
    "ValidationFailed",
    "PreconditionFailed",
    "IoFailure",
    "CorruptRecordError",
    "UserDeclined",
    "app",
    "run",
]
