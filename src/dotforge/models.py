"""Shared models and enums for dotforge."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .errors import CorruptRecordError, ForgeError

STATE_DIR_NAME = ".forge"


class DotfileStatus(str, Enum):
    """Lifecycle states of a tracked dotfile."""

    STAGED = "Staged"
    LINKED = "Linked"
    UNLINKED = "Unlinked"

    @classmethod
    def parse(cls, raw: str) -> "DotfileStatus":
        """Parse a stored status value, rejecting anything unknown."""

        try:
            return cls(raw)
        except ValueError:
            raise CorruptRecordError(
                f"Unknown dotfile status '{raw}' in registry",
                hint="The registry database may be corrupted; inspect it before running further commands.",
            ) from None


@dataclass(frozen=True, slots=True)
class DotfileRecord:
    """One row of the dotfile registry."""

    id: int
    source: Path
    target: Path
    profile: str | None
    status: DotfileStatus
    active: bool = True

    @property
    def is_staged(self) -> bool:
        return self.status is DotfileStatus.STAGED

    @property
    def is_linked(self) -> bool:
        return self.status is DotfileStatus.LINKED


@dataclass(frozen=True, slots=True)
class ManagedFolder:
    """A named directory that stores relocated dotfiles."""

    name: str
    path: Path

    def to_line(self) -> str:
        return f"{self.name}:{self.path}"

    @property
    def state_dir(self) -> Path:
        return self.path / STATE_DIR_NAME


@dataclass(frozen=True, slots=True)
class CollectedEntry:
    """A file found by the collector and its path relative to the managed folder."""

    source: Path
    relative: Path


@dataclass(frozen=True, slots=True)
class ItemResult:
    """Outcome of one item inside a batch operation."""

    path: Path
    ok: bool
    message: str
    error: ForgeError | None = None


@dataclass(slots=True)
class BatchReport:
    """Per-item results of an orchestrator operation."""

    operation: str
    results: list[ItemResult] = field(default_factory=list)

    def add(self, result: ItemResult) -> None:
        self.results.append(result)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.ok)

    @property
    def empty(self) -> bool:
        return not self.results

    def tally(self) -> str:
        return f"{self.succeeded} succeeded, {self.failed} failed"
