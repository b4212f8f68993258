"""State transitions between untracked, staged, linked and unlinked dotfiles."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Collection, Iterable, Sequence

import structlog

from .collector import collect
from .config import ConfigStore, Settings
from .errors import (
    AlreadyExists,
    ForgeError,
    IoFailure,
    NotFound,
    PreconditionFailed,
    UserDeclined,
    ValidationFailed,
)
from .filesystem import (
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
from .folders import ManagedFolderRegistry
from .models import (
    BatchReport,
    CollectedEntry,
    DotfileRecord,
    DotfileStatus,
    ItemResult,
    ManagedFolder,
)
from .paths import is_within
from .prompt import Confirmer
from .registry import DotfileRegistry

PathArg = str | os.PathLike[str]

DELETE_CONFIRMATION_TEXT = "delete"

logger = structlog.get_logger()


class SymlinkOrchestrator:
    """Moves files between their original location and the managed folder.

    Every batch operation processes its items one at a time. A failing item is
    logged and recorded in the returned :class:`BatchReport`, and the batch
    moves on; only whole-batch preconditions raise.
    """

    def __init__(
        self,
        settings: Settings,
        registry: DotfileRegistry,
        folders: ManagedFolderRegistry,
        confirmer: Confirmer,
        *,
        config: ConfigStore | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.folders = folders
        self.confirmer = confirmer
        self.config = config or ConfigStore(settings)

    # ------------------------------------------------------------------
    # Stage

    def stage(
        self,
        paths: Iterable[PathArg],
        *,
        profile: str | None = None,
        depth: int | None = None,
        extensions: Collection[str] | None = None,
        cwd: Path | None = None,
    ) -> BatchReport:
        """Symlink each path into the active managed folder and record it as staged."""

        folder = self.folders.require_active()
        ignored = self.config.ignored_paths()
        reserved = self._reserved_paths(folder)
        report = BatchReport("stage")

        for raw in paths:
            source = self.settings.normalize(raw, cwd=cwd)
            try:
                entries = self._stage_entries(source, folder, depth, ignored, reserved, extensions)
            except ForgeError as exc:
                self._record_failure(report, source, exc)
                continue
            if not entries:
                logger.info("directory has no files to stage", path=str(source), depth=depth)
            for entry in entries:
                self._run(report, entry.source, self._stage_one, entry, folder, reserved, profile)

        return report

    def _stage_entries(
        self,
        source: Path,
        folder: ManagedFolder,
        depth: int | None,
        ignored: Sequence[Path],
        reserved: Sequence[Path],
        extensions: Collection[str] | None,
    ) -> list[CollectedEntry]:
        if not lexists(source):
            raise NotFound(f"'{source}' does not exist", path=source, hint="Check the path and try again.")
        if any(is_within(source, entry) for entry in ignored):
            raise PreconditionFailed(
                f"'{source}' is on the ignored list",
                path=source,
                hint="Remove it with 'forge config ignore remove' to stage it.",
            )
        self._check_not_reserved(source, folder, reserved)
        if source.is_dir() and not source.is_symlink():
            if depth is None:
                nested = [path for path in reserved if is_within(path, source)]
                if nested:
                    raise PreconditionFailed(
                        f"'{source}' contains dotforge's own state at '{nested[0]}'",
                        path=source,
                        hint="Stage it with --depth or --recursive so that the managed folder is skipped.",
                    )
            return collect(source, depth, ignored=[*ignored, *reserved], extensions=extensions)
        return [CollectedEntry(source=source, relative=Path(source.name))]

    def _stage_one(
        self,
        entry: CollectedEntry,
        folder: ManagedFolder,
        reserved: Sequence[Path],
        profile: str | None,
    ) -> str:
        source = entry.source
        target = folder.path / entry.relative

        self._check_not_reserved(source, folder, reserved)

        existing = self.registry.find_by_source(source)
        if existing is not None:
            raise AlreadyExists(
                f"'{source}' is already tracked ({existing.status.value})",
                path=source,
                hint="Run 'forge list' to see its current state.",
            )
        if lexists(target):
            raise AlreadyExists(
                f"'{target}' already exists in the managed folder",
                path=target,
                hint="Remove or rename the existing file, or stage from a differently named directory.",
            )
        if self.registry.find_by_target(target) is not None:
            raise AlreadyExists(
                f"An active record already claims '{target}'",
                path=target,
                hint="Unstage or remove the existing entry first.",
            )

        try:
            create_symlink(target, source)
        except OSError as exc:
            raise IoFailure(f"Cannot create staging symlink '{target}': {exc}", path=target) from exc

        try:
            self.registry.add(source, target, profile)
        except ForgeError:
            remove_path(target)
            raise

        return f"staged as {target}"

    def _reserved_paths(self, folder: ManagedFolder) -> list[Path]:
        """Managed folders and dotforge's own configuration and database directories."""

        reserved = [folder.path, self.settings.config_dir, self.settings.database_path.parent]
        reserved.extend(other.path for other in self.folders.folders() if other.path not in reserved)
        return reserved

    def _check_not_reserved(self, source: Path, folder: ManagedFolder, reserved: Sequence[Path]) -> None:
        if is_within(source, folder.path):
            raise PreconditionFailed(
                f"'{source}' is inside the managed folder '{folder.path}'",
                path=source,
                hint="Only files outside the managed folder can be staged.",
            )
        for path in reserved:
            if is_within(source, path):
                raise PreconditionFailed(
                    f"'{source}' is part of dotforge's own state under '{path}'",
                    path=source,
                    hint="Managed folders, the configuration directory and the registry database cannot be staged.",
                )

    # ------------------------------------------------------------------
    # Link

    def link(self, paths: Iterable[PathArg] | None = None, *, cwd: Path | None = None) -> BatchReport:
        """Move staged files into the managed folder and symlink their original paths."""

        report = BatchReport("link")
        raw_paths = list(paths or [])

        if raw_paths:
            candidates: list[DotfileRecord] = []
            for raw in raw_paths:
                path = self.settings.normalize(raw, cwd=cwd)
                record = self.registry.find(path)
                if record is None:
                    self._record_failure(
                        report,
                        path,
                        NotFound(f"'{path}' is not tracked", path=path, hint="Stage it with 'forge stage' first."),
                    )
                elif not record.is_staged:
                    self._record_failure(
                        report,
                        path,
                        PreconditionFailed(
                            f"'{path}' is {record.status.value}; only staged files can be linked",
                            path=path,
                        ),
                    )
                else:
                    candidates.append(record)
        else:
            folder = self.folders.require_active()
            candidates = self.registry.records(status=DotfileStatus.STAGED, under=folder.path)
            if not candidates:
                raise PreconditionFailed("No staged files to link", hint="Stage files with 'forge stage' first.")

        for record in candidates:
            self._run(report, record.source, self._link_one, record)

        return report

    def _link_one(self, record: DotfileRecord) -> str:
        source, target = record.source, record.target

        if not lexists(source):
            raise NotFound(
                f"Original file '{source}' is missing",
                path=source,
                hint="Unstage the entry with 'forge unstage' and stage the file again.",
            )
        if symlink_points_to(source, target):
            raise AlreadyExists(f"'{source}' already points at '{target}'", path=source)

        backup = self._clear_target(target)

        try:
            copy_entry(source, target)
            self._validate_copy(source, target)
        except (OSError, ValidationFailed) as exc:
            self._restore_staging(record)
            if isinstance(exc, ForgeError):
                raise
            raise IoFailure(f"Cannot copy '{source}' to '{target}': {exc}", path=source) from exc

        try:
            remove_path(source)
        except OSError as exc:
            if not source.is_dir():
                self._restore_staging(record)
            raise IoFailure(
                f"Cannot remove original '{source}': {exc}",
                path=source,
                hint=f"A validated copy is kept at '{target}'.",
            ) from exc

        if lexists(source):
            self._restore_staging(record)
            raise IoFailure(
                f"'{source}' still exists after removal; refusing to create the symlink",
                path=source,
                hint="Check for another process writing to the file and retry.",
            )

        try:
            create_symlink(source, target)
        except OSError as exc:
            self._rollback_link(record)
            raise IoFailure(f"Cannot create symlink '{source}': {exc}", path=source) from exc

        self.registry.set_status(record, DotfileStatus.LINKED)
        if backup is not None:
            return f"linked to {target} (previous copy kept at {backup})"
        return f"linked to {target}"

    def _clear_target(self, target: Path) -> Path | None:
        """Make room for the managed copy, moving a non-empty file aside."""

        if target.is_symlink():
            target.unlink()
            return None
        if target.is_dir():
            raise AlreadyExists(
                f"A directory already occupies '{target}'",
                path=target,
                hint="Move the directory out of the managed folder and retry.",
            )
        if target.exists():
            if target.stat().st_size > 0:
                return backup_aside(target)
            target.unlink()
        return None

    def _validate_copy(self, source: Path, target: Path) -> None:
        try:
            expected = measure(source)
            actual = measure(target)
        except OSError as exc:
            raise ValidationFailed(
                f"Cannot read metadata to validate '{target}': {exc}",
                path=target,
                hint="The original was left in place.",
            ) from exc
        if expected != actual:
            raise ValidationFailed(
                f"Copy of '{source}' is incomplete: expected {expected[1]} bytes in {expected[0]} file(s), "
                f"found {actual[1]} bytes in {actual[0]} file(s)",
                path=source,
                hint="The original was left in place; check free space in the managed folder and retry.",
            )

    def _restore_staging(self, record: DotfileRecord) -> None:
        """Put the staging symlink back after a failed link attempt."""

        if not lexists(record.source):
            return
        try:
            remove_path(record.target)
            create_symlink(record.target, record.source)
        except OSError as exc:
            logger.error("cannot recreate staging symlink", target=str(record.target), error=str(exc))

    def _rollback_link(self, record: DotfileRecord) -> None:
        try:
            replace_with_copy(record.target, record.source)
        except OSError as exc:
            logger.error(
                "cannot restore original after failed link",
                source=str(record.source),
                copy=str(record.target),
                error=str(exc),
            )
            return
        self._restore_staging(record)

    # ------------------------------------------------------------------
    # Unlink

    def unlink(
        self,
        paths: Iterable[PathArg],
        *,
        assume_yes: bool = False,
        cwd: Path | None = None,
    ) -> BatchReport:
        """Restore linked files to their original paths and deactivate their records."""

        report = BatchReport("unlink")
        for raw in paths:
            path = self.settings.normalize(raw, cwd=cwd)
            self._run(report, path, self._unlink_one, path, assume_yes)
        return report

    def _unlink_one(self, path: Path, assume_yes: bool) -> str:
        record = self.registry.find(path)
        if record is None:
            if path.is_symlink():
                if not self._confirm(f"'{path}' is not tracked. Remove this symlink?", assume_yes):
                    raise UserDeclined(f"Kept untracked symlink '{path}'", path=path)
                path.unlink()
                return "removed untracked symlink"
            raise NotFound(f"'{path}' is not tracked", path=path, hint="Run 'forge list' to see tracked files.")

        if not record.is_linked:
            raise PreconditionFailed(
                f"'{record.source}' is {record.status.value}, not linked",
                path=record.source,
                hint="Use 'forge unstage' to drop a staged file.",
            )

        message = f"Restore '{record.source}' from '{record.target}'? The managed copy is kept."
        if not self._confirm(message, assume_yes):
            raise UserDeclined(f"Unlink of '{record.source}' cancelled", path=record.source)

        self._restore_original(record)
        self.registry.deactivate(record, status=DotfileStatus.UNLINKED)
        return f"restored {record.source}"

    def _restore_original(self, record: DotfileRecord) -> None:
        """Replace the symlink at ``source`` with a copy of the managed file."""

        source, target = record.source, record.target
        if not lexists(target):
            raise NotFound(
                f"Managed copy '{target}' is missing",
                path=target,
                hint="There is nothing to restore from; remove the entry with 'forge delete'.",
            )
        if target.is_symlink():
            raise PreconditionFailed(
                f"Managed copy '{target}' is itself a symlink",
                path=target,
                hint="The entry looks staged rather than linked; use 'forge unstage'.",
            )

        if lexists(source) and not source.is_symlink():
            backup = backup_aside(source)
            logger.warning("original path was not a symlink; moved it aside", path=str(source), backup=str(backup))

        try:
            replace_with_copy(target, source)
        except OSError as exc:
            raise IoFailure(
                f"Cannot restore '{source}' from '{target}': {exc}",
                path=source,
                hint="The symlink was left in place, so the file is still reachable.",
            ) from exc

    # ------------------------------------------------------------------
    # Remove

    def remove(
        self,
        paths: Iterable[PathArg],
        *,
        assume_yes: bool = False,
        cwd: Path | None = None,
    ) -> BatchReport:
        """Delete managed copies and forget their records, keeping the originals."""

        report = BatchReport("remove")
        for raw in paths:
            path = self.settings.normalize(raw, cwd=cwd)
            self._run(report, path, self._remove_one, path, assume_yes)
        return report

    def _remove_one(self, path: Path, assume_yes: bool) -> str:
        record = self._require_record(path)

        message = f"Delete managed copy '{record.target}'? '{record.source}' will be kept."
        if not self._confirm(message, assume_yes):
            raise UserDeclined(f"Removal of '{record.target}' cancelled", path=record.target)

        if record.source.is_symlink():
            self._restore_original(record)

        try:
            remove_path(record.target)
        except OSError as exc:
            raise IoFailure(f"Cannot delete managed copy '{record.target}': {exc}", path=record.target) from exc
        self._prune_after(record.target)
        self.registry.delete(record)
        return f"removed {record.target}"

    # ------------------------------------------------------------------
    # Delete

    def delete(
        self,
        paths: Iterable[PathArg],
        *,
        assume_yes: bool = False,
        cwd: Path | None = None,
    ) -> BatchReport:
        """Irreversibly delete both locations of each file and its record."""

        report = BatchReport("delete")
        for raw in paths:
            path = self.settings.normalize(raw, cwd=cwd)
            self._run(report, path, self._delete_one, path, assume_yes)
        return report

    def _delete_one(self, path: Path, assume_yes: bool) -> str:
        record = self._require_record(path)

        if not assume_yes:
            message = (
                f"This permanently deletes '{record.source}' and '{record.target}'. It cannot be undone."
            )
            if not self.confirmer.confirm_with_text(message, DELETE_CONFIRMATION_TEXT):
                raise UserDeclined(f"Deletion of '{record.source}' cancelled", path=record.source)

        steps: list[tuple[str, Callable[[], None]]] = [
            ("source", lambda: remove_path(record.source)),
            ("managed copy", lambda: remove_path(record.target)),
            ("registry record", lambda: self.registry.delete(record)),
        ]
        failures: list[str] = []
        for label, step in steps:
            try:
                step()
            except (OSError, ForgeError) as exc:
                logger.warning("delete step failed", step=label, path=str(record.source), error=str(exc))
                failures.append(f"{label}: {exc}")

        self._prune_after(record.target)
        if failures:
            raise IoFailure(
                "Deletion incomplete (" + "; ".join(failures) + ")",
                path=record.source,
                hint="Remove the remaining paths manually.",
            )
        return "deleted"

    # ------------------------------------------------------------------
    # Unstage

    def unstage(
        self,
        paths: Iterable[PathArg] | None = None,
        *,
        recursive: bool = False,
        cwd: Path | None = None,
    ) -> BatchReport:
        """Drop staged entries; without paths every staged entry of the active folder."""

        report = BatchReport("unstage")
        raw_paths = list(paths or [])

        if not raw_paths:
            folder = self.folders.require_active()
            for record in self.registry.records(status=DotfileStatus.STAGED, under=folder.path):
                self._run(report, record.source, self._unstage_one, record)
            return report

        for raw in raw_paths:
            path = self.settings.normalize(raw, cwd=cwd)
            if recursive:
                matches = [
                    record
                    for record in self.registry.records(status=DotfileStatus.STAGED)
                    if is_within(record.source, path) or is_within(record.target, path)
                ]
            else:
                record = self.registry.find(path)
                matches = [record] if record is not None and record.is_staged else []

            if not matches:
                self._record_failure(
                    report,
                    path,
                    NotFound(f"No staged file matches '{path}'", path=path, hint="Run 'forge list' to see staged files."),
                )
                continue
            for record in matches:
                self._run(report, record.source, self._unstage_one, record)

        return report

    def _unstage_one(self, record: DotfileRecord) -> str:
        target = record.target
        if target.is_symlink():
            target.unlink()
            self._prune_after(target)
        elif lexists(target):
            logger.warning("staging target is not a symlink; leaving it in place", target=str(target))
        self.registry.deactivate(record)
        return "unstaged"

    # ------------------------------------------------------------------
    # Purge

    def purge(
        self,
        folder: PathArg | None = None,
        *,
        recursive: bool = False,
        assume_yes: bool = False,
        cwd: Path | None = None,
    ) -> BatchReport:
        """Restore, delete and forget every record under ``folder``.

        Directories are only pruned along the parent chains of removed
        managed paths, so directories that were already empty survive.
        """

        root = self.settings.normalize(folder, cwd=cwd) if folder is not None else self.folders.require_active().path
        if not root.is_dir():
            raise NotFound(f"Folder '{root}' does not exist", path=root)

        records = self.registry.records_within(root, recursive=recursive)
        message = f"Purge {len(records)} record(s) under '{root}'? Linked files are restored first."
        if not self._confirm(message, assume_yes):
            raise UserDeclined(f"Purge of '{root}' cancelled", path=root)

        report = BatchReport("purge")
        for record in records:
            self._run(report, record.source, self._purge_one, record, root)

        logger.info("purge finished", folder=str(root), records=len(records), failed=report.failed)
        return report

    def _purge_one(self, record: DotfileRecord, root: Path) -> str:
        source, target = record.source, record.target
        managed_copy = lexists(target) and not target.is_symlink()

        restored = False
        if managed_copy and (symlink_points_to(source, target) or not lexists(source)):
            self._restore_original(record)
            restored = True

        try:
            remove_path(target)
        except OSError as exc:
            raise IoFailure(f"Cannot delete '{target}': {exc}", path=target) from exc
        self._prune_after(target, stop_at=root)
        self.registry.delete(record)
        return "restored and purged" if restored else "purged"

    # ------------------------------------------------------------------
    # Internal helpers

    def _confirm(self, message: str, assume_yes: bool) -> bool:
        return assume_yes or self.confirmer.confirm(message)

    def _require_record(self, path: Path) -> DotfileRecord:
        record = self.registry.find(path)
        if record is None:
            raise NotFound(f"'{path}' is not tracked", path=path, hint="Run 'forge list' to see tracked files.")
        return record

    def _prune_after(self, target: Path, *, stop_at: Path | None = None) -> None:
        """Remove directories emptied by deleting ``target``, never climbing past ``stop_at``."""

        if stop_at is not None and is_within(target, stop_at):
            prune_empty_parents(target, stop_at)
            return
        for folder in self.folders.folders():
            if is_within(target, folder.path):
                prune_empty_parents(target, folder.path)
                return

    def _run(self, report: BatchReport, path: Path, action: Callable[..., str], *args: object) -> None:
        try:
            message = action(*args)
        except ForgeError as exc:
            self._record_failure(report, path, exc)
        except OSError as exc:
            self._record_failure(report, path, IoFailure(f"{exc.strerror or exc}", path=path))
        else:
            logger.info("item succeeded", operation=report.operation, path=str(path), detail=message)
            report.add(ItemResult(path=path, ok=True, message=message))

    def _record_failure(self, report: BatchReport, path: Path, error: ForgeError) -> None:
        logger.warning(
            "item failed",
            operation=report.operation,
            path=str(path),
            error=str(error),
            kind=type(error).__name__,
        )
        report.add(ItemResult(path=path, ok=False, message=str(error), error=error))
