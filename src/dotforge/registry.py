"""SQLite-backed registry of tracked dotfiles."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from types import TracebackType
from typing import Iterator

import structlog

from .errors import AlreadyExists, IoFailure
from .models import DotfileRecord, DotfileStatus
from .paths import is_direct_child, is_within

logger = structlog.get_logger()

_COLUMNS = "id, source, target, profile, status, active"


def wal_connect(db_path: Path) -> sqlite3.Connection:
    """Open a SQLite connection in WAL mode with ``sqlite3.Row`` rows."""

    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.row_factory = sqlite3.Row
    return conn


class DotfileRegistry:
    """System of record for every tracked file's lifecycle state."""

    def __init__(self, db_path: Path, *, default_path: str | None = None) -> None:
        self.db_path = db_path
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = wal_connect(db_path)
            self._init_schema(default_path)
        except (OSError, sqlite3.Error) as exc:
            raise IoFailure(
                f"Cannot open registry database: {exc}",
                path=db_path,
                hint="Check that the database directory is writable, or point DOTFORGE_DB elsewhere.",
            ) from exc

    def _init_schema(self, default_path: str | None) -> None:
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS dotfiles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source TEXT NOT NULL,
                target TEXT NOT NULL,
                profile TEXT,
                status TEXT NOT NULL,
                active INTEGER NOT NULL DEFAULT 1
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_dotfiles_active_target
                ON dotfiles(target) WHERE active = 1;

            CREATE INDEX IF NOT EXISTS idx_dotfiles_source ON dotfiles(source);

            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)
        if default_path is not None:
            with self.conn:
                self.conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES ('default_path', ?)",
                    (default_path,),
                )

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "DotfileRegistry":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # settings table

    def set_setting(self, key: str, value: str) -> None:
        self._write("INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", (key, value))

    # ------------------------------------------------------------------
    # dotfile records

    def add(self, source: Path, target: Path, profile: str | None = None) -> DotfileRecord:
        """Insert a new active ``Staged`` record."""

        try:
            with self.conn:
                cursor = self.conn.execute(
                    "INSERT INTO dotfiles (source, target, profile, status, active) VALUES (?, ?, ?, ?, 1)",
                    (str(source), str(target), profile, DotfileStatus.STAGED.value),
                )
        except sqlite3.IntegrityError as exc:
            raise AlreadyExists(
                f"An active record already claims '{target}'",
                path=target,
                hint="Unstage or remove the existing entry first.",
            ) from exc
        except sqlite3.Error as exc:
            raise IoFailure(f"Cannot insert registry record: {exc}", path=source) from exc

        record = self._require(cursor.lastrowid)
        logger.debug("inserted dotfile record", id=record.id, source=str(source), target=str(target))
        return record

    def get(self, record_id: int) -> DotfileRecord | None:
        row = self._fetchone(f"SELECT {_COLUMNS} FROM dotfiles WHERE id = ?", (record_id,))
        return _row_to_record(row) if row else None

    def find_by_target(self, target: Path, *, active_only: bool = True) -> DotfileRecord | None:
        return self._find_one("target", target, active_only=active_only)

    def find_by_source(self, source: Path, *, active_only: bool = True) -> DotfileRecord | None:
        return self._find_one("source", source, active_only=active_only)

    def find(self, path: Path, *, active_only: bool = True) -> DotfileRecord | None:
        """Look ``path`` up as a target first, then as a source."""

        return self.find_by_target(path, active_only=active_only) or self.find_by_source(
            path, active_only=active_only
        )

    def records(
        self,
        *,
        profile: str | None = None,
        status: DotfileStatus | None = None,
        active: bool | None = True,
        under: Path | None = None,
    ) -> list[DotfileRecord]:
        """List records filtered by profile, status, active flag and target folder."""

        clauses: list[str] = []
        params: list[object] = []
        if profile is not None:
            clauses.append("profile = ?")
            params.append(profile)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if active is not None:
            clauses.append("active = ?")
            params.append(1 if active else 0)

        query = f"SELECT {_COLUMNS} FROM dotfiles"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id"

        records = [_row_to_record(row) for row in self._fetchall(query, tuple(params))]
        if under is not None:
            records = [record for record in records if is_within(record.target, under)]
        return records

    def records_within(self, folder: Path, *, recursive: bool = True) -> list[DotfileRecord]:
        """Every record, active or not, whose source or target lies in ``folder``."""

        match = is_within if recursive else is_direct_child
        return [
            record
            for record in self.records(active=None)
            if match(record.source, folder) or match(record.target, folder)
        ]

    def profiles(self) -> list[str]:
        rows = self._fetchall(
            "SELECT DISTINCT profile FROM dotfiles WHERE profile IS NOT NULL AND active = 1 ORDER BY profile",
            (),
        )
        return [row[0] for row in rows]

    def set_status(self, record: DotfileRecord, status: DotfileStatus) -> DotfileRecord:
        self._write("UPDATE dotfiles SET status = ? WHERE id = ?", (status.value, record.id))
        logger.debug("updated dotfile status", id=record.id, status=status.value)
        return self._require(record.id)

    def deactivate(self, record: DotfileRecord, *, status: DotfileStatus | None = None) -> DotfileRecord:
        if status is None:
            self._write("UPDATE dotfiles SET active = 0 WHERE id = ?", (record.id,))
        else:
            self._write(
                "UPDATE dotfiles SET active = 0, status = ? WHERE id = ?",
                (status.value, record.id),
            )
        logger.debug("deactivated dotfile record", id=record.id)
        return self._require(record.id)

    def delete(self, record: DotfileRecord) -> None:
        self._write("DELETE FROM dotfiles WHERE id = ?", (record.id,))
        logger.debug("deleted dotfile record", id=record.id)

    def __iter__(self) -> Iterator[DotfileRecord]:
        return iter(self.records(active=None))

    # ------------------------------------------------------------------
    # Internal helpers

    def _find_one(self, column: str, value: Path, *, active_only: bool) -> DotfileRecord | None:
        query = f"SELECT {_COLUMNS} FROM dotfiles WHERE {column} = ?"
        if active_only:
            query += " AND active = 1"
        query += " ORDER BY id DESC LIMIT 1"
        row = self._fetchone(query, (str(value),))
        return _row_to_record(row) if row else None

    def _require(self, record_id: int) -> DotfileRecord:
        record = self.get(record_id)
        if record is None:
            raise IoFailure(f"Registry record {record_id} vanished during update")
        return record

    def _fetchone(self, query: str, params: tuple) -> sqlite3.Row | None:
        try:
            return self.conn.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise IoFailure(f"Registry query failed: {exc}", path=self.db_path) from exc

    def _fetchall(self, query: str, params: tuple) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            raise IoFailure(f"Registry query failed: {exc}", path=self.db_path) from exc

    def _write(self, query: str, params: tuple) -> None:
        try:
            with self.conn:
                self.conn.execute(query, params)
        except sqlite3.Error as exc:
            raise IoFailure(f"Registry update failed: {exc}", path=self.db_path) from exc


def _row_to_record(row: sqlite3.Row) -> DotfileRecord:
    return DotfileRecord(
        id=row["id"],
        source=Path(row["source"]),
        target=Path(row["target"]),
        profile=row["profile"],
        status=DotfileStatus.parse(row["status"]),
        active=bool(row["active"]),
    )
