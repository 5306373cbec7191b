"""Ordered SQL migrations for the reference SQLite adapter.

Each ``NNNN_name.sql`` file is applied once and recorded with its SHA-256
checksum in ``_migrations``. Editing a file after it was applied is a
deployment error and stops startup.
"""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from tandem.core.metrics import MIGRATIONS_APPLIED_TOTAL

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


class MigrationChecksumError(RuntimeError):
    def __init__(self, name: str, recorded: str, current: str) -> None:
        super().__init__(
            f"Migration {name} checksum mismatch: applied={recorded}, current={current}. "
            "Applied migrations must not be modified."
        )
        self.name = name


@dataclass(frozen=True, slots=True)
class Migration:
    name: str
    path: Path
    checksum: str

    @classmethod
    def from_path(cls, path: Path) -> Migration:
        return cls(path.name, path, hashlib.sha256(path.read_bytes()).hexdigest())


def discover(migrations_dir: Path) -> list[Migration]:
    return [Migration.from_path(p) for p in sorted(migrations_dir.glob("*.sql"))]


def _recorded(conn: sqlite3.Connection) -> dict[str, str]:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS _migrations ("
        "  name TEXT PRIMARY KEY,"
        "  checksum TEXT NOT NULL,"
        "  applied_at TEXT NOT NULL"
        ")"
    )
    conn.commit()
    rows = conn.execute("SELECT name, checksum FROM _migrations").fetchall()
    return {name: checksum for name, checksum in rows}


def _apply(conn: sqlite3.Connection, migration: Migration) -> None:
    # executescript commits any open transaction first; the bookkeeping row
    # follows in its own commit.
    conn.executescript(migration.path.read_text(encoding="utf-8"))
    conn.execute(
        "INSERT OR IGNORE INTO _migrations (name, checksum, applied_at) VALUES (?, ?, ?)",
        (migration.name, migration.checksum, datetime.now(UTC).isoformat()),
    )
    conn.commit()


def _migrate(db_path: str, migrations: list[Migration]) -> list[str]:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        recorded = _recorded(conn)
        for migration in migrations:
            previous = recorded.get(migration.name)
            if previous is not None and previous != migration.checksum:
                raise MigrationChecksumError(migration.name, previous, migration.checksum)

        applied: list[str] = []
        for migration in migrations:
            if migration.name in recorded:
                continue
            _apply(conn, migration)
            MIGRATIONS_APPLIED_TOTAL.inc()
            logger.info("Applied migration %s to %s", migration.name, db_path)
            applied.append(migration.name)
    finally:
        conn.close()
    return applied


async def run_migrations(db_path: str, migrations_dir: Path | None = None) -> list[str]:
    """Apply pending migrations in name order and return the names applied.

    Every recorded checksum is verified before anything new is applied, so a
    tampered history never gets a newer migration stacked on top of it.
    Uses plain sqlite3: aiosqlite's ``executescript`` misreads ``BEGIN``/``END``
    inside trigger bodies as transaction boundaries.

    Raises:
        MigrationChecksumError: an applied migration file was changed.
    """
    migrations = discover(migrations_dir or MIGRATIONS_DIR)
    applied = _migrate(db_path, migrations)
    if not applied:
        logger.debug("Database %s is up to date (%d migrations)", db_path, len(migrations))
    return applied


__all__ = ["MIGRATIONS_DIR", "Migration", "MigrationChecksumError", "discover", "run_migrations"]
