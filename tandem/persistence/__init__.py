from tandem.persistence.migrations import run_migrations
from tandem.persistence.sqlite_adapter import SQLiteDatabaseAdapter

__all__ = ["SQLiteDatabaseAdapter", "run_migrations"]
