"""Database manager for SQLite connections and path management."""

import sqlite3
from contextlib import contextmanager
from config import Config, get_migrations_dir

# Seconds a writer waits on a locked database before raising
_BUSY_TIMEOUT = 10.0


class DatabaseManager:
    """Manages database connections and paths.

    Args:
        config: Application configuration object.
    """

    def __init__(self, config: Config):
        self.config = config

    @contextmanager
    def connect(self):
        """Get a database connection with automatic cleanup.

        Foreign keys are enforced on every connection so rules and funding
        records cannot outlive the category they point at.

        Yields:
            sqlite3.Connection: Database connection.
        """
        db_path = self.config.db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(db_path, timeout=_BUSY_TIMEOUT)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def get_db_path(self):
        """Get the current database path."""
        return self.config.db_path

    def get_migrations_dir(self):
        """Get the migrations directory path."""
        return get_migrations_dir()
