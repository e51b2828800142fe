"""SQL migration runner.

Migrations are plain .sql files applied in filename order. Applied files are
recorded in schema_migrations so each runs once per database.
"""

import sqlite3
from pathlib import Path
from typing import List, Set
from logger import get_logger

logger = get_logger()


def init_schema_migrations_table(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            migration_file TEXT PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    conn.commit()


def get_applied_migrations(conn: sqlite3.Connection) -> Set[str]:
    cursor = conn.execute("SELECT migration_file FROM schema_migrations")
    return {row[0] for row in cursor.fetchall()}


def get_available_migrations(migrations_dir: Path) -> List[str]:
    if not migrations_dir.exists():
        return []
    return sorted(path.name for path in migrations_dir.glob("*.sql"))


def get_pending_migrations(conn: sqlite3.Connection, migrations_dir: Path) -> List[str]:
    init_schema_migrations_table(conn)
    applied = get_applied_migrations(conn)
    return [m for m in get_available_migrations(migrations_dir) if m not in applied]


def apply_migration(
    conn: sqlite3.Connection, migrations_dir: Path, migration_file: str
) -> None:
    """Run one migration file and record it.

    Raises:
        sqlite3.Error: If the SQL fails. The migration is not recorded.
    """
    sql = (migrations_dir / migration_file).read_text()

    try:
        conn.executescript(sql)
        conn.execute(
            "INSERT INTO schema_migrations (migration_file) VALUES (?)",
            (migration_file,),
        )
        conn.commit()
        logger.info(f"Applied migration: {migration_file}")
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Error applying migration {migration_file}: {e}")
        raise


def apply_pending_migrations(conn: sqlite3.Connection, migrations_dir: Path) -> int:
    """Apply every pending migration in order.

    Returns:
        Number of migrations applied.
    """
    pending = get_pending_migrations(conn, migrations_dir)
    for migration_file in pending:
        apply_migration(conn, migrations_dir, migration_file)
    return len(pending)
