#!/usr/bin/env python3

from db.migrator import (
    apply_pending_migrations,
    get_applied_migrations,
    get_available_migrations,
    get_pending_migrations,
)
from logger import get_logger

logger = get_logger()


def cmd_status(args, db_manager):
    """Show migration status."""
    db_path = db_manager.get_db_path()

    if not db_path.exists():
        logger.info(
            "Database does not exist. Run 'python -m cli migrate apply' to create it."
        )
        return

    migrations_dir = db_manager.get_migrations_dir()
    with db_manager.connect() as conn:
        pending = get_pending_migrations(conn, migrations_dir)
        applied = get_applied_migrations(conn)
        available = get_available_migrations(migrations_dir)

    if not available:
        logger.info("No migrations found.")
        return

    logger.info("Migration Status:")
    logger.info("================")
    for migration in available:
        status_text = "PENDING" if migration in pending else "APPLIED"
        logger.info(f"{migration}: {status_text}")

    logger.info(f"\nTotal migrations: {len(available)}")
    logger.info(f"Applied: {len(applied)}")
    logger.info(f"Pending: {len(pending)}")


def cmd_apply(args, db_manager):
    """Apply pending migrations."""
    with db_manager.connect() as conn:
        applied_count = apply_pending_migrations(conn, db_manager.get_migrations_dir())

    if applied_count == 0:
        logger.info("No pending migrations.")
    else:
        logger.info(f"Successfully applied {applied_count} migration(s).")


def setup_parser(subparsers):
    """Setup migrate subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "migrate",
        help="Database migrations",
        description="Manage database schema migrations",
    )

    migrate_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available migration commands",
        dest="subcommand",
        required=True,
    )

    status_parser = migrate_subparsers.add_parser(
        "status", help="Show migration status"
    )
    status_parser.set_defaults(func=cmd_status)

    apply_parser = migrate_subparsers.add_parser(
        "apply", help="Apply pending migrations"
    )
    apply_parser.set_defaults(func=cmd_apply)
