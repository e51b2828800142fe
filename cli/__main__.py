#!/usr/bin/env python3
"""
Budgetwise CLI - envelope categories, merchant classification and allocation.

Usage:
    python -m cli <command> <subcommand> [options]

Commands:
    categories   Manage envelope categories
    merchants    Group transaction descriptions into merchants
    rules        Classify merchants and manage learned rules
    allocate     Distribute available money across categories
    migrate      Database migrations

Examples:
    python -m cli migrate apply
    python -m cli categories seed
    python -m cli rules classify "KROGER #123"
    python -m cli rules learn "KROGER #123" 1
    python -m cli allocate plan 2500 --month 2024-03 --apply
"""

import sys
import argparse
from cli import allocate, categories, merchants, migrate, rules
from config import load_config
from services.base import Services
from db.manager import DatabaseManager
from logger import setup_logging


def main():
    """Main CLI entry point with subcommands."""
    parser = argparse.ArgumentParser(
        prog="cli",
        description="Budgetwise - envelope budgeting intelligence",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )

    categories.setup_parser(subparsers)
    merchants.setup_parser(subparsers)
    rules.setup_parser(subparsers)
    allocate.setup_parser(subparsers)
    migrate.setup_parser(subparsers)

    args = parser.parse_args()

    if hasattr(args, "func"):
        try:
            config = load_config()
            setup_logging(config)

            # Migrate commands need db_manager for raw database operations
            if args.command == "migrate":
                args.func(args, DatabaseManager(config))
            else:
                args.func(args, Services(config))
        except Exception as e:
            print(f"Error: {e}")
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
