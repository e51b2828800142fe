#!/usr/bin/env python3

import sys
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from models.category import CATEGORY_TYPES, DEFAULT_PRIORITY
from logger import get_logger

logger = get_logger()


def _decimal_arg(value):
    """argparse type for money amounts."""
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value}")
    return amount


def cmd_list(args, services):
    """List all categories in the database."""
    categories = services.categories.find_all()

    if not categories:
        logger.info("No categories found.")
        return

    logger.info("\nCategories:")
    logger.info("=" * 80)
    for category in categories:
        flags = [
            name
            for name, enabled in (
                ("system", category.is_system),
                ("buffer", category.is_buffer),
                ("goal", category.is_goal),
            )
            if enabled
        ]
        logger.info(f"ID: {category.id}  Name: {category.name}")
        logger.info(
            f"  Type: {category.category_type}  Priority: {category.priority}  "
            f"Balance: {category.current_balance:.2f}"
        )
        if category.target_balance is not None:
            logger.info(f"  Target balance: {category.target_balance:.2f}")
        elif category.annual_target is not None:
            logger.info(f"  Annual target: {category.annual_target:.2f}")
        else:
            logger.info(f"  Monthly amount: {category.monthly_amount:.2f}")
        if flags:
            logger.info(f"  Flags: {', '.join(flags)}")
        logger.info("-" * 80)

    logger.info(f"\nTotal categories: {len(categories)}")


def cmd_create(args, services):
    """Create a new category from command-line options."""
    try:
        category = services.categories.create(
            args.name,
            description=args.description,
            parent_id=args.parent_id,
            category_type=args.type,
            priority=args.priority,
            monthly_amount=args.monthly_amount,
            monthly_target=args.monthly_target,
            annual_target=args.annual_target,
            target_balance=args.target_balance,
            is_system=args.system,
            is_buffer=args.buffer,
            is_goal=args.goal,
        )
    except Exception as e:
        logger.error(f"Error creating category: {e}")
        sys.exit(1)

    logger.info(f"✓ Category created successfully with ID: {category.id}")
    logger.info(f"  Name: {category.name}")
    logger.info(f"  Type: {category.category_type}  Priority: {category.priority}")


def cmd_delete(args, services):
    """Delete a category by ID."""
    category = services.categories.find(args.category_id)
    if not category:
        logger.error(f"Category with ID {args.category_id} not found.")
        sys.exit(1)

    logger.info("\nCategory to delete:")
    logger.info(f"  ID: {category.id}")
    logger.info(f"  Name: {category.name}")
    logger.info("  Rules and funding history for this category are deleted too.")

    if not args.yes:
        confirm = (
            input("\nAre you sure you want to delete this category? (yes/no): ")
            .strip()
            .lower()
        )
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    if services.categories.delete(category.id):
        logger.info(f"✓ Category '{category.name}' deleted successfully.")
    else:
        logger.error("Failed to delete category.")
        sys.exit(1)


def cmd_seed(args, services):
    """Seed categories from JSON file."""
    seed_file = (
        Path(args.file)
        if args.file
        else Path(__file__).parent.parent / "db" / "seed" / "categories.json"
    )

    if not seed_file.exists():
        logger.error(f"Seed file not found: {seed_file}")
        sys.exit(1)

    try:
        with open(seed_file, "r") as f:
            categories_data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing JSON file: {e}")
        sys.exit(1)

    logger.info(f"\nSeeding categories from {seed_file}")
    logger.info("=" * 80)

    created_count = 0
    skipped_count = 0

    for category_data in categories_data:
        name = category_data.get("name")
        if not name:
            logger.warning("Skipping category with no name")
            continue

        if services.categories.find_by_name(name):
            logger.info(f"⊘ Skipped '{name}' (already exists)")
            skipped_count += 1
            continue

        amounts = {
            key: Decimal(str(category_data[key]))
            for key in ("monthly_amount", "monthly_target", "annual_target", "target_balance")
            if category_data.get(key) is not None
        }
        try:
            category = services.categories.create(
                name,
                description=category_data.get("description"),
                category_type=category_data.get("category_type", "monthly_expense"),
                priority=category_data.get("priority", DEFAULT_PRIORITY),
                is_system=category_data.get("is_system", False),
                is_buffer=category_data.get("is_buffer", False),
                is_goal=category_data.get("is_goal", False),
                **amounts,
            )
        except Exception as e:
            logger.error(f"Error creating category '{name}': {e}")
            continue

        logger.info(f"✓ Created '{name}' (ID: {category.id})")
        created_count += 1

    logger.info("=" * 80)
    logger.info("\nSeeding complete!")
    logger.info(f"Created: {created_count}")
    logger.info(f"Skipped: {skipped_count}")


def setup_parser(subparsers):
    """Setup categories subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "categories",
        help="Manage envelope categories",
        description="Create, list, and delete envelope categories",
    )

    categories_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available category commands",
        dest="subcommand",
        required=True,
    )

    list_parser = categories_subparsers.add_parser("list", help="List all categories")
    list_parser.set_defaults(func=cmd_list)

    create_parser = categories_subparsers.add_parser(
        "create", help="Create a new category"
    )
    create_parser.add_argument("name", help="Category name, e.g. Groceries")
    create_parser.add_argument("--description", default=None)
    create_parser.add_argument("--parent-id", type=int, default=None)
    create_parser.add_argument(
        "--type", choices=CATEGORY_TYPES, default="monthly_expense"
    )
    create_parser.add_argument(
        "--priority",
        type=int,
        default=DEFAULT_PRIORITY,
        help="1 (highest) to 10 (lowest)",
    )
    create_parser.add_argument(
        "--monthly-amount", type=_decimal_arg, default=Decimal("0")
    )
    create_parser.add_argument("--monthly-target", type=_decimal_arg, default=None)
    create_parser.add_argument("--annual-target", type=_decimal_arg, default=None)
    create_parser.add_argument("--target-balance", type=_decimal_arg, default=None)
    create_parser.add_argument("--system", action="store_true")
    create_parser.add_argument("--buffer", action="store_true")
    create_parser.add_argument("--goal", action="store_true")
    create_parser.set_defaults(func=cmd_create)

    delete_parser = categories_subparsers.add_parser(
        "delete", help="Delete a category by ID"
    )
    delete_parser.add_argument(
        "category_id",
        type=int,
        help="ID of the category to delete",
    )
    delete_parser.add_argument(
        "--yes", action="store_true", help="Skip the confirmation prompt"
    )
    delete_parser.set_defaults(func=cmd_delete)

    seed_parser = categories_subparsers.add_parser(
        "seed", help="Seed categories from JSON file"
    )
    seed_parser.add_argument(
        "--file", default=None, help="JSON file (defaults to db/seed/categories.json)"
    )
    seed_parser.set_defaults(func=cmd_seed)
