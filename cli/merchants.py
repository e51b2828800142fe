#!/usr/bin/env python3

import sys
from logger import get_logger

logger = get_logger()


def cmd_list(args, services):
    """List merchant groups and the descriptions mapped to them."""
    groups = services.merchant_groups.find_all()

    if not groups:
        logger.info("No merchant groups found.")
        return

    for group in groups:
        mappings = services.merchant_groups.find_mappings(group.id)
        logger.info(f"ID: {group.id}  {group.display_name} ({len(mappings)} descriptions)")
        for mapping in mappings:
            logger.info(f"    {mapping.pattern}")

    logger.info(f"\nTotal groups: {len(groups)}")


def cmd_create(args, services):
    """Create a merchant group."""
    try:
        group = services.merchant_groups.create(args.display_name)
    except Exception as e:
        logger.error(f"Error creating merchant group: {e}")
        sys.exit(1)

    logger.info(f"✓ Merchant group '{group.display_name}' created with ID: {group.id}")


def cmd_delete(args, services):
    """Delete a merchant group with its mappings and rules."""
    if services.merchant_groups.delete(args.group_id):
        logger.info(f"✓ Merchant group {args.group_id} deleted.")
    else:
        logger.error(f"Merchant group with ID {args.group_id} not found.")
        sys.exit(1)


def cmd_map(args, services):
    """Map a raw transaction description to a merchant group."""
    try:
        services.merchant_groups.map_merchant(args.description, args.group_id)
    except Exception as e:
        logger.error(f"Error mapping description: {e}")
        sys.exit(1)

    logger.info(f"✓ '{args.description}' now belongs to group {args.group_id}")


def cmd_unmap(args, services):
    """Remove a description from its merchant group."""
    if services.merchant_groups.unmap_merchant(args.description):
        logger.info(f"✓ '{args.description}' removed from its group.")
    else:
        logger.error(f"'{args.description}' is not mapped to a group.")
        sys.exit(1)


def setup_parser(subparsers):
    """Setup merchants subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "merchants",
        help="Manage merchant groups",
        description="Group raw transaction descriptions into merchants",
    )

    merchants_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available merchant commands",
        dest="subcommand",
        required=True,
    )

    list_parser = merchants_subparsers.add_parser("list", help="List merchant groups")
    list_parser.set_defaults(func=cmd_list)

    create_parser = merchants_subparsers.add_parser(
        "create", help="Create a merchant group"
    )
    create_parser.add_argument("display_name", help="Merchant name, e.g. Walmart")
    create_parser.set_defaults(func=cmd_create)

    delete_parser = merchants_subparsers.add_parser(
        "delete", help="Delete a merchant group"
    )
    delete_parser.add_argument("group_id", type=int)
    delete_parser.set_defaults(func=cmd_delete)

    map_parser = merchants_subparsers.add_parser(
        "map", help="Add a transaction description to a group"
    )
    map_parser.add_argument("description", help="Exact transaction description")
    map_parser.add_argument("group_id", type=int)
    map_parser.set_defaults(func=cmd_map)

    unmap_parser = merchants_subparsers.add_parser(
        "unmap", help="Remove a transaction description from its group"
    )
    unmap_parser.add_argument("description", help="Exact transaction description")
    unmap_parser.set_defaults(func=cmd_unmap)
