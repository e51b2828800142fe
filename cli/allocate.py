#!/usr/bin/env python3

import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from allocation import compute_catch_up_amount, compute_smart_allocation
from models.category import ACCUMULATION
from services.funding import month_key
from logger import get_logger

logger = get_logger()


def _amount(value):
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value}")
    return amount


def cmd_plan(args, services):
    """Show (and optionally apply) a priority allocation of available funds."""
    month = month_key(args.month or date.today())
    categories = services.categories.find_all()
    progress = services.funding.get_funding_progress(month)

    result = compute_smart_allocation(categories, progress, args.amount, month)

    logger.info(f"\nAllocation plan for {month} ({args.amount:.2f} available)")
    logger.info("=" * 80)
    for plan in result.allocations:
        logger.info(
            f"[P{plan.priority}] {plan.category_name:<24} "
            f"target {plan.target_amount:>10.2f}  "
            f"funded {plan.funded_this_month:>10.2f}  "
            f"needs {plan.remaining_to_fund:>10.2f}  "
            f"-> {plan.allocated_amount:>10.2f}"
        )
    logger.info("=" * 80)
    logger.info(f"Total allocated: {result.total_allocated:.2f}")
    logger.info(f"Remaining funds: {result.remaining_funds:.2f}")

    if args.apply:
        try:
            funded = services.funding.apply_allocation(result, month)
        except Exception as e:
            logger.error(f"Error applying allocation: {e}")
            sys.exit(1)
        logger.info(f"✓ Funded {funded} categories")


def cmd_catch_up(args, services):
    """Show how far behind each accumulation category is this year."""
    month = month_key(args.month or date.today())
    categories = [
        c
        for c in services.categories.find_all()
        if c.category_type == ACCUMULATION and c.is_allocatable
    ]

    if not categories:
        logger.info("No accumulation categories found.")
        return

    logger.info(f"\nCatch-up amounts through {month}")
    logger.info("=" * 80)
    total = Decimal("0")
    for category in categories:
        ytd_funded = services.funding.get_ytd_funded(category.id, month)
        shortfall = compute_catch_up_amount(category, ytd_funded, month)
        total += shortfall
        logger.info(
            f"{category.name:<24} funded {ytd_funded:>10.2f}  behind {shortfall:>10.2f}"
        )
    logger.info("=" * 80)
    logger.info(f"Total behind: {total:.2f}")


def setup_parser(subparsers):
    """Setup allocate subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "allocate",
        help="Distribute available money across categories",
        description="Plan and apply priority-based envelope funding",
    )

    allocate_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available allocation commands",
        dest="subcommand",
        required=True,
    )

    plan_parser = allocate_subparsers.add_parser(
        "plan", help="Show the allocation for an amount"
    )
    plan_parser.add_argument("amount", type=_amount, help="Money available to allocate")
    plan_parser.add_argument(
        "--month", default=None, help="Month to fund, YYYY-MM (default: this month)"
    )
    plan_parser.add_argument(
        "--apply", action="store_true", help="Update balances and funding records"
    )
    plan_parser.set_defaults(func=cmd_plan)

    catch_up_parser = allocate_subparsers.add_parser(
        "catch-up", help="Show accumulation shortfalls for the year"
    )
    catch_up_parser.add_argument(
        "--month", default=None, help="Month to measure through, YYYY-MM"
    )
    catch_up_parser.set_defaults(func=cmd_catch_up)
