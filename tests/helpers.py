"""Helper utilities for tests."""

from decimal import Decimal

from models.category import Category


def make_category(category_id: int, name: str = None, **fields) -> Category:
    """Build an in-memory Category, converting numeric fields to Decimal."""
    for key in (
        "monthly_amount",
        "monthly_target",
        "annual_target",
        "target_balance",
        "current_balance",
    ):
        if key in fields and fields[key] is not None:
            fields[key] = Decimal(str(fields[key]))
    return Category(id=category_id, name=name or f"Category {category_id}", **fields)
