"""Priority-driven allocation of available funds across envelope categories.

Allocation is a single greedy pass in priority order. A higher-priority
category takes everything it still needs this month before a lower-priority
category sees any money, and nothing is ever handed back within a run. Once
the pool is empty, the remaining categories still get a plan with a zero
allocation so callers can report what is left to fund.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Optional, Union
from dateutil.parser import isoparse
from models.allocation import AllocationPlan, AllocationResult, FundingProgress
from models.category import (
    ACCUMULATION,
    DEFAULT_PRIORITY,
    MONTHLY_EXPENSE,
    TARGET_BALANCE,
    Category,
)

ZERO = Decimal("0")

Month = Union[str, date]


def _as_decimal(value) -> Decimal:
    """Coerce an amount to Decimal; missing or unparseable amounts become 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def _month_number(current_month: Month) -> int:
    """Calendar month (1-12) of a date or an ISO 'YYYY-MM[-DD]' string."""
    if isinstance(current_month, (date, datetime)):
        return current_month.month
    return isoparse(current_month).month


def monthly_accumulation_target(category: Category) -> Decimal:
    """Monthly share of an accumulation category's annual target."""
    if category.annual_target is not None:
        annual_target = _as_decimal(category.annual_target)
    else:
        annual_target = _as_decimal(category.monthly_amount) * 12
    return annual_target / 12


def compute_smart_allocation(
    categories: Iterable[Category],
    funding_progress: Dict[int, FundingProgress],
    available_funds,
    current_month: Optional[Month] = None,
) -> AllocationResult:
    """Distribute available funds across categories by priority.

    Args:
        categories: Every category; system, goal and buffer categories are skipped.
        funding_progress: Category id -> funding received so far this month.
            Categories without an entry count as unfunded.
        available_funds: Money to distribute.
        current_month: Month being funded. Targets do not depend on it; it is
            accepted so callers pass the same arguments as to the catch-up
            calculation.

    Returns:
        AllocationResult with one plan per eligible category in priority order.
    """
    eligible = [category for category in categories if category.is_allocatable]
    # sorted() is stable, so equal priorities keep their input order
    eligible = sorted(
        eligible,
        key=lambda c: c.priority if c.priority is not None else DEFAULT_PRIORITY,
    )

    available = _as_decimal(available_funds)
    remaining_funds = available
    allocations = []

    for category in eligible:
        category_type = category.category_type or MONTHLY_EXPENSE
        priority = (
            category.priority if category.priority is not None else DEFAULT_PRIORITY
        )
        progress = funding_progress.get(category.id) or FundingProgress()
        funded = _as_decimal(progress.funded)
        current_balance = _as_decimal(category.current_balance)

        target_amount = ZERO
        should_allocate = True

        if category_type == ACCUMULATION:
            target_amount = monthly_accumulation_target(category)
        elif category_type == TARGET_BALANCE:
            target_balance = _as_decimal(category.target_balance)
            if current_balance >= target_balance:
                should_allocate = False
            else:
                target_amount = target_balance - current_balance
        elif category.monthly_target is not None:
            target_amount = _as_decimal(category.monthly_target)
        else:
            target_amount = _as_decimal(category.monthly_amount)

        remaining_to_fund = max(ZERO, target_amount - funded)

        if not should_allocate or remaining_funds <= 0:
            allocated_amount = ZERO
        else:
            allocated_amount = min(remaining_to_fund, remaining_funds)
            remaining_funds -= allocated_amount

        allocations.append(
            AllocationPlan(
                category_id=category.id,
                category_name=category.name,
                current_balance=current_balance,
                target_amount=target_amount,
                funded_this_month=funded,
                remaining_to_fund=remaining_to_fund,
                allocated_amount=allocated_amount,
                priority=priority,
                category_type=category_type,
            )
        )

    return AllocationResult(
        allocations=allocations,
        total_allocated=available - remaining_funds,
        remaining_funds=remaining_funds,
    )


allocate = compute_smart_allocation


def compute_catch_up_amount(
    category: Category, ytd_funded, current_month: Month
) -> Decimal:
    """How far an accumulation category is behind its year-to-date target.

    The result is not added to compute_smart_allocation targets; callers that
    want catch-up funding add it themselves.

    Args:
        category: Category to check. Non-accumulation categories return 0.
        ytd_funded: Total funded so far this calendar year.
        current_month: Month being funded, as a date or 'YYYY-MM' string.

    Returns:
        Shortfall against monthly_target * month number, never negative.
    """
    if category.category_type != ACCUMULATION:
        return ZERO

    ytd_target = monthly_accumulation_target(category) * _month_number(current_month)
    return max(ZERO, ytd_target - _as_decimal(ytd_funded))
