"""Category model for envelope budgeting."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

MONTHLY_EXPENSE = "monthly_expense"
ACCUMULATION = "accumulation"
TARGET_BALANCE = "target_balance"

CATEGORY_TYPES = (MONTHLY_EXPENSE, ACCUMULATION, TARGET_BALANCE)

DEFAULT_PRIORITY = 5


@dataclass
class Category:
    """Represents an envelope category with its own running balance.

    Attributes:
        id: Unique identifier (auto-generated).
        name: Category name (unique).
        description: Optional description of what belongs in this category.
        parent_id: Optional parent category ID for hierarchical categories.
        category_type: One of monthly_expense, accumulation, target_balance.
        priority: Funding priority, 1 (highest) to 10 (lowest).
        monthly_amount: Plain monthly target, also the fallback for other types.
        monthly_target: Optional override of monthly_amount for monthly expenses.
        annual_target: Yearly goal for accumulation categories.
        target_balance: Balance a target_balance category should reach.
        current_balance: Running envelope balance.
        is_system: System category (e.g. transfers), never funded.
        is_buffer: Income buffer, never funded by allocation.
        is_goal: Savings goal, funded outside of allocation.
    """

    id: int
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    category_type: str = MONTHLY_EXPENSE
    priority: int = DEFAULT_PRIORITY
    monthly_amount: Decimal = Decimal("0")
    monthly_target: Optional[Decimal] = None
    annual_target: Optional[Decimal] = None
    target_balance: Optional[Decimal] = None
    current_balance: Decimal = Decimal("0")
    is_system: bool = False
    is_buffer: bool = False
    is_goal: bool = False

    @property
    def is_allocatable(self) -> bool:
        """Whether the allocator should consider this category at all."""
        return not (self.is_system or self.is_goal or self.is_buffer)
