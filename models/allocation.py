"""Allocation plan models produced by the allocator."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional


@dataclass
class FundingProgress:
    """How much a category has received so far in one month."""

    funded: Decimal = Decimal("0")
    target: Decimal = Decimal("0")


@dataclass
class AllocationPlan:
    """Per-category outcome of one allocation run. Not persisted."""

    category_id: int
    category_name: str
    current_balance: Decimal
    target_amount: Decimal
    funded_this_month: Decimal
    remaining_to_fund: Decimal
    allocated_amount: Decimal
    priority: int
    category_type: str


@dataclass
class AllocationResult:
    """Full allocation run: plans in priority order plus the pool totals."""

    allocations: List[AllocationPlan] = field(default_factory=list)
    total_allocated: Decimal = Decimal("0")
    remaining_funds: Decimal = Decimal("0")

    def find(self, category_id: int) -> Optional[AllocationPlan]:
        """Get the plan for a category, or None if it was not eligible."""
        for plan in self.allocations:
            if plan.category_id == category_id:
                return plan
        return None
