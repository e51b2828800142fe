"""Tests for priority-driven fund allocation."""

from datetime import date
from decimal import Decimal

import pytest

from allocation import compute_catch_up_amount, compute_smart_allocation
from models.allocation import FundingProgress
from tests.helpers import make_category


def _allocated(result):
    return {plan.category_id: plan.allocated_amount for plan in result.allocations}


class TestComputeSmartAllocation:
    """Tests for compute_smart_allocation."""

    def test_two_monthly_expenses(self):
        categories = [
            make_category(1, category_type="monthly_expense", monthly_amount=200, priority=1),
            make_category(2, category_type="monthly_expense", monthly_amount=100, priority=2),
        ]

        result = compute_smart_allocation(categories, {}, Decimal("250"), "2024-03")

        assert _allocated(result) == {1: Decimal("200"), 2: Decimal("50")}
        assert result.total_allocated == Decimal("250")
        assert result.remaining_funds == Decimal("0")

    def test_priority_order_beats_input_order(self):
        categories = [
            make_category(1, monthly_amount=100, priority=5),
            make_category(2, monthly_amount=300, priority=1),
        ]

        result = compute_smart_allocation(categories, {}, Decimal("200"), "2024-03")

        # Category 2 cannot be fully funded, so category 1 gets nothing
        assert [plan.category_id for plan in result.allocations] == [2, 1]
        assert _allocated(result) == {2: Decimal("200"), 1: Decimal("0")}

    def test_equal_priority_keeps_input_order(self):
        categories = [
            make_category(3, monthly_amount=50, priority=2),
            make_category(1, monthly_amount=50, priority=2),
            make_category(2, monthly_amount=50, priority=2),
        ]

        result = compute_smart_allocation(categories, {}, Decimal("75"), "2024-03")

        assert [plan.category_id for plan in result.allocations] == [3, 1, 2]
        assert _allocated(result) == {
            3: Decimal("50"),
            1: Decimal("25"),
            2: Decimal("0"),
        }

    def test_excluded_categories(self):
        categories = [
            make_category(1, monthly_amount=100, is_system=True),
            make_category(2, monthly_amount=100, is_buffer=True),
            make_category(3, monthly_amount=100, is_goal=True),
            make_category(4, monthly_amount=100),
        ]

        result = compute_smart_allocation(categories, {}, Decimal("1000"), "2024-03")

        assert [plan.category_id for plan in result.allocations] == [4]
        assert result.remaining_funds == Decimal("900")

    def test_funded_this_month_reduces_need(self):
        categories = [make_category(1, monthly_amount=200, priority=1)]
        progress = {1: FundingProgress(funded=Decimal("150"), target=Decimal("200"))}

        result = compute_smart_allocation(categories, progress, Decimal("500"), "2024-03")
        plan = result.find(1)

        assert plan.target_amount == Decimal("200")
        assert plan.funded_this_month == Decimal("150")
        assert plan.remaining_to_fund == Decimal("50")
        assert plan.allocated_amount == Decimal("50")

    def test_overfunded_category_needs_nothing(self):
        categories = [make_category(1, monthly_amount=200)]
        progress = {1: FundingProgress(funded=Decimal("300"))}

        result = compute_smart_allocation(categories, progress, Decimal("500"), "2024-03")

        assert result.find(1).remaining_to_fund == Decimal("0")
        assert result.total_allocated == Decimal("0")

    def test_monthly_target_overrides_monthly_amount(self):
        categories = [make_category(1, monthly_amount=200, monthly_target=120)]

        result = compute_smart_allocation(categories, {}, Decimal("500"), "2024-03")

        assert result.find(1).allocated_amount == Decimal("120")

    def test_accumulation_uses_annual_target(self):
        categories = [
            make_category(1, category_type="accumulation", monthly_amount=10, annual_target=1200),
            make_category(2, category_type="accumulation", monthly_amount=25),
        ]

        result = compute_smart_allocation(categories, {}, Decimal("1000"), "2024-03")

        assert result.find(1).target_amount == Decimal("100")
        assert result.find(2).target_amount == Decimal("25")

    def test_target_balance_below_target(self):
        categories = [
            make_category(
                1,
                category_type="target_balance",
                target_balance=1000,
                current_balance=400,
            )
        ]

        result = compute_smart_allocation(categories, {}, Decimal("5000"), "2024-03")

        assert result.find(1).target_amount == Decimal("600")
        assert result.find(1).allocated_amount == Decimal("600")

    @pytest.mark.parametrize("current_balance", [1000, 1500])
    def test_target_balance_already_reached(self, current_balance):
        categories = [
            make_category(
                1,
                category_type="target_balance",
                target_balance=1000,
                current_balance=current_balance,
                priority=1,
            ),
            make_category(2, monthly_amount=100, priority=2),
        ]

        result = compute_smart_allocation(categories, {}, Decimal("5000"), "2024-03")

        assert result.find(1).allocated_amount == Decimal("0")
        assert result.find(1).remaining_to_fund == Decimal("0")
        assert result.find(2).allocated_amount == Decimal("100")

    def test_empty_pool_still_reports_every_category(self):
        categories = [
            make_category(1, monthly_amount=100, priority=1),
            make_category(2, monthly_amount=100, priority=2),
            make_category(3, monthly_amount=100, priority=3),
        ]

        result = compute_smart_allocation(categories, {}, Decimal("100"), "2024-03")

        assert [plan.category_id for plan in result.allocations] == [1, 2, 3]
        assert _allocated(result) == {1: Decimal("100"), 2: Decimal("0"), 3: Decimal("0")}
        assert result.find(3).remaining_to_fund == Decimal("100")

    def test_negative_available_funds(self):
        categories = [make_category(1, monthly_amount=100)]

        result = compute_smart_allocation(categories, {}, Decimal("-50"), "2024-03")

        assert result.find(1).allocated_amount == Decimal("0")
        assert result.total_allocated == Decimal("0")
        assert result.remaining_funds == Decimal("-50")

    def test_malformed_targets_degrade_to_zero(self):
        categories = [
            make_category(1, monthly_amount=None, priority=None),
            make_category(2, category_type="target_balance", target_balance=None),
            make_category(3, monthly_amount=-40),
            make_category(4, monthly_amount=60),
        ]

        result = compute_smart_allocation(categories, {}, 100, "2024-03")

        assert result.find(1).allocated_amount == Decimal("0")
        assert result.find(1).priority == 5
        assert result.find(2).allocated_amount == Decimal("0")
        assert result.find(3).allocated_amount == Decimal("0")
        assert result.find(4).allocated_amount == Decimal("60")

    def test_float_inputs_are_accepted(self):
        categories = [make_category(1, monthly_amount=19.99)]

        result = compute_smart_allocation(categories, {}, 50.0, "2024-03")

        assert result.find(1).allocated_amount == Decimal("19.99")

    def test_conservation(self):
        categories = [
            make_category(1, category_type="accumulation", annual_target=1200, priority=2),
            make_category(2, monthly_amount=333.33, priority=1),
            make_category(
                3, category_type="target_balance", target_balance=250, current_balance=10
            ),
            make_category(4, monthly_amount=75, priority=9),
        ]
        progress = {4: FundingProgress(funded=Decimal("20"))}

        for available in ["0", "1", "100.01", "500", "650.55", "10000"]:
            result = compute_smart_allocation(
                categories, progress, Decimal(available), "2024-03"
            )
            allocated = sum(p.allocated_amount for p in result.allocations)

            assert result.total_allocated + result.remaining_funds == Decimal(available)
            assert allocated == result.total_allocated
            assert all(p.allocated_amount >= 0 for p in result.allocations)


class TestComputeCatchUpAmount:
    """Tests for compute_catch_up_amount."""

    def test_behind_schedule(self):
        category = make_category(1, category_type="accumulation", annual_target=1200)

        assert compute_catch_up_amount(category, Decimal("150"), "2024-03") == Decimal("150")

    def test_ahead_of_schedule(self):
        category = make_category(1, category_type="accumulation", annual_target=1200)

        assert compute_catch_up_amount(category, Decimal("900"), "2024-03") == Decimal("0")

    def test_falls_back_to_monthly_amount(self):
        category = make_category(1, category_type="accumulation", monthly_amount=50)

        assert compute_catch_up_amount(category, Decimal("0"), date(2024, 12, 15)) == Decimal(
            "600"
        )

    def test_accepts_full_iso_date(self):
        category = make_category(1, category_type="accumulation", annual_target=1200)

        assert compute_catch_up_amount(category, 0, "2024-06-01") == Decimal("600")

    def test_non_accumulation_is_zero(self):
        category = make_category(1, category_type="monthly_expense", monthly_amount=50)

        assert compute_catch_up_amount(category, Decimal("0"), "2024-06") == Decimal("0")

    def test_not_included_in_allocation_target(self):
        category = make_category(1, category_type="accumulation", annual_target=1200)

        result = compute_smart_allocation([category], {}, Decimal("5000"), "2024-06")

        assert result.find(1).target_amount == Decimal("100")
