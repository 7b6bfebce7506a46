"""Tests for PlanSelection: branches, add-ons, pricing accessors and cache round-trip."""

from decimal import Decimal

import pytest

from wizard.constants import BillingCycle, PricingScope
from wizard.models import Addon, BranchSelection, Plan
from wizard.selection import PlanSelection, create_branch_selections

ANALYTICS = Addon(id=10, name="Analytics", addon_price=20, pricing_scope=PricingScope.ORGANIZATION)
KIOSK = Addon(id=11, name="Kiosk", addon_price=15, pricing_scope=PricingScope.BRANCH)


@pytest.fixture
def plan() -> Plan:
    return Plan(id=1, name="Standard", monthly_price=100, annual_discount_percentage=15)


@pytest.fixture
def selection(plan: Plan) -> PlanSelection:
    sel = PlanSelection(plan=plan, branch_count=3)
    sel.select_addon(ANALYTICS)
    sel.select_addon(
        KIOSK,
        [
            BranchSelection(branch_index=0, branch_name="Downtown", is_selected=True),
            BranchSelection(branch_index=1, branch_name="Branch 2", is_selected=True),
            BranchSelection(branch_index=2, branch_name="Branch 3", is_selected=False),
        ],
    )
    return sel


class TestBranches:
    """Branch list management."""

    def test_create_branch_selections_defaults(self) -> None:
        branches = create_branch_selections(2)
        assert [(b.branch_index, b.branch_name, b.is_selected) for b in branches] == [
            (0, "Branch 1", False),
            (1, "Branch 2", False),
        ]

    def test_create_branch_selections_clamped(self) -> None:
        assert create_branch_selections(-4) == []
        assert len(create_branch_selections(500)) == 100

    def test_change_branch_count_clamps_and_resizes_addons(self, selection: PlanSelection) -> None:
        assert selection.change_branch_count(0) == 1
        kiosk = selection.get_addon(11)
        assert [b.branch_index for b in kiosk.branches] == [0]
        assert selection.change_branch_count(2) == 2
        assert kiosk.branches[0].branch_name == "Downtown"
        assert kiosk.branches[1].is_selected is False
        assert selection.get_addon(10).branches == []

    def test_plan_limit_caps_branch_count(self) -> None:
        small = Plan(id=2, name="Small", monthly_price=50, included_branches_count=2)
        sel = PlanSelection(plan=small)
        assert sel.change_branch_count(10) == 2

    def test_rename_branch_updates_addons(self, selection: PlanSelection) -> None:
        selection.rename_branch(1, "Harbour")
        assert selection.branches[1].branch_name == "Harbour"
        assert selection.get_addon(11).branches[1].branch_name == "Harbour"
        selection.rename_branch(1, "  ")
        assert selection.branch_name(1) == "Branch 2"

    def test_rename_out_of_range(self, selection: PlanSelection) -> None:
        with pytest.raises(ValueError):
            selection.rename_branch(3, "Nope")


class TestAddons:
    """Attaching, toggling and removing add-ons."""

    def test_organization_addon_stores_no_branches(self, selection: PlanSelection) -> None:
        assert selection.get_addon(10).branches == []
        assert selection.is_addon_selected(10)

    def test_branch_addon_needs_a_selected_branch(self, selection: PlanSelection) -> None:
        assert selection.is_addon_selected(11)
        selection.toggle_addon_branch(11, 0)
        selection.toggle_addon_branch(11, 1)
        assert not selection.is_addon_selected(11)

    def test_select_replaces_existing(self, selection: PlanSelection) -> None:
        selection.select_addon(KIOSK)
        assert [a.addon_id for a in selection.selected_addons].count(11) == 1
        assert selection.get_addon(11).selected_branch_count == 3

    def test_select_plan_drops_unoffered_addons(self, selection: PlanSelection) -> None:
        other = Plan(id=3, name="Lite", monthly_price=40, included_branches_count=2)
        selection.select_plan(other, available_addon_ids=[11])
        assert selection.get_addon(10) is None
        assert selection.branch_count == 2

    def test_confirmation_gate_removes_after_confirm(self, selection: PlanSelection) -> None:
        gate = selection.addon_confirmation(lambda: [ANALYTICS, KIOSK])
        assert gate.request_toggle(10) is False
        assert selection.get_addon(10) is not None
        assert gate.confirm() == 10
        assert selection.get_addon(10) is None
        assert gate.request_toggle(10) is True
        assert selection.is_addon_selected(10)


class TestPricingAndCache:
    def test_totals(self, selection: PlanSelection) -> None:
        assert selection.total() == Decimal(350)
        assert selection.organization_addons_cost() == Decimal(20)
        assert selection.branch_addons_cost() == Decimal(30)
        selection.set_billing_cycle(BillingCycle.YEARLY)
        assert selection.total() == Decimal(3570)
        assert selection.total_label() == "$3570/year"
        assert selection.annual_savings() == Decimal(630)

    def test_cache_round_trip(self, selection: PlanSelection) -> None:
        restored = PlanSelection.from_cache(selection.to_cache())
        assert restored.plan == selection.plan
        assert restored.branch_count == 3
        assert restored.get_addon(11).branches[0].branch_name == "Downtown"
        assert restored.total() == Decimal(350)

    def test_cache_uses_wire_names(self, selection: PlanSelection) -> None:
        cached = selection.to_cache()
        assert set(cached) == {"selectedPlan", "billingCycle", "branchCount", "branches", "selectedAddons"}
        assert cached["branches"][0] == {"branchIndex": 0, "branchName": "Branch 1", "isSelected": False}

    @pytest.mark.parametrize("data", [None, {}, {"branchCount": "many"}, {"selectedAddons": [{"x": 1}]}])
    def test_corrupted_cache_falls_back(self, data) -> None:
        sel = PlanSelection.from_cache(data)
        assert sel.plan is None
        assert sel.branch_count == 1
        assert len(sel.branches) == 1
