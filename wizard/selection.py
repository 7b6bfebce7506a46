"""Plan selection: chosen plan, billing cycle, branches and attached add-ons.

This is the mutable model behind the plan tabs of the tenant wizard and the
input of the pricing engine. It round-trips through the key/value store in
the cache shape used by the submission step.
"""

import logging
from decimal import Decimal
from typing import Any, Callable, Iterable

from pydantic import ValidationError

from wizard import pricing
from wizard.confirmation import ResourceConfirmationGate
from wizard.constants import MAX_BRANCH_COUNT, BillingCycle, PricingScope
from wizard.models import Addon, BranchSelection, Plan, SelectedAddon

logger = logging.getLogger(__name__)


def default_branch_name(index: int) -> str:
    return f"Branch {index + 1}"


def create_branch_selections(count: int, max_count: int = MAX_BRANCH_COUNT) -> list[BranchSelection]:
    """count default branches ('Branch 1'...), clamped to [0, max_count], none selected."""
    count = min(max(int(count), 0), max_count)
    return [
        BranchSelection(branch_index=i, branch_name=default_branch_name(i), is_selected=False)
        for i in range(count)
    ]


class PlanSelection:
    """Branches and add-ons chosen for a tenant plan."""

    def __init__(
        self,
        plan: Plan | None = None,
        billing_cycle: BillingCycle | str = BillingCycle.MONTHLY,
        branch_count: int = 1,
        branches: Iterable[BranchSelection] | None = None,
        selected_addons: Iterable[SelectedAddon] | None = None,
        max_branch_count: int = MAX_BRANCH_COUNT,
    ) -> None:
        self.plan = plan
        self.billing_cycle = BillingCycle(billing_cycle)
        self._max = max_branch_count
        self.branch_count = min(max(int(branch_count), 1), self.max_branches)
        self.branches: list[BranchSelection] = (
            list(branches) if branches is not None else create_branch_selections(self.branch_count, self._max)
        )
        self.selected_addons: list[SelectedAddon] = list(selected_addons or [])

    @property
    def max_branches(self) -> int:
        """Branch ceiling: the plan's included branch count, never above the global maximum."""
        if self.plan is not None and self.plan.included_branches_count:
            return min(self.plan.included_branches_count, self._max)
        return self._max

    @property
    def annual_discount_percentage(self) -> Decimal:
        return self.plan.annual_discount_percentage if self.plan is not None else Decimal(0)

    # -- plan / cycle -----------------------------------------------------

    def select_plan(self, plan: Plan, available_addon_ids: Iterable[int] | None = None) -> None:
        """Switch plan; trims branches to its limit and drops add-ons it does not offer."""
        self.plan = plan
        if self.branch_count > self.max_branches:
            self.change_branch_count(self.max_branches)
        if available_addon_ids is not None:
            allowed = set(available_addon_ids)
            dropped = [a.addon_id for a in self.selected_addons if a.addon_id not in allowed]
            if dropped:
                logger.info("Plan %s does not offer add-ons %s, removing", plan.id, dropped)
            self.selected_addons = [a for a in self.selected_addons if a.addon_id in allowed]

    def set_billing_cycle(self, billing_cycle: BillingCycle | str) -> None:
        self.billing_cycle = BillingCycle(billing_cycle)

    # -- branches ---------------------------------------------------------

    def _resized(self, entries: list[BranchSelection], count: int) -> list[BranchSelection]:
        kept = [b for b in entries if b.branch_index < count]
        present = {b.branch_index for b in kept}
        for i in range(count):
            if i not in present:
                kept.append(BranchSelection(branch_index=i, branch_name=self.branch_name(i)))
        return sorted(kept, key=lambda b: b.branch_index)

    def branch_name(self, index: int) -> str:
        for branch in self.branches:
            if branch.branch_index == index and branch.branch_name:
                return branch.branch_name
        return default_branch_name(index)

    def change_branch_count(self, count: int) -> int:
        """Resize branches and every branch-scoped add-on. Returns the applied count."""
        count = min(max(int(count), 1), self.max_branches)
        self.branches = self._resized(self.branches, count)
        for addon in self.selected_addons:
            if addon.pricing_scope is PricingScope.BRANCH:
                addon.branches = self._resized(addon.branches, count)
        self.branch_count = count
        return count

    def rename_branch(self, index: int, name: str) -> None:
        if not 0 <= index < self.branch_count:
            raise ValueError(f"Branch index {index} out of range")
        name = name.strip() or default_branch_name(index)
        for branch in self.branches:
            if branch.branch_index == index:
                branch.branch_name = name
        for addon in self.selected_addons:
            for branch in addon.branches:
                if branch.branch_index == index:
                    branch.branch_name = name

    # -- add-ons ----------------------------------------------------------

    def get_addon(self, addon_id: int) -> SelectedAddon | None:
        for addon in self.selected_addons:
            if addon.addon_id == addon_id:
                return addon
        return None

    def select_addon(
        self,
        addon: Addon,
        branch_selections: Iterable[BranchSelection] | None = None,
    ) -> SelectedAddon:
        """Attach or replace an add-on. Organization add-ons never store branches."""
        if addon.pricing_scope is PricingScope.ORGANIZATION:
            branches: list[BranchSelection] = []
        elif branch_selections is None:
            branches = [
                BranchSelection(branch_index=b.branch_index, branch_name=b.branch_name, is_selected=True)
                for b in self.branches
            ]
        else:
            branches = self._resized(
                [b.model_copy() for b in branch_selections], self.branch_count
            )
        selected = SelectedAddon(
            addon_id=addon.id,
            addon_name=addon.name,
            addon_price=addon.addon_price,
            pricing_scope=addon.pricing_scope,
            branches=branches,
            is_included=addon.is_included,
        )
        self.selected_addons = [a for a in self.selected_addons if a.addon_id != addon.id]
        self.selected_addons.append(selected)
        return selected

    def remove_addon(self, addon_id: int) -> None:
        self.selected_addons = [a for a in self.selected_addons if a.addon_id != addon_id]

    def toggle_addon_branch(self, addon_id: int, index: int) -> bool:
        """Flip one branch of a branch-scoped add-on. Returns the new flag."""
        addon = self.get_addon(addon_id)
        if addon is None or addon.pricing_scope is not PricingScope.BRANCH:
            raise ValueError(f"Add-on {addon_id} is not a selected branch add-on")
        for branch in addon.branches:
            if branch.branch_index == index:
                branch.is_selected = not branch.is_selected
                return branch.is_selected
        raise ValueError(f"Branch index {index} out of range")

    def is_addon_selected(self, addon_id: int) -> bool:
        addon = self.get_addon(addon_id)
        if addon is None:
            return False
        if addon.pricing_scope is PricingScope.ORGANIZATION:
            return True
        return addon.selected_branch_count > 0

    def addon_confirmation(self, catalogue: Callable[[], Iterable[Addon]]) -> ResourceConfirmationGate:
        """Confirmation gate for the add-on picker: selecting attaches, unselecting asks first."""

        def attach(addon_id: int) -> None:
            for addon in catalogue():
                if addon.id == addon_id:
                    self.select_addon(addon)
                    return
            logger.warning("Add-on %s not in catalogue", addon_id)

        return ResourceConfirmationGate(
            resources=catalogue,
            selected_ids=lambda: [a.addon_id for a in self.selected_addons if self.is_addon_selected(a.addon_id)],
            on_toggle=attach,
            on_remove=self.remove_addon,
            get_name=lambda addon: addon.name,
            resource_type="Add-on",
        )

    # -- pricing ----------------------------------------------------------

    def plan_cost(self) -> Decimal:
        if self.plan is None:
            return Decimal(0)
        return pricing.plan_price(
            self.plan.monthly_price, self.billing_cycle, self.branch_count, self.annual_discount_percentage
        )

    def organization_addons_cost(self) -> Decimal:
        return pricing.organization_addons_cost(
            self.selected_addons, self.billing_cycle, self.annual_discount_percentage
        )

    def branch_addons_cost(self) -> Decimal:
        return pricing.branch_addons_cost(
            self.selected_addons, self.billing_cycle, self.annual_discount_percentage
        )

    def addons_cost(self) -> Decimal:
        return pricing.total_addons_cost(
            self.selected_addons, self.billing_cycle, self.annual_discount_percentage
        )

    def total(self) -> Decimal:
        return self.plan_cost() + self.addons_cost()

    def annual_savings(self) -> Decimal:
        if self.plan is None:
            return Decimal(0)
        return pricing.annual_savings(
            self.plan, self.selected_addons, self.billing_cycle, self.branch_count
        )

    def total_label(self) -> str:
        return pricing.format_price_label(self.total(), self.billing_cycle)

    # -- cache ------------------------------------------------------------

    def to_cache(self) -> dict[str, Any]:
        return {
            "selectedPlan": self.plan.model_dump(mode="json") if self.plan is not None else None,
            "billingCycle": self.billing_cycle.value,
            "branchCount": self.branch_count,
            "branches": [b.model_dump(by_alias=True) for b in self.branches],
            "selectedAddons": [a.model_dump(mode="json", by_alias=True) for a in self.selected_addons],
        }

    @classmethod
    def from_cache(
        cls, data: dict[str, Any] | None, max_branch_count: int = MAX_BRANCH_COUNT
    ) -> "PlanSelection":
        """Rebuild from a cached record; anything unreadable yields a one-branch default."""
        if not data:
            return cls(max_branch_count=max_branch_count)
        try:
            plan_data = data.get("selectedPlan")
            return cls(
                plan=Plan.model_validate(plan_data) if plan_data else None,
                billing_cycle=data.get("billingCycle") or BillingCycle.MONTHLY,
                branch_count=int(data.get("branchCount") or 1),
                branches=[BranchSelection.model_validate(b) for b in data.get("branches") or []] or None,
                selected_addons=[SelectedAddon.model_validate(a) for a in data.get("selectedAddons") or []],
                max_branch_count=max_branch_count,
            )
        except (ValidationError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Cached plan selection is corrupted, starting fresh: %s", e)
            return cls(max_branch_count=max_branch_count)
