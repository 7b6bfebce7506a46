"""Pricing engine for plan and add-on billing.

Pure functions over Decimal. Amounts are never rounded while accumulating;
display_amount() floors to whole currency units and is meant for rendering
only.
"""

from decimal import ROUND_FLOOR, Decimal
from typing import Any, Iterable

from wizard.constants import BillingCycle, PricingScope
from wizard.models import Plan, SelectedAddon, to_decimal

_ZERO = Decimal(0)
_HUNDRED = Decimal(100)
_MONTHS = Decimal(12)


def _cycle(billing_cycle: BillingCycle | str) -> BillingCycle:
    return BillingCycle(billing_cycle)


def yearly_factor(annual_discount_percentage: Any) -> Decimal:
    """Multiplier turning a monthly price into a discounted yearly price."""
    return _MONTHS * (1 - to_decimal(annual_discount_percentage) / _HUNDRED)


def single_addon_price(
    base_price: Any,
    billing_cycle: BillingCycle | str,
    annual_discount_percentage: Any = 0,
) -> Decimal:
    """Price of one unit of an add-on for the billing cycle.

    monthly -> base_price unchanged; yearly -> base_price * 12 * (1 - d/100).
    Non-positive prices yield 0.
    """
    price = to_decimal(base_price)
    if price <= _ZERO:
        return _ZERO
    if _cycle(billing_cycle) is BillingCycle.MONTHLY:
        return price
    return price * yearly_factor(annual_discount_percentage)


def addon_cost(
    addon: SelectedAddon,
    billing_cycle: BillingCycle | str,
    annual_discount_percentage: Any = 0,
) -> Decimal:
    """Cost of an attached add-on.

    Organization scope is flat; branch scope is multiplied by the number of
    selected branches. Add-ons included in the plan cost nothing.
    """
    if addon.is_included:
        return _ZERO
    unit = single_addon_price(addon.addon_price, billing_cycle, annual_discount_percentage)
    if addon.pricing_scope is PricingScope.ORGANIZATION:
        return unit
    return unit * addon.selected_branch_count


def _scoped_cost(
    addons: Iterable[SelectedAddon],
    scope: PricingScope | None,
    billing_cycle: BillingCycle | str,
    annual_discount_percentage: Any,
) -> Decimal:
    total = _ZERO
    for addon in addons:
        if scope is None or addon.pricing_scope is scope:
            total += addon_cost(addon, billing_cycle, annual_discount_percentage)
    return total


def organization_addons_cost(
    addons: Iterable[SelectedAddon],
    billing_cycle: BillingCycle | str,
    annual_discount_percentage: Any = 0,
) -> Decimal:
    return _scoped_cost(addons, PricingScope.ORGANIZATION, billing_cycle, annual_discount_percentage)


def branch_addons_cost(
    addons: Iterable[SelectedAddon],
    billing_cycle: BillingCycle | str,
    annual_discount_percentage: Any = 0,
) -> Decimal:
    return _scoped_cost(addons, PricingScope.BRANCH, billing_cycle, annual_discount_percentage)


def total_addons_cost(
    addons: Iterable[SelectedAddon],
    billing_cycle: BillingCycle | str,
    annual_discount_percentage: Any = 0,
) -> Decimal:
    return _scoped_cost(addons, None, billing_cycle, annual_discount_percentage)


def plan_price(
    monthly_price: Any,
    billing_cycle: BillingCycle | str,
    branch_count: int,
    annual_discount_percentage: Any = 0,
) -> Decimal:
    """Plan base cost: monthly_price * branch_count, discounted like add-ons for yearly."""
    base = to_decimal(monthly_price) * max(branch_count, 0)
    if _cycle(billing_cycle) is BillingCycle.MONTHLY:
        return base
    return base * yearly_factor(annual_discount_percentage)


def total_price(
    plan: Plan,
    addons: Iterable[SelectedAddon],
    billing_cycle: BillingCycle | str,
    branch_count: int,
    annual_discount_percentage: Any | None = None,
) -> Decimal:
    """Plan base cost plus every selected add-on.

    The plan's own annual discount applies unless an explicit percentage is
    given.
    """
    discount = (
        plan.annual_discount_percentage
        if annual_discount_percentage is None
        else annual_discount_percentage
    )
    return plan_price(plan.monthly_price, billing_cycle, branch_count, discount) + total_addons_cost(
        addons, billing_cycle, discount
    )


def annual_savings(
    plan: Plan,
    addons: Iterable[SelectedAddon],
    billing_cycle: BillingCycle | str,
    branch_count: int,
    annual_discount_percentage: Any | None = None,
) -> Decimal:
    """Difference between twelve undiscounted months and the discounted yearly total."""
    if _cycle(billing_cycle) is not BillingCycle.YEARLY:
        return _ZERO
    addons = list(addons)
    undiscounted = total_price(plan, addons, BillingCycle.MONTHLY, branch_count) * _MONTHS
    return undiscounted - total_price(
        plan, addons, BillingCycle.YEARLY, branch_count, annual_discount_percentage
    )


def display_amount(amount: Any) -> int:
    """Floor to whole currency units. Use only when rendering."""
    return int(to_decimal(amount).to_integral_value(rounding=ROUND_FLOOR))


def format_price_label(amount: Any, billing_cycle: BillingCycle | str) -> str:
    """e.g. '$350/month' or '$3570/year'."""
    period = "month" if _cycle(billing_cycle) is BillingCycle.MONTHLY else "year"
    return f"${display_amount(amount)}/{period}"
