"""Data models shared across the wizard engine.

Pricing-related records are pydantic models because they round-trip through the
draft store and the submission payload. Money is always Decimal; floats are
converted through str() so 0.1 stays 0.1.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from wizard.constants import PricingScope


def to_decimal(value: Any) -> Decimal:
    """Convert int/float/str to Decimal without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return Decimal(0)
    return Decimal(str(value))


Money = Annotated[Decimal, BeforeValidator(to_decimal)]


@dataclass(frozen=True)
class WizardTab:
    """One page of a multi-step form. Ordinal fixes traversal order."""

    id: str
    ordinal: int
    label: str = ""


class BranchSelection(BaseModel):
    """Per-branch selection flag of a branch-scoped add-on."""

    model_config = ConfigDict(populate_by_name=True)

    branch_index: int = Field(alias="branchIndex", ge=0)
    branch_name: str = Field(alias="branchName")
    is_selected: bool = Field(default=False, alias="isSelected")


class Plan(BaseModel):
    id: int
    name: str
    monthly_price: Money
    annual_discount_percentage: Money = Decimal(0)
    included_branches_count: int | None = None


class Addon(BaseModel):
    """Add-on as offered by the catalogue (before it is attached to a selection)."""

    id: int
    name: str
    addon_price: Money
    pricing_scope: PricingScope
    is_included: bool = False


class SelectedAddon(BaseModel):
    """Add-on attached to a plan selection.

    Organization-scoped add-ons keep an empty branch list; their cost never
    depends on it.
    """

    addon_id: int
    addon_name: str = ""
    addon_price: Money
    pricing_scope: PricingScope
    branches: list[BranchSelection] = Field(default_factory=list)
    is_included: bool = False

    @property
    def selected_branch_count(self) -> int:
        return sum(1 for b in self.branches if b.is_selected)
