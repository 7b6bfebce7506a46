"""Plan assignment payload and the submission collaborator that sends it."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, Field, ValidationError

from wizard.constants import DEFAULT_FEATURE_LEVEL, MAX_BRANCH_COUNT, BillingCycle, PricingScope
from wizard.persistence import FormPersistenceStore
from wizard.selection import PlanSelection

logger = logging.getLogger(__name__)

FeatureLevel = Literal["basic", "premium", "custom"]

PlanAssignmentApi = Callable[[dict[str, Any]], Awaitable[bool]]


@dataclass(frozen=True)
class CheckResult:
    is_valid: bool
    message: str | None = None


def validate_plan_selection(selection: PlanSelection) -> CheckResult:
    if selection.plan is None:
        return CheckResult(False, "Please select a plan to continue")
    return CheckResult(True)


def validate_branch_count(count: int, max_count: int | None = None) -> CheckResult:
    limit = min(max_count, MAX_BRANCH_COUNT) if max_count else MAX_BRANCH_COUNT
    if count < 1:
        return CheckResult(False, "At least one branch is required")
    if count > limit:
        return CheckResult(False, f"Branch count cannot exceed {limit}")
    return CheckResult(True)


class AddonAssignment(BaseModel):
    addon_id: int
    feature_level: FeatureLevel = DEFAULT_FEATURE_LEVEL


class BranchAddonAssignment(BaseModel):
    branch_id: int = Field(ge=1)  # 1-based
    addon_assignments: list[AddonAssignment]


class PlanAssignmentPayload(BaseModel):
    tenant_id: str = Field(min_length=1)
    plan_id: int
    billing_cycle: BillingCycle
    branches_count: int = Field(ge=1)
    organization_addon_assignments: list[AddonAssignment] = Field(default_factory=list)
    branch_addon_assignments: list[BranchAddonAssignment] = Field(default_factory=list)


def build_plan_assignment_payload(tenant_id: str, selection: PlanSelection) -> PlanAssignmentPayload:
    """Translate a plan selection into the assignment request.

    Branch add-ons are grouped per branch; only selected branches inside the
    current branch count are included. Raises ValueError (including pydantic's
    ValidationError) when the selection cannot be submitted.
    """
    check = validate_plan_selection(selection)
    if not check.is_valid:
        raise ValueError(check.message)

    organization = [
        AddonAssignment(addon_id=a.addon_id)
        for a in selection.selected_addons
        if a.pricing_scope is PricingScope.ORGANIZATION
    ]

    per_branch: dict[int, list[AddonAssignment]] = {}
    for addon in selection.selected_addons:
        if addon.pricing_scope is not PricingScope.BRANCH:
            continue
        for branch in addon.branches:
            if branch.is_selected and branch.branch_index < selection.branch_count:
                per_branch.setdefault(branch.branch_index + 1, []).append(
                    AddonAssignment(addon_id=addon.addon_id)
                )

    return PlanAssignmentPayload(
        tenant_id=tenant_id,
        plan_id=selection.plan.id,
        billing_cycle=selection.billing_cycle,
        branches_count=selection.branch_count,
        organization_addon_assignments=organization,
        branch_addon_assignments=[
            BranchAddonAssignment(branch_id=branch_id, addon_assignments=assignments)
            for branch_id, assignments in sorted(per_branch.items())
        ],
    )


class PlanSubmitter:
    """Submission collaborator for the tenant wizard's last tab.

    Ignores the form payload beyond logging; what gets sent is the plan
    assignment built from the current selection. Never raises: failures are
    reported through the return value and `error`.
    """

    def __init__(
        self,
        selection: Callable[[], PlanSelection],
        tenant_id: Callable[[], str | None],
        api: PlanAssignmentApi,
        cache: FormPersistenceStore | None = None,
    ) -> None:
        self._selection = selection
        self._tenant_id = tenant_id
        self._api = api
        self._cache = cache
        self.error: str | None = None
        self.is_submitting = False

    def _fail(self, message: str) -> bool:
        self.error = message
        logger.warning("Plan assignment not submitted: %s", message)
        return False

    async def submit(self, payload: dict[str, Any]) -> bool:
        self.error = None
        selection = self._selection()

        for check in (
            validate_plan_selection(selection),
            validate_branch_count(
                selection.branch_count,
                selection.plan.included_branches_count if selection.plan else None,
            ),
        ):
            if not check.is_valid:
                return self._fail(check.message or "Invalid plan selection")

        tenant_id = self._tenant_id()
        if not tenant_id:
            return self._fail("Please complete the tenant information step before proceeding")

        try:
            request = build_plan_assignment_payload(tenant_id, selection)
        except ValueError as e:
            return self._fail(str(e))

        self.is_submitting = True
        try:
            ok = await self._api(request.model_dump(mode="json"))
        except Exception as e:
            logger.exception("Failed to assign plan to tenant %s", tenant_id)
            self.error = str(e) or "Failed to assign plan to tenant"
            return False
        finally:
            self.is_submitting = False

        if not ok:
            return self._fail("Failed to assign plan to tenant")

        if self._cache is not None:
            self._cache.save(selection.to_cache())
        logger.info(
            "Assigned plan %s to tenant %s (%d form fields)", selection.plan.id, tenant_id, len(payload)
        )
        return True
