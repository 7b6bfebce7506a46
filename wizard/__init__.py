"""Multi-step form wizard engine: tab gating, drafts, OTP verification, plan pricing."""

from wizard.confirmation import ConfirmationState, ResourceConfirmationGate
from wizard.constants import BillingCycle, FormMode, PricingScope, StorageKeys
from wizard.form_state import FieldLockedError, FormState, SchemaValidator, ValidationResult
from wizard.models import Addon, BranchSelection, Plan, SelectedAddon, WizardTab
from wizard.navigator import AdvanceOutcome, SubmissionCollaborator, WizardNavigator
from wizard.persistence import DebouncedSaver, FormPersistenceStore
from wizard.selection import PlanSelection, create_branch_selections
from wizard.session import WizardSession
from wizard.submission import PlanAssignmentPayload, PlanSubmitter, build_plan_assignment_payload
from wizard.tab_validation import (
    CompositeValidator,
    FieldSetValidator,
    NoFieldsValidator,
    TabValidationGate,
)
from wizard.verification import (
    OtpService,
    VerificationGate,
    VerificationState,
    VerificationStatus,
    VerificationStatusStore,
)

__all__ = [
    "AdvanceOutcome",
    "Addon",
    "BillingCycle",
    "BranchSelection",
    "CompositeValidator",
    "ConfirmationState",
    "DebouncedSaver",
    "FieldLockedError",
    "FieldSetValidator",
    "FormMode",
    "FormPersistenceStore",
    "FormState",
    "NoFieldsValidator",
    "OtpService",
    "Plan",
    "PlanAssignmentPayload",
    "PlanSelection",
    "PlanSubmitter",
    "PricingScope",
    "ResourceConfirmationGate",
    "SchemaValidator",
    "SelectedAddon",
    "StorageKeys",
    "SubmissionCollaborator",
    "TabValidationGate",
    "ValidationResult",
    "VerificationGate",
    "VerificationState",
    "VerificationStatus",
    "VerificationStatusStore",
    "WizardNavigator",
    "WizardSession",
    "WizardTab",
    "build_plan_assignment_payload",
    "create_branch_selections",
]
