"""Shared enums and storage keys for the wizard engine."""

from enum import Enum


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PricingScope(str, Enum):
    """Whether an add-on is billed once per organization or once per selected branch."""

    ORGANIZATION = "organization"
    BRANCH = "branch"


class FormMode(str, Enum):
    CREATE = "create"
    EDIT = "edit"
    VIEW = "view"  # read-only: all tabs unlocked, validation bypassed


class StorageKeys:
    """Keys under which wizard state is persisted in the key/value store."""

    # Tenant account creation
    TENANT_FORM_DATA = "tenant_form_data"  # cache shape, written after a successful submission
    TENANT_FORM_DRAFT = "tenant_form_draft"
    TENANT_ACTIVE_TAB = "tenant_active_tab"
    TENANT_VERIFICATION_DATA = "tenant_verification_data"
    OTP_STATE = "tenant_otp_state"
    SELECTED_PLAN_DATA = "selected_plan_data"

    # Role creation
    ROLE_FORM_DATA = "draft_role_data"
    ROLE_ACTIVE_TAB = "draft_role_active_tab"


DEFAULT_AUTOSAVE_DEBOUNCE_MS = 1000
DEFAULT_RESEND_COOLDOWN_SEC = 300
DEFAULT_OTP_LENGTH = 6
DEFAULT_OTP_STATE_TTL_SEC = 3600
MAX_BRANCH_COUNT = 100
DEFAULT_FEATURE_LEVEL = "basic"
