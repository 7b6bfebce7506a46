"""Tenant account creation wizard.

Tabs: tenant_info -> plan_selection -> plan_summary.

The tenant_info tab cannot be left until both the email address and the
phone number are verified by OTP. Verifying a field makes it read-only and
sets the matching *_verified flag. The last tab submits the plan assignment
and caches the tenant details.
"""

import logging
import re
from typing import Any, Callable, Iterable

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from core.settings import get_setting, load_settings
from core.storage import KeyValueStore
from wizard.constants import MAX_BRANCH_COUNT, BillingCycle, FormMode, StorageKeys
from wizard.form_state import FormState
from wizard.models import Plan, WizardTab
from wizard.navigator import WizardNavigator
from wizard.persistence import FormPersistenceStore
from wizard.selection import PlanSelection
from wizard.session import WizardSession
from wizard.submission import PlanAssignmentApi, PlanSubmitter
from wizard.tab_validation import FieldSetValidator, NoFieldsValidator, TabValidationGate
from wizard.verification import OtpService, VerificationGate, VerificationStatusStore

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# field -> (label, required message, max length)
_TEXT_RULES: dict[str, tuple[str, str, int]] = {
    "company_name": ("Company name", "Company name is required", 200),
    "contact_person": ("Contact Person name", "Contact Person name is required", 200),
    "address_line1": ("Address line 1", "Address line 1 is required", 200),
    "city": ("City", "City is required", 100),
    "state_province": ("State/Province", "State/Province is required", 100),
    "postal_code": ("Postal code", "Postal code is required", 20),
    "country": ("Country", "Country is required", 100),
}

TENANT_TABS = (
    WizardTab("tenant_info", 0, "Tenant Info"),
    WizardTab("plan_selection", 1, "Plan Selection"),
    WizardTab("plan_summary", 2, "Plan Summary"),
)

TENANT_INFO_KEYS = (
    "company_name",
    "contact_person",
    "primary_email",
    "primary_phone",
    "address_line1",
    "address_line2",
    "city",
    "state_province",
    "postal_code",
    "country",
    "email_verified",
    "phone_verified",
)
PLAN_SELECTION_KEYS = ("plan_id", "billing_cycle", "branch_count")

TENANT_DEFAULTS: dict[str, Any] = {
    "company_name": "",
    "contact_person": "",
    "primary_email": "",
    "primary_phone": ["", ""],
    "address_line1": "",
    "address_line2": "",
    "city": "",
    "state_province": "",
    "postal_code": "",
    "country": "",
    "email_verified": False,
    "phone_verified": False,
    "plan_id": None,
    "billing_cycle": BillingCycle.MONTHLY.value,
    "branch_count": 1,
}


class TenantInfoForm(BaseModel):
    """Organization and contact details of a new tenant."""

    company_name: str
    contact_person: str
    primary_email: str
    primary_phone: tuple[str, str]  # (dial code, number)
    address_line1: str
    address_line2: str | None = None
    city: str
    state_province: str
    postal_code: str
    country: str
    email_verified: bool = Field(default=False, validate_default=True)
    phone_verified: bool = Field(default=False, validate_default=True)

    @field_validator(*_TEXT_RULES, mode="before")
    @classmethod
    def _required_text(cls, v: Any, info: ValidationInfo) -> str:
        label, required, max_len = _TEXT_RULES[info.field_name]
        v = "" if v is None else str(v).strip()
        if not v:
            raise ValueError(required)
        if len(v) > max_len:
            raise ValueError(f"{label} must not exceed {max_len} characters")
        return v

    @field_validator("address_line2", mode="before")
    @classmethod
    def _optional_address(cls, v: Any) -> str | None:
        if v is None:
            return None
        v = str(v).strip()
        if len(v) > 200:
            raise ValueError("Address line 2 must not exceed 200 characters")
        return v

    @field_validator("primary_email", mode="before")
    @classmethod
    def _email(cls, v: Any) -> str:
        v = "" if v is None else str(v).strip()
        if not _EMAIL_RE.match(v):
            raise ValueError("Valid email address is required")
        return v

    @field_validator("primary_phone", mode="before")
    @classmethod
    def _phone(cls, v: Any) -> tuple[str, str]:
        if not isinstance(v, (list, tuple)) or len(v) != 2:
            raise ValueError("Phone number is required")
        code, number = (str(part or "").strip() for part in v)
        if not code or not number:
            raise ValueError("Phone number is required")
        digits = number.replace(" ", "").replace("-", "")
        if not digits.isdigit() or not 7 <= len(digits) <= 15:
            raise ValueError("Enter a valid phone number")
        return code, number

    @field_validator("email_verified", "phone_verified")
    @classmethod
    def _must_be_verified(cls, v: bool, info: ValidationInfo) -> bool:
        if not v:
            what = "email address" if info.field_name == "email_verified" else "phone number"
            raise ValueError(f"Please verify your {what}")
        return v


class TenantWizardForm(TenantInfoForm):
    """Tenant details plus the plan fields of the plan_selection tab."""

    plan_id: int | None = Field(default=None, validate_default=True)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    branch_count: int = Field(default=1, ge=1, le=MAX_BRANCH_COUNT)

    @field_validator("plan_id")
    @classmethod
    def _plan_required(cls, v: int | None) -> int:
        if v is None:
            raise ValueError("Please select a plan to continue")
        return v


def format_phone(phone: Iterable[str] | None) -> str:
    """('+1', '5551234567') -> '+1-5551234567'."""
    parts = [str(p).strip() for p in (phone or []) if str(p or "").strip()]
    return "-".join(parts)


def transform_tenant_form_to_cache(values: dict[str, Any]) -> dict[str, Any]:
    """Tenant form values -> cached tenant record."""
    return {
        "organization_name": values.get("company_name", ""),
        "email": values.get("primary_email", ""),
        "primary_phone": format_phone(values.get("primary_phone")),
        "secondary_phone": None,
        "address": values.get("address_line1", ""),
        "city": values.get("city", ""),
        "state": values.get("state_province", ""),
        "postal_code": values.get("postal_code", ""),
        "country_code": values.get("country", ""),
    }


class TenantWizard:
    """Tenant creation flow: session, verification gates and plan selection.

    Acts as the navigator's submission collaborator: the plan assignment is
    submitted through PlanSubmitter and, on success, the tenant details are
    cached.
    """

    def __init__(
        self,
        store: KeyValueStore,
        otp_service: OtpService,
        assign_plan: PlanAssignmentApi,
        tenant_id: Callable[[], str | None],
        settings: dict[str, Any] | None = None,
        mode: FormMode = FormMode.CREATE,
    ) -> None:
        settings = settings or load_settings()
        max_branches = get_setting(settings, "pricing.max_branch_count", MAX_BRANCH_COUNT)
        cooldown = get_setting(settings, "verification.resend_cooldown_sec", 300)
        otp_length = get_setting(settings, "verification.otp_length", 6)

        self.form = FormState(TenantWizardForm, TENANT_DEFAULTS)
        self.plan_cache = FormPersistenceStore(store, StorageKeys.SELECTED_PLAN_DATA)
        self.tenant_cache = FormPersistenceStore(
            store, StorageKeys.TENANT_FORM_DATA, transform_tenant_form_to_cache
        )
        self.selection = PlanSelection.from_cache(self.plan_cache.load(), max_branches)
        self.verification_store = VerificationStatusStore(
            store, ttl_sec=get_setting(settings, "verification.otp_state_ttl_sec", 3600)
        )

        verified = self.verification_store.load_verified()
        self.gates: dict[str, VerificationGate] = {
            name: VerificationGate(
                name,
                otp_service,
                resend_cooldown=cooldown,
                otp_length=otp_length,
                verified=verified[f"{name}_verified"],
                on_verified=self._on_verified,
                on_sent=self._on_sent,
            )
            for name in ("email", "phone")
        }

        self.submitter = PlanSubmitter(
            lambda: self.selection, tenant_id, assign_plan, cache=self.plan_cache
        )
        gate = TabValidationGate(
            {
                "tenant_info": FieldSetValidator(TENANT_INFO_KEYS),
                "plan_selection": FieldSetValidator(PLAN_SELECTION_KEYS),
                "plan_summary": NoFieldsValidator(),
            }
        )
        self.navigator = WizardNavigator(TENANT_TABS, self.form, gate, submitter=self, mode=mode)
        self.session = WizardSession(
            self.form,
            self.navigator,
            drafts=FormPersistenceStore(store, StorageKeys.TENANT_FORM_DRAFT),
            tab_drafts=FormPersistenceStore(store, StorageKeys.TENANT_ACTIVE_TAB),
            debounce_ms=get_setting(settings, "wizard.autosave_debounce_ms", 1000),
        )
        self._sync_verified_fields()

    @property
    def email_gate(self) -> VerificationGate:
        return self.gates["email"]

    @property
    def phone_gate(self) -> VerificationGate:
        return self.gates["phone"]

    # -- verification -----------------------------------------------------

    def _field_for(self, name: str) -> str:
        return "primary_email" if name == "email" else "primary_phone"

    def _sync_verified_fields(self) -> None:
        """Reflect verified gates in the form: flag set, field read-only."""
        for name, gate in self.gates.items():
            if gate.is_verified:
                if not self.form.get_value(f"{name}_verified"):
                    self.form.set_value(f"{name}_verified", True)
                self.form.lock_field(self._field_for(name))

    def _on_verified(self, name: str) -> None:
        if self.navigator.is_read_only:
            return
        self.session.set_value(f"{name}_verified", True)
        self.form.lock_field(self._field_for(name))
        self.verification_store.mark_verified(name)

    def _on_sent(self, name: str) -> None:
        self.verification_store.save_otp_state(
            {field: gate.snapshot() for field, gate in self.gates.items()}
        )

    async def send_email_otp(self) -> bool:
        if not self.form.validate(["primary_email"]):
            return False
        self.session.flush()
        return await self.email_gate.handle_send(self.form.get_value("primary_email"))

    async def send_phone_otp(self) -> bool:
        if not self.form.validate(["primary_phone"]):
            return False
        self.session.flush()
        return await self.phone_gate.handle_send(format_phone(self.form.get_value("primary_phone")))

    async def verify_email_otp(self, code: str) -> bool:
        return await self.email_gate.verify_otp(code)

    async def verify_phone_otp(self, code: str) -> bool:
        return await self.phone_gate.verify_otp(code)

    # -- plan -------------------------------------------------------------

    def select_plan(self, plan: Plan, available_addon_ids: Iterable[int] | None = None) -> None:
        self.selection.select_plan(plan, available_addon_ids)
        self.session.set_value("plan_id", plan.id)
        self.session.set_value("branch_count", self.selection.branch_count)

    def set_billing_cycle(self, billing_cycle: BillingCycle | str) -> None:
        self.selection.set_billing_cycle(billing_cycle)
        self.session.set_value("billing_cycle", self.selection.billing_cycle.value)

    def change_branch_count(self, count: int) -> int:
        applied = self.selection.change_branch_count(count)
        self.session.set_value("branch_count", applied)
        return applied

    def save_plan_selection(self) -> bool:
        return self.plan_cache.save(self.selection.to_cache())

    def tenant_info_changed(self) -> bool:
        """False when the cached tenant record already matches the form."""
        return self.tenant_cache.has_changed(self.form.get_values())

    # -- lifecycle --------------------------------------------------------

    async def submit(self, payload: dict[str, Any]) -> bool:
        ok = await self.submitter.submit(payload)
        if ok:
            self.tenant_cache.save(payload)
            self.verification_store.clear_otp_state()
        return ok

    def resume(self) -> bool:
        """Restore draft values, active tab and in-progress OTP phases. Call from a running loop."""
        restored = self.session.restore_draft()
        self._sync_verified_fields()
        otp_state = self.verification_store.load_otp_state() or {}
        for name, (sent, remaining) in otp_state.items():
            gate = self.gates.get(name)
            if gate is not None and sent and not gate.is_verified:
                destination = self.form.get_value(self._field_for(name))
                if name == "phone":
                    destination = format_phone(destination)
                gate.restore_otp_sent(remaining, destination or None)
        return restored

    def start_fresh(self) -> None:
        self.session.start_fresh()
        for gate in self.gates.values():
            gate.reset()
        self.verification_store.clear()

    def close(self) -> None:
        self.session.close()
        for gate in self.gates.values():
            gate.dispose()


def build_tenant_wizard(
    store: KeyValueStore,
    otp_service: OtpService,
    assign_plan: PlanAssignmentApi,
    tenant_id: Callable[[], str | None],
    settings: dict[str, Any] | None = None,
    mode: FormMode = FormMode.CREATE,
) -> TenantWizard:
    return TenantWizard(store, otp_service, assign_plan, tenant_id, settings=settings, mode=mode)
