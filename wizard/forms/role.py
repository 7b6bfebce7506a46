"""Role creation wizard: role_info -> module_assignments."""

from typing import Any

from pydantic import BaseModel, Field, StrictBool, field_validator

from core.settings import get_setting, load_settings
from core.storage import KeyValueStore
from wizard.constants import FormMode, StorageKeys
from wizard.form_state import FormState
from wizard.models import WizardTab
from wizard.navigator import SubmissionCollaborator, WizardNavigator
from wizard.persistence import FormPersistenceStore
from wizard.session import WizardSession
from wizard.tab_validation import CompositeValidator, FieldSetValidator, TabValidationGate

ROLE_TABS = (
    WizardTab("role_info", 0, "Role Info"),
    WizardTab("module_assignments", 1, "Module Assignments"),
)

ROLE_INFO_KEYS = ("name", "description", "is_active")

ROLE_DEFAULTS: dict[str, Any] = {
    "name": "",
    "description": "",
    "is_active": True,
    "module_assignments": [],
}


class ModuleAssignment(BaseModel):
    module_id: str
    can_create: StrictBool = False
    can_read: StrictBool = False
    can_update: StrictBool = False
    can_delete: StrictBool = False

    @field_validator("module_id", mode="before")
    @classmethod
    def _module_required(cls, v: Any) -> str:
        v = "" if v is None else str(v).strip()
        if not v:
            raise ValueError("Module ID is required")
        return v


class CreateRoleForm(BaseModel):
    name: str
    description: str
    is_active: StrictBool = True
    module_assignments: list[ModuleAssignment] = Field(default_factory=list, validate_default=True)

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Display name must be at least 2 characters")
        if len(v) > 50:
            raise ValueError("Display name must not exceed 50 characters")
        return v

    @field_validator("description")
    @classmethod
    def _description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description is required")
        if len(v) > 500:
            raise ValueError("Description cannot exceed 500 characters")
        return v

    @field_validator("module_assignments")
    @classmethod
    def _at_least_one(cls, v: list[ModuleAssignment]) -> list[ModuleAssignment]:
        if not v:
            raise ValueError("Assign at least one module")
        return v


def build_role_wizard(
    submitter: SubmissionCollaborator | None = None,
    store: KeyValueStore | None = None,
    mode: FormMode = FormMode.CREATE,
    initial_values: dict[str, Any] | None = None,
    settings: dict[str, Any] | None = None,
) -> WizardSession:
    """Role wizard session. Drafts are kept in store when one is given (create mode only)."""
    settings = settings or load_settings()
    form = FormState(CreateRoleForm, ROLE_DEFAULTS)
    if initial_values:
        form.reset(initial_values)

    gate = TabValidationGate()
    gate.register("role_info", FieldSetValidator(ROLE_INFO_KEYS))
    gate.register(
        "module_assignments",
        CompositeValidator("module_assignments", "Please fix the highlighted module assignments"),
    )
    navigator = WizardNavigator(ROLE_TABS, form, gate, submitter=submitter, mode=mode)

    drafts = tab_drafts = None
    if store is not None:
        drafts = FormPersistenceStore(store, StorageKeys.ROLE_FORM_DATA)
        tab_drafts = FormPersistenceStore(store, StorageKeys.ROLE_ACTIVE_TAB)
    return WizardSession(
        form,
        navigator,
        drafts=drafts,
        tab_drafts=tab_drafts,
        debounce_ms=get_setting(settings, "wizard.autosave_debounce_ms", 1000),
    )
