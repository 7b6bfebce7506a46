"""Concrete wizards built on the engine."""

from wizard.forms.role import CreateRoleForm, ModuleAssignment, build_role_wizard
from wizard.forms.tenant import TenantInfoForm, TenantWizard, TenantWizardForm, build_tenant_wizard

__all__ = [
    "CreateRoleForm",
    "ModuleAssignment",
    "TenantInfoForm",
    "TenantWizard",
    "TenantWizardForm",
    "build_role_wizard",
    "build_tenant_wizard",
]
