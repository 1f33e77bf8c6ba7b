"""
Central constants for the ops portal: permission keys and the small enums shared across modules.
"""
from __future__ import annotations

# RBAC permission keys (Permission.key)
PERM_USER_LOGIN = "user:login"
PERM_WORKBENCH_ACCESS = "workbench:access"
PERM_SERVICE_ITEM_EDIT = "portal:service-item:edit"
PERM_CAMPAIGN_EDIT = "portal:campaign:edit"
PERM_EMPLOYEE_EDIT = "portal:employee:edit"
PERM_ADMIN_VIEW = "admin.view"

# Most catalog-side screens accept either editor permission.
CATALOG_EDIT_PERMS = (PERM_SERVICE_ITEM_EDIT, PERM_CAMPAIGN_EDIT)

ALL_PERMISSIONS: tuple[tuple[str, str], ...] = (
    (PERM_ADMIN_VIEW, "Admin: view shell"),
    (PERM_USER_LOGIN, "Portal: sign in"),
    (PERM_WORKBENCH_ACCESS, "Workbench: JSON API access"),
    (PERM_SERVICE_ITEM_EDIT, "Portal: edit service items"),
    (PERM_CAMPAIGN_EDIT, "Portal: edit campaigns"),
    (PERM_EMPLOYEE_EDIT, "Portal: edit employees"),
)

ENTITY_TYPES = ("company", "individual", "employee")

PARTNER_STATUSES = ("prospect", "active", "inactive", "terminated")
PARTNER_TYPES = ("white_label", "self_serve", "d2b", "reseller")

CAMPAIGN_STATUSES = ("prospect", "onboarding", "active", "paused", "cancelled", "offboarded")

RELATIONSHIP_TYPES = ("contact", "account_manager", "client", "referred_by")
RELATIONSHIP_SUBTYPES = ("primary", "admin", "billing", "technical")
CONTACT_TYPES = ("email", "phone", "address")

CURRENCIES = ("USD", "CAD", "EUR", "GBP", "AUD")
DEFAULT_CURRENCY = "USD"
