from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.opsportal.audit import record_event
from app.opsportal.modules.activities.service import create_activity
from app.opsportal.modules.permissions.models import PERMISSION_STATES, SCOPE_STATUSES, PermissionRule
from app.opsportal.utils import clean, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

EDITABLE_FIELDS = (
    "name",
    "permission_key",
    "permission_state",
    "scope_status",
    "service_item_id",
    "service_category_id",
    "partner_id",
    "campaign_id",
    "package_id",
    "campaign_profile_id",
    "change_reason",
)
_ID_FIELDS = ("service_item_id", "service_category_id", "partner_id", "campaign_id", "package_id", "campaign_profile_id")

RELATED_TABLE = "permissions"


def validate_permission_rule_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("name") or "").strip():
        errors.append("Name is required.")
    if not (payload.get("permission_key") or "").strip():
        errors.append("Permission key is required.")
    state = (payload.get("permission_state") or "").strip()
    if state not in PERMISSION_STATES:
        errors.append(f"Invalid permission state. Must be one of: {', '.join(PERMISSION_STATES)}")
    scope = (payload.get("scope_status") or "").strip()
    if scope and scope not in SCOPE_STATUSES:
        errors.append(f"Invalid scope status. Must be one of: {', '.join(SCOPE_STATUSES)}")
    return errors


def _rule_values(payload: dict) -> dict:
    values = {
        "name": payload["name"].strip(),
        "permission_key": payload["permission_key"].strip(),
        "permission_state": payload["permission_state"].strip(),
        "scope_status": clean(payload.get("scope_status")),
        "change_reason": clean(payload.get("change_reason")),
    }
    for key in _ID_FIELDS:
        values[key] = parse_int(payload.get(key))
    return values


def get_all_permission_rules(s: "Session", include_inactive: bool = False) -> list[PermissionRule]:
    return (
        s.query(PermissionRule)
        .filter(PermissionRule.is_active == (0 if include_inactive else 1))
        .order_by(PermissionRule.name.asc())
        .all()
    )


def get_permission_rule(s: "Session", rule_id: int) -> PermissionRule | None:
    return s.get(PermissionRule, rule_id)


def create_permission_rule(s: "Session", payload: dict, user: "User") -> PermissionRule:
    errors = validate_permission_rule_payload(payload)
    if errors:
        raise ValueError(errors[0])
    now = datetime.utcnow()
    rule = PermissionRule(
        is_active=1,
        changed_by=user.display_name,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
        **_rule_values(payload),
    )
    s.add(rule)
    s.flush()
    create_activity(s, user, rule.partner_id, "created_permission", RELATED_TABLE, rule.id, f"Created permission: {rule.name}")
    record_event(
        s,
        actor=user,
        action="permission_rule.create",
        entity_type="PermissionRule",
        entity_id=str(rule.id),
        metadata={"permission_key": rule.permission_key, "permission_state": rule.permission_state},
    )
    return rule


def update_permission_rule(s: "Session", rule: PermissionRule, payload: dict, user: "User") -> PermissionRule:
    errors = validate_permission_rule_payload(payload)
    if errors:
        raise ValueError(errors[0])
    changes = {}
    for key, new in _rule_values(payload).items():
        old = getattr(rule, key)
        if old != new:
            changes[key] = {"old": old, "new": new}
            setattr(rule, key, new)
    rule.changed_by = user.display_name
    rule.updated_at = datetime.utcnow()
    rule.updated_by_user_id = user.id
    s.flush()
    create_activity(s, user, rule.partner_id, "updated_permission", RELATED_TABLE, rule.id, f"Updated permission: {rule.name}")
    record_event(
        s,
        actor=user,
        action="permission_rule.edit",
        entity_type="PermissionRule",
        entity_id=str(rule.id),
        metadata={"changes": changes},
    )
    return rule


def update_permission_rule_field(s: "Session", rule: PermissionRule, field: str, value, user: "User") -> PermissionRule:
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Field '{field}' cannot be edited.")
    if field in _ID_FIELDS:
        value = parse_int(value)
    else:
        value = clean(value)
    if field in ("name", "permission_key") and not value:
        raise ValueError(f"{field.replace('_', ' ').capitalize()} is required.")
    if field == "permission_state" and value not in PERMISSION_STATES:
        raise ValueError(f"Invalid permission state. Must be one of: {', '.join(PERMISSION_STATES)}")
    old = getattr(rule, field)
    setattr(rule, field, value)
    rule.changed_by = user.display_name
    rule.updated_at = datetime.utcnow()
    rule.updated_by_user_id = user.id
    s.flush()
    create_activity(s, user, rule.partner_id, "updated_permission", RELATED_TABLE, rule.id, f"Updated field: {field}")
    record_event(
        s,
        actor=user,
        action="permission_rule.edit",
        entity_type="PermissionRule",
        entity_id=str(rule.id),
        metadata={"changes": {field: {"old": old, "new": value}}},
    )
    return rule


def delete_permission_rule(s: "Session", rule: PermissionRule, user: "User") -> None:
    rule_id, name, partner_id = rule.id, rule.name, rule.partner_id
    s.delete(rule)
    s.flush()
    create_activity(s, user, partner_id, "deleted_permission", RELATED_TABLE, rule_id, f"Deleted permission: {name}")
    record_event(
        s,
        actor=user,
        action="permission_rule.delete",
        entity_type="PermissionRule",
        entity_id=str(rule_id),
        metadata={"name": name},
    )


def get_by_partner_id(s: "Session", partner_id: int) -> list[PermissionRule]:
    return (
        s.query(PermissionRule)
        .filter(PermissionRule.partner_id == partner_id, PermissionRule.is_active == 1)
        .order_by(PermissionRule.name.asc(), PermissionRule.id.asc())
        .all()
    )


def get_base_permissions(s: "Session") -> list[PermissionRule]:
    return (
        s.query(PermissionRule)
        .filter(PermissionRule.partner_id.is_(None), PermissionRule.is_active == 1)
        .order_by(PermissionRule.name.asc())
        .all()
    )


def _summary(rule: PermissionRule) -> dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "permission_key": rule.permission_key,
        "permission_state": rule.permission_state,
    }


def get_default_permissions_for_campaign(s: "Session", partner_id: int | None) -> list[dict]:
    """
    Base permissions with the partner's overrides applied by permission_key.
    Partner rows without a base counterpart are ignored.
    """
    base = [_summary(r) for r in get_base_permissions(s)]
    if not partner_id:
        return base

    overrides = {r.permission_key: r for r in get_by_partner_id(s, partner_id)}
    merged = []
    for row in base:
        override = overrides.get(row["permission_key"])
        if override is None:
            merged.append(row)
            continue
        merged.append(
            {
                "id": override.id,
                "name": override.name or row["name"],
                "permission_key": override.permission_key,
                "permission_state": override.permission_state,
            }
        )
    return merged
