from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.opsportal.audit import record_event
from app.opsportal.modules.access_items.models import TFA_SOURCES, TFA_TYPES, AccessItem
from app.opsportal.modules.activities.service import create_activity
from app.opsportal.utils import clean, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User


def validate_access_item_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("username") or "").strip() and not (payload.get("email") or "").strip():
        errors.append("Username or email is required.")
    tfa_type = (payload.get("tfa_type") or "").strip()
    if tfa_type and tfa_type not in TFA_TYPES:
        errors.append(f"Invalid 2FA type. Must be one of: {', '.join(TFA_TYPES)}")
    tfa_source = (payload.get("tfa_source") or "").strip()
    if tfa_source and tfa_source not in TFA_SOURCES:
        errors.append(f"Invalid 2FA source. Must be one of: {', '.join(TFA_SOURCES)}")
    return errors


def derive_owner(partner_entity_id: int | None) -> str:
    return "partner" if partner_entity_id else "internal"


def _access_item_values(payload: dict) -> dict:
    partner_id = parse_int(payload.get("partner_entity_id"))
    return {
        "username": clean(payload.get("username")),
        "email": clean(payload.get("email")),
        "in_lastpass": parse_bool(payload.get("in_lastpass")),
        "tfa_type": clean(payload.get("tfa_type")),
        "tfa_type_value": clean(payload.get("tfa_type_value")),
        "tfa_contact_id": parse_int(payload.get("tfa_contact_id")),
        "tfa_source": clean(payload.get("tfa_source")),
        "partner_entity_id": partner_id,
        "access_item_owner": derive_owner(partner_id),
    }


def get_all_access_items(s: "Session", include_inactive: bool = False) -> list[AccessItem]:
    return (
        s.query(AccessItem)
        .filter(AccessItem.is_active.is_(not include_inactive))
        .order_by(AccessItem.updated_at.desc(), AccessItem.id.desc())
        .all()
    )


def get_access_item(s: "Session", item_id: int) -> AccessItem | None:
    return s.get(AccessItem, item_id)


def create_access_item(s: "Session", payload: dict, user: "User") -> AccessItem:
    errors = validate_access_item_payload(payload)
    if errors:
        raise ValueError(errors[0])
    now = datetime.utcnow()
    item = AccessItem(is_active=True, created_at=now, updated_at=now, **_access_item_values(payload))
    s.add(item)
    s.flush()
    record_event(
        s,
        actor=user,
        action="access_item.create",
        entity_type="AccessItem",
        entity_id=str(item.id),
        metadata={"owner": item.access_item_owner, "partner_entity_id": item.partner_entity_id},
    )
    return item


def update_access_item(s: "Session", item: AccessItem, payload: dict, user: "User") -> AccessItem:
    errors = validate_access_item_payload(payload)
    if errors:
        raise ValueError(errors[0])
    changes = {}
    for key, new in _access_item_values(payload).items():
        old = getattr(item, key)
        if old != new:
            # tfa_type_value stays out of the audit trail.
            changes[key] = {"changed": True} if key == "tfa_type_value" else {"old": old, "new": new}
            setattr(item, key, new)
    item.updated_at = datetime.utcnow()
    s.flush()
    create_activity(
        s,
        user,
        item.partner_entity_id,
        "updated_access_item",
        "access_items",
        item.id,
        f"Updated access item: {item.username or item.email}",
    )
    record_event(
        s,
        actor=user,
        action="access_item.edit",
        entity_type="AccessItem",
        entity_id=str(item.id),
        metadata={"changes": changes},
    )
    return item


def delete_access_item(s: "Session", item: AccessItem, user: "User") -> AccessItem:
    item.is_active = False
    item.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="access_item.delete", entity_type="AccessItem", entity_id=str(item.id))
    return item


def activate_access_item(s: "Session", item: AccessItem, user: "User") -> AccessItem:
    item.is_active = True
    item.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="access_item.activate", entity_type="AccessItem", entity_id=str(item.id))
    return item
