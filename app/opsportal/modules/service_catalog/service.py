from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.opsportal.audit import record_event
from app.opsportal.modules.service_catalog.models import (
    PROPOSAL_MODES,
    SERVICE_ITEM_TYPES,
    ServiceCategory,
    ServiceItem,
)
from app.opsportal.utils import clean, dollars_to_cents, format_label, parse_bool, parse_int, to_snake_case

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

CATEGORY_EDITABLE_FIELDS = ("display_name", "description", "is_active")


# ---------- Categories ----------
def validate_category_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("display_name") or "").strip():
        errors.append("Display name is required.")
    return errors


def get_all_categories(s: "Session", include_inactive: bool = False) -> list[ServiceCategory]:
    """Active categories, or only the inactive ones when include_inactive is set."""
    return (
        s.query(ServiceCategory)
        .filter(ServiceCategory.is_active.is_(not include_inactive))
        .order_by(ServiceCategory.display_name.asc())
        .all()
    )


def get_category(s: "Session", category_id: int) -> ServiceCategory | None:
    return s.get(ServiceCategory, category_id)


def get_category_by_key(s: "Session", key: str) -> ServiceCategory | None:
    return s.query(ServiceCategory).filter(ServiceCategory.key == key).one_or_none()


def create_category(s: "Session", payload: dict, user: "User") -> ServiceCategory:
    errors = validate_category_payload(payload)
    if errors:
        raise ValueError(errors[0])
    display_name = payload["display_name"].strip()
    key = to_snake_case(payload.get("key") or display_name)
    if get_category_by_key(s, key) is not None:
        raise ValueError(f'A service category with the key "{key}" already exists.')
    now = datetime.utcnow()
    cat = ServiceCategory(
        key=key,
        display_name=display_name,
        description=clean(payload.get("description")),
        is_active=True,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    s.add(cat)
    s.flush()
    record_event(
        s,
        actor=user,
        action="service_category.create",
        entity_type="ServiceCategory",
        entity_id=str(cat.id),
        metadata={"key": key, "display_name": display_name},
    )
    return cat


def update_category(s: "Session", cat: ServiceCategory, payload: dict, user: "User") -> ServiceCategory:
    errors = validate_category_payload(payload)
    if errors:
        raise ValueError(errors[0])
    changes = {}
    new_display = payload["display_name"].strip()
    if new_display != cat.display_name:
        changes["display_name"] = {"old": cat.display_name, "new": new_display}
        cat.display_name = new_display
    new_desc = clean(payload.get("description"))
    if new_desc != cat.description:
        changes["description"] = {"old": cat.description, "new": new_desc}
        cat.description = new_desc
    if "is_active" in payload:
        new_active = parse_bool(payload.get("is_active"))
        if new_active != cat.is_active:
            changes["is_active"] = {"old": cat.is_active, "new": new_active}
            cat.is_active = new_active
    cat.updated_at = datetime.utcnow()
    cat.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="service_category.edit",
        entity_type="ServiceCategory",
        entity_id=str(cat.id),
        metadata={"key": cat.key, "changes": changes},
    )
    return cat


def update_category_field(s: "Session", category_id: int, field: str, value, user: "User") -> ServiceCategory:
    if field not in CATEGORY_EDITABLE_FIELDS:
        raise ValueError(f"Field '{field}' cannot be edited.")
    cat = s.get(ServiceCategory, category_id)
    if not cat:
        raise ValueError("Service category not found")
    if field == "is_active":
        value = parse_bool(value)
    else:
        value = clean(value)
        if field == "display_name" and not value:
            raise ValueError("Display name is required.")
    old = getattr(cat, field)
    setattr(cat, field, value)
    cat.updated_at = datetime.utcnow()
    cat.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="service_category.edit",
        entity_type="ServiceCategory",
        entity_id=str(cat.id),
        metadata={"changes": {field: {"old": old, "new": value}}},
    )
    return cat


# ---------- Service items ----------
def validate_service_item_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("name") or "").strip():
        errors.append("Name is required.")
    item_type = (payload.get("type") or "").strip()
    if item_type and item_type not in SERVICE_ITEM_TYPES:
        errors.append(f"Invalid type. Must be one of: {', '.join(SERVICE_ITEM_TYPES)}")
    mode = (payload.get("proposal_mode") or "").strip()
    if mode and mode not in PROPOSAL_MODES:
        errors.append(f"Invalid proposal mode. Must be one of: {', '.join(PROPOSAL_MODES)}")
    return errors


def get_all_service_items(s: "Session", include_inactive: bool = False) -> list[ServiceItem]:
    return (
        s.query(ServiceItem)
        .filter(ServiceItem.is_active.is_(not include_inactive))
        .order_by(ServiceItem.name.asc())
        .all()
    )


def get_service_item(s: "Session", item_id: int) -> ServiceItem | None:
    return s.get(ServiceItem, item_id)


def _service_item_values(s: "Session", payload: dict) -> dict:
    category_key = clean(payload.get("service_category"))
    category = get_category_by_key(s, category_key) if category_key else None
    return {
        "name": payload["name"].strip(),
        "service_category": category_key,
        "service_category_id": category.id if category else None,
        "service_label": clean(payload.get("service_label")),
        "type": clean(payload.get("type")),
        "description": clean(payload.get("description")),
        "sop_url": clean(payload.get("sop_url")),
        "min_pricing_usd_cents": dollars_to_cents(payload.get("min_pricing_dollars")),
        "est_cogs_usd_cents": dollars_to_cents(payload.get("est_cogs_dollars")),
        "est_time_minutes": parse_int(payload.get("est_time_minutes")),
        "recommended_price_cents": dollars_to_cents(payload.get("recommended_price_dollars")),
        "recommended_price_currency": clean(payload.get("recommended_price_currency")),
        "partner_entity_id": parse_int(payload.get("partner_entity_id")),
    }


def create_service_item(s: "Session", payload: dict, user: "User") -> ServiceItem:
    errors = validate_service_item_payload(payload)
    if errors:
        raise ValueError(errors[0])
    now = datetime.utcnow()
    item = ServiceItem(
        proposal_mode=clean(payload.get("proposal_mode")) or "both",
        in_stream=parse_bool(payload.get("in_stream")),
        is_active=True,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
        **_service_item_values(s, payload),
    )
    s.add(item)
    s.flush()
    record_event(
        s,
        actor=user,
        action="service_item.create",
        entity_type="ServiceItem",
        entity_id=str(item.id),
        metadata={"name": item.name, "proposal_mode": item.proposal_mode},
    )
    return item


def update_service_item(s: "Session", item: ServiceItem, payload: dict, user: "User") -> ServiceItem:
    errors = validate_service_item_payload(payload)
    if errors:
        raise ValueError(errors[0])
    values = _service_item_values(s, payload)
    if "proposal_mode" in payload and clean(payload.get("proposal_mode")):
        values["proposal_mode"] = clean(payload.get("proposal_mode"))
    if "in_stream" in payload:
        values["in_stream"] = parse_bool(payload.get("in_stream"))
    changes = {}
    for key, new in values.items():
        old = getattr(item, key)
        if old != new:
            changes[key] = {"old": old, "new": new}
            setattr(item, key, new)
    item.updated_at = datetime.utcnow()
    item.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="service_item.edit",
        entity_type="ServiceItem",
        entity_id=str(item.id),
        metadata={"name": item.name, "changes": changes},
    )
    return item


def set_service_item_active(s: "Session", item: ServiceItem, active: bool, user: "User") -> ServiceItem:
    item.is_active = active
    item.updated_at = datetime.utcnow()
    item.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="service_item.activate" if active else "service_item.delete",
        entity_type="ServiceItem",
        entity_id=str(item.id),
        metadata={"name": item.name},
    )
    return item


def _partner_scope(query, partner_id: int | None):
    if partner_id:
        return query.filter(or_(ServiceItem.partner_entity_id.is_(None), ServiceItem.partner_entity_id == partner_id))
    return query.filter(ServiceItem.partner_entity_id.is_(None))


def get_available_for_package(s: "Session", partner_id: int | None = None, package_type: str | None = None) -> list[dict]:
    """
    Scope items a package can offer, one per service_label. A partner's own item wins over the
    core item sharing its label and is shown with a leading '*'.
    """
    q = s.query(ServiceItem).filter(ServiceItem.is_active.is_(True))
    if package_type == "one_time":
        q = q.filter(ServiceItem.proposal_mode.in_(("one_time", "both")))
    elif package_type == "ongoing":
        q = q.filter(ServiceItem.proposal_mode.in_(("recurring", "both")))
    q = _partner_scope(q, partner_id)

    grouped: dict[str, dict] = {}
    for item in q.order_by(ServiceItem.name.asc(), ServiceItem.id.asc()).all():
        key = item.service_label or "unknown"
        if key not in grouped or item.partner_entity_id:
            grouped[key] = {
                "id": item.id,
                "name": f"*{item.name}" if item.partner_entity_id else item.name,
                "service_label": item.service_label,
                "is_partner_specific": bool(item.partner_entity_id),
                "recommended_price_cents": item.recommended_price_cents,
            }
    return list(grouped.values())


def get_available_action_items_for_package(s: "Session", partner_id: int | None = None) -> list[dict]:
    q = s.query(ServiceItem).filter(ServiceItem.is_active.is_(True), ServiceItem.proposal_mode == "neither")
    q = _partner_scope(q, partner_id)
    return [
        {
            "id": item.id,
            "name": f"*{item.name}" if item.partner_entity_id else item.name,
            "title": item.name,
            "description": item.description,
            "is_partner_specific": bool(item.partner_entity_id),
        }
        for item in q.order_by(ServiceItem.name.asc()).all()
    ]


# ---------- Scope items ----------
def list_scope_items(s: "Session", include_inactive: bool = False) -> list[ServiceItem]:
    return (
        s.query(ServiceItem)
        .filter(ServiceItem.proposal_mode != "neither", ServiceItem.is_active.is_(not include_inactive))
        .order_by(func.lower(ServiceItem.name).asc())
        .all()
    )


def create_scope_item(s: "Session", payload: dict, user: "User") -> ServiceItem:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("Name is required.")
    label = clean(payload.get("service_label")) or to_snake_case(name)
    exists = s.query(ServiceItem.id).filter(ServiceItem.service_label == label).first()
    if exists:
        raise ValueError(
            f'A scope item with the label "{format_label(label)}" already exists. Service labels must be unique.'
        )
    mode = clean(payload.get("proposal_mode")) or "both"
    if mode == "neither":
        raise ValueError("Scope items must be offered on recurring or one-time packages.")
    return create_service_item(s, {**payload, "service_label": label, "proposal_mode": mode}, user)


# ---------- Catalog (action) items ----------
def list_catalog_items(s: "Session", include_inactive: bool = False) -> list[ServiceItem]:
    return (
        s.query(ServiceItem)
        .filter(ServiceItem.proposal_mode == "neither", ServiceItem.is_active.is_(not include_inactive))
        .order_by(func.lower(ServiceItem.name).asc())
        .all()
    )


def create_catalog_item(s: "Session", payload: dict, user: "User") -> ServiceItem:
    return create_service_item(
        s,
        {**payload, "proposal_mode": "neither", "in_stream": parse_bool(payload.get("in_stream"))},
        user,
    )
