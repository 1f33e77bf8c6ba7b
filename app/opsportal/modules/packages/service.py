from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.opsportal.audit import record_event
from app.opsportal.constants import CURRENCIES, DEFAULT_CURRENCY
from app.opsportal.modules.activities.service import create_activity
from app.opsportal.modules.campaign_profiles.models import CampaignProfile
from app.opsportal.modules.notes.models import Note
from app.opsportal.modules.notes.service import list_current_notes, save_note
from app.opsportal.modules.packages.models import (
    FREQUENCIES,
    PACKAGE_TYPES,
    PROFILE_TEXT_FIELDS,
    Package,
    PackageActionItem,
    PackageServiceItem,
)
from app.opsportal.modules.service_catalog.models import ServiceItem
from app.opsportal.utils import clean, dollars_to_cents, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

RELATED_TABLE = "packages"

EDITABLE_FIELDS = (
    "name",
    "description",
    "monthly_price_cents",
    "currency",
    "partner_entity_id",
    "related_campaign_profile_id",
    "is_active",
    "buy_without_discovery",
    "type",
    "outcome",
    *PROFILE_TEXT_FIELDS,
)
_INT_FIELDS = ("monthly_price_cents", "partner_entity_id", "related_campaign_profile_id")
_BOOL_FIELDS = ("is_active", "buy_without_discovery")


def validate_package_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("name") or "").strip():
        errors.append("Name is required.")
    ptype = (payload.get("type") or "").strip()
    if ptype and ptype not in PACKAGE_TYPES:
        errors.append(f"Invalid package type. Must be one of: {', '.join(PACKAGE_TYPES)}")
    currency = (payload.get("currency") or "").strip()
    if currency and currency not in CURRENCIES:
        errors.append(f"Unsupported currency: {currency}")
    return errors


def _log(s: "Session", user: "User | None", package: Package | None, package_id: int, activity_type: str, details: str) -> None:
    partner_id = package.partner_entity_id if package is not None else None
    create_activity(s, user, partner_id, activity_type, RELATED_TABLE, package_id, details)


def _touch(package: Package, user: "User | None") -> None:
    package.updated_at = datetime.utcnow()
    package.updated_by_user_id = user.id if user else None


def _price_cents(payload: dict) -> int | None:
    if payload.get("monthly_price_cents") not in (None, ""):
        return parse_int(payload.get("monthly_price_cents"))
    return dollars_to_cents(payload.get("monthly_price"))


# ---------- Queries ----------
def get_all_packages(s: "Session", include_inactive: bool = False) -> list[Package]:
    return (
        s.query(Package)
        .filter(Package.is_active.is_(not include_inactive))
        .order_by(Package.updated_at.desc(), Package.id.desc())
        .all()
    )


def search_packages(
    s: "Session",
    term: str | None = None,
    partner_id: int | None = None,
    profile_id: int | None = None,
    include_inactive: bool = False,
    type: str | None = None,
) -> list[Package]:
    """Filtered package list; include_inactive widens the result to every row."""
    q = s.query(Package)
    if not include_inactive:
        q = q.filter(Package.is_active.is_(True))
    if term:
        q = q.filter(Package.name.ilike(f"%{term}%"))
    if partner_id:
        q = q.filter(Package.partner_entity_id == partner_id)
    if profile_id:
        q = q.filter(Package.related_campaign_profile_id == profile_id)
    if type:
        q = q.filter(Package.type == type)
    return q.order_by(Package.updated_at.desc(), Package.id.desc()).all()


def get_package(s: "Session", package_id: int) -> Package | None:
    return s.get(Package, package_id)


# ---------- Package CRUD ----------
def create_package(s: "Session", payload: dict, user: "User | None") -> Package:
    """Create a package; text fields are seeded from the related campaign profile when one is set."""
    errors = validate_package_payload(payload)
    if errors:
        raise ValueError(errors[0])
    now = datetime.utcnow()
    package = Package(
        name=payload["name"].strip(),
        description=clean(payload.get("description")),
        monthly_price_cents=_price_cents(payload),
        currency=clean(payload.get("currency")) or DEFAULT_CURRENCY,
        partner_entity_id=parse_int(payload.get("partner_entity_id")),
        related_campaign_profile_id=parse_int(payload.get("related_campaign_profile_id")),
        is_active=parse_bool(payload["is_active"]) if "is_active" in payload else True,
        buy_without_discovery=parse_bool(payload.get("buy_without_discovery")),
        type=clean(payload.get("type")),
        outcome=clean(payload.get("outcome")),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id if user else None,
        updated_by_user_id=user.id if user else None,
    )
    for field in PROFILE_TEXT_FIELDS:
        setattr(package, field, clean(payload.get(field)))
    if package.related_campaign_profile_id:
        profile = s.get(CampaignProfile, package.related_campaign_profile_id)
        if profile is not None:
            for field in PROFILE_TEXT_FIELDS:
                setattr(package, field, getattr(profile, field))
    s.add(package)
    s.flush()
    _log(s, user, package, package.id, "package_created", f"Created package: {package.name}")
    record_event(
        s,
        actor=user,
        action="package.create",
        entity_type="Package",
        entity_id=str(package.id),
        metadata={"name": package.name, "partner_entity_id": package.partner_entity_id},
    )
    return package


def update_package(s: "Session", package: Package, payload: dict, user: "User") -> Package:
    """Apply every editable key present in payload; nothing is written if any value is rejected."""
    values = {field: _coerce_field(field, payload[field]) for field in EDITABLE_FIELDS if field in payload}
    if "monthly_price" in payload and "monthly_price_cents" not in payload:
        values["monthly_price_cents"] = dollars_to_cents(payload["monthly_price"])
    if "name" in values and not values["name"]:
        raise ValueError("Name is required.")
    changes = {}
    for field, new in values.items():
        old = getattr(package, field)
        if old != new:
            changes[field] = {"old": old, "new": new}
            setattr(package, field, new)
    _touch(package, user)
    s.flush()
    _log(s, user, package, package.id, "package_updated", "Updated package")
    record_event(
        s,
        actor=user,
        action="package.edit",
        entity_type="Package",
        entity_id=str(package.id),
        metadata={"name": package.name, "changes": changes},
    )
    return package


def update_basic_details(s: "Session", package: Package, payload: dict, user: "User") -> Package:
    errors = validate_package_payload(payload)
    if errors:
        raise ValueError(errors[0])
    package.name = payload["name"].strip()
    package.description = clean(payload.get("description"))
    package.partner_entity_id = parse_int(payload.get("partner_entity_id"))
    package.monthly_price_cents = _price_cents(payload)
    package.currency = clean(payload.get("currency")) or DEFAULT_CURRENCY
    package.related_campaign_profile_id = parse_int(payload.get("related_campaign_profile_id"))
    package.is_active = parse_bool(payload["is_active"]) if "is_active" in payload else True
    _touch(package, user)
    s.flush()
    _log(s, user, package, package.id, "package_updated", "Updated package basic details")
    record_event(
        s,
        actor=user,
        action="package.edit",
        entity_type="Package",
        entity_id=str(package.id),
        metadata={"name": package.name, "basic_details": True},
    )
    return package


def _coerce_field(field: str, value):
    if field in _INT_FIELDS:
        return parse_int(value)
    if field in _BOOL_FIELDS:
        return parse_bool(value)
    if field == "currency":
        currency = clean(value) or DEFAULT_CURRENCY
        if currency not in CURRENCIES:
            raise ValueError(f"Unsupported currency: {currency}")
        return currency
    if field == "type":
        ptype = clean(value)
        if ptype and ptype not in PACKAGE_TYPES:
            raise ValueError(f"Invalid package type. Must be one of: {', '.join(PACKAGE_TYPES)}")
        return ptype
    return clean(value)


def update_package_field(s: "Session", package: Package, field: str, value, user: "User") -> Package:
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Field '{field}' cannot be edited.")
    new = _coerce_field(field, value)
    if field == "name" and not new:
        raise ValueError("Name is required.")
    old = getattr(package, field)
    setattr(package, field, new)
    _touch(package, user)
    s.flush()
    _log(s, user, package, package.id, "package_updated", f"Updated field: {field}")
    record_event(
        s,
        actor=user,
        action="package.edit",
        entity_type="Package",
        entity_id=str(package.id),
        metadata={"changes": {field: {"old": old, "new": new}}},
    )
    return package


def delete_package(s: "Session", package: Package, user: "User") -> None:
    """Hard delete; service and action item rows go with it."""
    package_id, name, partner_id = package.id, package.name, package.partner_entity_id
    s.delete(package)
    s.flush()
    create_activity(s, user, partner_id, "package_deleted", RELATED_TABLE, package_id, f"Deleted package: {name}")
    record_event(
        s,
        actor=user,
        action="package.delete",
        entity_type="Package",
        entity_id=str(package_id),
        metadata={"name": name},
    )


# ---------- Notes ----------
def get_package_notes(s: "Session", package_id: int) -> list[Note]:
    return list_current_notes(s, "packages", package_id, note_type="general")


def add_package_note(s: "Session", package: Package, content: str, user: "User") -> Note:
    note = save_note(
        s,
        None,
        None,
        {"entity_type": "packages", "entity_id": package.id, "note_type": "general", "content": content},
        user,
    )
    _log(s, user, package, package.id, "package_note_added", "Added note to package")
    return note


# ---------- Service items ----------
def get_package_service_items(s: "Session", package_id: int) -> list[PackageServiceItem]:
    return (
        s.query(PackageServiceItem)
        .filter(PackageServiceItem.package_id == package_id)
        .order_by(
            PackageServiceItem.order_override.is_(None),
            PackageServiceItem.order_override.asc(),
            PackageServiceItem.created_at.asc(),
            PackageServiceItem.id.asc(),
        )
        .all()
    )


def _frequency(data: dict) -> str:
    frequency = clean(data.get("frequency")) or "monthly"
    if frequency not in FREQUENCIES:
        raise ValueError(f"Invalid frequency. Must be one of: {', '.join(FREQUENCIES)}")
    return frequency


def _insert_service_item(s: "Session", package_id: int, data: dict) -> PackageServiceItem:
    service_item_id = parse_int(data.get("service_item_id"))
    if not service_item_id:
        raise ValueError("service_item_id is required")
    item = s.get(ServiceItem, service_item_id)
    if item is None:
        raise ValueError("Service item not found")
    frequency = _frequency(data)
    row = PackageServiceItem(
        package_id=package_id,
        service_item_id=service_item_id,
        quantity=parse_int(data.get("quantity")) or 1,
        frequency=frequency,
        monthly_price_cents=parse_int(data.get("monthly_price_cents")) or 0,
        unique_service_label=item.service_label,
        order_override=parse_int(data.get("order_override")),
        created_at=datetime.utcnow(),
    )
    s.add(row)
    s.flush()
    return row


def add_package_service_item(s: "Session", package: Package, data: dict, user: "User") -> PackageServiceItem:
    row = _insert_service_item(s, package.id, data)
    _touch(package, user)
    s.expire(package, ["service_items"])
    _log(s, user, None, package.id, "package_updated", "Added service item to package")
    return row


def update_package_service_item(
    s: "Session", package: Package, package_service_item_id: int, data: dict, user: "User"
) -> PackageServiceItem:
    row = s.get(PackageServiceItem, package_service_item_id)
    if row is None or row.package_id != package.id:
        raise ValueError("Package service item not found")
    frequency = _frequency(data) if "frequency" in data else None
    if "quantity" in data:
        row.quantity = parse_int(data.get("quantity")) or 1
    if frequency is not None:
        row.frequency = frequency
    if "monthly_price_cents" in data:
        row.monthly_price_cents = parse_int(data.get("monthly_price_cents"))
    if "order_override" in data:
        row.order_override = parse_int(data.get("order_override"))
    _touch(package, user)
    s.flush()
    _log(s, user, None, package.id, "package_updated", "Updated service item in package")
    return row


def remove_package_service_item(s: "Session", package: Package, service_item_id: int, user: "User") -> int:
    n = (
        s.query(PackageServiceItem)
        .filter(PackageServiceItem.package_id == package.id, PackageServiceItem.service_item_id == service_item_id)
        .delete(synchronize_session="fetch")
    )
    _touch(package, user)
    s.flush()
    s.expire(package, ["service_items"])
    _log(s, user, None, package.id, "package_updated", "Removed service item from package")
    return n


# ---------- Action items ----------
def get_package_action_items(s: "Session", package_id: int) -> list[PackageActionItem]:
    return (
        s.query(PackageActionItem)
        .join(ServiceItem, ServiceItem.id == PackageActionItem.service_item_id)
        .filter(PackageActionItem.package_id == package_id)
        .order_by(
            PackageActionItem.order_override.is_(None),
            PackageActionItem.order_override.asc(),
            ServiceItem.name.asc(),
        )
        .all()
    )


def _insert_action_item(s: "Session", package_id: int, data: dict) -> PackageActionItem:
    service_item_id = parse_int(data.get("service_item_id"))
    if not service_item_id:
        raise ValueError("service_item_id is required")
    row = PackageActionItem(
        package_id=package_id,
        service_item_id=service_item_id,
        order_override=parse_int(data.get("order_override")),
        in_onboarding=parse_bool(data.get("in_onboarding")),
        created_at=datetime.utcnow(),
    )
    s.add(row)
    s.flush()
    return row


def add_package_action_item(s: "Session", package: Package, data: dict, user: "User") -> PackageActionItem:
    row = _insert_action_item(s, package.id, data)
    _touch(package, user)
    s.expire(package, ["action_items"])
    _log(s, user, None, package.id, "package_updated", "Added action item to package")
    return row


def remove_package_action_item(s: "Session", package: Package, service_item_id: int, user: "User") -> int:
    n = (
        s.query(PackageActionItem)
        .filter(PackageActionItem.package_id == package.id, PackageActionItem.service_item_id == service_item_id)
        .delete(synchronize_session="fetch")
    )
    _touch(package, user)
    s.flush()
    s.expire(package, ["action_items"])
    _log(s, user, None, package.id, "package_updated", "Removed action item from package")
    return n


def update_action_item_order(s: "Session", package: Package, service_item_id: int, new_order: int | None, user: "User") -> None:
    rows = (
        s.query(PackageActionItem)
        .filter(PackageActionItem.package_id == package.id, PackageActionItem.service_item_id == service_item_id)
        .all()
    )
    for row in rows:
        row.order_override = new_order
    _touch(package, user)
    s.flush()


# ---------- Bulk sync ----------
def sync_package_service_items(s: "Session", package: Package, rows: list[dict], user: "User") -> list[PackageServiceItem]:
    """Make the package's service items match rows (keyed by service_item_id)."""
    wanted: dict[int, dict] = {}
    for r in rows:
        sid = parse_int(r.get("service_item_id"))
        if sid:
            wanted[sid] = r
    frequencies = {sid: _frequency(data) for sid, data in wanted.items()}
    existing = {row.service_item_id: row for row in get_package_service_items(s, package.id)}

    for sid, row in existing.items():
        if sid not in wanted:
            s.delete(row)
    for sid, data in wanted.items():
        row = existing.get(sid)
        if row is None:
            _insert_service_item(s, package.id, data)
            continue
        row.quantity = parse_int(data.get("quantity")) or 1
        row.frequency = frequencies[sid]
        row.monthly_price_cents = parse_int(data.get("monthly_price_cents"))
        row.order_override = parse_int(data.get("order_override"))
    _touch(package, user)
    s.flush()
    s.expire(package, ["service_items"])
    _log(s, user, None, package.id, "package_updated", "Updated package service items")
    return get_package_service_items(s, package.id)


def sync_package_action_items(s: "Session", package: Package, rows: list[dict], user: "User") -> list[PackageActionItem]:
    wanted: dict[int, dict] = {}
    for r in rows:
        sid = parse_int(r.get("service_item_id"))
        if sid:
            wanted[sid] = r
    existing = {row.service_item_id: row for row in get_package_action_items(s, package.id)}

    for sid, row in existing.items():
        if sid not in wanted:
            s.delete(row)
    for sid, data in wanted.items():
        row = existing.get(sid)
        if row is None:
            _insert_action_item(s, package.id, data)
            continue
        row.order_override = parse_int(data.get("order_override"))
        row.in_onboarding = parse_bool(data.get("in_onboarding"))
    _touch(package, user)
    s.flush()
    s.expire(package, ["action_items"])
    _log(s, user, None, package.id, "package_updated", "Updated package action items")
    return get_package_action_items(s, package.id)


# ---------- Duplication ----------
def duplicate_package(s: "Session", source_id: int, overrides: dict, user: "User") -> Package:
    """
    Deep copy: new package (overrides win, source fills the gaps), its service items, action items
    and the profile text fields. Runs entirely in the caller's transaction.
    """
    source = s.get(Package, source_id)
    if source is None:
        raise ValueError("Package not found")

    def pick(key: str, current):
        value = overrides.get(key)
        return current if value in (None, "") else value

    payload = {
        "name": pick("name", None) or f"{source.name} (copy)",
        "partner_entity_id": pick("partner_entity_id", source.partner_entity_id),
        "monthly_price_cents": pick("monthly_price_cents", source.monthly_price_cents),
        "currency": pick("currency", source.currency),
        "related_campaign_profile_id": pick("related_campaign_profile_id", source.related_campaign_profile_id),
        "description": pick("description", source.description),
        "type": pick("type", source.type),
    }
    new_package = create_package(s, payload, user)

    for item in get_package_service_items(s, source.id):
        _insert_service_item(
            s,
            new_package.id,
            {
                "service_item_id": item.service_item_id,
                "quantity": item.quantity or 1,
                "frequency": item.frequency or "monthly",
                "monthly_price_cents": item.monthly_price_cents or 0,
            },
        )
    for action in get_package_action_items(s, source.id):
        _insert_action_item(
            s,
            new_package.id,
            {"service_item_id": action.service_item_id, "order_override": action.order_override},
        )
    for field in PROFILE_TEXT_FIELDS:
        setattr(new_package, field, getattr(source, field))
    _touch(new_package, user)
    s.flush()
    s.expire(new_package, ["service_items", "action_items"])

    _log(s, user, None, new_package.id, "package_updated", f'Package duplicated from "{source.name}"')
    record_event(
        s,
        actor=user,
        action="package.duplicate",
        entity_type="Package",
        entity_id=str(new_package.id),
        metadata={"source_package_id": source.id, "source_name": source.name},
    )
    return new_package
