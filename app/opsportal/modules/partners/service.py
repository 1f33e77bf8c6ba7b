from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_

from app.opsportal.audit import record_event
from app.opsportal.constants import CURRENCIES, PARTNER_STATUSES, PARTNER_TYPES
from app.opsportal.modules.notes.models import Note
from app.opsportal.modules.parties.models import (
    Company,
    Entity,
    EntityContact,
    EntityRelationship,
    Individual,
)
from app.opsportal.modules.partners.models import Partner, Rule
from app.opsportal.utils import clean, parse_bool, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

# Keys update_partner_profile() may touch, split by the table they live on.
PROFILE_PARTNER_FIELDS = (
    "acquisition_source",
    "total_monthly_revenue",
    "available_currencies",
    "default_currency",
    "analytics_folder_id",
    "google_drive_link",
    "external_id",
)
PROFILE_COMPANY_FIELDS = ("size", "legal_name", "business_registration_number", "industry")


def validate_partner_payload(payload: dict) -> list[str]:
    """Validate partner creation/update payload. Returns list of errors."""
    errors = []
    if not (payload.get("name") or "").strip():
        errors.append("Name is required.")
    status = (payload.get("status") or "").strip()
    if status and status not in PARTNER_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(PARTNER_STATUSES)}")
    partner_type = (payload.get("partner_type") or "").strip()
    if partner_type and partner_type not in PARTNER_TYPES:
        errors.append(f"Invalid partner type. Must be one of: {', '.join(PARTNER_TYPES)}")
    default_currency = (payload.get("default_currency") or "").strip()
    if default_currency and default_currency not in CURRENCIES:
        errors.append(f"Unsupported currency: {default_currency}")
    for field in ("demo_date", "msa_signed_date", "start_date"):
        try:
            parse_date(payload.get(field))
        except ValueError:
            errors.append(f"{field.replace('_', ' ').capitalize()} must be YYYY-MM-DD.")
    return errors


def get_all_partners(s: "Session") -> list[Partner]:
    return (
        s.query(Partner)
        .filter(or_(Partner.external_id.like("CUS%"), Partner.external_id.is_(None)))
        .order_by(Partner.external_id.asc())
        .all()
    )


def get_all_partner_names(s: "Session") -> list[tuple[int, str]]:
    rows = (
        s.query(Entity.id, Entity.name)
        .join(Partner, Partner.entity_id == Entity.id)
        .filter(Partner.external_id.like("CUS%"), Partner.status != "inactive")
        .order_by(Entity.name.asc())
        .all()
    )
    return [(r[0], r[1]) for r in rows]


def count_active_partners(s: "Session") -> int:
    return s.query(Partner).filter(Partner.status == "active").count()


def _account_manager(s: "Session", partner_id: int) -> tuple[EntityRelationship | None, Entity | None]:
    rel = (
        s.query(EntityRelationship)
        .filter(
            EntityRelationship.parent_entity_id == partner_id,
            EntityRelationship.relationship_type == "account_manager",
        )
        .order_by(EntityRelationship.id.desc())
        .first()
    )
    return rel, (rel.child if rel else None)


def get_partner(s: "Session", partner_id: int) -> dict | None:
    partner = s.get(Partner, partner_id)
    if not partner:
        return None
    rel, manager = _account_manager(s, partner_id)
    return {
        "partner": partner,
        "company": partner.entity.company,
        "account_manager": manager,
        "account_manager_relationship_id": rel.id if rel else None,
    }


def _billing_address(s: "Session", partner_id: int) -> EntityContact | None:
    return (
        s.query(EntityContact)
        .filter(
            EntityContact.entity_id == partner_id,
            EntityContact.contact_type == "address",
            EntityContact.contact_label == "billing",
        )
        .order_by(EntityContact.id.asc())
        .first()
    )


def get_partner_for_edit(s: "Session", partner_id: int) -> dict | None:
    data = get_partner(s, partner_id)
    if data is None:
        return None
    billing = _billing_address(s, partner_id)
    data["billing_address"] = billing.contact_value if billing else None
    data["billing_address_id"] = billing.id if billing else None
    return data


def get_partner_by_campaign(s: "Session", campaign_id: int) -> Partner | None:
    from app.opsportal.modules.campaigns.models import Campaign

    campaign = s.get(Campaign, campaign_id)
    if not campaign:
        return None
    return s.get(Partner, campaign.partner_entity_id)


def get_partner_notes(s: "Session", partner_id: int) -> "OrderedDict[str, list[Note]]":
    notes = (
        s.query(Note)
        .filter(Note.entity_type == "partner", Note.entity_id == partner_id, Note.is_current.is_(True))
        .order_by(Note.note_type.asc(), Note.created_at.asc())
        .all()
    )
    grouped: OrderedDict[str, list[Note]] = OrderedDict()
    for n in notes:
        grouped.setdefault(n.note_type, []).append(n)
    return grouped


# ---------- Rules ----------
def get_rules(s: "Session", partner_id: int) -> list[Rule]:
    from app.opsportal.modules.service_catalog.models import ServiceCategory

    return (
        s.query(Rule)
        .outerjoin(ServiceCategory, ServiceCategory.id == Rule.service_category_id)
        .filter(Rule.partner_entity_id == partner_id, Rule.status == "active")
        .order_by(ServiceCategory.display_name.asc(), Rule.rule_reason.asc())
        .all()
    )


def validate_rule_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("rule_reason") or "").strip():
        errors.append("Rule reason is required.")
    if not (payload.get("rule_value") or "").strip():
        errors.append("Rule value is required.")
    return errors


def create_rule(s: "Session", partner_id: int, payload: dict, user: "User") -> Rule:
    errors = validate_rule_payload(payload)
    if errors:
        raise ValueError(errors[0])
    now = datetime.utcnow()
    rule = Rule(
        partner_entity_id=partner_id,
        campaign_id=parse_int(payload.get("campaign_id")),
        rule_reason=payload["rule_reason"].strip(),
        rule_value=payload["rule_value"].strip(),
        service_category_id=parse_int(payload.get("service_category_id")),
        service_item_id=parse_int(payload.get("service_item_id")),
        reference_url=clean(payload.get("reference_url")),
        status="active",
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    s.add(rule)
    s.flush()
    record_event(
        s,
        actor=user,
        action="rule.create",
        entity_type="Rule",
        entity_id=str(rule.id),
        metadata={"partner_id": partner_id, "rule_reason": rule.rule_reason},
    )
    return rule


def update_rule(s: "Session", rule: Rule, payload: dict, user: "User") -> Rule:
    errors = validate_rule_payload(payload)
    if errors:
        raise ValueError(errors[0])
    changes = {}
    new_values = {
        "rule_reason": payload["rule_reason"].strip(),
        "rule_value": payload["rule_value"].strip(),
        "campaign_id": parse_int(payload.get("campaign_id")),
        "service_category_id": parse_int(payload.get("service_category_id")),
        "service_item_id": parse_int(payload.get("service_item_id")),
        "reference_url": clean(payload.get("reference_url")),
    }
    for key, new in new_values.items():
        old = getattr(rule, key)
        if old != new:
            changes[key] = {"old": old, "new": new}
            setattr(rule, key, new)
    rule.updated_at = datetime.utcnow()
    rule.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="rule.edit",
        entity_type="Rule",
        entity_id=str(rule.id),
        metadata={"changes": changes},
    )
    return rule


def archive_rule(s: "Session", rule: Rule, user: "User") -> Rule:
    rule.status = "archived"
    rule.updated_at = datetime.utcnow()
    rule.updated_by_user_id = user.id
    record_event(s, actor=user, action="rule.archive", entity_type="Rule", entity_id=str(rule.id))
    return rule


# ---------- Prospects / profile ----------
def create_prospect(
    s: "Session",
    company_name: str,
    first_name: str,
    last_name: str,
    email: str,
    external_auth_id: str | None = None,
    user: "User | None" = None,
) -> dict:
    """
    Self-signup path: company + partner (prospect) + the person who signed up as its primary contact.
    Everything is flushed into the caller's transaction.
    """
    company_name = (company_name or "").strip()
    first_name = (first_name or "").strip()
    last_name = (last_name or "").strip()
    email = (email or "").strip().lower()
    if not company_name:
        raise ValueError("Company name is required.")
    if not first_name or not last_name:
        raise ValueError("First and last name are required.")
    if not email:
        raise ValueError("Email is required.")

    now = datetime.utcnow()
    company_entity = Entity(entity_type="company", name=company_name, created_at=now, updated_at=now)
    person_entity = Entity(entity_type="individual", name=f"{first_name} {last_name}", created_at=now, updated_at=now)
    s.add_all([company_entity, person_entity])
    s.flush()

    s.add(Company(entity_id=company_entity.id, legal_name=company_name))
    s.add(
        Individual(
            entity_id=person_entity.id,
            first_name=first_name,
            last_name=last_name,
            external_auth_id=external_auth_id,
        )
    )
    partner = Partner(entity_id=company_entity.id, status="prospect", created_at=now, updated_at=now)
    s.add(partner)
    s.add(
        EntityContact(
            entity_id=person_entity.id,
            contact_type="email",
            contact_value=email,
            contact_label="work",
            is_primary=True,
        )
    )
    s.add(
        EntityRelationship(
            parent_entity_id=company_entity.id,
            child_entity_id=person_entity.id,
            relationship_type="contact",
            relationship_subtype="primary",
        )
    )
    s.flush()
    record_event(
        s,
        actor=user,
        action="partner.prospect_create",
        entity_type="Partner",
        entity_id=str(company_entity.id),
        metadata={"name": company_name, "contact_email": email},
    )
    return {
        "individual": {"id": person_entity.id, "name": person_entity.name, "email": email},
        "partner": {"id": company_entity.id, "name": company_name, "status": "prospect"},
    }


def update_partner_profile(s: "Session", partner_id: int, data: dict, user: "User | None" = None) -> dict:
    """Partial update: only keys present in data are written."""
    partner = s.get(Partner, partner_id)
    if not partner:
        raise ValueError("Partner not found")
    company = s.get(Company, partner_id)

    partner_updates = {k: data[k] for k in PROFILE_PARTNER_FIELDS if k in data}
    company_updates = {k: data[k] for k in PROFILE_COMPANY_FIELDS if k in data}

    for key, value in partner_updates.items():
        setattr(partner, key, value)
    if partner_updates:
        partner.updated_at = datetime.utcnow()
    if company_updates:
        if company is None:
            company = Company(entity_id=partner_id)
            s.add(company)
        for key, value in company_updates.items():
            setattr(company, key, value)
    s.flush()

    updated = bool(partner_updates or company_updates)
    if updated:
        record_event(
            s,
            actor=user,
            action="partner.profile_update",
            entity_type="Partner",
            entity_id=str(partner_id),
            metadata={"fields": sorted([*partner_updates, *company_updates])},
        )
    return {
        "updated": updated,
        "partner_fields_updated": bool(partner_updates),
        "company_fields_updated": bool(company_updates),
    }


def add_account_manager(
    s: "Session",
    partner_id: int,
    employee_id: int,
    relationship_id: int | None = None,
    user: "User | None" = None,
) -> EntityRelationship:
    rel = s.get(EntityRelationship, relationship_id) if relationship_id else None
    if rel is not None and (rel.parent_entity_id != partner_id or rel.relationship_type != "account_manager"):
        raise ValueError("Account manager relationship not found")
    if rel is not None:
        rel.parent_entity_id = partner_id
        rel.child_entity_id = employee_id
        rel.relationship_type = "account_manager"
        rel.created_at = datetime.utcnow()
    else:
        rel = EntityRelationship(
            parent_entity_id=partner_id,
            child_entity_id=employee_id,
            relationship_type="account_manager",
        )
        s.add(rel)
    s.flush()
    s.expire(rel, ["child"])
    record_event(
        s,
        actor=user,
        action="partner.account_manager",
        entity_type="Partner",
        entity_id=str(partner_id),
        metadata={"employee_id": employee_id, "relationship_id": rel.id},
    )
    return rel


def _partner_values(payload: dict) -> dict:
    return {
        "demo_date": parse_date(payload.get("demo_date")),
        "demo_by_entity_id": parse_int(payload.get("demo_by_entity_id")),
        "msa_signed": parse_bool(payload.get("msa_signed")),
        "msa_signed_date": parse_date(payload.get("msa_signed_date")),
        "start_date": parse_date(payload.get("start_date")),
        "status": clean(payload.get("status")) or "prospect",
        "partner_type": clean(payload.get("partner_type")),
        "acquisition_source": clean(payload.get("acquisition_source")),
        "total_monthly_revenue": parse_int(payload.get("total_monthly_revenue")),
        "available_currencies": clean(payload.get("available_currencies")),
        "default_currency": clean(payload.get("default_currency")),
        "analytics_folder_id": clean(payload.get("analytics_folder_id")),
        "google_drive_link": clean(payload.get("google_drive_link")),
        "external_id": clean(payload.get("external_id")),
    }


def save_partner(s: "Session", partner_id: int | None, payload: dict, user: "User") -> int:
    """Create or update entity + company + partner (+ billing address). Returns the partner entity id."""
    errors = validate_partner_payload(payload)
    if errors:
        raise ValueError(errors[0])

    now = datetime.utcnow()
    name = payload["name"].strip()
    billing_address = clean(payload.get("billing_address"))
    billing_address_id = parse_int(payload.get("billing_address_id"))
    company_values = {
        "business_registration_number": clean(payload.get("business_registration_number")),
        "industry": clean(payload.get("industry")),
        "size": clean(payload.get("size")),
    }

    if partner_id:
        partner = s.get(Partner, partner_id)
        if not partner:
            raise ValueError("Partner not found")
        entity = partner.entity
        billing = s.get(EntityContact, billing_address_id) if billing_address_id else None
        if billing is not None and billing.entity_id != entity.id:
            raise ValueError("Billing address not found")
        changes = {}
        if entity.name != name:
            changes["name"] = {"old": entity.name, "new": name}
        entity.name = name
        entity.netsuite_id = parse_int(payload.get("netsuite_id"))
        entity.updated_at = now

        company = entity.company
        if company is None:
            company = Company(entity_id=entity.id)
            s.add(company)
        company.legal_name = clean(payload.get("legal_name"))
        for key, value in company_values.items():
            setattr(company, key, value)

        for key, new in _partner_values(payload).items():
            old = getattr(partner, key)
            if old != new:
                changes[key] = {"old": str(old) if old is not None else None, "new": str(new) if new is not None else None}
                setattr(partner, key, new)
        partner.updated_at = now

        if billing is not None:
            billing.contact_value = billing_address or ""
        elif billing_address:
            s.add(
                EntityContact(
                    entity_id=entity.id,
                    contact_type="address",
                    contact_value=billing_address,
                    contact_label="billing",
                    is_primary=True,
                )
            )
        s.flush()
        record_event(
            s,
            actor=user,
            action="partner.edit",
            entity_type="Partner",
            entity_id=str(entity.id),
            metadata={"name": name, "changes": changes},
        )
        return entity.id

    entity = Entity(
        entity_type="company",
        name=name,
        netsuite_id=parse_int(payload.get("netsuite_id")),
        created_at=now,
        updated_at=now,
    )
    s.add(entity)
    s.flush()
    s.add(Partner(entity_id=entity.id, created_at=now, updated_at=now, **_partner_values(payload)))
    s.add(Company(entity_id=entity.id, legal_name=clean(payload.get("legal_name")) or name, **company_values))
    if billing_address:
        s.add(
            EntityContact(
                entity_id=entity.id,
                contact_type="address",
                contact_value=billing_address,
                contact_label="billing",
                is_primary=True,
            )
        )
    s.flush()
    record_event(
        s,
        actor=user,
        action="partner.create",
        entity_type="Partner",
        entity_id=str(entity.id),
        metadata={"name": name},
    )
    return entity.id


def get_contact_emails(s: "Session", partner_id: int) -> list[dict]:
    rows = (
        s.query(EntityContact.contact_value, Individual.first_name, Individual.last_name, Entity.name)
        .join(EntityRelationship, EntityRelationship.child_entity_id == EntityContact.entity_id)
        .join(Entity, Entity.id == EntityContact.entity_id)
        .outerjoin(Individual, Individual.entity_id == Entity.id)
        .filter(
            EntityRelationship.parent_entity_id == partner_id,
            EntityRelationship.relationship_type == "contact",
            EntityContact.contact_type == "email",
        )
        .order_by(EntityContact.id.asc())
        .all()
    )
    out = []
    for address, first, last, entity_name in rows:
        name = f"{first} {last}" if first and last else entity_name
        out.append({"name": name, "address": address})
    return out
