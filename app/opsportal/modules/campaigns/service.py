from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.opsportal.audit import record_event
from app.opsportal.constants import CAMPAIGN_STATUSES
from app.opsportal.modules.campaigns.models import Campaign
from app.opsportal.modules.parties.models import Entity
from app.opsportal.utils import clean, dollars_to_cents, parse_bool, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

SERVICE_TYPES = ("managed", "link_building")
PROFILE_TYPES = ("service_area", "ecommerce", "local", "national", "saas")
BUDGET_PERIODS = ("month", "quarter", "year", "fixed")


def validate_campaign_payload(payload: dict) -> list[str]:
    errors = []
    if not parse_int(payload.get("partner_entity_id")):
        errors.append("Partner is required.")
    if not (payload.get("site_url") or "").strip():
        errors.append("Site URL is required.")
    status = (payload.get("status") or "").strip()
    if status and status not in CAMPAIGN_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(CAMPAIGN_STATUSES)}")
    service_type = (payload.get("service_type") or "").strip()
    if service_type and service_type not in SERVICE_TYPES:
        errors.append(f"Invalid service type. Must be one of: {', '.join(SERVICE_TYPES)}")
    for field in ("onboard_date", "campaign_start_date", "offboard_date"):
        try:
            parse_date(payload.get(field))
        except ValueError:
            errors.append(f"{field.replace('_', ' ').capitalize()} must be YYYY-MM-DD.")
    return errors


def _campaign_values(payload: dict) -> dict:
    return {
        "partner_entity_id": parse_int(payload.get("partner_entity_id")),
        "site_owner_entity_id": parse_int(payload.get("site_owner_entity_id")),
        "site_url": (payload.get("site_url") or "").strip(),
        "status": clean(payload.get("status")) or "prospect",
        "service_type": clean(payload.get("service_type")),
        "profile_type": clean(payload.get("profile_type")),
        "budget_amount_cents": dollars_to_cents(payload.get("budget_amount")),
        "budget_period": clean(payload.get("budget_period")),
        "onboard_date": parse_date(payload.get("onboard_date")),
        "onboarded_by_entity_id": parse_int(payload.get("onboarded_by_entity_id")),
        "campaign_start_date": parse_date(payload.get("campaign_start_date")),
        "offboard_date": parse_date(payload.get("offboard_date")),
        "campaign_profile_id": parse_int(payload.get("campaign_profile_id")),
        "is_onboarded": parse_bool(payload.get("is_onboarded")),
    }


def list_campaigns(
    s: "Session", q: str | None = None, status: str | None = None, partner_id: int | None = None
) -> list[Campaign]:
    query = s.query(Campaign).join(Entity, Entity.id == Campaign.partner_entity_id)
    if q:
        like = f"%{q}%"
        query = query.filter((Campaign.site_url.ilike(like)) | (Entity.name.ilike(like)))
    if status:
        query = query.filter(Campaign.status == status)
    if partner_id:
        query = query.filter(Campaign.partner_entity_id == partner_id)
    return query.order_by(Entity.name.asc(), Campaign.site_url.asc()).all()


def create_campaign(s: "Session", payload: dict, user: "User") -> Campaign:
    errors = validate_campaign_payload(payload)
    if errors:
        raise ValueError(errors[0])
    now = datetime.utcnow()
    campaign = Campaign(
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
        **_campaign_values(payload),
    )
    s.add(campaign)
    s.flush()
    record_event(
        s,
        actor=user,
        action="campaign.create",
        entity_type="Campaign",
        entity_id=str(campaign.id),
        metadata={"site_url": campaign.site_url, "partner_entity_id": campaign.partner_entity_id},
    )
    return campaign


def update_campaign(s: "Session", campaign: Campaign, payload: dict, user: "User") -> Campaign:
    errors = validate_campaign_payload(payload)
    if errors:
        raise ValueError(errors[0])
    changes = {}
    for key, new in _campaign_values(payload).items():
        old = getattr(campaign, key)
        if old != new:
            changes[key] = {"old": str(old) if old is not None else None, "new": str(new) if new is not None else None}
            setattr(campaign, key, new)
    campaign.updated_at = datetime.utcnow()
    campaign.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="campaign.edit",
        entity_type="Campaign",
        entity_id=str(campaign.id),
        metadata={"site_url": campaign.site_url, "changes": changes},
    )
    return campaign


def count_active_by_profile(s: "Session") -> dict[int, int]:
    rows = (
        s.query(Campaign.campaign_profile_id, func.count(Campaign.id))
        .filter(Campaign.status == "active", Campaign.campaign_profile_id.isnot(None))
        .group_by(Campaign.campaign_profile_id)
        .all()
    )
    return {pid: n for pid, n in rows}
