from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import CAMPAIGN_STATUSES, PERM_CAMPAIGN_EDIT
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.campaign_profiles.service import get_all_profiles
from app.opsportal.modules.campaigns.models import Campaign
from app.opsportal.modules.campaigns.service import (
    BUDGET_PERIODS,
    PROFILE_TYPES,
    SERVICE_TYPES,
    create_campaign,
    list_campaigns,
    update_campaign,
    validate_campaign_payload,
)
from app.opsportal.modules.notes.models import NOTE_TYPES
from app.opsportal.modules.notes.service import list_current_notes
from app.opsportal.modules.parties.service import get_employee_list
from app.opsportal.modules.partners.service import get_all_partner_names, get_partner_by_campaign
from app.opsportal.modules.permissions.service import get_default_permissions_for_campaign
from app.opsportal.rbac import require_permission
from app.opsportal.utils import parse_int

bp = Blueprint("campaigns", __name__)

_FORM_FIELDS = (
    "partner_entity_id",
    "site_owner_entity_id",
    "site_url",
    "status",
    "service_type",
    "profile_type",
    "budget_amount",
    "budget_period",
    "onboard_date",
    "onboarded_by_entity_id",
    "campaign_start_date",
    "offboard_date",
    "campaign_profile_id",
    "is_onboarded",
)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _form_context(s) -> dict:
    return {
        "partners": get_all_partner_names(s),
        "employees": get_employee_list(s),
        "profiles": [p for p, _count in get_all_profiles(s)],
        "statuses": CAMPAIGN_STATUSES,
        "service_types": SERVICE_TYPES,
        "profile_types": PROFILE_TYPES,
        "budget_periods": BUDGET_PERIODS,
    }


# ---------- List ----------
@bp.get("/campaigns")
def campaigns_list():
    s = db_session()
    search = (request.args.get("q") or "").strip()
    status_filter = (request.args.get("status") or "").strip()
    partner_id = parse_int(request.args.get("partner_id"))
    campaigns = list_campaigns(s, q=search or None, status=status_filter or None, partner_id=partner_id)
    return render_template(
        "ops/campaigns/list.html",
        campaigns=campaigns,
        search=search,
        status_filter=status_filter,
        partner_id=partner_id,
        partners=get_all_partner_names(s),
        statuses=CAMPAIGN_STATUSES,
    )


# ---------- New ----------
@bp.get("/campaigns/new")
@require_permission(PERM_CAMPAIGN_EDIT)
def campaigns_new_get():
    s = db_session()
    preset_partner = parse_int(request.args.get("partner_id"))
    return render_template("ops/campaigns/form.html", campaign=None, preset_partner=preset_partner, **_form_context(s))


@bp.post("/campaigns/new")
@require_permission(PERM_CAMPAIGN_EDIT)
def campaigns_new_post():
    s = db_session()
    u = _current_user()
    payload = {k: request.form.get(k) for k in _FORM_FIELDS}
    errors = validate_campaign_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("campaigns.campaigns_new_get"))

    campaign = create_campaign(s, payload, u)
    s.commit()
    flash("Campaign created.", "success")
    return redirect(url_for("campaigns.campaign_detail", campaign_id=campaign.id))


# ---------- Detail ----------
@bp.get("/campaigns/<int:campaign_id>")
def campaign_detail(campaign_id: int):
    s = db_session()
    campaign = s.get(Campaign, campaign_id)
    if not campaign:
        abort(404)
    return render_template(
        "ops/campaigns/detail.html",
        campaign=campaign,
        partner=get_partner_by_campaign(s, campaign_id),
        notes=list_current_notes(s, "campaign", campaign_id),
        note_types=NOTE_TYPES,
        activities=get_activity_for_item(s, "campaigns", campaign_id),
        permissions=get_default_permissions_for_campaign(s, campaign.partner_entity_id),
    )


# ---------- Edit ----------
@bp.get("/campaigns/<int:campaign_id>/edit")
@require_permission(PERM_CAMPAIGN_EDIT)
def campaign_edit_get(campaign_id: int):
    s = db_session()
    campaign = s.get(Campaign, campaign_id)
    if not campaign:
        abort(404)
    return render_template("ops/campaigns/form.html", campaign=campaign, preset_partner=None, **_form_context(s))


@bp.post("/campaigns/<int:campaign_id>/edit")
@require_permission(PERM_CAMPAIGN_EDIT)
def campaign_edit_post(campaign_id: int):
    s = db_session()
    u = _current_user()
    campaign = s.get(Campaign, campaign_id)
    if not campaign:
        abort(404)
    try:
        update_campaign(s, campaign, {k: request.form.get(k) for k in _FORM_FIELDS}, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("campaigns.campaign_edit_get", campaign_id=campaign_id))
    s.commit()
    flash("Campaign updated.", "success")
    return redirect(url_for("campaigns.campaign_detail", campaign_id=campaign_id))
