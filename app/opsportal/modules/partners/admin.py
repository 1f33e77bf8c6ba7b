from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import CATALOG_EDIT_PERMS, CURRENCIES, PARTNER_STATUSES, PARTNER_TYPES
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_partner
from app.opsportal.modules.campaigns.models import Campaign
from app.opsportal.modules.notes.models import NOTE_TYPES
from app.opsportal.modules.parties.service import get_employee_list
from app.opsportal.modules.partners.models import Partner, Rule
from app.opsportal.modules.partners.service import (
    add_account_manager,
    archive_rule,
    create_prospect,
    create_rule,
    get_all_partners,
    get_contact_emails,
    get_partner,
    get_partner_for_edit,
    get_partner_notes,
    get_rules,
    save_partner,
    update_rule,
    validate_partner_payload,
    validate_rule_payload,
)
from app.opsportal.modules.permissions.service import get_default_permissions_for_campaign
from app.opsportal.modules.service_catalog.service import get_all_categories
from app.opsportal.rbac import require_any_permission
from app.opsportal.utils import parse_int

bp = Blueprint("partners", __name__)

_PARTNER_FORM_FIELDS = (
    "name",
    "legal_name",
    "business_registration_number",
    "industry",
    "size",
    "netsuite_id",
    "demo_date",
    "demo_by_entity_id",
    "msa_signed",
    "msa_signed_date",
    "start_date",
    "status",
    "partner_type",
    "acquisition_source",
    "total_monthly_revenue",
    "available_currencies",
    "default_currency",
    "analytics_folder_id",
    "google_drive_link",
    "external_id",
    "billing_address",
    "billing_address_id",
)
_RULE_FORM_FIELDS = ("rule_reason", "rule_value", "campaign_id", "service_category_id", "service_item_id", "reference_url")


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _partner_payload() -> dict:
    payload = {k: request.form.get(k) for k in _PARTNER_FORM_FIELDS}
    currencies = request.form.getlist("available_currencies")
    if len(currencies) > 1:
        payload["available_currencies"] = ",".join(currencies)
    return payload


def _form_context(s) -> dict:
    return {
        "statuses": PARTNER_STATUSES,
        "partner_types": PARTNER_TYPES,
        "currencies": CURRENCIES,
        "employees": get_employee_list(s),
    }


# ---------- List ----------
@bp.get("/partners")
def partners_list():
    s = db_session()
    search = (request.args.get("q") or "").strip().lower()
    status_filter = (request.args.get("status") or "").strip()
    partners = get_all_partners(s)
    if search:
        partners = [p for p in partners if search in p.name.lower() or search in (p.external_id or "").lower()]
    if status_filter:
        partners = [p for p in partners if p.status == status_filter]
    return render_template(
        "ops/partners/list.html",
        partners=partners,
        search=search,
        status_filter=status_filter,
        statuses=PARTNER_STATUSES,
    )


# ---------- New ----------
@bp.get("/partners/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def partners_new_get():
    s = db_session()
    return render_template("ops/partners/form.html", data=None, **_form_context(s))


@bp.post("/partners/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def partners_new_post():
    s = db_session()
    u = _current_user()
    payload = _partner_payload()
    errors = validate_partner_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("partners.partners_new_get"))

    partner_id = save_partner(s, None, payload, u)
    s.commit()
    flash("Partner created.", "success")
    return redirect(url_for("partners.partner_detail", partner_id=partner_id))


@bp.get("/partners/prospect")
@require_any_permission(*CATALOG_EDIT_PERMS)
def prospect_new_get():
    return render_template("ops/partners/prospect.html")


@bp.post("/partners/prospect")
@require_any_permission(*CATALOG_EDIT_PERMS)
def prospect_new_post():
    s = db_session()
    u = _current_user()
    try:
        result = create_prospect(
            s,
            company_name=request.form.get("company_name") or "",
            first_name=request.form.get("first_name") or "",
            last_name=request.form.get("last_name") or "",
            email=request.form.get("email") or "",
            external_auth_id=(request.form.get("external_auth_id") or "").strip() or None,
            user=u,
        )
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("partners.prospect_new_get"))
    s.commit()
    flash(f"Prospect {result['partner']['name']} created.", "success")
    return redirect(url_for("partners.partner_detail", partner_id=result["partner"]["id"]))


# ---------- Detail ----------
@bp.get("/partners/<int:partner_id>")
def partner_detail(partner_id: int):
    s = db_session()
    data = get_partner(s, partner_id)
    if not data:
        abort(404)
    campaigns = (
        s.query(Campaign)
        .filter(Campaign.partner_entity_id == partner_id)
        .order_by(Campaign.site_url.asc())
        .all()
    )
    return render_template(
        "ops/partners/detail.html",
        notes_by_type=get_partner_notes(s, partner_id),
        note_types=NOTE_TYPES,
        rules=get_rules(s, partner_id),
        categories=get_all_categories(s),
        campaigns=campaigns,
        contacts=get_contact_emails(s, partner_id),
        employees=get_employee_list(s),
        permissions=get_default_permissions_for_campaign(s, partner_id),
        activities=get_activity_for_partner(s, partner_id),
        **data,
    )


# ---------- Edit ----------
@bp.get("/partners/<int:partner_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def partner_edit_get(partner_id: int):
    s = db_session()
    data = get_partner_for_edit(s, partner_id)
    if not data:
        abort(404)
    return render_template("ops/partners/form.html", data=data, **_form_context(s))


@bp.post("/partners/<int:partner_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def partner_edit_post(partner_id: int):
    s = db_session()
    u = _current_user()
    if not s.get(Partner, partner_id):
        abort(404)
    try:
        save_partner(s, partner_id, _partner_payload(), u)
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("partners.partner_edit_get", partner_id=partner_id))
    s.commit()
    flash("Partner updated.", "success")
    return redirect(url_for("partners.partner_detail", partner_id=partner_id))


@bp.post("/partners/<int:partner_id>/account-manager")
@require_any_permission(*CATALOG_EDIT_PERMS)
def partner_account_manager(partner_id: int):
    s = db_session()
    u = _current_user()
    if not s.get(Partner, partner_id):
        abort(404)
    employee_id = parse_int(request.form.get("employee_id"))
    if not employee_id:
        flash("Select an employee.", "danger")
        return redirect(url_for("partners.partner_detail", partner_id=partner_id))
    try:
        add_account_manager(
            s,
            partner_id,
            employee_id,
            relationship_id=parse_int(request.form.get("relationship_id")),
            user=u,
        )
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("partners.partner_detail", partner_id=partner_id))
    s.commit()
    flash("Account manager saved.", "success")
    return redirect(url_for("partners.partner_detail", partner_id=partner_id))


# ---------- Rules ----------
def _rule_or_404(s, partner_id: int, rule_id: int) -> Rule:
    rule = s.get(Rule, rule_id)
    if not rule or rule.partner_entity_id != partner_id:
        abort(404)
    return rule


@bp.post("/partners/<int:partner_id>/rules")
@require_any_permission(*CATALOG_EDIT_PERMS)
def rule_create(partner_id: int):
    s = db_session()
    u = _current_user()
    if not s.get(Partner, partner_id):
        abort(404)
    payload = {k: request.form.get(k) for k in _RULE_FORM_FIELDS}
    errors = validate_rule_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("partners.partner_detail", partner_id=partner_id))
    create_rule(s, partner_id, payload, u)
    s.commit()
    flash("Rule added.", "success")
    return redirect(url_for("partners.partner_detail", partner_id=partner_id))


@bp.post("/partners/<int:partner_id>/rules/<int:rule_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def rule_edit(partner_id: int, rule_id: int):
    s = db_session()
    u = _current_user()
    rule = _rule_or_404(s, partner_id, rule_id)
    try:
        update_rule(s, rule, {k: request.form.get(k) for k in _RULE_FORM_FIELDS}, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("partners.partner_detail", partner_id=partner_id))
    s.commit()
    flash("Rule updated.", "success")
    return redirect(url_for("partners.partner_detail", partner_id=partner_id))


@bp.post("/partners/<int:partner_id>/rules/<int:rule_id>/archive")
@require_any_permission(*CATALOG_EDIT_PERMS)
def rule_archive(partner_id: int, rule_id: int):
    s = db_session()
    u = _current_user()
    rule = _rule_or_404(s, partner_id, rule_id)
    archive_rule(s, rule, u)
    s.commit()
    flash("Rule archived.", "success")
    return redirect(url_for("partners.partner_detail", partner_id=partner_id))
