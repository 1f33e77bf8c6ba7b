from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import CATALOG_EDIT_PERMS
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.campaign_profiles.service import get_all_profiles
from app.opsportal.modules.partners.service import get_all_partner_names
from app.opsportal.modules.service_catalog.service import get_all_categories
from app.opsportal.modules.task_templates.models import GROUPINGS, TaskTemplate
from app.opsportal.modules.task_templates.service import (
    activate_template,
    check_key_uniqueness,
    create_template,
    delete_template,
    get_all_templates,
    get_template,
    update_template,
    validate_template_payload,
)
from app.opsportal.rbac import require_any_permission
from app.opsportal.utils import clean, parse_int

bp = Blueprint("task_templates", __name__)

PARTNER_ONBOARDING = "partner_onboarding"
CAMPAIGN_ONBOARDING = "campaign_onboarding"
DUPLICATE_KEY_MESSAGE = "A template with this key already exists for this partner."

_BASE_FIELDS = (
    "title",
    "description",
    "key",
    "primary_participant",
    "grouping",
    "est_time_minutes",
    "sop_url",
    "mandatory",
    "decision_point",
)
_CAMPAIGN_FIELDS = _BASE_FIELDS + ("partner_entity_id", "campaign_profile_id", "service_category_id")

_KINDS = {
    "partner-onboarding": PARTNER_ONBOARDING,
    "campaign-onboarding": CAMPAIGN_ONBOARDING,
}


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _template_type(kind: str) -> str:
    t = _KINDS.get(kind)
    if not t:
        abort(404)
    return t


def _payload(template_type: str) -> dict:
    fields = _CAMPAIGN_FIELDS if template_type == CAMPAIGN_ONBOARDING else _BASE_FIELDS
    payload = {k: request.form.get(k) for k in fields}
    payload["type"] = template_type
    return payload


def _template_or_404(s, template_type: str, template_id: int) -> TaskTemplate:
    tpl = get_template(s, template_id)
    if not tpl or tpl.type != template_type:
        abort(404)
    return tpl


def _form_context(s, kind: str) -> dict:
    return {
        "kind": kind,
        "groupings": GROUPINGS,
        "partners": get_all_partner_names(s),
        "profiles": [p for p, _count in get_all_profiles(s)],
        "categories": get_all_categories(s),
    }


@bp.get("/templates/<kind>")
def templates_list(kind: str):
    s = db_session()
    template_type = _template_type(kind)
    show_inactive = (request.args.get("show") or "").strip() == "inactive"
    return render_template(
        "ops/task_templates/list.html",
        kind=kind,
        template_type=template_type,
        templates=get_all_templates(s, include_inactive=show_inactive, type=template_type),
        show_inactive=show_inactive,
    )


@bp.get("/templates/<kind>/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def template_new_get(kind: str):
    s = db_session()
    _template_type(kind)
    return render_template("ops/task_templates/form.html", template=None, **_form_context(s, kind))


@bp.post("/templates/<kind>/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def template_new_post(kind: str):
    s = db_session()
    u = _current_user()
    template_type = _template_type(kind)
    payload = _payload(template_type)

    errors = validate_template_payload(payload)
    if template_type == PARTNER_ONBOARDING:
        # Partner onboarding steps are shared by every partner.
        payload["partner_entity_id"] = None
        payload["campaign_profile_id"] = None
    else:
        key = clean(payload.get("key"))
        if key and not check_key_uniqueness(s, key, parse_int(payload.get("partner_entity_id"))):
            errors.append(DUPLICATE_KEY_MESSAGE)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("task_templates.template_new_get", kind=kind))

    tpl = create_template(s, payload, u)
    s.commit()
    flash("Template created.", "success")
    return redirect(url_for("task_templates.template_edit_get", kind=kind, template_id=tpl.id))


@bp.get("/templates/<kind>/<int:template_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def template_edit_get(kind: str, template_id: int):
    s = db_session()
    tpl = _template_or_404(s, _template_type(kind), template_id)
    return render_template(
        "ops/task_templates/form.html",
        template=tpl,
        activities=get_activity_for_item(s, "task_templates", template_id),
        **_form_context(s, kind),
    )


@bp.post("/templates/<kind>/<int:template_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def template_edit_post(kind: str, template_id: int):
    s = db_session()
    u = _current_user()
    template_type = _template_type(kind)
    tpl = _template_or_404(s, template_type, template_id)
    payload = _payload(template_type)

    if template_type == CAMPAIGN_ONBOARDING:
        key = clean(payload.get("key"))
        partner_id = parse_int(payload.get("partner_entity_id"))
        if key and not check_key_uniqueness(s, key, partner_id, exclude_id=tpl.id):
            flash(DUPLICATE_KEY_MESSAGE, "danger")
            return redirect(url_for("task_templates.template_edit_get", kind=kind, template_id=template_id))

    try:
        update_template(s, tpl, payload, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("task_templates.template_edit_get", kind=kind, template_id=template_id))
    s.commit()
    flash("Template updated.", "success")
    return redirect(url_for("task_templates.templates_list", kind=kind))


@bp.post("/templates/<kind>/<int:template_id>/delete")
@require_any_permission(*CATALOG_EDIT_PERMS)
def template_delete(kind: str, template_id: int):
    s = db_session()
    u = _current_user()
    tpl = _template_or_404(s, _template_type(kind), template_id)
    delete_template(s, tpl, u)
    s.commit()
    flash("Template deactivated.", "success")
    return redirect(url_for("task_templates.templates_list", kind=kind))


@bp.post("/templates/<kind>/<int:template_id>/activate")
@require_any_permission(*CATALOG_EDIT_PERMS)
def template_activate(kind: str, template_id: int):
    s = db_session()
    u = _current_user()
    tpl = _template_or_404(s, _template_type(kind), template_id)
    if tpl.key and not check_key_uniqueness(s, tpl.key, tpl.partner_entity_id, exclude_id=tpl.id):
        flash(DUPLICATE_KEY_MESSAGE, "danger")
        return redirect(url_for("task_templates.templates_list", kind=kind, show="inactive"))
    activate_template(s, tpl, u)
    s.commit()
    flash("Template activated.", "success")
    return redirect(url_for("task_templates.templates_list", kind=kind))
