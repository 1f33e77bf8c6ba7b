from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import CATALOG_EDIT_PERMS
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.campaign_profiles.service import get_all_profiles
from app.opsportal.modules.partners.service import get_all_partner_names
from app.opsportal.modules.permissions.models import PERMISSION_STATES, SCOPE_STATUSES
from app.opsportal.modules.permissions.service import (
    EDITABLE_FIELDS,
    create_permission_rule,
    delete_permission_rule,
    get_all_permission_rules,
    get_permission_rule,
    update_permission_rule,
    update_permission_rule_field,
    validate_permission_rule_payload,
)
from app.opsportal.modules.service_catalog.service import get_all_categories, get_all_service_items
from app.opsportal.rbac import require_any_permission

bp = Blueprint("permissions", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _form_context(s) -> dict:
    return {
        "states": PERMISSION_STATES,
        "scope_statuses": SCOPE_STATUSES,
        "partners": get_all_partner_names(s),
        "service_items": get_all_service_items(s),
        "categories": get_all_categories(s),
        "profiles": [p for p, _count in get_all_profiles(s)],
    }


@bp.get("/permissions")
def permissions_list():
    s = db_session()
    show_inactive = (request.args.get("show") or "").strip() == "inactive"
    return render_template(
        "ops/permissions/list.html",
        rules=get_all_permission_rules(s, include_inactive=show_inactive),
        show_inactive=show_inactive,
    )


@bp.get("/permissions/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def permissions_new_get():
    s = db_session()
    return render_template("ops/permissions/form.html", rule=None, **_form_context(s))


@bp.post("/permissions/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def permissions_new_post():
    s = db_session()
    u = _current_user()
    payload = {k: request.form.get(k) for k in EDITABLE_FIELDS}
    errors = validate_permission_rule_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("permissions.permissions_new_get"))
    rule = create_permission_rule(s, payload, u)
    s.commit()
    flash("Permission created.", "success")
    return redirect(url_for("permissions.permission_edit_get", rule_id=rule.id))


@bp.get("/permissions/<int:rule_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def permission_edit_get(rule_id: int):
    s = db_session()
    rule = get_permission_rule(s, rule_id)
    if not rule:
        abort(404)
    return render_template(
        "ops/permissions/form.html",
        rule=rule,
        activities=get_activity_for_item(s, "permissions", rule_id),
        **_form_context(s),
    )


@bp.post("/permissions/<int:rule_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def permission_edit_post(rule_id: int):
    s = db_session()
    u = _current_user()
    rule = get_permission_rule(s, rule_id)
    if not rule:
        abort(404)
    try:
        update_permission_rule(s, rule, {k: request.form.get(k) for k in EDITABLE_FIELDS}, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("permissions.permission_edit_get", rule_id=rule_id))
    s.commit()
    flash("Permission updated.", "success")
    return redirect(url_for("permissions.permissions_list"))


@bp.post("/permissions/<int:rule_id>/field")
@require_any_permission(*CATALOG_EDIT_PERMS)
def permission_field_post(rule_id: int):
    s = db_session()
    u = _current_user()
    rule = get_permission_rule(s, rule_id)
    if not rule:
        abort(404)
    try:
        update_permission_rule_field(s, rule, request.form.get("field") or "", request.form.get("value"), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("permissions.permission_edit_get", rule_id=rule_id))
    s.commit()
    flash("Permission updated.", "success")
    return redirect(url_for("permissions.permission_edit_get", rule_id=rule_id))


@bp.post("/permissions/<int:rule_id>/delete")
@require_any_permission(*CATALOG_EDIT_PERMS)
def permission_delete(rule_id: int):
    s = db_session()
    u = _current_user()
    rule = get_permission_rule(s, rule_id)
    if not rule:
        abort(404)
    name = rule.name
    delete_permission_rule(s, rule, u)
    s.commit()
    flash(f"Permission {name} deleted.", "success")
    return redirect(url_for("permissions.permissions_list"))
