from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import PERM_EMPLOYEE_EDIT
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.access_items.models import TFA_SOURCES, TFA_TYPES
from app.opsportal.modules.access_items.service import (
    activate_access_item,
    create_access_item,
    delete_access_item,
    get_access_item,
    get_all_access_items,
    update_access_item,
    validate_access_item_payload,
)
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.parties.service import get_employee_list
from app.opsportal.modules.partners.service import get_all_partner_names
from app.opsportal.rbac import require_permission

bp = Blueprint("access_items", __name__)

_FORM_FIELDS = (
    "username",
    "email",
    "in_lastpass",
    "tfa_type",
    "tfa_type_value",
    "tfa_contact_id",
    "tfa_source",
    "partner_entity_id",
)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _form_context(s) -> dict:
    return {
        "tfa_types": TFA_TYPES,
        "tfa_sources": TFA_SOURCES,
        "partners": get_all_partner_names(s),
        "employees": get_employee_list(s),
    }


@bp.get("/access-items")
@require_permission(PERM_EMPLOYEE_EDIT)
def access_items_list():
    s = db_session()
    show_inactive = (request.args.get("show") or "").strip() == "inactive"
    return render_template(
        "ops/access_items/list.html",
        items=get_all_access_items(s, include_inactive=show_inactive),
        show_inactive=show_inactive,
    )


@bp.get("/access-items/new")
@require_permission(PERM_EMPLOYEE_EDIT)
def access_item_new_get():
    s = db_session()
    return render_template("ops/access_items/form.html", item=None, **_form_context(s))


@bp.post("/access-items/new")
@require_permission(PERM_EMPLOYEE_EDIT)
def access_item_new_post():
    s = db_session()
    u = _current_user()
    payload = {k: request.form.get(k) for k in _FORM_FIELDS}
    errors = validate_access_item_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("access_items.access_item_new_get"))
    create_access_item(s, payload, u)
    s.commit()
    flash("Access item created.", "success")
    return redirect(url_for("access_items.access_items_list"))


@bp.get("/access-items/<int:item_id>/edit")
@require_permission(PERM_EMPLOYEE_EDIT)
def access_item_edit_get(item_id: int):
    s = db_session()
    item = get_access_item(s, item_id)
    if not item:
        abort(404)
    return render_template(
        "ops/access_items/form.html",
        item=item,
        activities=get_activity_for_item(s, "access_items", item_id),
        **_form_context(s),
    )


@bp.post("/access-items/<int:item_id>/edit")
@require_permission(PERM_EMPLOYEE_EDIT)
def access_item_edit_post(item_id: int):
    s = db_session()
    u = _current_user()
    item = get_access_item(s, item_id)
    if not item:
        abort(404)
    try:
        update_access_item(s, item, {k: request.form.get(k) for k in _FORM_FIELDS}, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("access_items.access_item_edit_get", item_id=item_id))
    s.commit()
    flash("Access item updated.", "success")
    return redirect(url_for("access_items.access_items_list"))


@bp.post("/access-items/<int:item_id>/delete")
@require_permission(PERM_EMPLOYEE_EDIT)
def access_item_delete(item_id: int):
    s = db_session()
    u = _current_user()
    item = get_access_item(s, item_id)
    if not item:
        abort(404)
    delete_access_item(s, item, u)
    s.commit()
    flash("Access item deactivated.", "success")
    return redirect(url_for("access_items.access_items_list"))


@bp.post("/access-items/<int:item_id>/activate")
@require_permission(PERM_EMPLOYEE_EDIT)
def access_item_activate(item_id: int):
    s = db_session()
    u = _current_user()
    item = get_access_item(s, item_id)
    if not item:
        abort(404)
    activate_access_item(s, item, u)
    s.commit()
    flash("Access item activated.", "success")
    return redirect(url_for("access_items.access_items_list"))
