from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import CATALOG_EDIT_PERMS, CURRENCIES
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.partners.service import get_all_partner_names
from app.opsportal.modules.service_catalog.models import PROPOSAL_MODES, SERVICE_ITEM_TYPES
from app.opsportal.modules.service_catalog.service import (
    create_catalog_item,
    create_category,
    create_scope_item,
    create_service_item,
    get_all_categories,
    get_all_service_items,
    get_category,
    get_service_item,
    list_catalog_items,
    list_scope_items,
    set_service_item_active,
    update_category,
    update_category_field,
    update_service_item,
    validate_category_payload,
    validate_service_item_payload,
)
from app.opsportal.rbac import require_any_permission

bp = Blueprint("service_catalog", __name__)

_ITEM_FORM_FIELDS = (
    "name",
    "service_category",
    "service_label",
    "type",
    "description",
    "sop_url",
    "min_pricing_dollars",
    "est_cogs_dollars",
    "est_time_minutes",
    "recommended_price_dollars",
    "recommended_price_currency",
    "partner_entity_id",
    "proposal_mode",
    "in_stream",
)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _show_inactive() -> bool:
    return (request.args.get("show") or "").strip() == "inactive"


def _item_payload() -> dict:
    return {k: request.form.get(k) for k in _ITEM_FORM_FIELDS}


def _item_form_context(s) -> dict:
    return {
        "categories": get_all_categories(s),
        "partners": get_all_partner_names(s),
        "item_types": SERVICE_ITEM_TYPES,
        "proposal_modes": PROPOSAL_MODES,
        "currencies": CURRENCIES,
    }


# ---------- Service categories ----------
@bp.get("/service-categories")
def categories_list():
    s = db_session()
    show_inactive = _show_inactive()
    return render_template(
        "ops/service_catalog/categories.html",
        categories=get_all_categories(s, include_inactive=show_inactive),
        show_inactive=show_inactive,
    )


@bp.post("/service-categories/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def category_new_post():
    s = db_session()
    u = _current_user()
    payload = {
        "key": request.form.get("key"),
        "display_name": request.form.get("display_name"),
        "description": request.form.get("description"),
    }
    errors = validate_category_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("service_catalog.categories_list"))
    try:
        create_category(s, payload, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("service_catalog.categories_list"))
    s.commit()
    flash("Service category created.", "success")
    return redirect(url_for("service_catalog.categories_list"))


@bp.get("/service-categories/<int:category_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def category_edit_get(category_id: int):
    s = db_session()
    cat = get_category(s, category_id)
    if not cat:
        abort(404)
    return render_template(
        "ops/service_catalog/category_edit.html",
        category=cat,
        activities=get_activity_for_item(s, "service_categories", category_id),
    )


@bp.post("/service-categories/<int:category_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def category_edit_post(category_id: int):
    s = db_session()
    u = _current_user()
    cat = get_category(s, category_id)
    if not cat:
        abort(404)
    payload = {
        "display_name": request.form.get("display_name"),
        "description": request.form.get("description"),
        "is_active": request.form.get("is_active") or "0",
    }
    try:
        update_category(s, cat, payload, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("service_catalog.category_edit_get", category_id=category_id))
    s.commit()
    flash("Service category updated.", "success")
    return redirect(url_for("service_catalog.categories_list"))


@bp.post("/service-categories/<int:category_id>/field")
@require_any_permission(*CATALOG_EDIT_PERMS)
def category_field_post(category_id: int):
    s = db_session()
    u = _current_user()
    if not get_category(s, category_id):
        abort(404)
    try:
        update_category_field(s, category_id, request.form.get("field") or "", request.form.get("value"), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("service_catalog.category_edit_get", category_id=category_id))
    s.commit()
    flash("Service category updated.", "success")
    return redirect(url_for("service_catalog.category_edit_get", category_id=category_id))


# ---------- Service items ----------
@bp.get("/service-items")
def service_items_list():
    s = db_session()
    show_inactive = _show_inactive()
    search = (request.args.get("q") or "").strip().lower()
    items = get_all_service_items(s, include_inactive=show_inactive)
    if search:
        items = [i for i in items if search in i.name.lower() or search in (i.service_label or "").lower()]
    return render_template(
        "ops/service_catalog/items_list.html",
        items=items,
        search=search,
        show_inactive=show_inactive,
    )


@bp.get("/service-items/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def service_item_new_get():
    s = db_session()
    return render_template("ops/service_catalog/item_form.html", item=None, **_item_form_context(s))


@bp.post("/service-items/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def service_item_new_post():
    s = db_session()
    u = _current_user()
    payload = _item_payload()
    errors = validate_service_item_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("service_catalog.service_item_new_get"))
    item = create_service_item(s, payload, u)
    s.commit()
    flash("Service item created.", "success")
    return redirect(url_for("service_catalog.service_item_detail", item_id=item.id))


@bp.get("/service-items/<int:item_id>")
def service_item_detail(item_id: int):
    s = db_session()
    item = get_service_item(s, item_id)
    if not item:
        abort(404)
    return render_template(
        "ops/service_catalog/item_detail.html",
        item=item,
        activities=get_activity_for_item(s, "service_items", item_id),
    )


@bp.get("/service-items/<int:item_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def service_item_edit_get(item_id: int):
    s = db_session()
    item = get_service_item(s, item_id)
    if not item:
        abort(404)
    return render_template("ops/service_catalog/item_form.html", item=item, **_item_form_context(s))


@bp.post("/service-items/<int:item_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def service_item_edit_post(item_id: int):
    s = db_session()
    u = _current_user()
    item = get_service_item(s, item_id)
    if not item:
        abort(404)
    try:
        update_service_item(s, item, _item_payload(), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("service_catalog.service_item_edit_get", item_id=item_id))
    s.commit()
    flash("Service item updated.", "success")
    return redirect(url_for("service_catalog.service_item_detail", item_id=item_id))


@bp.post("/service-items/<int:item_id>/delete")
@require_any_permission(*CATALOG_EDIT_PERMS)
def service_item_delete(item_id: int):
    s = db_session()
    u = _current_user()
    item = get_service_item(s, item_id)
    if not item:
        abort(404)
    set_service_item_active(s, item, False, u)
    s.commit()
    flash(f"{item.name} deactivated.", "success")
    return redirect(request.referrer or url_for("service_catalog.service_items_list"))


@bp.post("/service-items/<int:item_id>/activate")
@require_any_permission(*CATALOG_EDIT_PERMS)
def service_item_activate(item_id: int):
    s = db_session()
    u = _current_user()
    item = get_service_item(s, item_id)
    if not item:
        abort(404)
    set_service_item_active(s, item, True, u)
    s.commit()
    flash(f"{item.name} activated.", "success")
    return redirect(request.referrer or url_for("service_catalog.service_items_list"))


# ---------- Scope items ----------
@bp.get("/scope-items")
def scope_items_list():
    s = db_session()
    show_inactive = _show_inactive()
    return render_template(
        "ops/service_catalog/scope_items.html",
        items=list_scope_items(s, include_inactive=show_inactive),
        show_inactive=show_inactive,
        **_item_form_context(s),
    )


@bp.post("/scope-items/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def scope_item_new_post():
    s = db_session()
    u = _current_user()
    try:
        create_scope_item(s, _item_payload(), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("service_catalog.scope_items_list"))
    s.commit()
    flash("Scope item created.", "success")
    return redirect(url_for("service_catalog.scope_items_list"))


# ---------- Catalog items ----------
@bp.get("/catalog-items")
def catalog_items_list():
    s = db_session()
    show_inactive = _show_inactive()
    return render_template(
        "ops/service_catalog/catalog_items.html",
        items=list_catalog_items(s, include_inactive=show_inactive),
        show_inactive=show_inactive,
        **_item_form_context(s),
    )


@bp.post("/catalog-items/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def catalog_item_new_post():
    s = db_session()
    u = _current_user()
    try:
        create_catalog_item(s, _item_payload(), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("service_catalog.catalog_items_list"))
    s.commit()
    flash("Catalog item created.", "success")
    return redirect(url_for("service_catalog.catalog_items_list"))
