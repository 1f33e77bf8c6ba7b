from __future__ import annotations

from flask import Blueprint, abort, flash, g, jsonify, redirect, render_template, request, url_for

from app.opsportal.constants import CATALOG_EDIT_PERMS, CURRENCIES
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.campaign_profiles.service import get_all_profiles
from app.opsportal.modules.packages.models import FREQUENCIES, PACKAGE_TYPES, Package
from app.opsportal.modules.packages.service import (
    add_package_action_item,
    add_package_note,
    add_package_service_item,
    create_package,
    delete_package,
    duplicate_package,
    get_all_packages,
    get_package,
    get_package_action_items,
    get_package_notes,
    get_package_service_items,
    remove_package_action_item,
    remove_package_service_item,
    search_packages,
    sync_package_action_items,
    sync_package_service_items,
    update_action_item_order,
    update_basic_details,
    update_package_field,
    update_package_service_item,
    validate_package_payload,
)
from app.opsportal.modules.partners.service import get_all_partner_names
from app.opsportal.modules.service_catalog.service import (
    get_available_action_items_for_package,
    get_available_for_package,
)
from app.opsportal.rbac import require_any_permission
from app.opsportal.utils import dollars_to_cents, parse_int

bp = Blueprint("packages", __name__)

_BASIC_FIELDS = (
    "name",
    "description",
    "partner_entity_id",
    "monthly_price",
    "currency",
    "related_campaign_profile_id",
    "type",
    "outcome",
    "buy_without_discovery",
)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _package_or_404(s, package_id: int) -> Package:
    package = get_package(s, package_id)
    if not package:
        abort(404)
    return package


def _form_context(s) -> dict:
    return {
        "partners": get_all_partner_names(s),
        "profiles": [p for p, _count in get_all_profiles(s)],
        "package_types": PACKAGE_TYPES,
        "currencies": CURRENCIES,
    }


def _basic_payload() -> dict:
    payload = {k: request.form.get(k) for k in _BASIC_FIELDS}
    payload["is_active"] = request.form.get("is_active") or "0"
    return payload


def _back_to(package_id: int):
    return redirect(url_for("packages.package_detail", package_id=package_id))


# ---------- List ----------
@bp.get("/packages")
def packages_list():
    s = db_session()
    term = (request.args.get("q") or "").strip()
    partner_id = parse_int(request.args.get("partner_id"))
    profile_id = parse_int(request.args.get("profile_id"))
    package_type = (request.args.get("type") or "").strip() or None
    include_inactive = (request.args.get("include_inactive") or "") == "1"
    show_inactive = request.args.get("show") == "inactive"
    if show_inactive:
        # Same switch as the other lists: retired packages only.
        packages = get_all_packages(s, include_inactive=True)
    else:
        packages = search_packages(
            s,
            term=term or None,
            partner_id=partner_id,
            profile_id=profile_id,
            include_inactive=include_inactive,
            type=package_type,
        )
    return render_template(
        "ops/packages/list.html",
        packages=packages,
        term=term,
        partner_id=partner_id,
        profile_id=profile_id,
        package_type=package_type,
        include_inactive=include_inactive,
        show_inactive=show_inactive,
        **_form_context(s),
    )


# ---------- New ----------
@bp.get("/packages/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_new_get():
    s = db_session()
    return render_template("ops/packages/form.html", package=None, **_form_context(s))


@bp.post("/packages/new")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_new_post():
    s = db_session()
    u = _current_user()
    payload = _basic_payload()
    payload["is_active"] = request.form.get("is_active") or "1"
    errors = validate_package_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("packages.package_new_get"))
    package = create_package(s, payload, u)
    s.commit()
    flash("Package created.", "success")
    return _back_to(package.id)


# ---------- Detail ----------
@bp.get("/packages/<int:package_id>")
def package_detail(package_id: int):
    s = db_session()
    package = _package_or_404(s, package_id)
    return render_template(
        "ops/packages/detail.html",
        package=package,
        service_items=get_package_service_items(s, package_id),
        action_items=get_package_action_items(s, package_id),
        available_items=get_available_for_package(s, partner_id=package.partner_entity_id, package_type=package.type),
        available_action_items=get_available_action_items_for_package(s, partner_id=package.partner_entity_id),
        notes=get_package_notes(s, package_id),
        activities=get_activity_for_item(s, "packages", package_id),
        frequencies=FREQUENCIES,
        **_form_context(s),
    )


# ---------- Edit ----------
@bp.get("/packages/<int:package_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_edit_get(package_id: int):
    s = db_session()
    package = _package_or_404(s, package_id)
    return render_template("ops/packages/form.html", package=package, **_form_context(s))


@bp.post("/packages/<int:package_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_edit_post(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    try:
        update_basic_details(s, package, _basic_payload(), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("packages.package_edit_get", package_id=package_id))
    s.commit()
    flash("Package updated.", "success")
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/field")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_field_post(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    try:
        update_package_field(s, package, request.form.get("field") or "", request.form.get("value"), u)
    except ValueError as e:
        flash(str(e), "danger")
        return _back_to(package_id)
    s.commit()
    flash("Package updated.", "success")
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/delete")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_delete(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    name = package.name
    delete_package(s, package, u)
    s.commit()
    flash(f"Package {name} deleted.", "success")
    return redirect(url_for("packages.packages_list"))


@bp.post("/packages/<int:package_id>/duplicate")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_duplicate(package_id: int):
    s = db_session()
    u = _current_user()
    _package_or_404(s, package_id)
    overrides = {
        "name": (request.form.get("name") or "").strip(),
        "partner_entity_id": parse_int(request.form.get("partner_entity_id")),
        "related_campaign_profile_id": parse_int(request.form.get("related_campaign_profile_id")),
        "monthly_price_cents": dollars_to_cents(request.form.get("monthly_price")),
        "currency": (request.form.get("currency") or "").strip(),
        "type": (request.form.get("type") or "").strip(),
    }
    try:
        new_package = duplicate_package(s, package_id, overrides, u)
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to(package_id)
    s.commit()
    flash("Package duplicated.", "success")
    return _back_to(new_package.id)


# ---------- Notes ----------
@bp.post("/packages/<int:package_id>/notes")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_note_add(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    try:
        add_package_note(s, package, request.form.get("content") or "", u)
    except ValueError as e:
        flash(str(e), "danger")
        return _back_to(package_id)
    s.commit()
    flash("Note added.", "success")
    return _back_to(package_id)


# ---------- Service items ----------
@bp.post("/packages/<int:package_id>/service-items")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_service_item_add(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    data = {
        "service_item_id": request.form.get("service_item_id"),
        "quantity": request.form.get("quantity"),
        "frequency": request.form.get("frequency"),
        "monthly_price_cents": dollars_to_cents(request.form.get("monthly_price")),
        "order_override": request.form.get("order_override"),
    }
    try:
        add_package_service_item(s, package, data, u)
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to(package_id)
    s.commit()
    flash("Service item added.", "success")
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/service-items/<int:psi_id>/edit")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_service_item_edit(package_id: int, psi_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    data = {k: request.form.get(k) for k in ("quantity", "frequency", "order_override") if k in request.form}
    if "monthly_price" in request.form:
        data["monthly_price_cents"] = dollars_to_cents(request.form.get("monthly_price"))
    try:
        update_package_service_item(s, package, psi_id, data, u)
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to(package_id)
    s.commit()
    flash("Service item updated.", "success")
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/service-items/<int:service_item_id>/remove")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_service_item_remove(package_id: int, service_item_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    remove_package_service_item(s, package, service_item_id, u)
    s.commit()
    flash("Service item removed.", "success")
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/service-items/sync")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_service_items_sync(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    body = request.get_json(silent=True) or {}
    try:
        rows = sync_package_service_items(s, package, list(body.get("items") or []), u)
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(
        {
            "items": [
                {
                    "id": r.id,
                    "service_item_id": r.service_item_id,
                    "quantity": r.quantity,
                    "frequency": r.frequency,
                    "monthly_price_cents": r.monthly_price_cents,
                    "order_override": r.order_override,
                }
                for r in rows
            ]
        }
    )


# ---------- Action items ----------
@bp.post("/packages/<int:package_id>/action-items")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_action_item_add(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    data = {
        "service_item_id": request.form.get("service_item_id"),
        "order_override": request.form.get("order_override"),
        "in_onboarding": request.form.get("in_onboarding"),
    }
    try:
        add_package_action_item(s, package, data, u)
    except ValueError as e:
        s.rollback()
        flash(str(e), "danger")
        return _back_to(package_id)
    s.commit()
    flash("Action item added.", "success")
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/action-items/<int:service_item_id>/remove")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_action_item_remove(package_id: int, service_item_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    remove_package_action_item(s, package, service_item_id, u)
    s.commit()
    flash("Action item removed.", "success")
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/action-items/<int:service_item_id>/order")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_action_item_order(package_id: int, service_item_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    update_action_item_order(s, package, service_item_id, parse_int(request.form.get("order_override")), u)
    s.commit()
    return _back_to(package_id)


@bp.post("/packages/<int:package_id>/action-items/sync")
@require_any_permission(*CATALOG_EDIT_PERMS)
def package_action_items_sync(package_id: int):
    s = db_session()
    u = _current_user()
    package = _package_or_404(s, package_id)
    body = request.get_json(silent=True) or {}
    try:
        rows = sync_package_action_items(s, package, list(body.get("items") or []), u)
    except ValueError as e:
        s.rollback()
        return jsonify({"error": str(e)}), 400
    s.commit()
    return jsonify(
        {
            "items": [
                {
                    "id": r.id,
                    "service_item_id": r.service_item_id,
                    "order_override": r.order_override,
                    "in_onboarding": r.in_onboarding,
                }
                for r in rows
            ]
        }
    )
