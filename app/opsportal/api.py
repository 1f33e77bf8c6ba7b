"""
JSON endpoints for the workbench UI. Path-level access (workbench:access) is enforced in create_app().
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.opsportal.db import db_session
from app.opsportal.modules.activities.service import activity_to_dict, get_recent_activity
from app.opsportal.modules.partners.models import Partner
from app.opsportal.modules.permissions.service import get_default_permissions_for_campaign
from app.opsportal.modules.service_catalog.service import (
    get_available_action_items_for_package,
    get_available_for_package,
)
from app.opsportal.utils import parse_int

bp = Blueprint("api", __name__)

MAX_ACTIVITY_LIMIT = 200


@bp.get("/activities/recent")
def activities_recent():
    s = db_session()
    default = int(current_app.config.get("RECENT_ACTIVITY_LIMIT") or 20)
    limit = parse_int(request.args.get("limit")) or default
    limit = max(1, min(limit, MAX_ACTIVITY_LIMIT))
    return jsonify({"activities": [activity_to_dict(a) for a in get_recent_activity(s, limit=limit)]})


@bp.get("/partners/<int:partner_id>/default-permissions")
def partner_default_permissions(partner_id: int):
    s = db_session()
    if s.get(Partner, partner_id) is None:
        return jsonify({"error": "Partner not found"}), 404
    return jsonify({"partner_id": partner_id, "permissions": get_default_permissions_for_campaign(s, partner_id)})


@bp.get("/service-items/available")
def service_items_available():
    s = db_session()
    partner_id = parse_int(request.args.get("partner_id"))
    package_type = (request.args.get("package_type") or "").strip() or None
    if package_type and package_type not in ("ongoing", "one_time"):
        return jsonify({"error": "package_type must be ongoing or one_time"}), 400
    return jsonify({"items": get_available_for_package(s, partner_id=partner_id, package_type=package_type)})


@bp.get("/service-items/action-items")
def service_items_action_items():
    s = db_session()
    partner_id = parse_int(request.args.get("partner_id"))
    return jsonify({"items": get_available_action_items_for_package(s, partner_id=partner_id)})


@bp.get("/internal/ping")
def internal_ping():
    return jsonify({"ok": True})
