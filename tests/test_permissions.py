"""Tests for default permissions and partner overrides."""
import pytest

from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.partners.service import save_partner
from app.opsportal.modules.permissions.service import (
    create_permission_rule,
    delete_permission_rule,
    get_all_permission_rules,
    get_by_partner_id,
    get_default_permissions_for_campaign,
    update_permission_rule_field,
    validate_permission_rule_payload,
)


def _rule(s, user, name, key, state, partner_id=None):
    return create_permission_rule(
        s,
        {"name": name, "permission_key": key, "permission_state": state, "partner_id": partner_id},
        user,
    )


def test_validate_permission_rule_payload():
    errors = validate_permission_rule_payload({"name": "", "permission_key": "", "permission_state": "maybe"})
    assert "Name is required." in errors
    assert "Permission key is required." in errors
    assert any(e.startswith("Invalid permission state") for e in errors)


def test_base_permissions_without_partner(s, admin):
    _rule(s, admin, "Publish content", "publish_content", "allowed_with_approval")
    _rule(s, admin, "Edit site", "edit_site", "allowed")

    rows = get_default_permissions_for_campaign(s, None)
    assert [r["permission_key"] for r in rows] == ["edit_site", "publish_content"]


def test_partner_override_replaces_base_by_key(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    base_publish = _rule(s, admin, "Publish content", "publish_content", "allowed_with_approval")
    _rule(s, admin, "Edit site", "edit_site", "allowed")
    override = _rule(s, admin, "Publish content (Acme)", "publish_content", "allowed", partner_id=partner_id)
    _rule(s, admin, "Acme only", "acme_only", "not_allowed", partner_id=partner_id)

    rows = {r["permission_key"]: r for r in get_default_permissions_for_campaign(s, partner_id)}

    # Partner-only keys never surface.
    assert set(rows) == {"edit_site", "publish_content"}
    assert rows["publish_content"]["id"] == override.id
    assert rows["publish_content"]["permission_state"] == "allowed"
    assert rows["publish_content"]["id"] != base_publish.id
    assert rows["edit_site"]["permission_state"] == "allowed"


def test_other_partners_see_base_rows(s, admin):
    acme = save_partner(s, None, {"name": "Acme Dental"}, admin)
    other = save_partner(s, None, {"name": "Bolt Roofing"}, admin)
    _rule(s, admin, "Publish content", "publish_content", "allowed_with_approval")
    _rule(s, admin, "Publish content (Acme)", "publish_content", "allowed", partner_id=acme)

    rows = get_default_permissions_for_campaign(s, other)
    assert rows[0]["permission_state"] == "allowed_with_approval"


def test_partner_rules_follow_name_order(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    _rule(s, admin, "Publish content", "publish_content", "allowed_with_approval")
    zeta = _rule(s, admin, "Zeta publish", "publish_content", "not_allowed", partner_id=partner_id)
    alpha = _rule(s, admin, "Alpha publish", "publish_content", "allowed", partner_id=partner_id)

    assert [r.id for r in get_by_partner_id(s, partner_id)] == [alpha.id, zeta.id]
    # With duplicate keys the last rule by name wins.
    rows = get_default_permissions_for_campaign(s, partner_id)
    assert [(r["id"], r["permission_state"]) for r in rows] == [(zeta.id, "not_allowed")]


def test_create_records_activity(s, admin):
    rule = _rule(s, admin, "Publish content", "publish_content", "allowed")
    acts = get_activity_for_item(s, "permissions", rule.id)
    assert acts[0].activity_type == "created_permission"
    assert acts[0].details == "Created permission: Publish content"
    assert rule.changed_by == admin.display_name


def test_field_update_and_delete(s, admin):
    rule = _rule(s, admin, "Publish content", "publish_content", "allowed")
    update_permission_rule_field(s, rule, "permission_state", "not_allowed", admin)
    assert rule.permission_state == "not_allowed"

    with pytest.raises(ValueError):
        update_permission_rule_field(s, rule, "is_active", "0", admin)
    with pytest.raises(ValueError):
        update_permission_rule_field(s, rule, "permission_state", "sometimes", admin)

    rule_id = rule.id
    delete_permission_rule(s, rule, admin)
    assert get_all_permission_rules(s) == []
    types = [a.activity_type for a in get_activity_for_item(s, "permissions", rule_id)]
    assert "deleted_permission" in types


def test_default_permissions_api(client, csrf, app):
    from app.opsportal.db import session_scope
    from app.opsportal.models import User

    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
        _rule(s, admin, "Edit site", "edit_site", "allowed")

    r = client.get(f"/api/partners/{partner_id}/default-permissions")
    assert r.status_code == 200
    assert r.json["permissions"][0]["permission_key"] == "edit_site"

    r = client.get("/api/partners/999999/default-permissions")
    assert r.status_code == 404
