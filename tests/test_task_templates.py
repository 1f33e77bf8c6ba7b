import pytest

from app.opsportal.modules.campaign_profiles.service import create_profile
from app.opsportal.modules.partners.service import save_partner
from app.opsportal.modules.task_templates.service import (
    activate_template,
    check_key_uniqueness,
    create_template,
    delete_template,
    derive_template_category,
    get_all_templates,
    update_template,
)


def test_derive_template_category():
    assert derive_template_category(None, None) == "default"
    assert derive_template_category(5, None) == "partner_specific"
    assert derive_template_category(None, 9) == "campaign_profile_specific"
    assert derive_template_category(5, 9) == "partner_campaign_profile_specific"


def test_create_template_sets_category(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    profile = create_profile(s, {"name": "Local SEO"}, admin)
    tpl = create_template(
        s,
        {
            "title": "Collect GBP access",
            "type": "campaign_onboarding",
            "key": "gbp_access",
            "partner_entity_id": str(partner_id),
            "campaign_profile_id": str(profile.id),
            "mandatory": "on",
        },
        admin,
    )
    assert tpl.template_category == "partner_campaign_profile_specific"
    assert tpl.mandatory is True
    assert tpl.decision_point is False


def test_create_template_rejects_unknown_type(s, admin):
    with pytest.raises(ValueError):
        create_template(s, {"title": "Kickoff", "type": "party"}, admin)


def test_update_recomputes_category_only_when_scope_changes(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    tpl = create_template(s, {"title": "Kickoff call", "type": "partner_onboarding"}, admin)
    assert tpl.template_category == "default"

    update_template(s, tpl, {"title": "Kickoff call (60m)"}, admin)
    assert tpl.template_category == "default"

    update_template(s, tpl, {"partner_entity_id": str(partner_id)}, admin)
    assert tpl.template_category == "partner_specific"

    update_template(s, tpl, {"partner_entity_id": ""}, admin)
    assert tpl.template_category == "default"


def test_key_uniqueness_is_per_partner(s, admin):
    acme = save_partner(s, None, {"name": "Acme Dental"}, admin)
    core = create_template(s, {"title": "Kickoff", "type": "internal", "key": "kickoff"}, admin)

    assert check_key_uniqueness(s, "kickoff", None) is False
    assert check_key_uniqueness(s, "kickoff", None, exclude_id=core.id) is True
    assert check_key_uniqueness(s, "kickoff", acme) is True

    create_template(s, {"title": "Kickoff", "type": "internal", "key": "kickoff", "partner_entity_id": acme}, admin)
    assert check_key_uniqueness(s, "kickoff", acme) is False

    # Inactive templates free their key.
    delete_template(s, core, admin)
    assert check_key_uniqueness(s, "kickoff", None) is True


def test_soft_delete_and_activate(s, admin):
    tpl = create_template(s, {"title": "Monthly report", "type": "campaign_task"}, admin)
    delete_template(s, tpl, admin)
    assert get_all_templates(s) == []
    assert get_all_templates(s, include_inactive=True) == [tpl]

    activate_template(s, tpl, admin)
    assert get_all_templates(s, type="campaign_task") == [tpl]
    assert get_all_templates(s, type="internal") == []


def test_duplicate_key_rejected_by_form(client, csrf):
    data = {"csrf_token": csrf, "title": "Collect GBP access", "key": "gbp_access"}
    r = client.post("/ops/templates/campaign-onboarding/new", data=data, follow_redirects=False)
    assert r.status_code == 302
    assert "/edit" in r.headers["Location"]

    r = client.post("/ops/templates/campaign-onboarding/new", data=data, follow_redirects=True)
    assert r.status_code == 200
    assert b"A template with this key already exists for this partner." in r.data

    r = client.get("/ops/templates/campaign-onboarding")
    assert r.status_code == 200
    assert r.data.count(b"Collect GBP access") == 1


def test_unknown_template_kind_is_not_found(client, csrf):
    assert client.get("/ops/templates/banana").status_code == 404
