import pytest

from app.opsportal.db import session_scope
from app.opsportal.models import User
from app.opsportal.modules.partners.service import save_partner
from app.opsportal.modules.service_catalog.models import ServiceItem
from app.opsportal.modules.service_catalog.service import (
    create_catalog_item,
    create_category,
    create_scope_item,
    create_service_item,
    get_all_categories,
    get_available_action_items_for_package,
    get_available_for_package,
    list_catalog_items,
    list_scope_items,
    set_service_item_active,
    update_category_field,
)


def test_category_key_is_derived_and_unique(s, admin):
    cat = create_category(s, {"display_name": "Link Building"}, admin)
    assert cat.key == "link_building"
    with pytest.raises(ValueError):
        create_category(s, {"display_name": "link building"}, admin)


def test_category_active_filter(s, admin):
    cat = create_category(s, {"display_name": "Local"}, admin)
    update_category_field(s, cat.id, "is_active", "0", admin)
    s.flush()
    assert get_all_categories(s) == []
    assert get_all_categories(s, include_inactive=True) == [cat]
    with pytest.raises(ValueError):
        update_category_field(s, cat.id, "key", "other", admin)


def test_service_item_money_fields(s, admin):
    create_category(s, {"display_name": "Content"}, admin)
    item = create_service_item(
        s,
        {
            "name": "Blog post",
            "service_category": "content",
            "min_pricing_dollars": "150",
            "est_cogs_dollars": "",
            "est_time_minutes": "90",
        },
        admin,
    )
    assert item.min_pricing_usd_cents == 15000
    assert item.est_cogs_usd_cents is None
    assert item.est_time_minutes == 90
    assert item.category.display_name == "Content"
    assert item.proposal_mode == "both"


def test_scope_item_label_must_be_unique(s, admin):
    create_scope_item(s, {"name": "Technical audit"}, admin)
    with pytest.raises(ValueError) as exc:
        create_scope_item(s, {"name": "Technical Audit"}, admin)
    assert 'A scope item with the label "Technical Audit" already exists.' in str(exc.value)


def test_scope_item_cannot_be_catalog_only(s, admin):
    with pytest.raises(ValueError):
        create_scope_item(s, {"name": "Kickoff", "proposal_mode": "neither"}, admin)


def test_scope_and_catalog_lists_split_on_mode(s, admin):
    scope = create_scope_item(s, {"name": "Technical audit"}, admin)
    action = create_catalog_item(s, {"name": "Kickoff call", "in_stream": "on"}, admin)
    assert action.proposal_mode == "neither"
    assert action.in_stream is True
    assert list_scope_items(s) == [scope]
    assert list_catalog_items(s) == [action]


def test_available_items_prefer_partner_version(s, admin):
    acme = save_partner(s, None, {"name": "Acme Dental"}, admin)
    other = save_partner(s, None, {"name": "Bolt Roofing"}, admin)
    core = create_service_item(
        s, {"name": "Blog content", "service_label": "blog_content", "proposal_mode": "recurring"}, admin
    )
    mine = create_service_item(
        s,
        {
            "name": "Acme blog content",
            "service_label": "blog_content",
            "proposal_mode": "recurring",
            "partner_entity_id": acme,
        },
        admin,
    )
    create_service_item(s, {"name": "Site audit", "service_label": "site_audit", "proposal_mode": "one_time"}, admin)

    acme_items = {i["service_label"]: i for i in get_available_for_package(s, partner_id=acme, package_type="ongoing")}
    assert set(acme_items) == {"blog_content"}
    assert acme_items["blog_content"]["id"] == mine.id
    assert acme_items["blog_content"]["name"] == "*Acme blog content"
    assert acme_items["blog_content"]["is_partner_specific"] is True

    other_items = get_available_for_package(s, partner_id=other, package_type="ongoing")
    assert [i["id"] for i in other_items] == [core.id]

    one_time = get_available_for_package(s, package_type="one_time")
    assert [i["service_label"] for i in one_time] == ["site_audit"]


def test_inactive_items_are_not_offered(s, admin):
    item = create_service_item(s, {"name": "Site audit", "service_label": "site_audit"}, admin)
    set_service_item_active(s, item, False, admin)
    s.flush()
    assert get_available_for_package(s) == []


def test_action_items_for_package(s, admin):
    acme = save_partner(s, None, {"name": "Acme Dental"}, admin)
    create_catalog_item(s, {"name": "Kickoff call"}, admin)
    create_catalog_item(s, {"name": "Acme onboarding", "partner_entity_id": acme}, admin)

    names = [i["name"] for i in get_available_action_items_for_package(s, partner_id=acme)]
    assert names == ["*Acme onboarding", "Kickoff call"]
    names = [i["name"] for i in get_available_action_items_for_package(s)]
    assert names == ["Kickoff call"]


def test_available_items_api(app, client, csrf):
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        create_service_item(s, {"name": "Site audit", "service_label": "site_audit", "proposal_mode": "one_time"}, admin)

    r = client.get("/api/service-items/available?package_type=one_time")
    assert r.status_code == 200
    assert [i["name"] for i in r.json["items"]] == ["Site audit"]

    r = client.get("/api/service-items/available?package_type=weekly")
    assert r.status_code == 400


def test_scope_item_form_flashes_duplicate(app, client, csrf):
    r = client.post("/ops/scope-items/new", data={"csrf_token": csrf, "name": "Technical audit"}, follow_redirects=True)
    assert r.status_code == 200
    r = client.post("/ops/scope-items/new", data={"csrf_token": csrf, "name": "Technical audit"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Service labels must be unique." in r.data
    with session_scope(app) as s:
        assert s.query(ServiceItem).count() == 1
