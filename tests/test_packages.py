"""Tests for packages: profile seeding, item lists, duplication and deletion."""
import pytest

from app.opsportal.db import session_scope
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.campaign_profiles.service import create_profile
from app.opsportal.modules.packages.models import Package, PackageActionItem, PackageServiceItem
from app.opsportal.modules.packages.service import (
    add_package_action_item,
    add_package_note,
    add_package_service_item,
    create_package,
    delete_package,
    duplicate_package,
    get_all_packages,
    get_package_action_items,
    get_package_notes,
    get_package_service_items,
    remove_package_service_item,
    search_packages,
    sync_package_action_items,
    sync_package_service_items,
    update_action_item_order,
    update_package,
    update_package_field,
)
from app.opsportal.modules.partners.service import save_partner
from app.opsportal.modules.service_catalog.service import create_catalog_item, create_scope_item


@pytest.fixture()
def catalog(s, admin):
    return {
        "audit": create_scope_item(s, {"name": "Technical audit", "proposal_mode": "one_time"}, admin),
        "content": create_scope_item(s, {"name": "Blog content", "proposal_mode": "recurring"}, admin),
        "kickoff": create_catalog_item(s, {"name": "Kickoff call"}, admin),
        "access": create_catalog_item(s, {"name": "Collect access"}, admin),
    }


def test_create_package_copies_profile_text(s, admin):
    profile = create_profile(
        s,
        {"name": "Local SEO", "phase_one_outline": "Audit citations", "presale_considerations": "Needs GBP"},
        admin,
    )
    pkg = create_package(
        s,
        {"name": "Local Starter", "related_campaign_profile_id": str(profile.id), "phase_one_outline": "ignored"},
        admin,
    )
    assert pkg.phase_one_outline == "Audit citations"
    assert pkg.presale_considerations == "Needs GBP"
    assert pkg.currency == "USD"
    assert pkg.is_active is True

    acts = get_activity_for_item(s, "packages", pkg.id)
    assert acts[0].activity_type == "package_created"


def test_create_package_validation(s, admin):
    with pytest.raises(ValueError):
        create_package(s, {"name": ""}, admin)
    with pytest.raises(ValueError):
        create_package(s, {"name": "Starter", "type": "forever"}, admin)
    with pytest.raises(ValueError):
        create_package(s, {"name": "Starter", "currency": "XYZ"}, admin)


def test_monthly_price_from_dollars(s, admin):
    pkg = create_package(s, {"name": "Starter", "monthly_price": "1,250.50"}, admin)
    assert pkg.monthly_price_cents == 125050


def test_service_items_ordering_and_removal(s, admin, catalog):
    pkg = create_package(s, {"name": "Starter", "type": "ongoing"}, admin)
    add_package_service_item(s, pkg, {"service_item_id": catalog["audit"].id}, admin)
    add_package_service_item(s, pkg, {"service_item_id": catalog["content"].id, "order_override": "1"}, admin)

    rows = get_package_service_items(s, pkg.id)
    assert [r.service_item_id for r in rows] == [catalog["content"].id, catalog["audit"].id]
    assert rows[1].unique_service_label == "technical_audit"
    assert rows[1].quantity == 1
    assert rows[1].frequency == "monthly"

    with pytest.raises(ValueError):
        add_package_service_item(s, pkg, {"service_item_id": catalog["audit"].id, "frequency": "hourly"}, admin)

    assert remove_package_service_item(s, pkg, catalog["audit"].id, admin) == 1
    assert [r.service_item_id for r in get_package_service_items(s, pkg.id)] == [catalog["content"].id]
    assert len(pkg.service_items) == 1


def test_sync_service_items(s, admin, catalog):
    pkg = create_package(s, {"name": "Starter"}, admin)
    add_package_service_item(s, pkg, {"service_item_id": catalog["audit"].id}, admin)

    rows = sync_package_service_items(
        s,
        pkg,
        [
            {"service_item_id": catalog["content"].id, "quantity": "4", "frequency": "monthly"},
            {"service_item_id": ""},
        ],
        admin,
    )
    assert [r.service_item_id for r in rows] == [catalog["content"].id]
    assert rows[0].quantity == 4


def test_sync_rejects_unknown_frequency(s, admin, catalog):
    pkg = create_package(s, {"name": "Starter"}, admin)
    add_package_service_item(s, pkg, {"service_item_id": catalog["audit"].id}, admin)

    with pytest.raises(ValueError):
        sync_package_service_items(
            s,
            pkg,
            [
                {"service_item_id": catalog["audit"].id, "frequency": "hourly"},
                {"service_item_id": catalog["content"].id},
            ],
            admin,
        )
    rows = get_package_service_items(s, pkg.id)
    assert [(r.service_item_id, r.frequency) for r in rows] == [(catalog["audit"].id, "monthly")]


def test_sync_action_items(s, admin, catalog):
    pkg = create_package(s, {"name": "Starter"}, admin)
    add_package_action_item(s, pkg, {"service_item_id": catalog["kickoff"].id}, admin)

    rows = sync_package_action_items(
        s,
        pkg,
        [
            {"service_item_id": catalog["access"].id, "order_override": "2", "in_onboarding": "1"},
            {"service_item_id": catalog["kickoff"].id, "order_override": "1"},
            {"service_item_id": None},
        ],
        admin,
    )
    assert [(r.service_item_id, r.order_override) for r in rows] == [
        (catalog["kickoff"].id, 1),
        (catalog["access"].id, 2),
    ]
    assert rows[1].in_onboarding is True

    rows = sync_package_action_items(s, pkg, [{"service_item_id": catalog["access"].id}], admin)
    assert [r.service_item_id for r in rows] == [catalog["access"].id]
    assert len(pkg.action_items) == 1


def test_action_items_ordered_by_override_then_name(s, admin, catalog):
    pkg = create_package(s, {"name": "Starter"}, admin)
    add_package_action_item(s, pkg, {"service_item_id": catalog["kickoff"].id}, admin)
    add_package_action_item(s, pkg, {"service_item_id": catalog["access"].id}, admin)
    names = [a.service_item.name for a in get_package_action_items(s, pkg.id)]
    assert names == ["Collect access", "Kickoff call"]

    update_action_item_order(s, pkg, catalog["kickoff"].id, 1, admin)
    names = [a.service_item.name for a in get_package_action_items(s, pkg.id)]
    assert names == ["Kickoff call", "Collect access"]


def test_duplicate_package_copies_items(s, admin, catalog):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    source = create_package(
        s,
        {"name": "Starter", "type": "ongoing", "monthly_price_cents": "99900", "phase_one_outline": "Audit"},
        admin,
    )
    add_package_service_item(
        s, source, {"service_item_id": catalog["content"].id, "quantity": "2", "monthly_price_cents": "5000"}, admin
    )
    add_package_action_item(s, source, {"service_item_id": catalog["kickoff"].id, "order_override": "3"}, admin)

    copy = duplicate_package(s, source.id, {"name": "", "partner_entity_id": partner_id}, admin)

    assert copy.id != source.id
    assert copy.name == "Starter (copy)"
    assert copy.partner_entity_id == partner_id
    assert copy.monthly_price_cents == 99900
    assert copy.type == "ongoing"
    assert copy.phase_one_outline == "Audit"

    svc = get_package_service_items(s, copy.id)
    assert [(r.service_item_id, r.quantity, r.monthly_price_cents) for r in svc] == [(catalog["content"].id, 2, 5000)]
    actions = get_package_action_items(s, copy.id)
    assert [(a.service_item_id, a.order_override) for a in actions] == [(catalog["kickoff"].id, 3)]

    # Source untouched.
    assert len(get_package_service_items(s, source.id)) == 1

    details = [a.details for a in get_activity_for_item(s, "packages", copy.id)]
    assert 'Package duplicated from "Starter"' in details


def test_duplicate_missing_package(s, admin):
    with pytest.raises(ValueError):
        duplicate_package(s, 4242, {}, admin)


def test_delete_package_removes_items(s, admin, catalog):
    pkg = create_package(s, {"name": "Starter"}, admin)
    add_package_service_item(s, pkg, {"service_item_id": catalog["audit"].id}, admin)
    add_package_action_item(s, pkg, {"service_item_id": catalog["kickoff"].id}, admin)
    pkg_id = pkg.id

    delete_package(s, pkg, admin)
    assert s.get(Package, pkg_id) is None
    assert s.query(PackageServiceItem).filter(PackageServiceItem.package_id == pkg_id).count() == 0
    assert s.query(PackageActionItem).filter(PackageActionItem.package_id == pkg_id).count() == 0
    assert get_activity_for_item(s, "packages", pkg_id)[0].activity_type == "package_deleted"


def test_search_packages_include_inactive_widens(s, admin):
    live = create_package(s, {"name": "Local Starter", "type": "ongoing"}, admin)
    retired = create_package(s, {"name": "Local Legacy", "type": "ongoing", "is_active": "0"}, admin)
    create_package(s, {"name": "Audit only", "type": "one_time"}, admin)

    assert [p.id for p in search_packages(s, term="local")] == [live.id]
    ids = {p.id for p in search_packages(s, term="local", include_inactive=True)}
    assert ids == {live.id, retired.id}
    assert {p.name for p in search_packages(s, type="one_time")} == {"Audit only"}


def test_field_update_and_notes(s, admin):
    pkg = create_package(s, {"name": "Starter"}, admin)
    update_package_field(s, pkg, "outcome", "Rank in the local pack", admin)
    assert pkg.outcome == "Rank in the local pack"
    with pytest.raises(ValueError):
        update_package_field(s, pkg, "name", "", admin)
    with pytest.raises(ValueError):
        update_package_field(s, pkg, "created_at", "2020-01-01", admin)

    add_package_note(s, pkg, "Partner wants weekly updates", admin)
    assert [n.content for n in get_package_notes(s, pkg.id)] == ["Partner wants weekly updates"]


def test_field_updates_check_type_and_currency(s, admin):
    pkg = create_package(s, {"name": "Starter", "type": "ongoing"}, admin)
    with pytest.raises(ValueError):
        update_package_field(s, pkg, "type", "weekly", admin)
    with pytest.raises(ValueError):
        update_package_field(s, pkg, "currency", "ZZZ", admin)
    assert pkg.type == "ongoing"
    assert pkg.currency == "USD"

    with pytest.raises(ValueError):
        update_package(s, pkg, {"outcome": "More leads", "type": "weekly"}, admin)
    assert pkg.outcome is None

    update_package(s, pkg, {"type": "one_time", "currency": "", "outcome": "More leads"}, admin)
    assert pkg.type == "one_time"
    assert pkg.currency == "USD"
    assert pkg.outcome == "More leads"

    copy = duplicate_package(s, pkg.id, {}, admin)
    assert copy.currency == "USD"


def test_get_all_packages_flips_on_inactive(s, admin):
    live = create_package(s, {"name": "Local Starter"}, admin)
    retired = create_package(s, {"name": "Local Legacy", "is_active": "0"}, admin)
    assert [p.id for p in get_all_packages(s)] == [live.id]
    assert [p.id for p in get_all_packages(s, include_inactive=True)] == [retired.id]


def test_package_routes(app, client, csrf):
    r = client.post(
        "/ops/packages/new",
        data={"csrf_token": csrf, "name": "Local Starter", "type": "ongoing", "currency": "USD"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Local Starter" in r.data

    with session_scope(app) as s:
        pkg_id = s.query(Package).one().id

    r = client.post(f"/ops/packages/{pkg_id}/duplicate", data={"csrf_token": csrf, "name": "Local Plus"}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Local Plus" in r.data

    r = client.get("/ops/packages")
    assert r.status_code == 200
    assert b"Local Starter" in r.data
    assert b"Local Plus" in r.data

    r = client.post(f"/ops/packages/{pkg_id}/delete", data={"csrf_token": csrf}, follow_redirects=False)
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.get(Package, pkg_id) is None


def test_package_list_show_inactive(app, client, csrf):
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        create_package(s, {"name": "Local Starter"}, admin)
        create_package(s, {"name": "Local Legacy", "is_active": "0"}, admin)

    r = client.get("/ops/packages?show=inactive")
    assert r.status_code == 200
    assert b"Local Legacy" in r.data
    assert b"Local Starter" not in r.data


def test_unparseable_item_price_is_left_unset(app, client, csrf):
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        pkg_id = create_package(s, {"name": "Starter"}, admin).id
        item_id = create_scope_item(s, {"name": "Technical audit", "proposal_mode": "one_time"}, admin).id

    r = client.post(
        f"/ops/packages/{pkg_id}/service-items",
        data={"csrf_token": csrf, "service_item_id": item_id, "monthly_price": "nan"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    with session_scope(app) as s:
        row = s.query(PackageServiceItem).filter(PackageServiceItem.package_id == pkg_id).one()
        assert row.monthly_price_cents == 0
