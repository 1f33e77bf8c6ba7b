"""Every screen renders for a signed-in admin, and the people/campaign/account forms round-trip."""
import pytest

from app.opsportal.db import session_scope
from app.opsportal.models import AuditEvent, User
from app.opsportal.modules.campaigns.models import Campaign
from app.opsportal.modules.campaigns.service import create_campaign, list_campaigns, validate_campaign_payload
from app.opsportal.modules.parties.models import Department, Employee
from app.opsportal.modules.parties.service import department_chain, save_employee
from app.opsportal.modules.partners.service import get_partner_by_campaign, save_partner

PAGES = (
    "/ops/",
    "/ops/activity",
    "/ops/employees",
    "/ops/employees/new",
    "/ops/partners",
    "/ops/partners/new",
    "/ops/partners/prospect",
    "/ops/campaigns",
    "/ops/campaigns/new",
    "/ops/campaign-profiles",
    "/ops/campaign-profiles/new",
    "/ops/service-categories",
    "/ops/service-items",
    "/ops/service-items/new",
    "/ops/scope-items",
    "/ops/catalog-items",
    "/ops/permissions",
    "/ops/permissions/new",
    "/ops/templates/partner-onboarding",
    "/ops/templates/campaign-onboarding/new",
    "/ops/access-items",
    "/ops/access-items/new",
    "/ops/packages",
    "/ops/packages?include_inactive=1",
    "/ops/packages/new",
    "/admin/",
    "/admin/me",
    "/admin/accounts",
    "/admin/accounts/new",
)


@pytest.mark.parametrize("path", PAGES)
def test_page_renders(client, csrf, path):
    r = client.get(path)
    assert r.status_code == 200, path


def test_department_chain_is_root_first(s, admin):
    root = Department(name="Operations")
    s.add(root)
    s.flush()
    child = Department(name="Onboarding", parent_department_id=root.id)
    s.add(child)
    s.flush()
    assert [d.name for d in department_chain(child)] == ["Operations", "Onboarding"]
    assert department_chain(None) == []


def test_save_employee_validates(s, admin):
    with pytest.raises(ValueError):
        save_employee(s, None, {"first_name": "Grace", "last_name": ""}, admin)
    with pytest.raises(ValueError):
        save_employee(s, None, {"first_name": "Grace", "last_name": "Hopper", "hire_date": "June"}, admin)

    emp = save_employee(s, None, {"first_name": "Grace", "last_name": "Hopper"}, admin)
    assert emp.status == "active"
    save_employee(s, emp.entity_id, {"first_name": "Grace", "last_name": "Hopper", "status": "inactive"}, admin)
    assert emp.status == "inactive"
    assert emp.entity.name == "Grace Hopper"


def test_employee_form_round_trip(app, client, csrf):
    r = client.post(
        "/ops/employees/new",
        data={"csrf_token": csrf, "first_name": "Grace", "last_name": "Hopper", "title": "Ops lead"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Grace Hopper" in r.data
    with session_scope(app) as s:
        emp = s.query(Employee).one()
        assert emp.title == "Ops lead"


def test_campaign_validation_and_search(s, admin):
    errors = validate_campaign_payload({"site_url": "", "status": "dreaming"})
    assert "Partner is required." in errors
    assert "Site URL is required." in errors

    acme = save_partner(s, None, {"name": "Acme Dental"}, admin)
    bolt = save_partner(s, None, {"name": "Bolt Roofing"}, admin)
    create_campaign(s, {"partner_entity_id": acme, "site_url": "https://acme.test", "budget_amount": "1500"}, admin)
    create_campaign(s, {"partner_entity_id": bolt, "site_url": "https://bolt.test", "status": "active"}, admin)

    assert [c.site_url for c in list_campaigns(s, q="acme")] == ["https://acme.test"]
    assert [c.site_url for c in list_campaigns(s, status="active")] == ["https://bolt.test"]
    assert [c.site_url for c in list_campaigns(s, partner_id=acme)] == ["https://acme.test"]
    assert list_campaigns(s, q="acme")[0].budget_amount_cents == 150000


def test_partner_by_campaign(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental", "status": "active"}, admin)
    campaign = create_campaign(s, {"partner_entity_id": partner_id, "site_url": "https://acme.test"}, admin)
    assert get_partner_by_campaign(s, campaign.id).entity_id == partner_id
    assert get_partner_by_campaign(s, 4242) is None


def test_campaign_form_round_trip(app, client, csrf):
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)

    r = client.post(
        "/ops/campaigns/new",
        data={"csrf_token": csrf, "partner_entity_id": partner_id, "site_url": "https://acme.test"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"https://acme.test" in r.data
    with session_scope(app) as s:
        campaign = s.query(Campaign).one()
        assert campaign.status == "prospect"
        campaign_id = campaign.id

    r = client.get(f"/ops/campaigns/{campaign_id}")
    assert r.status_code == 200
    assert b"Acme Dental" in r.data


def test_create_account(app, client, csrf):
    r = client.post(
        "/admin/accounts/new",
        data={
            "csrf_token": csrf,
            "email": "New.Hire@Example.com",
            "password": "longenough",
            "password_confirm": "longenough",
        },
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Account created for new.hire@example.com." in r.data
    with session_scope(app) as s:
        assert s.query(User).filter(User.email == "new.hire@example.com").one_or_none() is not None
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.create").count() == 1


def test_cannot_edit_own_account(app, client, csrf):
    with session_scope(app) as s:
        admin_id = s.query(User).filter(User.email == "admin@example.com").one().id
    r = client.post(
        f"/admin/accounts/{admin_id}/update",
        data={"csrf_token": csrf, "is_active": "0"},
        follow_redirects=True,
    )
    assert b"You cannot modify your own account from this page." in r.data
    with session_scope(app) as s:
        assert s.get(User, admin_id).is_active is True
