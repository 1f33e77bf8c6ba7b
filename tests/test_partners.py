import pytest

from app.opsportal.db import session_scope
from app.opsportal.modules.parties.models import Company, Entity, EntityContact, EntityRelationship
from app.opsportal.modules.parties.service import save_employee
from app.opsportal.modules.partners.models import Partner
from app.opsportal.modules.partners.service import (
    add_account_manager,
    archive_rule,
    create_prospect,
    create_rule,
    get_all_partner_names,
    get_contact_emails,
    get_partner,
    get_partner_for_edit,
    get_rules,
    save_partner,
    update_partner_profile,
    validate_partner_payload,
)


def test_validate_partner_payload():
    errors = validate_partner_payload({"name": "", "status": "sleeping", "default_currency": "DOGE", "start_date": "soon"})
    assert "Name is required." in errors
    assert any(e.startswith("Invalid status") for e in errors)
    assert "Unsupported currency: DOGE" in errors
    assert "Start date must be YYYY-MM-DD." in errors


def test_create_prospect_builds_company_and_contact(s):
    result = create_prospect(s, " Acme Dental ", "Ada", "Lovelace", "Ada@Acme.test", external_auth_id="auth0|1")

    assert result["partner"]["name"] == "Acme Dental"
    assert result["partner"]["status"] == "prospect"
    assert result["individual"]["email"] == "ada@acme.test"

    partner_id = result["partner"]["id"]
    partner = s.get(Partner, partner_id)
    assert partner.status == "prospect"
    assert partner.name == "Acme Dental"
    assert s.get(Company, partner_id).legal_name == "Acme Dental"

    rel = s.query(EntityRelationship).filter(EntityRelationship.parent_entity_id == partner_id).one()
    assert rel.relationship_type == "contact"
    assert rel.child_entity_id == result["individual"]["id"]

    assert get_contact_emails(s, partner_id) == [{"name": "Ada Lovelace", "address": "ada@acme.test"}]


def test_create_prospect_requires_names(s):
    with pytest.raises(ValueError):
        create_prospect(s, "", "Ada", "Lovelace", "ada@acme.test")
    with pytest.raises(ValueError):
        create_prospect(s, "Acme", "Ada", "", "ada@acme.test")
    with pytest.raises(ValueError):
        create_prospect(s, "Acme", "Ada", "Lovelace", " ")


def test_save_partner_create_and_edit(s, admin):
    partner_id = save_partner(
        s,
        None,
        {"name": "Acme Dental", "status": "active", "billing_address": "1 Main St", "start_date": "2024-02-01"},
        admin,
    )
    data = get_partner_for_edit(s, partner_id)
    assert data["partner"].status == "active"
    assert data["partner"].start_date.isoformat() == "2024-02-01"
    assert data["billing_address"] == "1 Main St"

    save_partner(
        s,
        partner_id,
        {
            "name": "Acme Dental Group",
            "status": "active",
            "billing_address": "2 Main St",
            "billing_address_id": str(data["billing_address_id"]),
        },
        admin,
    )
    assert s.get(Entity, partner_id).name == "Acme Dental Group"
    billing = s.query(EntityContact).filter(EntityContact.entity_id == partner_id).all()
    assert [b.contact_value for b in billing] == ["2 Main St"]


def test_billing_address_must_belong_to_partner(s, admin):
    acme = save_partner(s, None, {"name": "Acme Dental", "billing_address": "1 Main St"}, admin)
    bolt = save_partner(s, None, {"name": "Bolt Roofing", "billing_address": "9 Dock Rd"}, admin)
    acme_billing_id = get_partner_for_edit(s, acme)["billing_address_id"]

    with pytest.raises(ValueError):
        save_partner(
            s,
            bolt,
            {"name": "Bolt Roofing", "billing_address": "overwritten", "billing_address_id": str(acme_billing_id)},
            admin,
        )
    assert s.get(EntityContact, acme_billing_id).contact_value == "1 Main St"


def test_account_manager_relationship_must_belong_to_partner(s, admin):
    acme = save_partner(s, None, {"name": "Acme Dental"}, admin)
    bolt = save_partner(s, None, {"name": "Bolt Roofing"}, admin)
    grace = save_employee(s, None, {"first_name": "Grace", "last_name": "Hopper"}, admin)
    alan = save_employee(s, None, {"first_name": "Alan", "last_name": "Turing"}, admin)
    rel = add_account_manager(s, acme, grace.entity_id, user=admin)

    with pytest.raises(ValueError):
        add_account_manager(s, bolt, alan.entity_id, relationship_id=rel.id, user=admin)
    assert rel.parent_entity_id == acme
    assert get_partner(s, acme)["account_manager"].name == "Grace Hopper"


def test_save_unknown_partner(s, admin):
    with pytest.raises(ValueError):
        save_partner(s, 9999, {"name": "Ghost"}, admin)


def test_partner_names_only_billing_customers(s, admin):
    save_partner(s, None, {"name": "Acme Dental", "external_id": "CUS001"}, admin)
    save_partner(s, None, {"name": "Bolt Roofing", "external_id": "CUS002", "status": "inactive"}, admin)
    save_partner(s, None, {"name": "Internal Test"}, admin)
    assert [name for _id, name in get_all_partner_names(s)] == ["Acme Dental"]


def test_profile_update_is_partial(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental", "acquisition_source": "referral"}, admin)
    result = update_partner_profile(s, partner_id, {"industry": "Dental"}, admin)
    assert result == {"updated": True, "partner_fields_updated": False, "company_fields_updated": True}
    assert s.get(Partner, partner_id).acquisition_source == "referral"
    assert s.get(Company, partner_id).industry == "Dental"

    assert update_partner_profile(s, partner_id, {}, admin)["updated"] is False


def test_account_manager_is_replaced_in_place(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    first = save_employee(s, None, {"first_name": "Grace", "last_name": "Hopper"}, admin)
    second = save_employee(s, None, {"first_name": "Alan", "last_name": "Turing"}, admin)

    rel = add_account_manager(s, partner_id, first.entity_id, user=admin)
    assert get_partner(s, partner_id)["account_manager"].name == "Grace Hopper"

    again = add_account_manager(s, partner_id, second.entity_id, relationship_id=rel.id, user=admin)
    assert again.id == rel.id
    assert get_partner(s, partner_id)["account_manager"].name == "Alan Turing"


def test_rules_archive(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    rule = create_rule(s, partner_id, {"rule_reason": "Brand voice", "rule_value": "No exclamation marks"}, admin)
    assert [r.id for r in get_rules(s, partner_id)] == [rule.id]
    with pytest.raises(ValueError):
        create_rule(s, partner_id, {"rule_reason": "Empty", "rule_value": ""}, admin)

    archive_rule(s, rule, admin)
    s.flush()
    assert get_rules(s, partner_id) == []


def test_partner_routes(app, client, csrf):
    r = client.post(
        "/ops/partners/prospect",
        data={
            "csrf_token": csrf,
            "company_name": "Acme Dental",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@acme.test",
        },
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Acme Dental" in r.data

    with session_scope(app) as s:
        partner_id = s.query(Partner).one().entity_id

    r = client.get(f"/ops/partners/{partner_id}")
    assert r.status_code == 200
    assert b"ada@acme.test" in r.data

    assert client.get("/ops/partners/424242").status_code == 404
