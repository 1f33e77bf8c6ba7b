import json

import pytest

from app.opsportal.db import session_scope
from app.opsportal.models import AuditEvent
from app.opsportal.modules.access_items.models import AccessItem
from app.opsportal.modules.access_items.service import (
    activate_access_item,
    create_access_item,
    delete_access_item,
    derive_owner,
    get_all_access_items,
    update_access_item,
)
from app.opsportal.modules.partners.service import save_partner


def test_derive_owner():
    assert derive_owner(None) == "internal"
    assert derive_owner(12) == "partner"


def test_create_requires_username_or_email(s, admin):
    with pytest.raises(ValueError):
        create_access_item(s, {"username": "", "email": ""}, admin)
    with pytest.raises(ValueError):
        create_access_item(s, {"username": "ops", "tfa_type": "carrier_pigeon"}, admin)


def test_owner_follows_partner(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    internal = create_access_item(s, {"username": "ops-bot", "in_lastpass": "on"}, admin)
    theirs = create_access_item(s, {"email": "web@acme.test", "partner_entity_id": str(partner_id)}, admin)
    assert internal.access_item_owner == "internal"
    assert internal.in_lastpass is True
    assert theirs.access_item_owner == "partner"

    update_access_item(s, theirs, {"email": "web@acme.test", "partner_entity_id": ""}, admin)
    assert theirs.access_item_owner == "internal"


def test_secret_value_stays_out_of_audit(s, admin):
    item = create_access_item(s, {"username": "ops-bot", "tfa_type": "sms", "tfa_type_value": "555-0100"}, admin)
    update_access_item(s, item, {"username": "ops-bot", "tfa_type": "sms", "tfa_type_value": "555-0199"}, admin)
    s.flush()
    ev = (
        s.query(AuditEvent)
        .filter(AuditEvent.action == "access_item.edit", AuditEvent.entity_id == str(item.id))
        .one()
    )
    changes = json.loads(ev.metadata_json)["changes"]
    assert changes["tfa_type_value"] == {"changed": True}
    assert "555-0199" not in ev.metadata_json


def test_soft_delete_and_reactivate(s, admin):
    item = create_access_item(s, {"username": "ops-bot"}, admin)
    delete_access_item(s, item, admin)
    s.flush()
    assert get_all_access_items(s) == []
    assert get_all_access_items(s, include_inactive=True) == [item]

    activate_access_item(s, item, admin)
    s.flush()
    assert get_all_access_items(s) == [item]


def test_access_item_routes(app, client, csrf):
    r = client.post(
        "/ops/access-items/new",
        data={"csrf_token": csrf, "username": "ops-bot", "tfa_type": "authenticator"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"ops-bot" in r.data

    with session_scope(app) as s:
        item_id = s.query(AccessItem).one().id

    r = client.post(f"/ops/access-items/{item_id}/delete", data={"csrf_token": csrf}, follow_redirects=False)
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.get(AccessItem, item_id).is_active is False

    r = client.get("/ops/access-items?show=inactive")
    assert r.status_code == 200
    assert b"ops-bot" in r.data

    r = client.post("/ops/access-items/999/delete", data={"csrf_token": csrf})
    assert r.status_code == 404
