import pytest

from app.opsportal.db import session_scope
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.campaign_profiles.models import CampaignProfile
from app.opsportal.modules.campaign_profiles.service import (
    add_profile_note,
    create_profile,
    deactivate_profile,
    delete_profile_note,
    get_all_profiles,
    get_profile_notes,
    update_profile_field,
    update_profile_note,
)
from app.opsportal.modules.campaigns.service import create_campaign
from app.opsportal.modules.notes.service import NoteVersionConflict
from app.opsportal.modules.partners.service import save_partner


def test_create_requires_name(s, admin):
    with pytest.raises(ValueError):
        create_profile(s, {"name": "  "}, admin)


def test_field_update_writes_readable_activity(s, admin):
    profile = create_profile(s, {"name": "Local SEO", "phase_one_outline": "Audit"}, admin)
    update_profile_field(s, profile, "phase_one_outline", "Audit and fix citations", admin)

    acts = get_activity_for_item(s, "campaign_profiles", profile.id)
    assert acts[0].activity_type == "updated_campaign_profile_field"
    assert acts[0].details == 'Phase One Outline updated from "Audit" to "Audit and fix citations"'


def test_field_update_truncates_long_values(s, admin):
    profile = create_profile(s, {"name": "Local SEO"}, admin)
    update_profile_field(s, profile, "criteria", "x" * 80, admin)
    details = get_activity_for_item(s, "campaign_profiles", profile.id)[0].details
    assert details == f'Criteria updated from "" to "{"x" * 50}..."'


def test_field_update_rejects_unknown_field(s, admin):
    profile = create_profile(s, {"name": "Local SEO"}, admin)
    with pytest.raises(ValueError):
        update_profile_field(s, profile, "is_active", "0", admin)
    with pytest.raises(ValueError):
        update_profile_field(s, profile, "name", "", admin)


def test_profile_notes_lifecycle(s, admin):
    profile = create_profile(s, {"name": "Local SEO"}, admin)
    note = add_profile_note(s, profile, "Always check GBP first", admin)
    assert note.note_type == "template"

    updated = update_profile_note(s, profile, note.id, note.version_number, "Check GBP and Maps first", admin)
    assert updated.version_number == 2
    assert [n.id for n in get_profile_notes(s, profile.id)] == [updated.id]

    with pytest.raises(NoteVersionConflict):
        update_profile_note(s, profile, updated.id, 1, "stale", admin)

    delete_profile_note(s, profile, updated.id, admin)
    assert get_profile_notes(s, profile.id) == []

    types = [a.activity_type for a in get_activity_for_item(s, "campaign_profiles", profile.id)]
    assert "added_campaign_profile_note" in types
    assert "updated_campaign_profile_note" in types
    assert "deleted_campaign_profile_note" in types


def test_list_counts_active_campaigns(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    local = create_profile(s, {"name": "Local SEO"}, admin)
    ecommerce = create_profile(s, {"name": "Ecommerce"}, admin)
    create_campaign(
        s,
        {"partner_entity_id": partner_id, "site_url": "https://acme.test", "status": "active", "campaign_profile_id": local.id},
        admin,
    )
    create_campaign(
        s,
        {"partner_entity_id": partner_id, "site_url": "https://old.acme.test", "status": "paused", "campaign_profile_id": local.id},
        admin,
    )

    rows = {p.name: n for p, n in get_all_profiles(s)}
    assert rows == {"Ecommerce": 0, "Local SEO": 1}

    deactivate_profile(s, ecommerce, admin)
    s.flush()
    assert [p.name for p, _ in get_all_profiles(s)] == ["Local SEO"]
    assert [p.name for p, _ in get_all_profiles(s, include_inactive=True)] == ["Ecommerce"]


def test_profile_routes(app, client, csrf):
    r = client.post("/ops/campaign-profiles/new", data={"csrf_token": csrf, "name": "Local SEO"}, follow_redirects=False)
    assert r.status_code == 302
    with session_scope(app) as s:
        profile_id = s.query(CampaignProfile).one().id

    r = client.post(
        f"/ops/campaign-profiles/{profile_id}/field",
        data={"csrf_token": csrf, "field": "criteria", "value": "Single-location businesses"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Single-location businesses" in r.data

    assert client.get("/ops/campaign-profiles/9999").status_code == 404
