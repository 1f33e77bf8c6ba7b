"""Tests for versioned notes."""
import pytest

from app.opsportal.db import session_scope
from app.opsportal.models import User
from app.opsportal.modules.campaign_profiles.service import add_profile_note, create_profile
from app.opsportal.modules.notes.models import Note
from app.opsportal.modules.notes.service import (
    NoteNotFound,
    NoteVersionConflict,
    get_current_note,
    get_note_history,
    list_current_notes,
    mark_as_non_current,
    save_note,
    validate_note_payload,
)

from conftest import login


def _new_note(s, user, content="First draft", **extra):
    data = {"entity_type": "partner", "entity_id": 1, "note_type": "general", "content": content, **extra}
    return save_note(s, None, None, data, user)


def test_validate_note_payload():
    errors = validate_note_payload({"entity_type": "spaceship", "note_type": "gossip", "content": ""})
    assert "Invalid entity type: spaceship" in errors
    assert "Invalid note type: gossip" in errors
    assert "Entity id is required." in errors
    assert "Note content is required." in errors


def test_create_note_starts_at_version_one(s, admin):
    note = _new_note(s, admin)
    assert note.version_number == 1
    assert note.is_current is True
    assert note.replaces_note_id is None
    assert note.created_by_user_id == admin.id


def test_update_replaces_current_version(s, admin):
    first = _new_note(s, admin)
    second = save_note(s, first.id, 1, {"content": "Second draft"}, admin)

    assert second.id != first.id
    assert second.version_number == 2
    assert second.replaces_note_id == first.id
    assert second.entity_type == "partner"
    assert first.is_current is False

    current = list_current_notes(s, "partner", 1)
    assert [n.id for n in current] == [second.id]
    assert get_current_note(s, 1, "partner", "general").id == second.id


def test_history_walks_back_to_first_version(s, admin):
    v1 = _new_note(s, admin)
    v2 = save_note(s, v1.id, 1, {"content": "v2"}, admin)
    v3 = save_note(s, v2.id, 2, {"content": "v3"}, admin)

    history = get_note_history(s, v3.id)
    assert [n.version_number for n in history] == [3, 2, 1]
    assert [n.id for n in history] == [v3.id, v2.id, v1.id]


def test_stale_version_raises_conflict(s, admin):
    v1 = _new_note(s, admin)
    with pytest.raises(NoteVersionConflict) as exc:
        save_note(s, v1.id, 7, {"content": "late edit"}, admin)
    assert exc.value.expected == 7
    assert exc.value.current == 1
    assert "Version mismatch" in str(exc.value)


def test_editing_a_replaced_version_is_rejected(s, admin):
    v1 = _new_note(s, admin)
    save_note(s, v1.id, 1, {"content": "v2"}, admin)
    with pytest.raises(NoteNotFound):
        save_note(s, v1.id, 1, {"content": "also v2"}, admin)


def test_update_requires_version(s, admin):
    v1 = _new_note(s, admin)
    with pytest.raises(ValueError):
        save_note(s, v1.id, None, {"content": "no version"}, admin)


def test_soft_delete_hides_note(s, admin):
    v1 = _new_note(s, admin)
    mark_as_non_current(s, v1.id, admin)
    assert list_current_notes(s, "partner", 1) == []
    assert s.get(Note, v1.id) is not None
    with pytest.raises(NoteNotFound):
        mark_as_non_current(s, v1.id, admin)


def test_note_save_route_reports_conflict(app, client, csrf):
    with session_scope(app) as s:
        note = Note(entity_type="partner", entity_id=1, note_type="general", content="hello", version_number=1)
        s.add(note)
        s.flush()
        note_id = note.id

    r = client.post(
        "/ops/notes/save",
        data={"csrf_token": csrf, "note_id": note_id, "version": 1, "content": "edited", "next": "/ops/"},
        follow_redirects=False,
    )
    assert r.status_code == 302

    # Second writer still holds version 1.
    r = client.post(
        "/ops/notes/save",
        data={"csrf_token": csrf, "note_id": note_id, "version": 1, "content": "clobber", "next": "/ops/"},
        follow_redirects=True,
    )
    assert r.status_code == 200
    assert b"Note not found or is not current" in r.data

    with session_scope(app) as s:
        current = list_current_notes(s, "partner", 1)
        assert len(current) == 1
        assert current[0].content == "edited"
        assert current[0].version_number == 2


def test_note_history_page(app, client, csrf):
    with session_scope(app) as s:
        note = Note(entity_type="packages", entity_id=3, note_type="general", content="pricing agreed")
        s.add(note)
        s.flush()
        note_id = note.id
    r = client.get(f"/ops/notes/{note_id}/history")
    assert r.status_code == 200
    assert b"pricing agreed" in r.data


def test_concurrent_replace_has_one_winner(app):
    make_session = app.extensions["sqlalchemy_sessionmaker"]
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        note_id = _new_note(s, admin).id

    slow, fast = make_session(), make_session()
    try:
        # The slow writer has read version 1 before the fast writer commits.
        assert slow.get(Note, note_id).version_number == 1

        save_note(fast, note_id, 1, {"content": "fast edit"}, None)
        fast.commit()

        with pytest.raises(NoteVersionConflict) as exc:
            save_note(slow, note_id, 1, {"content": "slow edit"}, None)
        slow.rollback()
        assert exc.value.expected == 1
        assert exc.value.current == 2
        assert str(exc.value) == "Version mismatch. Expected 1, but current version is 2"
    finally:
        slow.close()
        fast.close()

    with session_scope(app) as s:
        current = list_current_notes(s, "partner", 1)
        assert [(n.content, n.version_number) for n in current] == [("fast edit", 2)]


def _profile_with_note(app):
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        profile = create_profile(s, {"name": "Local SEO"}, admin)
        note = add_profile_note(s, profile, "Keep citations tidy", admin)
        return profile.id, note.id


def test_shared_note_routes_refuse_profile_notes(app, client):
    profile_id, note_id = _profile_with_note(app)
    csrf = login(client, email="editor@example.com")

    r = client.post(f"/ops/campaign-profiles/{profile_id}/notes/{note_id}/delete", data={"csrf_token": csrf})
    assert r.status_code == 403
    r = client.post(f"/ops/notes/{note_id}/delete", data={"csrf_token": csrf, "next": "/ops/"})
    assert r.status_code == 404
    r = client.post(
        "/ops/notes/save",
        data={"csrf_token": csrf, "note_id": note_id, "version": 1, "entity_type": "partner", "content": "rewritten"},
    )
    assert r.status_code == 404
    r = client.post(
        "/ops/notes/save",
        data={"csrf_token": csrf, "entity_type": "campaign_profile", "entity_id": profile_id, "content": "extra"},
    )
    assert r.status_code == 404

    with session_scope(app) as s:
        current = list_current_notes(s, "campaign_profile", profile_id)
        assert [n.id for n in current] == [note_id]


def test_shared_note_routes_follow_record_permissions(app, client):
    csrf = login(client, email="editor@example.com")

    r = client.post(
        "/ops/notes/save",
        data={"csrf_token": csrf, "entity_type": "employee", "entity_id": 5, "content": "Prefers email"},
    )
    assert r.status_code == 403
    r = client.post(
        "/ops/notes/save",
        data={"csrf_token": csrf, "entity_type": "partner", "entity_id": 5, "content": "Prefers email", "next": "/ops/"},
    )
    assert r.status_code == 302

    with session_scope(app) as s:
        assert list_current_notes(s, "employee", 5) == []
        assert [n.content for n in list_current_notes(s, "partner", 5)] == ["Prefers email"]
