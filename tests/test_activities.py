import pytest

from app.opsportal.db import session_scope
from app.opsportal.models import User
from app.opsportal.modules.activities.service import (
    activity_to_dict,
    create_activity,
    get_activity_by_type,
    get_activity_by_user,
    get_activity_for_item,
    get_activity_for_partner,
    get_recent_activity,
)
from app.opsportal.modules.partners.service import save_partner


def test_create_activity_validates_table_and_type(s, admin):
    with pytest.raises(ValueError):
        create_activity(s, admin, None, "package_created", "spreadsheets", 1)
    with pytest.raises(ValueError):
        create_activity(s, admin, None, "package_exploded", "packages", 1)


def test_system_activity_has_no_actor(s):
    act = create_activity(s, None, None, "package_updated", "packages", 7, "Nightly sync")
    assert act.actor == "System"
    data = activity_to_dict(act)
    assert data["actor"] == "System"
    assert data["related_table"] == "packages"
    assert data["related_id"] == 7
    assert data["details"] == "Nightly sync"


def test_activity_queries_filter(s, admin):
    partner_id = save_partner(s, None, {"name": "Acme Dental"}, admin)
    first = create_activity(s, admin, partner_id, "package_created", "packages", 1)
    second = create_activity(s, admin, None, "package_updated", "packages", 1)
    other = create_activity(s, None, partner_id, "created_template", "task_templates", 4)

    assert {a.id for a in get_activity_for_item(s, "packages", 1)} == {first.id, second.id}
    assert {a.id for a in get_activity_for_partner(s, partner_id)} == {first.id, other.id}
    assert {a.id for a in get_activity_by_user(s, admin.id)} == {first.id, second.id}
    assert [a.id for a in get_activity_by_type(s, "created_template")] == [other.id]
    assert get_activity_by_type(s, []) == []
    assert len(get_recent_activity(s, limit=2)) == 2
    assert first.actor == admin.display_name


def test_activity_page_filters(client, csrf):
    r = client.get("/ops/activity?type=package_created")
    assert r.status_code == 200
    r = client.get("/ops/activity?user_id=1")
    assert r.status_code == 200


def test_type_and_user_filters_share_one_limit(s, admin):
    editor = s.query(User).filter(User.email == "editor@example.com").one()
    mine = create_activity(s, admin, None, "package_created", "packages", 1)
    for package_id in (2, 3, 4):
        create_activity(s, editor, None, "package_created", "packages", package_id)

    assert [a.id for a in get_activity_by_type(s, "package_created", limit=2, user_id=admin.id)] == [mine.id]
    assert len(get_activity_by_type(s, "package_created", limit=2)) == 2


def test_activity_page_combines_filters(app, client, csrf):
    app.config["ACTIVITY_PAGE_SIZE"] = 2
    with session_scope(app) as s:
        admin = s.query(User).filter(User.email == "admin@example.com").one()
        editor = s.query(User).filter(User.email == "editor@example.com").one()
        admin_id = admin.id
        create_activity(s, admin, None, "package_created", "packages", 1, "Admin made Starter")
        for package_id in (2, 3, 4):
            create_activity(s, editor, None, "package_created", "packages", package_id, f"Editor made #{package_id}")

    r = client.get(f"/ops/activity?type=package_created&user_id={admin_id}")
    assert r.status_code == 200
    assert b"Admin made Starter" in r.data
    assert b"Editor made" not in r.data
