from app.opsportal.db import session_scope
from app.opsportal.models import AuditEvent

from conftest import login


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_public_index_renders_for_anonymous(client):
    r = client.get("/")
    assert r.status_code == 200


def test_anonymous_is_sent_to_login(client):
    r = client.get("/ops/partners?show=inactive", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]
    assert "next=" in r.headers["Location"]


def test_login_and_dashboard_access(client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/ops/")

    r = client.get("/ops/")
    assert r.status_code == 200

    r = client.get("/admin/")
    assert r.status_code == 200


def test_login_honours_local_next_only(client):
    r = client.post(
        "/auth/login",
        data={"email": "admin@example.com", "password": "pw", "next": "//evil.example.com/"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    assert "evil.example.com" not in r.headers["Location"]


def test_failed_login_is_audited(app, client):
    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "nope"}, follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").one()
        assert ev.entity_id == "admin@example.com"


def test_user_without_login_permission_gets_not_found(client):
    login(client, email="outsider@example.com")
    assert client.get("/ops/").status_code == 404
    assert client.get("/ops/packages").status_code == 404
    # admin.view alone does not unlock the admin shell.
    assert client.get("/admin/").status_code == 404


def test_missing_action_permission_is_forbidden(client):
    login(client, email="editor@example.com")
    assert client.get("/ops/").status_code == 200
    assert client.get("/ops/access-items").status_code == 403
    assert client.get("/ops/employees/new").status_code == 403
    assert client.get("/ops/campaign-profiles/new").status_code == 403
    assert client.get("/ops/packages/new").status_code == 200
    # No workbench:access either.
    assert client.get("/api/activities/recent").status_code == 403


def test_api_requires_workbench_access(client):
    r = client.get("/api/activities/recent")
    assert r.status_code == 403
    assert r.json == {"error": "Forbidden"}

    login(client, email="outsider@example.com")
    r = client.get("/api/activities/recent")
    assert r.status_code == 403


def test_internal_api_is_open(client):
    r = client.get("/api/internal/ping")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_api_recent_activity_for_workbench_user(client, csrf):
    r = client.get("/api/activities/recent?limit=5")
    assert r.status_code == 200
    assert r.json["activities"] == []


def test_post_without_csrf_token_is_rejected(client, csrf):
    r = client.post("/ops/campaign-profiles/new", data={"name": "Local SEO"})
    assert r.status_code == 400
    assert b"CSRF" in r.data


def test_logout_clears_session(client, csrf):
    r = client.get("/auth/logout", follow_redirects=False)
    assert r.status_code == 302
    r = client.get("/ops/", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_admin_audit_lists_login(client, csrf):
    r = client.get("/admin/audit")
    assert r.status_code == 200
    assert b"auth.login" in r.data
