import pytest
from werkzeug.security import generate_password_hash

from app.opsportal import create_app
from app.opsportal.constants import ALL_PERMISSIONS, PERM_ADMIN_VIEW
from app.opsportal.db import session_scope
from app.opsportal.models import Base, Permission, Role, User
from scripts.init_db import EDITOR_PERMISSIONS


def _seed_users(s):
    """Admin with every permission, the seeded editor role, and a signed-up account that may not use the portal."""
    perms = {}
    for key, name in ALL_PERMISSIONS:
        p = Permission(key=key, name=name)
        s.add(p)
        perms[key] = p

    admin_role = Role(key="admin", name="Administrator")
    for p in perms.values():
        admin_role.permissions.append(p)
    admin = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
    admin.roles.append(admin_role)

    # admin.view without user:login: the route guard must still hide every page.
    outsider_role = Role(key="outsider", name="Outsider")
    outsider_role.permissions.append(perms[PERM_ADMIN_VIEW])
    outsider = User(email="outsider@example.com", password_hash=generate_password_hash("pw"), is_active=True)
    outsider.roles.append(outsider_role)

    # Catalog and campaign editing, but not employee-side records.
    editor_role = Role(key="editor", name="Editor")
    for key in EDITOR_PERMISSIONS:
        editor_role.permissions.append(perms[key])
    editor = User(email="editor@example.com", password_hash=generate_password_hash("pw"), is_active=True)
    editor.roles.append(editor_role)

    s.add_all([admin_role, admin, outsider_role, outsider, editor_role, editor])


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        _seed_users(s)

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def s(app):
    """Plain session for service-level tests; callers commit when they need to."""
    session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def admin(s):
    return s.query(User).filter(User.email == "admin@example.com").one()


def login(client, email="admin@example.com", password="pw"):
    """Sign in and return the session's CSRF token for follow-up POSTs."""
    client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=False)
    with client.session_transaction() as sess:
        return sess["csrf_token"]


@pytest.fixture()
def csrf(client):
    return login(client)
