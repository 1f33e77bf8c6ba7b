import re
from datetime import date, datetime, time, timedelta

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, url_for
from sqlalchemy import text
from werkzeug.security import generate_password_hash

from app.opsportal.audit import record_event
from app.opsportal.constants import PERM_ADMIN_VIEW
from app.opsportal.db import db_session
from app.opsportal.models import AuditEvent, Entity, Role, User
from app.opsportal.rbac import require_permission

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _is_valid_email(email: str) -> bool:
    pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
    return bool(re.match(pattern, email))


@bp.get("/")
@require_permission(PERM_ADMIN_VIEW)
def index():
    s = db_session()
    status = {
        "env": (current_app.config.get("ENV") or "development").strip().lower(),
        "db_connected": False,
        "db_error": None,
        "audit_events": None,
    }
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
        status["audit_events"] = s.query(AuditEvent).count()
    except Exception as e:
        current_app.logger.warning("Admin DB status check failed: %s", e)
        status["db_error"] = str(e)
    return render_template("admin/index.html", system_status=status)


@bp.get("/me")
@require_permission(PERM_ADMIN_VIEW)
def me():
    user = getattr(g, "current_user", None)
    role_keys: list[str] = []
    perm_keys: list[str] = []
    if user:
        role_keys = sorted({r.key for r in (user.roles or [])})
        perm_keys = sorted(user.permission_keys)
    return render_template("admin/me.html", user=user, role_keys=role_keys, perm_keys=perm_keys)


@bp.get("/audit")
@require_permission(PERM_ADMIN_VIEW)
def audit_list():
    """
    Audit trail (last 200 events) with simple filters:
    - action (contains)
    - actor_email (contains)
    - date range (YYYY-MM-DD)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        # inclusive end-date (treat as whole day)
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return render_template(
        "admin/audit/list.html",
        events=events,
        action=action,
        actor_email=actor_email,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )


# ---------- Accounts ----------
def _person_entities(s):
    return (
        s.query(Entity)
        .filter(Entity.entity_type.in_(("employee", "individual")))
        .order_by(Entity.name.asc())
        .all()
    )


@bp.get("/accounts")
@require_permission(PERM_ADMIN_VIEW)
def accounts_list():
    s = db_session()
    users = s.query(User).order_by(User.email.asc()).all()
    return render_template("admin/accounts/list.html", users=users)


@bp.get("/accounts/new")
@require_permission(PERM_ADMIN_VIEW)
def accounts_new_get():
    s = db_session()
    roles = s.query(Role).order_by(Role.name.asc()).all()
    return render_template("admin/accounts/new.html", roles=roles, entities=_person_entities(s))


@bp.post("/accounts/new")
@require_permission(PERM_ADMIN_VIEW)
def accounts_new_post():
    s = db_session()
    u = _current_user()

    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    password_confirm = request.form.get("password_confirm") or ""
    role_ids = request.form.getlist("role_ids")
    entity_id = (request.form.get("entity_id") or "").strip()

    errors = []
    if not email:
        errors.append("Email is required.")
    elif not _is_valid_email(email):
        errors.append("Invalid email format.")
    elif s.query(User).filter(User.email == email).one_or_none():
        errors.append("An account with this email already exists.")

    if not password:
        errors.append("Password is required.")
    elif len(password) < 8:
        errors.append("Password must be at least 8 characters.")
    elif password != password_confirm:
        errors.append("Passwords do not match.")

    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("admin.accounts_new_get"))

    new_user = User(
        email=email,
        password_hash=generate_password_hash(password),
        is_active=True,
        entity_id=int(entity_id) if entity_id.isdigit() else None,
    )
    s.add(new_user)
    s.flush()

    if role_ids:
        for role in s.query(Role).filter(Role.id.in_([int(r) for r in role_ids])).all():
            new_user.roles.append(role)

    record_event(
        s,
        actor=u,
        action="user.create",
        entity_type="User",
        entity_id=str(new_user.id),
        metadata={"email": email, "roles": [r.key for r in new_user.roles], "entity_id": new_user.entity_id},
    )
    s.commit()
    flash(f"Account created for {email}.", "success")
    return redirect(url_for("admin.accounts_list"))


@bp.get("/accounts/<int:user_id>")
@require_permission(PERM_ADMIN_VIEW)
def accounts_detail(user_id: int):
    s = db_session()
    user = s.get(User, user_id)
    if not user:
        abort(404)
    roles = s.query(Role).order_by(Role.name.asc()).all()
    return render_template("admin/accounts/detail.html", account=user, roles=roles, entities=_person_entities(s))


@bp.post("/accounts/<int:user_id>/update")
@require_permission(PERM_ADMIN_VIEW)
def accounts_update(user_id: int):
    s = db_session()
    u = _current_user()
    user = s.get(User, user_id)
    if not user:
        abort(404)

    if user.id == u.id:
        flash("You cannot modify your own account from this page.", "danger")
        return redirect(url_for("admin.accounts_detail", user_id=user_id))

    before = {"is_active": user.is_active, "roles": [r.key for r in user.roles], "entity_id": user.entity_id}

    user.is_active = request.form.get("is_active") == "1"
    entity_id = (request.form.get("entity_id") or "").strip()
    user.entity_id = int(entity_id) if entity_id.isdigit() else None

    role_ids = request.form.getlist("role_ids")
    user.roles.clear()
    if role_ids:
        for role in s.query(Role).filter(Role.id.in_([int(r) for r in role_ids])).all():
            user.roles.append(role)

    after = {"is_active": user.is_active, "roles": [r.key for r in user.roles], "entity_id": user.entity_id}
    record_event(
        s,
        actor=u,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": after},
    )
    s.commit()
    flash(f"Account updated for {user.email}.", "success")
    return redirect(url_for("admin.accounts_detail", user_id=user_id))


@bp.post("/accounts/<int:user_id>/reset-password")
@require_permission(PERM_ADMIN_VIEW)
def accounts_reset_password(user_id: int):
    s = db_session()
    u = _current_user()
    user = s.get(User, user_id)
    if not user:
        abort(404)

    password = request.form.get("password") or ""
    password_confirm = request.form.get("password_confirm") or ""

    errors = []
    if not password:
        errors.append("Password is required.")
    elif len(password) < 8:
        errors.append("Password must be at least 8 characters.")
    elif password != password_confirm:
        errors.append("Passwords do not match.")

    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("admin.accounts_detail", user_id=user_id))

    user.password_hash = generate_password_hash(password)
    record_event(
        s,
        actor=u,
        action="user.password_reset",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"target_email": user.email, "reset_by": u.email},
    )
    s.commit()
    flash(f"Password reset for {user.email}.", "success")
    return redirect(url_for("admin.accounts_detail", user_id=user_id))
