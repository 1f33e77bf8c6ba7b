from __future__ import annotations

from flask import Blueprint, current_app, render_template, request

from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.models import ACTIVITY_TYPES
from app.opsportal.modules.activities.service import (
    get_activity_by_type,
    get_activity_by_user,
    get_recent_activity,
)
from app.opsportal.modules.packages.models import Package
from app.opsportal.modules.parties.service import count_active_employees
from app.opsportal.modules.partners.service import count_active_partners
from app.opsportal.utils import parse_int

bp = Blueprint("ops", __name__)


@bp.get("/")
def dashboard():
    s = db_session()
    counts = {
        "partners": count_active_partners(s),
        "employees": count_active_employees(s),
        "packages": s.query(Package).filter(Package.is_active.is_(True)).count(),
    }
    limit = int(current_app.config.get("RECENT_ACTIVITY_LIMIT") or 20)
    return render_template("ops/dashboard.html", counts=counts, activities=get_recent_activity(s, limit=limit))


@bp.get("/activity")
def activity_list():
    s = db_session()
    activity_type = (request.args.get("type") or "").strip()
    user_id = parse_int(request.args.get("user_id"))
    limit = int(current_app.config.get("ACTIVITY_PAGE_SIZE") or 50)

    if activity_type:
        activities = get_activity_by_type(s, [activity_type], limit=limit, user_id=user_id)
    elif user_id:
        activities = get_activity_by_user(s, user_id, limit=limit)
    else:
        activities = get_recent_activity(s, limit=limit)

    users = s.query(User).order_by(User.email.asc()).all()
    return render_template(
        "ops/activity.html",
        activities=activities,
        activity_types=ACTIVITY_TYPES,
        users=users,
        activity_type=activity_type,
        user_id=user_id,
    )
