from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from app.opsportal.modules.activities.models import ACTIVITY_TYPES, RELATED_TABLES, Activity

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

logger = logging.getLogger(__name__)


def create_activity(
    s: "Session",
    user: "User | None",
    partner_id: int | None,
    activity_type: str,
    related_table: str,
    related_id: int,
    details: str | None = None,
) -> Activity:
    """Append a business-facing activity row. user=None records a system action."""
    if related_table not in RELATED_TABLES:
        raise ValueError(f"Invalid related table: {related_table}")
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Invalid activity type: {activity_type}")
    act = Activity(
        user_id=user.id if user else None,
        partner_id=partner_id,
        activity_type=activity_type,
        related_table=related_table,
        related_id=int(related_id),
        details=details,
        activity_date=datetime.utcnow(),
    )
    s.add(act)
    s.flush()
    logger.debug("activity %s %s/%s", activity_type, related_table, related_id)
    return act


def get_activity_for_item(s: "Session", related_table: str, related_id: int) -> list[Activity]:
    return (
        s.query(Activity)
        .filter(Activity.related_table == related_table, Activity.related_id == related_id)
        .order_by(Activity.activity_date.desc(), Activity.id.desc())
        .all()
    )


def get_recent_activity(s: "Session", limit: int = 20) -> list[Activity]:
    return s.query(Activity).order_by(Activity.activity_date.desc(), Activity.id.desc()).limit(limit).all()


def get_activity_by_user(s: "Session", user_id: int, limit: int = 50) -> list[Activity]:
    return (
        s.query(Activity)
        .filter(Activity.user_id == user_id)
        .order_by(Activity.activity_date.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )


def get_activity_for_partner(s: "Session", partner_id: int, limit: int = 50) -> list[Activity]:
    return (
        s.query(Activity)
        .filter(Activity.partner_id == partner_id)
        .order_by(Activity.activity_date.desc(), Activity.id.desc())
        .limit(limit)
        .all()
    )


def get_activity_by_type(
    s: "Session", types: Iterable[str] | str, limit: int = 50, user_id: int | None = None
) -> list[Activity]:
    """Newest activities of the given types, optionally narrowed to one user."""
    if isinstance(types, str):
        types = [types]
    types = list(types)
    if not types:
        return []
    q = s.query(Activity).filter(Activity.activity_type.in_(types))
    if user_id:
        q = q.filter(Activity.user_id == user_id)
    return q.order_by(Activity.activity_date.desc(), Activity.id.desc()).limit(limit).all()


def activity_to_dict(act: Activity) -> dict:
    return {
        "id": act.id,
        "activity_type": act.activity_type,
        "activity_date": act.activity_date.isoformat() if act.activity_date else None,
        "related_table": act.related_table,
        "related_id": act.related_id,
        "partner_id": act.partner_id,
        "details": act.details,
        "actor": act.actor,
    }
