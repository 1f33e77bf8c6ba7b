from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.opsportal.audit import record_event
from app.opsportal.modules.activities.service import create_activity
from app.opsportal.modules.task_templates.models import GROUPINGS, TEMPLATE_TYPES, TaskTemplate
from app.opsportal.utils import clean, parse_bool, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

RELATED_TABLE = "task_templates"

_TEXT_FIELDS = ("title", "description", "key", "primary_participant", "grouping", "sop_url", "type")
_INT_FIELDS = ("est_time_minutes", "partner_entity_id", "campaign_profile_id", "service_category_id")
_BOOL_FIELDS = ("mandatory", "decision_point")


def derive_template_category(partner_id: int | None, campaign_profile_id: int | None) -> str:
    if partner_id and campaign_profile_id:
        return "partner_campaign_profile_specific"
    if partner_id:
        return "partner_specific"
    if campaign_profile_id:
        return "campaign_profile_specific"
    return "default"


def validate_template_payload(payload: dict, partial: bool = False) -> list[str]:
    errors = []
    if not partial or "title" in payload:
        if not (payload.get("title") or "").strip():
            errors.append("Title is required.")
    if not partial or "type" in payload:
        t = (payload.get("type") or "").strip()
        if t not in TEMPLATE_TYPES:
            errors.append(f"Invalid type. Must be one of: {', '.join(TEMPLATE_TYPES)}")
    for field in ("primary_participant", "grouping"):
        value = (payload.get(field) or "").strip()
        if value and value not in GROUPINGS:
            errors.append(f"Invalid {field.replace('_', ' ')}. Must be one of: {', '.join(GROUPINGS)}")
    return errors


def _coerce(payload: dict, only_present: bool) -> dict:
    values = {}
    for f in _TEXT_FIELDS:
        if not only_present or f in payload:
            values[f] = clean(payload.get(f))
    for f in _INT_FIELDS:
        if not only_present or f in payload:
            values[f] = parse_int(payload.get(f))
    for f in _BOOL_FIELDS:
        if not only_present or f in payload:
            values[f] = parse_bool(payload.get(f))
    return values


def get_all_templates(s: "Session", include_inactive: bool = False, type: str | None = None) -> list[TaskTemplate]:
    q = s.query(TaskTemplate).filter(TaskTemplate.active.is_(not include_inactive))
    if type:
        q = q.filter(TaskTemplate.type == type)
    return q.order_by(TaskTemplate.created_at.asc(), TaskTemplate.id.asc()).all()


def get_template(s: "Session", template_id: int) -> TaskTemplate | None:
    return s.get(TaskTemplate, template_id)


def check_key_uniqueness(s: "Session", key: str, partner_id: int | None, exclude_id: int | None = None) -> bool:
    """True when no other active template uses key for the same partner (NULL partner matches NULL)."""
    q = s.query(TaskTemplate.id).filter(TaskTemplate.key == key, TaskTemplate.active.is_(True))
    if partner_id is None:
        q = q.filter(TaskTemplate.partner_entity_id.is_(None))
    else:
        q = q.filter(TaskTemplate.partner_entity_id == partner_id)
    if exclude_id is not None:
        q = q.filter(TaskTemplate.id != exclude_id)
    return q.first() is None


def create_template(s: "Session", payload: dict, user: "User") -> TaskTemplate:
    errors = validate_template_payload(payload)
    if errors:
        raise ValueError(errors[0])
    values = _coerce(payload, only_present=False)
    now = datetime.utcnow()
    tpl = TaskTemplate(
        template_category=derive_template_category(values["partner_entity_id"], values["campaign_profile_id"]),
        active=True,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
        **values,
    )
    s.add(tpl)
    s.flush()
    create_activity(s, user, tpl.partner_entity_id, "created_template", RELATED_TABLE, tpl.id, f"Created template: {tpl.title}")
    record_event(
        s,
        actor=user,
        action="task_template.create",
        entity_type="TaskTemplate",
        entity_id=str(tpl.id),
        metadata={"type": tpl.type, "key": tpl.key, "template_category": tpl.template_category},
    )
    return tpl


def update_template(s: "Session", tpl: TaskTemplate, payload: dict, user: "User") -> TaskTemplate:
    """Partial update; template_category is recomputed only when partner or profile is in the payload."""
    errors = validate_template_payload(payload, partial=True)
    if errors:
        raise ValueError(errors[0])
    values = _coerce(payload, only_present=True)
    changes = {}
    for key, new in values.items():
        old = getattr(tpl, key)
        if old != new:
            changes[key] = {"old": old, "new": new}
            setattr(tpl, key, new)
    if "partner_entity_id" in values or "campaign_profile_id" in values:
        category = derive_template_category(tpl.partner_entity_id, tpl.campaign_profile_id)
        if category != tpl.template_category:
            changes["template_category"] = {"old": tpl.template_category, "new": category}
            tpl.template_category = category
    tpl.updated_at = datetime.utcnow()
    tpl.updated_by_user_id = user.id
    s.flush()
    create_activity(s, user, tpl.partner_entity_id, "updated_template", RELATED_TABLE, tpl.id, f"Updated template: {tpl.title}")
    record_event(
        s,
        actor=user,
        action="task_template.edit",
        entity_type="TaskTemplate",
        entity_id=str(tpl.id),
        metadata={"changes": changes},
    )
    return tpl


def delete_template(s: "Session", tpl: TaskTemplate, user: "User") -> TaskTemplate:
    tpl.active = False
    tpl.updated_at = datetime.utcnow()
    tpl.updated_by_user_id = user.id
    s.flush()
    create_activity(s, user, tpl.partner_entity_id, "deleted_template", RELATED_TABLE, tpl.id, f"Deleted template: {tpl.title}")
    record_event(s, actor=user, action="task_template.delete", entity_type="TaskTemplate", entity_id=str(tpl.id))
    return tpl


def activate_template(s: "Session", tpl: TaskTemplate, user: "User") -> TaskTemplate:
    tpl.active = True
    tpl.updated_at = datetime.utcnow()
    tpl.updated_by_user_id = user.id
    s.flush()
    create_activity(
        s, user, tpl.partner_entity_id, "activated_template", RELATED_TABLE, tpl.id, f"Activated template: {tpl.title}"
    )
    record_event(s, actor=user, action="task_template.activate", entity_type="TaskTemplate", entity_id=str(tpl.id))
    return tpl
