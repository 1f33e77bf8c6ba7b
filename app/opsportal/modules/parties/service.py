from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.opsportal.audit import record_event
from app.opsportal.modules.parties.models import Department, Employee, Entity, EntityRelationship
from app.opsportal.utils import clean, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

EMPLOYEE_STATUSES = ("active", "inactive", "terminated")


def validate_employee_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("first_name") or "").strip():
        errors.append("First name is required.")
    if not (payload.get("last_name") or "").strip():
        errors.append("Last name is required.")
    status = (payload.get("status") or "").strip()
    if status and status not in EMPLOYEE_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(EMPLOYEE_STATUSES)}")
    try:
        parse_date(payload.get("hire_date"))
    except ValueError:
        errors.append("Hire date must be YYYY-MM-DD.")
    return errors


def get_all_employees(s: "Session") -> list[Employee]:
    return (
        s.query(Employee)
        .join(Entity, Entity.id == Employee.entity_id)
        .outerjoin(Department, Department.id == Employee.department_id)
        .order_by(Employee.last_name.asc(), Employee.first_name.asc())
        .all()
    )


def department_chain(dept: Department | None) -> list[Department]:
    """Root-first ancestor chain ending at dept."""
    chain: list[Department] = []
    seen: set[int] = set()
    while dept is not None and dept.id not in seen:
        chain.append(dept)
        seen.add(dept.id)
        dept = dept.parent
    chain.reverse()
    return chain


def get_employee(s: "Session", entity_id: int) -> dict | None:
    from app.opsportal.modules.campaigns.models import Campaign

    employee = s.get(Employee, entity_id)
    if not employee:
        return None
    campaigns = (
        s.query(Campaign)
        .filter(Campaign.onboarded_by_entity_id == entity_id)
        .order_by(Campaign.onboard_date.desc(), Campaign.id.desc())
        .all()
    )
    managed = (
        s.query(Entity)
        .join(EntityRelationship, EntityRelationship.parent_entity_id == Entity.id)
        .filter(
            EntityRelationship.child_entity_id == entity_id,
            EntityRelationship.relationship_type == "account_manager",
        )
        .order_by(Entity.name.asc())
        .all()
    )
    return {
        "employee": employee,
        "departments": department_chain(employee.department),
        "onboarded_campaigns": campaigns,
        "managed_partners": managed,
    }


def get_employee_list(s: "Session") -> list[tuple[int, str]]:
    rows = (
        s.query(Entity.id, Entity.name)
        .join(Employee, Employee.entity_id == Entity.id)
        .filter(Employee.status == "active")
        .order_by(Entity.name.asc())
        .all()
    )
    return [(r[0], r[1]) for r in rows]


def count_active_employees(s: "Session") -> int:
    return s.query(Employee).filter(Employee.status == "active").count()


def get_all_departments(s: "Session") -> list[Department]:
    return s.query(Department).order_by(Department.name.asc()).all()


def save_employee(s: "Session", entity_id: int | None, payload: dict, user: "User") -> Employee:
    """Create (entity_id None) or update the entity + employee pair."""
    errors = validate_employee_payload(payload)
    if errors:
        raise ValueError(errors[0])

    now = datetime.utcnow()
    first = payload["first_name"].strip()
    last = payload["last_name"].strip()
    fields = {
        "title": clean(payload.get("title")),
        "hire_date": parse_date(payload.get("hire_date")),
        "hr_id": clean(payload.get("hr_id")),
        "status": clean(payload.get("status")) or "active",
        "department_id": parse_int(payload.get("department_id")),
        "external_auth_id": clean(payload.get("external_auth_id")),
    }

    if entity_id is None:
        entity = Entity(entity_type="employee", name=f"{first} {last}", created_at=now, updated_at=now)
        s.add(entity)
        s.flush()
        employee = Employee(entity_id=entity.id, first_name=first, last_name=last, **fields)
        s.add(employee)
        s.flush()
        record_event(
            s,
            actor=user,
            action="employee.create",
            entity_type="Employee",
            entity_id=str(entity.id),
            metadata={"name": entity.name},
        )
        return employee

    employee = s.get(Employee, entity_id)
    if not employee:
        raise ValueError("Employee not found")
    changes = {}
    for key, new in {"first_name": first, "last_name": last, **fields}.items():
        old = getattr(employee, key)
        if old != new:
            changes[key] = {"old": str(old) if old is not None else None, "new": str(new) if new is not None else None}
            setattr(employee, key, new)
    employee.entity.name = f"{first} {last}"
    employee.entity.updated_at = now
    record_event(
        s,
        actor=user,
        action="employee.edit",
        entity_type="Employee",
        entity_id=str(entity_id),
        metadata={"name": employee.entity.name, "changes": changes},
    )
    return employee
