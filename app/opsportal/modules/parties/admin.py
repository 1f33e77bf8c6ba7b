from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import PERM_EMPLOYEE_EDIT
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.notes.service import list_current_notes
from app.opsportal.modules.parties.models import Employee
from app.opsportal.modules.parties.service import (
    EMPLOYEE_STATUSES,
    get_all_departments,
    get_all_employees,
    get_employee,
    save_employee,
    validate_employee_payload,
)
from app.opsportal.rbac import require_permission

bp = Blueprint("employees", __name__)

_FORM_FIELDS = ("first_name", "last_name", "title", "hire_date", "hr_id", "status", "department_id", "external_auth_id")


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _payload_from_form() -> dict:
    return {k: request.form.get(k) for k in _FORM_FIELDS}


@bp.get("/employees")
def employees_list():
    s = db_session()
    status_filter = (request.args.get("status") or "").strip()
    employees = get_all_employees(s)
    if status_filter:
        employees = [e for e in employees if e.status == status_filter]
    return render_template(
        "ops/employees/list.html",
        employees=employees,
        status_filter=status_filter,
        statuses=EMPLOYEE_STATUSES,
    )


@bp.get("/employees/new")
@require_permission(PERM_EMPLOYEE_EDIT)
def employees_new_get():
    s = db_session()
    return render_template(
        "ops/employees/form.html",
        employee=None,
        departments=get_all_departments(s),
        statuses=EMPLOYEE_STATUSES,
    )


@bp.post("/employees/new")
@require_permission(PERM_EMPLOYEE_EDIT)
def employees_new_post():
    s = db_session()
    u = _current_user()
    payload = _payload_from_form()
    errors = validate_employee_payload(payload)
    if errors:
        for e in errors:
            flash(e, "danger")
        return redirect(url_for("employees.employees_new_get"))

    employee = save_employee(s, None, payload, u)
    s.commit()
    flash("Employee created.", "success")
    return redirect(url_for("employees.employee_detail", entity_id=employee.entity_id))


@bp.get("/employees/<int:entity_id>")
def employee_detail(entity_id: int):
    s = db_session()
    data = get_employee(s, entity_id)
    if not data:
        abort(404)
    return render_template(
        "ops/employees/detail.html",
        notes=list_current_notes(s, "employee", entity_id),
        activities=get_activity_for_item(s, "employees", entity_id),
        **data,
    )


@bp.get("/employees/<int:entity_id>/edit")
@require_permission(PERM_EMPLOYEE_EDIT)
def employee_edit_get(entity_id: int):
    s = db_session()
    employee = s.get(Employee, entity_id)
    if not employee:
        abort(404)
    return render_template(
        "ops/employees/form.html",
        employee=employee,
        departments=get_all_departments(s),
        statuses=EMPLOYEE_STATUSES,
    )


@bp.post("/employees/<int:entity_id>/edit")
@require_permission(PERM_EMPLOYEE_EDIT)
def employee_edit_post(entity_id: int):
    s = db_session()
    u = _current_user()
    if not s.get(Employee, entity_id):
        abort(404)

    try:
        save_employee(s, entity_id, _payload_from_form(), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("employees.employee_edit_get", entity_id=entity_id))
    s.commit()
    flash("Employee updated.", "success")
    return redirect(url_for("employees.employee_detail", entity_id=entity_id))
