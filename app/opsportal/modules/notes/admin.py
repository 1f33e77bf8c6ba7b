"""
Shared note endpoints. Detail pages post here with a `next` path to come back to.

Campaign profile and package notes are not served here: their module routes gate them
and write the activity entry.
"""
from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import CATALOG_EDIT_PERMS, PERM_CAMPAIGN_EDIT, PERM_EMPLOYEE_EDIT
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.notes.service import (
    NoteNotFound,
    NoteVersionConflict,
    get_note,
    get_note_history,
    mark_as_non_current,
    save_note,
)
from app.opsportal.rbac import user_has_any_permission
from app.opsportal.utils import parse_int

bp = Blueprint("notes", __name__)

MODULE_OWNED_ENTITY_TYPES = ("campaign_profile", "packages")

# Same permissions as editing the record the note hangs off.
NOTE_EDIT_PERMS: dict[str, tuple[str, ...]] = {
    "partner": CATALOG_EDIT_PERMS,
    "campaign": (PERM_CAMPAIGN_EDIT,),
    "employee": (PERM_EMPLOYEE_EDIT,),
    "individual": (PERM_EMPLOYEE_EDIT,),
}


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _require_note_access(entity_type: str | None) -> None:
    if entity_type in MODULE_OWNED_ENTITY_TYPES:
        abort(404)
    perms = NOTE_EDIT_PERMS.get(entity_type or "")
    if perms and not user_has_any_permission(_current_user(), *perms):
        g.missing_permission = " | ".join(perms)
        abort(403)


def _back():
    nxt = (request.form.get("next") or "").strip()
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for("ops.dashboard"))


@bp.post("/notes/save")
def note_save():
    s = db_session()
    u = _current_user()
    note_id = parse_int(request.form.get("note_id"))
    version = parse_int(request.form.get("version"))
    existing = get_note(s, note_id) if note_id is not None else None
    # An existing note keeps its own entity type whatever the form says.
    _require_note_access(existing.entity_type if existing else request.form.get("entity_type"))
    data = {
        "entity_type": request.form.get("entity_type"),
        "entity_id": request.form.get("entity_id"),
        "note_type": request.form.get("note_type") or "general",
        "title": request.form.get("title"),
        "content": request.form.get("content"),
        "is_pinned": request.form.get("is_pinned") == "1",
    }
    try:
        save_note(s, note_id, version, data, u)
    except NoteVersionConflict as e:
        s.rollback()
        flash(f"This note was changed by someone else while you were editing. {e}. Reload and try again.", "danger")
        return _back()
    except (NoteNotFound, ValueError) as e:
        s.rollback()
        flash(str(e), "danger")
        return _back()
    s.commit()
    flash("Note saved.", "success")
    return _back()


@bp.post("/notes/<int:note_id>/delete")
def note_delete(note_id: int):
    s = db_session()
    u = _current_user()
    note = get_note(s, note_id)
    if not note or not note.is_current:
        abort(404)
    _require_note_access(note.entity_type)
    mark_as_non_current(s, note_id, u)
    s.commit()
    flash("Note removed.", "success")
    return _back()


@bp.get("/notes/<int:note_id>/history")
def note_history(note_id: int):
    s = db_session()
    note = get_note(s, note_id)
    if not note:
        abort(404)
    return render_template("ops/notes/history.html", note=note, history=get_note_history(s, note_id))
