from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.opsportal.constants import PERM_EMPLOYEE_EDIT
from app.opsportal.db import db_session
from app.opsportal.models import User
from app.opsportal.modules.activities.service import get_activity_for_item
from app.opsportal.modules.campaign_profiles.models import CampaignProfile
from app.opsportal.modules.campaign_profiles.service import (
    EDITABLE_FIELDS,
    add_profile_note,
    create_profile,
    deactivate_profile,
    delete_profile_note,
    get_all_profiles,
    get_profile,
    get_profile_notes,
    update_profile_field,
    update_profile_note,
)
from app.opsportal.modules.notes.models import Note
from app.opsportal.modules.notes.service import NoteNotFound, NoteVersionConflict
from app.opsportal.rbac import require_permission
from app.opsportal.utils import parse_int

bp = Blueprint("campaign_profiles", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _profile_or_404(s, profile_id: int) -> CampaignProfile:
    profile = get_profile(s, profile_id)
    if not profile:
        abort(404)
    return profile


def _profile_note_or_404(s, profile: CampaignProfile, note_id: int) -> Note:
    note = s.get(Note, note_id)
    if not note or note.entity_type != "campaign_profile" or note.entity_id != profile.id:
        abort(404)
    return note


@bp.get("/campaign-profiles")
@require_permission(PERM_EMPLOYEE_EDIT)
def profiles_list():
    s = db_session()
    show_inactive = (request.args.get("show") or "").strip() == "inactive"
    return render_template(
        "ops/campaign_profiles/list.html",
        profiles=get_all_profiles(s, include_inactive=show_inactive),
        show_inactive=show_inactive,
    )


@bp.get("/campaign-profiles/new")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_new_get():
    return render_template("ops/campaign_profiles/new.html", fields=EDITABLE_FIELDS)


@bp.post("/campaign-profiles/new")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_new_post():
    s = db_session()
    u = _current_user()
    try:
        profile = create_profile(s, {k: request.form.get(k) for k in EDITABLE_FIELDS}, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("campaign_profiles.profile_new_get"))
    s.commit()
    flash("Campaign profile created.", "success")
    return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile.id))


@bp.get("/campaign-profiles/<int:profile_id>")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_detail(profile_id: int):
    s = db_session()
    profile = _profile_or_404(s, profile_id)
    return render_template(
        "ops/campaign_profiles/detail.html",
        profile=profile,
        fields=EDITABLE_FIELDS,
        notes=get_profile_notes(s, profile_id),
        activities=get_activity_for_item(s, "campaign_profiles", profile_id),
    )


@bp.post("/campaign-profiles/<int:profile_id>/field")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_field_post(profile_id: int):
    s = db_session()
    u = _current_user()
    profile = _profile_or_404(s, profile_id)
    try:
        update_profile_field(s, profile, request.form.get("field") or "", request.form.get("value"), u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))
    s.commit()
    flash("Campaign profile updated.", "success")
    return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))


@bp.post("/campaign-profiles/<int:profile_id>/deactivate")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_deactivate(profile_id: int):
    s = db_session()
    u = _current_user()
    profile = _profile_or_404(s, profile_id)
    deactivate_profile(s, profile, u)
    s.commit()
    flash(f"{profile.name} deactivated.", "success")
    return redirect(url_for("campaign_profiles.profiles_list"))


# ---------- Notes ----------
@bp.post("/campaign-profiles/<int:profile_id>/notes")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_note_add(profile_id: int):
    s = db_session()
    u = _current_user()
    profile = _profile_or_404(s, profile_id)
    try:
        add_profile_note(s, profile, request.form.get("content") or "", u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))
    s.commit()
    flash("Note added.", "success")
    return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))


@bp.post("/campaign-profiles/<int:profile_id>/notes/<int:note_id>/edit")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_note_edit(profile_id: int, note_id: int):
    s = db_session()
    u = _current_user()
    profile = _profile_or_404(s, profile_id)
    _profile_note_or_404(s, profile, note_id)
    try:
        update_profile_note(
            s,
            profile,
            note_id,
            parse_int(request.form.get("version")),
            request.form.get("content") or "",
            u,
        )
    except NoteVersionConflict as e:
        s.rollback()
        flash(f"This note was changed by someone else while you were editing. {e}. Reload and try again.", "danger")
        return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))
    except (NoteNotFound, ValueError) as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))
    s.commit()
    flash("Note updated.", "success")
    return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))


@bp.post("/campaign-profiles/<int:profile_id>/notes/<int:note_id>/delete")
@require_permission(PERM_EMPLOYEE_EDIT)
def profile_note_delete(profile_id: int, note_id: int):
    s = db_session()
    u = _current_user()
    profile = _profile_or_404(s, profile_id)
    _profile_note_or_404(s, profile, note_id)
    try:
        delete_profile_note(s, profile, note_id, u)
    except NoteNotFound as e:
        flash(str(e), "danger")
        return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))
    s.commit()
    flash("Note deleted.", "success")
    return redirect(url_for("campaign_profiles.profile_detail", profile_id=profile_id))
