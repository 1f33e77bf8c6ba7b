from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.opsportal.audit import record_event
from app.opsportal.modules.activities.service import create_activity
from app.opsportal.modules.campaign_profiles.models import CampaignProfile
from app.opsportal.modules.notes.models import Note
from app.opsportal.modules.notes.service import list_current_notes, mark_as_non_current, save_note
from app.opsportal.utils import format_label, truncate

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

EDITABLE_FIELDS = (
    "name",
    "label",
    "short_description",
    "long_description",
    "criteria",
    "examples",
    "seo_growth_opportunities",
    "common_challenges",
    "campaign_considerations",
    "presale_considerations",
    "phase_one_outline",
    "ongoing_phase_outline",
)

RELATED_TABLE = "campaign_profiles"


def get_all_profiles(s: "Session", include_inactive: bool = False) -> list[tuple[CampaignProfile, int]]:
    """(profile, active campaign count) pairs ordered by name."""
    from app.opsportal.modules.campaigns.service import count_active_by_profile

    profiles = (
        s.query(CampaignProfile)
        .filter(CampaignProfile.is_active.is_(not include_inactive))
        .order_by(func.lower(CampaignProfile.name).asc())
        .all()
    )
    counts = count_active_by_profile(s)
    return [(p, counts.get(p.id, 0)) for p in profiles]


def get_profile(s: "Session", profile_id: int) -> CampaignProfile | None:
    return s.get(CampaignProfile, profile_id)


def create_profile(s: "Session", payload: dict, user: "User") -> CampaignProfile:
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("Name is required.")
    now = datetime.utcnow()
    profile = CampaignProfile(
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
        is_active=True,
    )
    for field in EDITABLE_FIELDS:
        setattr(profile, field, (payload.get(field) or "").strip() or None)
    profile.name = name
    s.add(profile)
    s.flush()
    record_event(
        s,
        actor=user,
        action="campaign_profile.create",
        entity_type="CampaignProfile",
        entity_id=str(profile.id),
        metadata={"name": profile.name},
    )
    return profile


def update_profile_field(s: "Session", profile: CampaignProfile, field: str, value: str | None, user: "User") -> CampaignProfile:
    if field not in EDITABLE_FIELDS:
        raise ValueError(f"Field '{field}' cannot be edited.")
    new_value = (value or "").strip() or None
    if field == "name" and not new_value:
        raise ValueError("Name is required.")
    old_value = getattr(profile, field)
    setattr(profile, field, new_value)
    profile.updated_at = datetime.utcnow()
    profile.updated_by_user_id = user.id
    s.flush()

    create_activity(
        s,
        user,
        None,
        "updated_campaign_profile_field",
        RELATED_TABLE,
        profile.id,
        f'{format_label(field)} updated from "{truncate(old_value or "")}" to "{truncate(new_value or "")}"',
    )
    record_event(
        s,
        actor=user,
        action="campaign_profile.edit",
        entity_type="CampaignProfile",
        entity_id=str(profile.id),
        metadata={"changes": {field: {"old": old_value, "new": new_value}}},
    )
    return profile


def deactivate_profile(s: "Session", profile: CampaignProfile, user: "User") -> CampaignProfile:
    profile.is_active = False
    profile.updated_at = datetime.utcnow()
    profile.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="campaign_profile.deactivate",
        entity_type="CampaignProfile",
        entity_id=str(profile.id),
    )
    return profile


# ---------- Notes ----------
def get_profile_notes(s: "Session", profile_id: int) -> list[Note]:
    return list_current_notes(s, "campaign_profile", profile_id, note_type="template")


def add_profile_note(s: "Session", profile: CampaignProfile, content: str, user: "User") -> Note:
    note = save_note(
        s,
        None,
        None,
        {"entity_type": "campaign_profile", "entity_id": profile.id, "note_type": "template", "content": content},
        user,
    )
    create_activity(
        s,
        user,
        None,
        "added_campaign_profile_note",
        RELATED_TABLE,
        profile.id,
        f'Note added: "{truncate(note.content)}"',
    )
    return note


def update_profile_note(
    s: "Session", profile: CampaignProfile, note_id: int, version: int | None, content: str, user: "User"
) -> Note:
    old = s.get(Note, note_id)
    old_text = truncate(old.content) if old and old.content else "Empty"
    note = save_note(s, note_id, version, {"content": content}, user)
    create_activity(
        s,
        user,
        None,
        "updated_campaign_profile_note",
        RELATED_TABLE,
        profile.id,
        f'Note updated from "{old_text}" to "{truncate(note.content)}"',
    )
    return note


def delete_profile_note(s: "Session", profile: CampaignProfile, note_id: int, user: "User") -> Note:
    note = mark_as_non_current(s, note_id, user)
    create_activity(
        s,
        user,
        None,
        "deleted_campaign_profile_note",
        RELATED_TABLE,
        profile.id,
        f'Note deleted: "{truncate(note.content or "")}"',
    )
    return note
