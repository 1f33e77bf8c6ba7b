from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import update

from app.opsportal.audit import record_event
from app.opsportal.modules.notes.models import NOTE_ENTITY_TYPES, NOTE_TYPES, Note

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.opsportal.models import User

logger = logging.getLogger(__name__)


class NoteVersionConflict(RuntimeError):
    """Another writer replaced the note after the caller read it."""

    def __init__(self, expected: int, current: int | None):
        self.expected = expected
        self.current = current
        super().__init__(f"Version mismatch. Expected {expected}, but current version is {current}")


class NoteNotFound(LookupError):
    pass


def validate_note_payload(payload: dict) -> list[str]:
    errors = []
    entity_type = (payload.get("entity_type") or "").strip()
    note_type = (payload.get("note_type") or "general").strip()
    if entity_type not in NOTE_ENTITY_TYPES:
        errors.append(f"Invalid entity type: {entity_type or '(blank)'}")
    if note_type not in NOTE_TYPES:
        errors.append(f"Invalid note type: {note_type}")
    if payload.get("entity_id") in (None, ""):
        errors.append("Entity id is required.")
    if not (payload.get("content") or "").strip():
        errors.append("Note content is required.")
    return errors


def get_note(s: "Session", note_id: int) -> Note | None:
    return s.get(Note, note_id)


def get_current_note(s: "Session", entity_id: int, entity_type: str, note_type: str) -> Note | None:
    return (
        s.query(Note)
        .filter(
            Note.entity_id == entity_id,
            Note.entity_type == entity_type,
            Note.note_type == note_type,
            Note.is_current.is_(True),
        )
        .order_by(Note.id.desc())
        .first()
    )


def list_current_notes(s: "Session", entity_type: str, entity_id: int, note_type: str | None = None) -> list[Note]:
    q = s.query(Note).filter(
        Note.entity_type == entity_type,
        Note.entity_id == entity_id,
        Note.is_current.is_(True),
    )
    if note_type:
        q = q.filter(Note.note_type == note_type)
    return q.order_by(Note.is_pinned.desc(), Note.created_at.desc(), Note.id.desc()).all()


def get_note_history(s: "Session", note_id: int) -> list[Note]:
    """Newest first: the given version followed by every version it replaced."""
    history: list[Note] = []
    seen: set[int] = set()
    note = s.get(Note, note_id)
    while note is not None and note.id not in seen:
        history.append(note)
        seen.add(note.id)
        note = s.get(Note, note.replaces_note_id) if note.replaces_note_id else None
    return history


def mark_as_non_current(s: "Session", note_id: int, user: "User | None" = None) -> Note:
    note = s.get(Note, note_id)
    if not note or not note.is_current:
        raise NoteNotFound("Note not found or is not current")
    note.is_current = False
    note.updated_at = datetime.utcnow()
    s.flush()
    record_event(
        s,
        actor=user,
        action="note.delete",
        entity_type="Note",
        entity_id=str(note.id),
        metadata={"entity_type": note.entity_type, "entity_id": note.entity_id, "note_type": note.note_type},
    )
    return note


def _create_note(s: "Session", data: dict, user: "User | None") -> Note:
    errors = validate_note_payload(data)
    if errors:
        raise ValueError(errors[0])
    now = datetime.utcnow()
    note = Note(
        entity_id=int(data["entity_id"]),
        entity_type=data["entity_type"].strip(),
        note_type=(data.get("note_type") or "general").strip(),
        title=(data.get("title") or "").strip() or None,
        content=data["content"].strip(),
        is_internal=bool(data.get("is_internal", True)),
        is_pinned=bool(data.get("is_pinned", False)),
        conversation_id=data.get("conversation_id"),
        created_by_user_id=user.id if user else None,
        is_current=True,
        version_number=1,
        replaces_note_id=None,
        created_at=now,
        updated_at=now,
    )
    s.add(note)
    s.flush()
    record_event(
        s,
        actor=user,
        action="note.create",
        entity_type="Note",
        entity_id=str(note.id),
        metadata={"entity_type": note.entity_type, "entity_id": note.entity_id, "note_type": note.note_type},
    )
    return note


def save_note(s: "Session", note_id: int | None, version: int | None, data: dict, user: "User | None") -> Note:
    """
    Create a note (note_id None) or replace the current version of an existing one.

    Replacement flips the old row with a compare-and-swap on (id, is_current, version_number)
    and inserts version+1 in the same transaction; losing the race raises NoteVersionConflict.
    """
    if note_id is None:
        return _create_note(s, data, user)

    if version is None:
        raise ValueError("Version must be provided when updating an existing note")

    existing = s.get(Note, note_id)
    if not existing or not existing.is_current:
        raise NoteNotFound("Note not found or is not current")
    if existing.version_number != int(version):
        logger.warning(
            "Note version conflict note_id=%s expected=%s current=%s", note_id, version, existing.version_number
        )
        raise NoteVersionConflict(int(version), existing.version_number)

    content = data.get("content", existing.content)
    if not (content or "").strip():
        raise ValueError("Note content is required.")

    title = existing.title
    if data.get("title") is not None:
        title = data["title"].strip() or None

    now = datetime.utcnow()
    res = s.execute(
        update(Note)
        .where(Note.id == note_id, Note.is_current.is_(True), Note.version_number == int(version))
        .values(is_current=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount == 0:
        # Another writer replaced the row; report the version that now holds the key.
        key = (existing.entity_id, existing.entity_type, existing.note_type)
        s.expire(existing)
        current = get_current_note(s, *key)
        current_version = current.version_number if current else None
        logger.warning(
            "Note version conflict (lost race) note_id=%s expected=%s current=%s", note_id, version, current_version
        )
        raise NoteVersionConflict(int(version), current_version)
    existing.is_current = False
    existing.updated_at = now

    new_note = Note(
        entity_id=existing.entity_id,
        entity_type=existing.entity_type,
        note_type=existing.note_type,
        title=title,
        content=content.strip(),
        is_internal=bool(data.get("is_internal", existing.is_internal)),
        is_pinned=bool(data.get("is_pinned", existing.is_pinned)),
        conversation_id=data.get("conversation_id", existing.conversation_id),
        created_by_user_id=user.id if user else existing.created_by_user_id,
        is_current=True,
        version_number=existing.version_number + 1,
        replaces_note_id=existing.id,
        created_at=now,
        updated_at=now,
    )
    s.add(new_note)
    s.flush()
    record_event(
        s,
        actor=user,
        action="note.update",
        entity_type="Note",
        entity_id=str(new_note.id),
        metadata={"replaces_note_id": existing.id, "version_number": new_note.version_number},
    )
    return new_note
