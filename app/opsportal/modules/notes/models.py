from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base

NOTE_ENTITY_TYPES = (
    "partner",
    "campaign",
    "employee",
    "individual",
    "action_item",
    "action_item_template",
    "packages",
    "campaign_profile",
    "task",
)

NOTE_TYPES = (
    "context",
    "general",
    "access",
    "permissions",
    "feedback",
    "rule",
    "process",
    "template",
    "onboarding",
    "discovery",
    "reporting",
    "publishing",
)


class Note(Base):
    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_entity_current", "entity_type", "entity_id", "note_type", "is_current"),
        Index("idx_notes_replaces", "replaces_note_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)  # polymorphic, no FK
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    note_type: Mapped[str] = mapped_column(String(32), nullable=False, default="general")
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    replaces_note_id: Mapped[int | None] = mapped_column(ForeignKey("notes.id"), nullable=True)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    conversation_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    created_by = relationship("User", foreign_keys=[created_by_user_id], lazy="selectin")

    @property
    def author_name(self) -> str:
        return self.created_by.display_name if self.created_by else "Team Member"
