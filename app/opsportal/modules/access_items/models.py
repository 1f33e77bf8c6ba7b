from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base

TFA_TYPES = ("sms", "email", "authenticator", "other")
TFA_SOURCES = ("internal", "partner")


class AccessItem(Base):
    """A set of login credentials the team holds for a partner or for internal tooling."""

    __tablename__ = "access_items"
    __table_args__ = (
        Index("idx_access_items_partner", "partner_entity_id"),
        Index("idx_access_items_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    access_item_owner: Mapped[str] = mapped_column(String(16), nullable=False, default="internal")
    in_lastpass: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tfa_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    tfa_type_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    tfa_contact_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    tfa_source: Mapped[str | None] = mapped_column(String(16), nullable=True)
    partner_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    partner_entity = relationship("Entity", foreign_keys=[partner_entity_id], lazy="selectin")
    tfa_contact = relationship("Entity", foreign_keys=[tfa_contact_id], lazy="selectin")
