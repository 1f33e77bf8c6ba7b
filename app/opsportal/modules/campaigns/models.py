from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base


class Campaign(Base):
    __tablename__ = "campaigns"
    __table_args__ = (
        Index("idx_campaigns_partner", "partner_entity_id"),
        Index("idx_campaigns_status", "status"),
        Index("idx_campaigns_profile", "campaign_profile_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    partner_entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id"), nullable=False)
    site_owner_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    site_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="prospect")
    service_type: Mapped[str | None] = mapped_column(String(32), nullable=True)  # managed, link_building
    profile_type: Mapped[str | None] = mapped_column(String(32), nullable=True)  # service_area, ecommerce, ...
    budget_amount_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    budget_period: Mapped[str | None] = mapped_column(String(16), nullable=True)  # month, year, fixed, ...
    onboard_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    onboarded_by_entity_id: Mapped[int | None] = mapped_column(
        ForeignKey("entities.id", ondelete="SET NULL"), nullable=True
    )
    campaign_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    offboard_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    campaign_profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("campaign_profiles.id", ondelete="SET NULL"), nullable=True
    )
    is_onboarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    partner_entity = relationship("Entity", foreign_keys=[partner_entity_id], lazy="selectin")
    onboarded_by = relationship("Entity", foreign_keys=[onboarded_by_entity_id], lazy="selectin")
    campaign_profile = relationship("CampaignProfile", lazy="selectin")
