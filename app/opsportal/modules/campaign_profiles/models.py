from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.opsportal.models import Base


class CampaignProfile(Base):
    __tablename__ = "campaign_profiles"
    __table_args__ = (
        Index("idx_campaign_profiles_name", "name"),
        Index("idx_campaign_profiles_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    label: Mapped[str | None] = mapped_column(Text, nullable=True)
    short_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    long_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    criteria: Mapped[str | None] = mapped_column(Text, nullable=True)
    examples: Mapped[str | None] = mapped_column(Text, nullable=True)
    seo_growth_opportunities: Mapped[str | None] = mapped_column(Text, nullable=True)
    common_challenges: Mapped[str | None] = mapped_column(Text, nullable=True)
    campaign_considerations: Mapped[str | None] = mapped_column(Text, nullable=True)
    presale_considerations: Mapped[str | None] = mapped_column(Text, nullable=True)
    phase_one_outline: Mapped[str | None] = mapped_column(Text, nullable=True)
    ongoing_phase_outline: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
