from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base

TEMPLATE_TYPES = ("partner_onboarding", "campaign_onboarding", "campaign_task", "partner_task", "internal")
TEMPLATE_CATEGORIES = (
    "default",
    "partner_specific",
    "campaign_profile_specific",
    "partner_campaign_profile_specific",
)
GROUPINGS = (
    "co_admin",
    "co_plans",
    "co_reporting",
    "co_initial_work",
    "po_good_fit",
    "po_expectations",
    "po_admin",
    "po_handoff",
)


class TaskTemplate(Base):
    __tablename__ = "task_templates"
    __table_args__ = (
        Index("idx_task_templates_type_active", "type", "active"),
        Index("idx_task_templates_key_partner", "key", "partner_entity_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    primary_participant: Mapped[str | None] = mapped_column(String(32), nullable=True)
    grouping: Mapped[str | None] = mapped_column(String(32), nullable=True)
    est_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sop_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    template_category: Mapped[str] = mapped_column(String(64), nullable=False, default="default")
    partner_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    campaign_profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("campaign_profiles.id", ondelete="SET NULL"), nullable=True
    )
    service_category_id: Mapped[int | None] = mapped_column(
        ForeignKey("service_categories.id", ondelete="SET NULL"), nullable=True
    )
    mandatory: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    decision_point: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    partner_entity = relationship("Entity", lazy="selectin")
    campaign_profile = relationship("CampaignProfile", lazy="selectin")
    service_category = relationship("ServiceCategory", lazy="selectin")
