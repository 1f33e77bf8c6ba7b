from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base

PERMISSION_STATES = ("allowed", "allowed_with_approval", "not_allowed")
SCOPE_STATUSES = ("in_scope", "not_in_scope")


class PermissionRule(Base):
    """
    What the team may do on a partner's behalf (e.g. "publish blog posts": allowed_with_approval).

    Rows with partner_id NULL are the base set; partner rows override base rows sharing a permission_key.
    """

    __tablename__ = "permission_rules"
    __table_args__ = (
        Index("idx_permission_rules_key", "permission_key"),
        Index("idx_permission_rules_partner", "partner_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    permission_key: Mapped[str] = mapped_column(String(128), nullable=False)
    permission_state: Mapped[str] = mapped_column(String(32), nullable=False, default="allowed")
    scope_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    service_item_id: Mapped[int | None] = mapped_column(ForeignKey("service_items.id", ondelete="SET NULL"), nullable=True)
    service_category_id: Mapped[int | None] = mapped_column(
        ForeignKey("service_categories.id", ondelete="SET NULL"), nullable=True
    )
    partner_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    campaign_id: Mapped[int | None] = mapped_column(ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True)
    package_id: Mapped[int | None] = mapped_column(ForeignKey("packages.id", ondelete="SET NULL"), nullable=True)
    campaign_profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("campaign_profiles.id", ondelete="SET NULL"), nullable=True
    )
    changed_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    partner = relationship("Entity", foreign_keys=[partner_id], lazy="selectin")
    service_item = relationship("ServiceItem", lazy="selectin")
    service_category = relationship("ServiceCategory", lazy="selectin")
    campaign_profile = relationship("CampaignProfile", lazy="selectin")
