from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base

PROPOSAL_MODES = ("recurring", "one_time", "both", "neither")
SERVICE_ITEM_TYPES = ("ongoing", "one_time")


class ServiceCategory(Base):
    __tablename__ = "service_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


class ServiceItem(Base):
    """
    A unit of billable or internal work.

    proposal_mode decides where an item can appear:
    - recurring / one_time / both: scope items offered on ongoing or one-time packages
    - neither: catalog (action) items attached to packages for onboarding
    A NULL partner_entity_id marks a core item; partner-specific items shadow core items with the same label.
    """

    __tablename__ = "service_items"
    __table_args__ = (
        Index("idx_service_items_name", "name"),
        Index("idx_service_items_label", "service_label"),
        Index("idx_service_items_partner", "partner_entity_id"),
        Index("idx_service_items_active_mode", "is_active", "proposal_mode"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    service_category: Mapped[str | None] = mapped_column(String(128), nullable=True)  # legacy category key
    service_category_id: Mapped[int | None] = mapped_column(
        ForeignKey("service_categories.id", ondelete="SET NULL"), nullable=True
    )
    service_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    sop_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    min_pricing_usd_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    est_cogs_usd_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    est_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recommended_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recommended_price_currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    partner_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    proposal_mode: Mapped[str] = mapped_column(String(16), nullable=False, default="both")
    in_stream: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    category = relationship("ServiceCategory", lazy="selectin")
    partner_entity = relationship("Entity", lazy="selectin")

    @property
    def is_partner_specific(self) -> bool:
        return self.partner_entity_id is not None
