from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base

PACKAGE_TYPES = ("ongoing", "one_time")
FREQUENCIES = ("monthly", "quarterly", "annually", "one_time")

# Text fields a package inherits from its campaign profile.
PROFILE_TEXT_FIELDS = (
    "campaign_considerations",
    "presale_considerations",
    "phase_one_outline",
    "ongoing_phase_outline",
    "seo_growth_opportunities",
)


class Package(Base):
    __tablename__ = "packages"
    __table_args__ = (
        Index("idx_packages_partner", "partner_entity_id"),
        Index("idx_packages_profile", "related_campaign_profile_id"),
        Index("idx_packages_active", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    monthly_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")
    partner_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    related_campaign_profile_id: Mapped[int | None] = mapped_column(
        ForeignKey("campaign_profiles.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    buy_without_discovery: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    outcome: Mapped[str | None] = mapped_column(Text, nullable=True)

    campaign_considerations: Mapped[str | None] = mapped_column(Text, nullable=True)
    presale_considerations: Mapped[str | None] = mapped_column(Text, nullable=True)
    phase_one_outline: Mapped[str | None] = mapped_column(Text, nullable=True)
    ongoing_phase_outline: Mapped[str | None] = mapped_column(Text, nullable=True)
    seo_growth_opportunities: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    partner_entity = relationship("Entity", lazy="selectin")
    campaign_profile = relationship("CampaignProfile", lazy="selectin")
    service_items: Mapped[list["PackageServiceItem"]] = relationship(
        "PackageServiceItem",
        back_populates="package",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="PackageServiceItem.id",
    )
    action_items: Mapped[list["PackageActionItem"]] = relationship(
        "PackageActionItem",
        back_populates="package",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="PackageActionItem.id",
    )


class PackageServiceItem(Base):
    __tablename__ = "package_service_items"
    __table_args__ = (
        Index("idx_package_service_items_package", "package_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    package_id: Mapped[int] = mapped_column(ForeignKey("packages.id", ondelete="CASCADE"), nullable=False)
    service_item_id: Mapped[int] = mapped_column(ForeignKey("service_items.id", ondelete="CASCADE"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    frequency: Mapped[str] = mapped_column(String(16), nullable=False, default="monthly")
    monthly_price_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    unique_service_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    order_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    package: Mapped[Package] = relationship("Package", back_populates="service_items")
    service_item = relationship("ServiceItem", lazy="selectin")


class PackageActionItem(Base):
    __tablename__ = "package_action_items"
    __table_args__ = (
        Index("idx_package_action_items_package", "package_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    package_id: Mapped[int] = mapped_column(ForeignKey("packages.id", ondelete="CASCADE"), nullable=False)
    service_item_id: Mapped[int] = mapped_column(ForeignKey("service_items.id", ondelete="CASCADE"), nullable=False)
    order_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    in_onboarding: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    package: Mapped[Package] = relationship("Package", back_populates="action_items")
    service_item = relationship("ServiceItem", lazy="selectin")
