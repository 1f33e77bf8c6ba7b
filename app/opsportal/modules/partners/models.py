from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base
from app.opsportal.modules.parties.models import Entity


class Partner(Base):
    """
    Business-relationship attributes of a client company. Keyed by the company's entity id.
    """

    __tablename__ = "partners"
    __table_args__ = (
        Index("idx_partners_status", "status"),
        Index("idx_partners_external_id", "external_id"),
    )

    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True)

    demo_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    demo_by_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    msa_signed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    msa_signed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="prospect")
    partner_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    acquisition_source: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_monthly_revenue: Mapped[int | None] = mapped_column(Integer, nullable=True)
    available_currencies: Mapped[str | None] = mapped_column(Text, nullable=True)  # CSV, e.g. "USD,CAD"
    default_currency: Mapped[str | None] = mapped_column(String(8), nullable=True)
    analytics_folder_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    google_drive_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)  # billing system id, "CUS..."
    is_onboarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    entity: Mapped[Entity] = relationship("Entity", foreign_keys=[entity_id], lazy="selectin")
    demo_by: Mapped[Entity | None] = relationship("Entity", foreign_keys=[demo_by_entity_id], lazy="selectin")

    @property
    def name(self) -> str:
        return self.entity.name if self.entity else ""

    @property
    def currencies(self) -> list[str]:
        return [c.strip() for c in (self.available_currencies or "").split(",") if c.strip()]


class Rule(Base):
    """Standing partner instruction (e.g. "never publish on Fridays"), optionally scoped to a service category."""

    __tablename__ = "rules"
    __table_args__ = (
        Index("idx_rules_partner_status", "partner_entity_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    campaign_id: Mapped[int | None] = mapped_column(ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True)
    partner_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    rule_reason: Mapped[str] = mapped_column(Text, nullable=False)
    rule_value: Mapped[str] = mapped_column(Text, nullable=False)
    service_category_id: Mapped[int | None] = mapped_column(
        ForeignKey("service_categories.id", ondelete="SET NULL"), nullable=True
    )
    service_item_id: Mapped[int | None] = mapped_column(ForeignKey("service_items.id", ondelete="SET NULL"), nullable=True)
    reference_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")  # active, archived

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    service_category = relationship("ServiceCategory", lazy="selectin")
