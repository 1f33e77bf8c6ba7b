from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base

RELATED_TABLES = (
    "partners",
    "individuals",
    "entities",
    "campaigns",
    "employees",
    "departments",
    "task_templates",
    "campaign_profiles",
    "service_items",
    "service_categories",
    "sops",
    "packages",
    "billing_agreements",
    "permissions",
    "access_items",
    "notes",
)

ACTIVITY_TYPES = (
    "package_created",
    "package_updated",
    "package_deleted",
    "package_note_added",
    "added_campaign_profile_note",
    "updated_campaign_profile_note",
    "deleted_campaign_profile_note",
    "updated_campaign_profile_field",
    "created_template",
    "updated_template",
    "deleted_template",
    "activated_template",
    "created_permission",
    "updated_permission",
    "deleted_permission",
    "updated_access_item",
)


class Activity(Base):
    __tablename__ = "activities"
    __table_args__ = (
        Index("idx_activities_related", "related_table", "related_id", "activity_date"),
        Index("idx_activities_partner", "partner_id", "activity_date"),
        Index("idx_activities_user", "user_id", "activity_date"),
        Index("idx_activities_type", "activity_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    partner_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    activity_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    related_table: Mapped[str] = mapped_column(String(64), nullable=False)
    related_id: Mapped[int] = mapped_column(Integer, nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)

    user = relationship("User", lazy="selectin")

    @property
    def actor(self) -> str:
        return self.user.display_name if self.user else "System"
