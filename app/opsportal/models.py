from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from app.opsportal.modules.parties.models import Entity


class Base(DeclarativeBase):
    pass


class UserRole(Base):
    __tablename__ = "user_roles"
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)


class RolePermission(Base):
    __tablename__ = "role_permissions"
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    # Person record (usually an employee entity) this login acts as; used for display names.
    entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)

    roles: Mapped[list["Role"]] = relationship(
        secondary="user_roles",
        back_populates="users",
        lazy="selectin",
    )
    entity: Mapped[Optional["Entity"]] = relationship("Entity", foreign_keys=[entity_id], lazy="selectin")

    @property
    def display_name(self) -> str:
        if self.entity is not None and self.entity.name:
            return self.entity.name
        return self.email

    @property
    def permission_keys(self) -> set[str]:
        return {p.key for r in (self.roles or []) for p in (r.permissions or [])}


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "admin"
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    users: Mapped[list[User]] = relationship(secondary="user_roles", back_populates="roles", lazy="selectin")
    permissions: Mapped[list["Permission"]] = relationship(
        secondary="role_permissions",
        back_populates="roles",
        lazy="selectin",
    )


class Permission(Base):
    """RBAC permission string such as "portal:campaign:edit" (not the scoped PermissionRule rows)."""

    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    roles: Mapped[list[Role]] = relationship(secondary="role_permissions", back_populates="permissions", lazy="selectin")


class AuditEvent(Base):
    """
    Append-only system audit trail (auth + every service mutation).
    Business-facing history shown on detail pages lives in Activity instead.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "package.create"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Package"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.opsportal.modules.parties.models import (  # noqa: E402,F401
    Company,
    Department,
    Employee,
    Entity,
    EntityContact,
    EntityRelationship,
    Individual,
)
from app.opsportal.modules.partners.models import Partner, Rule  # noqa: E402,F401
from app.opsportal.modules.campaign_profiles.models import CampaignProfile  # noqa: E402,F401
from app.opsportal.modules.campaigns.models import Campaign  # noqa: E402,F401
from app.opsportal.modules.service_catalog.models import ServiceCategory, ServiceItem  # noqa: E402,F401
from app.opsportal.modules.notes.models import Note  # noqa: E402,F401
from app.opsportal.modules.activities.models import Activity  # noqa: E402,F401
from app.opsportal.modules.permissions.models import PermissionRule  # noqa: E402,F401
from app.opsportal.modules.task_templates.models import TaskTemplate  # noqa: E402,F401
from app.opsportal.modules.access_items.models import AccessItem  # noqa: E402,F401
from app.opsportal.modules.packages.models import Package, PackageActionItem, PackageServiceItem  # noqa: E402,F401
