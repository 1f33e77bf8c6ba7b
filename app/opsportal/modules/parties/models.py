from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.opsportal.models import Base


class Entity(Base):
    """
    Polymorphic party record. Companies, individuals and employees each hang a 1:1 detail row off it.
    """

    __tablename__ = "entities"
    __table_args__ = (
        Index("idx_entities_type", "entity_type"),
        Index("idx_entities_name", "name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)  # company, individual, employee
    name: Mapped[str] = mapped_column(Text, nullable=False)
    netsuite_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    company: Mapped[Optional["Company"]] = relationship(
        "Company", back_populates="entity", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    individual: Mapped[Optional["Individual"]] = relationship(
        "Individual", back_populates="entity", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    employee: Mapped[Optional["Employee"]] = relationship(
        "Employee", back_populates="entity", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )
    contacts: Mapped[list["EntityContact"]] = relationship(
        "EntityContact", back_populates="entity", cascade="all, delete-orphan", lazy="selectin"
    )


class Company(Base):
    __tablename__ = "companies"

    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True)
    legal_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    business_registration_number: Mapped[str | None] = mapped_column(Text, nullable=True)
    industry: Mapped[str | None] = mapped_column(Text, nullable=True)
    size: Mapped[str | None] = mapped_column(String(64), nullable=True)

    entity: Mapped[Entity] = relationship("Entity", back_populates="company")


class Individual(Base):
    __tablename__ = "individuals"

    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    external_auth_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    entity: Mapped[Entity] = relationship("Entity", back_populates="individual")


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_entity_id: Mapped[int | None] = mapped_column(ForeignKey("entities.id", ondelete="SET NULL"), nullable=True)
    parent_department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )

    parent: Mapped[Optional["Department"]] = relationship("Department", remote_side=[id], lazy="selectin")


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        Index("idx_employees_department", "department_id"),
        Index("idx_employees_status", "status"),
    )

    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), primary_key=True)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hr_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    department_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    external_auth_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    entity: Mapped[Entity] = relationship("Entity", back_populates="employee")
    department: Mapped[Optional[Department]] = relationship("Department", lazy="selectin")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class EntityRelationship(Base):
    __tablename__ = "entity_relationships"
    __table_args__ = (
        Index("idx_entity_rel_parent", "parent_entity_id", "relationship_type"),
        Index("idx_entity_rel_child", "child_entity_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    parent_entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    child_entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    relationship_type: Mapped[str] = mapped_column(String(32), nullable=False)  # contact, account_manager, ...
    relationship_subtype: Mapped[str | None] = mapped_column(String(32), nullable=True)  # primary, billing, ...
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    parent: Mapped[Entity] = relationship("Entity", foreign_keys=[parent_entity_id], lazy="selectin")
    child: Mapped[Entity] = relationship("Entity", foreign_keys=[child_entity_id], lazy="selectin")


class EntityContact(Base):
    __tablename__ = "entity_contacts"
    __table_args__ = (
        Index("idx_entity_contacts_entity", "entity_id", "contact_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_id: Mapped[int] = mapped_column(ForeignKey("entities.id", ondelete="CASCADE"), nullable=False)
    contact_type: Mapped[str] = mapped_column(String(32), nullable=False)  # email, phone, address
    contact_value: Mapped[str] = mapped_column(Text, nullable=False)
    contact_label: Mapped[str] = mapped_column(String(64), nullable=False, default="work")
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    entity: Mapped[Entity] = relationship("Entity", back_populates="contacts")
