"""SQLAlchemy ORM models for the tables the core reads and writes."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Org(Base):
    """Rescue organization table."""

    __tablename__ = "org"

    org_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contact_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    website_url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    registration_number: Mapped[str] = mapped_column(Text, nullable=False, default="")
    provisional: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    members: Mapped[list["User"]] = relationship("User", back_populates="org")
    pets: Mapped[list["Pet"]] = relationship("Pet", back_populates="org")


class User(Base):
    """User table - role and org membership."""

    __tablename__ = "user"
    __table_args__ = (Index("idx_user_org", "org_id"),)

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="user")
    org_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("org.org_id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    org: Mapped["Org | None"] = relationship("Org", back_populates="members")


class Pet(Base):
    """Pet table - owned by a rescue org."""

    __tablename__ = "pet"
    __table_args__ = (Index("idx_pet_org", "org_id"),)

    pet_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    org_id: Mapped[str] = mapped_column(String(36), ForeignKey("org.org_id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Relationships
    org: Mapped["Org"] = relationship("Org", back_populates="pets")
    applications: Mapped[list["Application"]] = relationship("Application", back_populates="pet")


class Application(Base):
    """Adoption application table - submitted by a user for a pet."""

    __tablename__ = "application"
    __table_args__ = (Index("idx_application_user", "user_id"),)

    application_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.user_id"), nullable=False)
    pet_id: Mapped[str] = mapped_column(String(36), ForeignKey("pet.pet_id"), nullable=False)

    # Relationships
    pet: Mapped["Pet"] = relationship("Pet", back_populates="applications")


class PromotionRequest(Base):
    """Promotion request table - a user asking to run a rescue."""

    __tablename__ = "promotion_request"

    request_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.user_id"), nullable=False)
    org_name: Mapped[str] = mapped_column(Text, nullable=False)
    org_location: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    approval_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ScheduledTask(Base):
    """Scheduled task table - append-only, doubles as execution history."""

    __tablename__ = "scheduled_task"
    __table_args__ = (Index("idx_scheduled_task_pending_due", "executed", "due_at"),)

    task_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    kind: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(36), nullable=False)
    request_id: Mapped[str] = mapped_column(String(36), nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    executed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    executed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AuditLog(Base):
    """Audit log table - access decisions and automatic effects."""

    __tablename__ = "audit_log"
    __table_args__ = (Index("idx_audit_log_subject_ts", "subject_id", "timestamp"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    outcome: Mapped[str] = mapped_column(String(32), nullable=False)
    subject_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    org_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    policy: Mapped[str | None] = mapped_column(String(64), nullable=True)
    resource_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    target_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
