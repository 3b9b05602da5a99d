"""SQLAlchemy 2.0 ORM models for the audit log.

One table:
    audit_logs - append-only record of actions taken against escrows, sales,
                 tokens and platform configuration.

Design decisions:
    - UUID primary keys; the generic Uuid type maps to native UUID on
      PostgreSQL and CHAR(32) elsewhere.
    - details is JSONB on PostgreSQL and JSON elsewhere; it only ever holds
      redacted data (see services/redaction.py).
    - CHECK constraint on outcome to reject invalid enum values at DB level.
    - Indexes on the columns the query endpoint filters by.
    - No UPDATE or DELETE at the application level.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

DetailsType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class AuditLog(Base):
    """Immutable audit record of a single action."""

    __tablename__ = "audit_logs"

    # --- Primary Key ---
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Who ---
    actor: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="SYSTEM",
        comment="Address or service principal that performed the action",
    )
    tenant_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        default=None,
        comment="Tenant the action belongs to (null = platform-wide)",
    )

    # --- What ---
    action_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="AuditActionType value (e.g. purchase, refund)",
    )
    entity_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="AuditEntityType value (e.g. escrow, sale)",
    )
    entity_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Address of the affected contract",
    )
    outcome: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="success",
    )
    details: Mapped[dict | None] = mapped_column(
        DetailsType,
        nullable=True,
        default=None,
        comment="Redacted context for the action",
    )

    # --- Chain correlation ---
    event_index: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        default=None,
        comment="Index of the chain event this entry was derived from",
    )

    # --- Timestamp ---
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    __table_args__ = (
        CheckConstraint(
            "outcome IN ('success', 'failure', 'error')",
            name="ck_audit_valid_outcome",
        ),
        Index("idx_audit_actor", "actor"),
        Index("idx_audit_action_type", "action_type"),
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_tenant", "tenant_id"),
        Index("idx_audit_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog id={self.id} {self.action_type} "
            f"{self.entity_type}:{self.entity_id} outcome={self.outcome}>"
        )
