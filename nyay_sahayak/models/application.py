from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, Index, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        Index("idx_applications_status_submitted", "application_status", "submitted_at"),
        Index("idx_applications_officer_status", "assigned_officer", "application_status"),
        Index("idx_applications_beneficiary_created", "beneficiary_id", "created_at"),
        Index("idx_applications_type_status", "application_type", "application_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    application_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    beneficiary_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    application_type: Mapped[str] = mapped_column(String(30), nullable=False)
    application_status: Mapped[str] = mapped_column(String(30), nullable=False, server_default="DRAFT")

    assigned_officer: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    approved_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    application_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # FirDetails or MarriageDetails, selected by application_type.
    scheme_details: Mapped[dict] = mapped_column(JSONType, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow, server_default=func.now()
    )

    documents: Mapped[list["ApplicationDocument"]] = relationship(
        back_populates="application",
        order_by="ApplicationDocument.position",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
