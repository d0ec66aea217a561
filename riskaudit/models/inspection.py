"""Inspection aggregate root."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from riskaudit.models.base import Base, ULIDMixin, UTCDateTime, utcnow


class InspectionStatus(str, enum.Enum):
    DRAFT = "Draft"  # legacy, not produced by the analysis path
    PHOTOS_CAPTURED = "PhotosCaptured"
    ANALYZING = "Analyzing"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (InspectionStatus.COMPLETED, InspectionStatus.FAILED)


class Inspection(Base, ULIDMixin):
    __tablename__ = "inspections"

    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), index=True)
    organization_id: Mapped[str] = mapped_column(String(26), ForeignKey("organizations.id"), index=True)
    affiliated_company_id: Mapped[str] = mapped_column(String(26), ForeignKey("affiliated_companies.id"))
    status: Mapped[str] = mapped_column(String(30), default=InspectionStatus.PHOTOS_CAPTURED.value)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    user = relationship("User", lazy="selectin")
    affiliated_company = relationship("AffiliatedCompany", lazy="selectin")
    photos = relationship(
        "Photo", back_populates="inspection", lazy="selectin", order_by="Photo.captured_at"
    )

    @property
    def total_findings(self) -> int:
        return sum(len(p.findings) for p in self.photos)
