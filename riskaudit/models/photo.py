from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from riskaudit.models.base import Base, ULIDMixin, UTCDateTime, utcnow


class Photo(Base, ULIDMixin):
    __tablename__ = "photos"

    inspection_id: Mapped[str] = mapped_column(String(26), ForeignKey("inspections.id"), index=True)
    image_ref: Mapped[str] = mapped_column(String(500))
    thumbnail_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)
    captured_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_analyzed: Mapped[bool] = mapped_column(Boolean, default=False)

    inspection = relationship("Inspection", back_populates="photos")
    findings = relationship("Finding", back_populates="photo", lazy="selectin", order_by="Finding.created_at")
