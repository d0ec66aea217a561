"""One risk observation attached to a single analyzed photo."""

from __future__ import annotations

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from riskaudit.models.base import Base, ULIDMixin

_RISK_ALIASES = {
    "high": "high", "alto": "high", "critical": "high", "crítico": "high", "critico": "high",
    "medium": "medium", "medio": "medium", "moderate": "medium",
    "low": "low", "bajo": "low",
}


def normalize_risk_level(level: str | None) -> str:
    """Map free-form analyzer risk labels onto high | medium | low | unknown."""
    if not level:
        return "unknown"
    return _RISK_ALIASES.get(level.strip().lower(), "unknown")


class Finding(Base, ULIDMixin):
    __tablename__ = "findings"

    photo_id: Mapped[str] = mapped_column(String(26), ForeignKey("photos.id"), index=True)
    description: Mapped[str] = mapped_column(String(1000))
    risk_level: Mapped[str] = mapped_column(String(50))
    corrective_action: Mapped[str] = mapped_column(String(1000), default="")
    preventive_action: Mapped[str] = mapped_column(String(1000), default="")

    photo = relationship("Photo", back_populates="findings")
