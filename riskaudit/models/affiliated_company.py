"""Client businesses audited by an organization's inspectors.

Rows are deactivated, never deleted, so historical inspections keep their reference.
"""

from __future__ import annotations

from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from riskaudit.models.base import Base, ULIDMixin
from riskaudit.models.user import inspector_companies


class AffiliatedCompany(Base, ULIDMixin):
    __tablename__ = "affiliated_companies"

    organization_id: Mapped[str] = mapped_column(String(26), ForeignKey("organizations.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    tax_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[str | None] = mapped_column(String(26), nullable=True)

    assigned_inspectors = relationship(
        "User",
        secondary=inspector_companies,
        back_populates="assigned_companies",
    )
