from __future__ import annotations

from sqlalchemy import String, Boolean, ForeignKey, Table, Column
from sqlalchemy.orm import Mapped, mapped_column, relationship

from riskaudit.models.base import Base, ULIDMixin

# Inspector <-> affiliated company assignment
inspector_companies = Table(
    "inspector_companies",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id"), primary_key=True),
    Column("affiliated_company_id", String(26), ForeignKey("affiliated_companies.id"), primary_key=True),
)


class User(Base, ULIDMixin):
    __tablename__ = "users"

    organization_id: Mapped[str] = mapped_column(String(26), ForeignKey("organizations.id"))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    role: Mapped[str] = mapped_column(String(20), default="inspector")  # super_admin | admin | inspector
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    organization = relationship("Organization", back_populates="users")
    assigned_companies = relationship(
        "AffiliatedCompany",
        secondary=inspector_companies,
        back_populates="assigned_inspectors",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email
