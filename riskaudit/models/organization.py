"""Tenant rows: Organization and its one-to-one image/analysis settings."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Boolean, Integer, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from riskaudit.models.base import Base, ULIDMixin, UTCDateTime


class Organization(Base, ULIDMixin):
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255))

    users = relationship("User", back_populates="organization")
    settings = relationship(
        "OrganizationSettings", back_populates="organization", uselist=False
    )


class OrganizationSettings(Base, ULIDMixin):
    __tablename__ = "organization_settings"

    organization_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("organizations.id"), unique=True, index=True
    )
    enable_image_optimization: Mapped[bool] = mapped_column(Boolean, default=True)
    max_image_width: Mapped[int] = mapped_column(Integer, default=1920)
    image_quality: Mapped[int] = mapped_column(Integer, default=85)  # 0-100
    generate_thumbnails: Mapped[bool] = mapped_column(Boolean, default=True)
    thumbnail_width: Mapped[int] = mapped_column(Integer, default=400)
    thumbnail_quality: Mapped[int] = mapped_column(Integer, default=70)  # 0-100
    analysis_prompt: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(26), nullable=True)

    organization = relationship("Organization", back_populates="settings")
