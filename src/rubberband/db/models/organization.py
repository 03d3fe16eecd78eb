"""Organization and per-organization settings tables."""

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rubberband.db.base import Base, CreatedAtMixin, TimestampMixin


class OrganizationRow(Base, CreatedAtMixin):
    __tablename__ = "organizations"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    logo_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    workspace_handle: Mapped[str | None] = mapped_column(String(100), nullable=True)
    referral_source: Mapped[str | None] = mapped_column(String(200), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    subscription_plan: Mapped[str | None] = mapped_column(String(64), nullable=True)


class OrganizationSettingsRow(Base, TimestampMixin):
    __tablename__ = "organization_settings"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    organization_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    has_completed_onboarding: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    primary_use_case: Mapped[str | None] = mapped_column(String(200), nullable=True)
    business_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    workflow_style: Mapped[str | None] = mapped_column(String(200), nullable=True)
