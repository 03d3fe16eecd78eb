"""Pydantic models for the tenant entities exchanged with the data service.

Both backends return these: the SQL backend validates ORM rows
(``from_attributes``), the Supabase backend validates PostgREST JSON.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from rubberband.models.enums import InvitationStatus, Role, TeamRole


class _Entity(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")


class Identity(_Entity):
    """An authentication principal owned by the identity service."""

    id: str
    email: str
    created_at: datetime | None = None


class AuthSession(_Entity):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Identity


class Organization(_Entity):
    id: str
    name: str
    country: str | None = None
    logo_url: str | None = None
    workspace_handle: str | None = None
    referral_source: str | None = None
    timezone: str | None = None
    subscription_plan: str | None = None
    created_at: datetime | None = None


class RoleBinding(_Entity):
    user_id: str
    organization_id: str
    role: Role
    created_at: datetime | None = None


class Profile(_Entity):
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    subscribe_to_updates: bool | None = None


class Team(_Entity):
    id: str
    organization_id: str
    name: str
    description: str | None = None
    created_at: datetime | None = None


class TeamMember(_Entity):
    id: str
    team_id: str
    user_id: str
    role: TeamRole
    created_at: datetime | None = None


class OrganizationSettings(_Entity):
    organization_id: str
    has_completed_onboarding: bool = False
    primary_use_case: str | None = None
    business_type: str | None = None
    workflow_style: str | None = None
    updated_at: datetime | None = None


class Invitation(_Entity):
    id: str
    organization_id: str
    email: str
    role: Role
    invited_by: str
    token: str
    status: InvitationStatus = InvitationStatus.PENDING
    expires_at: datetime
    created_at: datetime | None = None

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands timestamps back without tzinfo
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class InvitationDetails(_Entity):
    """Public view of an invitation token, safe to show before login."""

    invitation_id: str | None = None
    organization_id: str | None = None
    organization_name: str | None = None
    email: str | None = None
    role: Role | None = None
    valid: bool = False


class UserLog(_Entity):
    id: str
    user_id: str | None
    organization_id: str | None
    team_id: str | None = None
    module: str | None = None
    action: str | None = None
    record_id: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("log_metadata", "metadata"),
    )
    timestamp: datetime | None = None
