"""Request and response bodies of the HTTP API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field

from rubberband.models.enums import InvitationStatus, NextStep, ProvisioningState, Role, TeamRole, UserLogAction
from rubberband.models.tenant import Identity, Organization, Profile, RoleBinding, Team


# ── Request models ─────────────────────────────────────────────────────────────

class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    organization_name: str = Field(min_length=1, max_length=200)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class DeleteAccountRequest(BaseModel):
    # Client-side hints only; the server decides what to cascade
    is_last_member: bool | None = None
    confirmation: str | None = None


class CreateOrganizationRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class SettingsUpdate(BaseModel):
    primary_use_case: str | None = None
    business_type: str | None = None
    workflow_style: str | None = None
    completed_onboarding: bool | None = None


class PersonalDetails(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    subscribe_to_updates: bool | None = None


class OrganizationDetails(BaseModel):
    name: str | None = None
    country: str | None = None
    logo_url: str | None = None
    workspace_handle: str | None = None
    referral_source: str | None = None
    timezone: str | None = None


class UseCaseDetails(BaseModel):
    primary_use_case: str | None = None
    business_type: str | None = None
    workflow_style: str | None = None


class CompleteOnboardingRequest(BaseModel):
    personal: PersonalDetails = Field(default_factory=PersonalDetails)
    organization: OrganizationDetails = Field(default_factory=OrganizationDetails)
    use_case: UseCaseDetails = Field(default_factory=UseCaseDetails)


class InviteRequest(BaseModel):
    email: EmailStr
    role: Role = Role.VIEWER


class AcceptInvitationRequest(BaseModel):
    token: str = Field(min_length=1)


class RoleUpdate(BaseModel):
    role: Role


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class TeamUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None


class TeamMemberCreate(BaseModel):
    email: EmailStr
    role: TeamRole = TeamRole.VIEWER


class TeamRoleUpdate(BaseModel):
    role: TeamRole


class UserLogCreate(BaseModel):
    module: str = Field(min_length=1)
    action: UserLogAction
    record_id: str | None = None
    metadata: dict[str, Any] | None = None
    team_id: str | None = None


# ── Response models ────────────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    user: Identity


class SignupResponse(TokenResponse):
    state: ProvisioningState
    organization: Organization
    next_step: NextStep
    warnings: list[str] = Field(default_factory=list)


class LoginResponse(TokenResponse):
    next_step: NextStep
    organization_id: str | None = None


class MeResponse(BaseModel):
    user: Identity
    memberships: list[RoleBinding]


class DeleteAccountResponse(BaseModel):
    success: Literal[True] = True
    message: str = "Account deleted successfully"


class OnboardingStatusResponse(BaseModel):
    organization_id: str | None
    has_completed_onboarding: bool


class InvitationResponse(BaseModel):
    id: str
    organization_id: str
    email: str
    role: Role
    status: InvitationStatus
    invited_by: str
    expires_at: datetime
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class InviteResponse(BaseModel):
    added_directly: bool
    email_sent: bool
    invitation: InvitationResponse | None = None
    membership: RoleBinding | None = None


class MemberResponse(BaseModel):
    user_id: str
    role: Role
    joined_at: datetime | None = None
    profile: Profile | None = None


class TeamMemberResponse(BaseModel):
    id: str
    team_id: str
    user_id: str
    role: TeamRole
    profile: Profile | None = None


class MyTeamResponse(BaseModel):
    team: Team
    role: TeamRole
