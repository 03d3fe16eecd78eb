"""Abstract interfaces for the identity service and the data service.

The workflows only ever talk to these two interfaces. Every call takes the
credential context it runs under; identity administration accepts only an
``AdministrativeContext``. Implementations raise ``BackendError`` (or a more
specific ``RubberbandError`` such as ``ConflictError``) on failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from rubberband.models.enums import Role, TeamRole
from rubberband.models.tenant import (
    AuthSession,
    Identity,
    Invitation,
    InvitationDetails,
    Organization,
    OrganizationSettings,
    Profile,
    RoleBinding,
    Team,
    TeamMember,
    UserLog,
)
from rubberband.services.context import AdministrativeContext, UserSessionContext


class IdentityService(ABC):
    """Authentication principals: signup, sign-in and administration."""

    @abstractmethod
    async def create_identity(self, email: str, password: str) -> AuthSession:
        """Register a new identity and open a session for it.

        Raises:
            ConflictError: an identity with this e-mail already exists.
        """
        ...

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    async def get_user(self, access_token: str) -> Identity:
        """Resolve the identity that owns a session token."""
        ...

    @abstractmethod
    async def list_identities(
        self, admin: AdministrativeContext, page: int = 1, per_page: int = 50
    ) -> list[Identity]:
        ...

    @abstractmethod
    async def get_identity(self, admin: AdministrativeContext, user_id: str) -> Identity | None:
        ...

    @abstractmethod
    async def delete_identity(self, admin: AdministrativeContext, user_id: str) -> None:
        ...


class DataService(ABC):
    """Relational tenant data, accessed under the caller's session."""

    # ── organizations ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_organization(self, ctx: UserSessionContext, name: str) -> Organization:
        ...

    @abstractmethod
    async def get_organization(self, ctx: UserSessionContext, organization_id: str) -> Organization | None:
        ...

    @abstractmethod
    async def update_organization(
        self, ctx: UserSessionContext, organization_id: str, fields: dict[str, Any]
    ) -> Organization:
        ...

    # ── role bindings ─────────────────────────────────────────────────────

    @abstractmethod
    async def create_role_binding(
        self, ctx: UserSessionContext, user_id: str, organization_id: str, role: Role
    ) -> RoleBinding:
        ...

    @abstractmethod
    async def list_role_bindings(
        self,
        ctx: UserSessionContext,
        *,
        user_id: str | None = None,
        organization_id: str | None = None,
    ) -> list[RoleBinding]:
        ...

    @abstractmethod
    async def update_role_binding(
        self, ctx: UserSessionContext, user_id: str, organization_id: str, role: Role
    ) -> RoleBinding:
        ...

    @abstractmethod
    async def delete_role_binding(self, ctx: UserSessionContext, user_id: str, organization_id: str) -> None:
        ...

    # ── profiles ──────────────────────────────────────────────────────────

    @abstractmethod
    async def get_profile(self, ctx: UserSessionContext, user_id: str) -> Profile | None:
        ...

    @abstractmethod
    async def find_profile_by_email(self, ctx: UserSessionContext, email: str) -> Profile | None:
        ...

    @abstractmethod
    async def list_profiles(self, ctx: UserSessionContext, user_ids: list[str]) -> list[Profile]:
        ...

    @abstractmethod
    async def create_profile(self, ctx: UserSessionContext, user_id: str, email: str) -> Profile:
        ...

    @abstractmethod
    async def update_profile(self, ctx: UserSessionContext, user_id: str, fields: dict[str, Any]) -> Profile:
        ...

    # ── organization settings ─────────────────────────────────────────────

    @abstractmethod
    async def get_organization_settings(
        self, ctx: UserSessionContext, organization_id: str
    ) -> OrganizationSettings | None:
        ...

    @abstractmethod
    async def create_organization_settings(
        self, ctx: UserSessionContext, organization_id: str, has_completed_onboarding: bool = False
    ) -> OrganizationSettings:
        """Insert the settings row.

        Raises:
            ConflictError: a row for this organization already exists.
        """
        ...

    @abstractmethod
    async def update_organization_settings(
        self, ctx: UserSessionContext, organization_id: str, fields: dict[str, Any]
    ) -> OrganizationSettings:
        ...

    # ── teams ─────────────────────────────────────────────────────────────

    @abstractmethod
    async def create_team(
        self, ctx: UserSessionContext, organization_id: str, name: str, description: str | None = None
    ) -> Team:
        ...

    @abstractmethod
    async def get_team(self, ctx: UserSessionContext, team_id: str) -> Team | None:
        ...

    @abstractmethod
    async def list_teams(self, ctx: UserSessionContext, organization_id: str) -> list[Team]:
        ...

    @abstractmethod
    async def update_team(self, ctx: UserSessionContext, team_id: str, fields: dict[str, Any]) -> Team:
        ...

    @abstractmethod
    async def delete_team(self, ctx: UserSessionContext, team_id: str) -> None:
        """Delete the team together with its memberships."""
        ...

    @abstractmethod
    async def list_team_members(
        self,
        ctx: UserSessionContext,
        *,
        team_id: str | None = None,
        user_id: str | None = None,
    ) -> list[TeamMember]:
        ...

    @abstractmethod
    async def get_team_member(self, ctx: UserSessionContext, member_id: str) -> TeamMember | None:
        ...

    @abstractmethod
    async def add_team_member(
        self, ctx: UserSessionContext, team_id: str, user_id: str, role: TeamRole
    ) -> TeamMember:
        """Add ``user_id`` to the team.

        Raises:
            ConflictError: the user is already on the team.
        """
        ...

    @abstractmethod
    async def update_team_member(self, ctx: UserSessionContext, member_id: str, role: TeamRole) -> TeamMember:
        ...

    @abstractmethod
    async def delete_team_member(self, ctx: UserSessionContext, member_id: str) -> None:
        ...

    # ── account deletion procedure ────────────────────────────────────────

    @abstractmethod
    async def delete_user_account(self, ctx: UserSessionContext, user_id: str) -> bool:
        """Run the server-side cascading delete for ``user_id``.

        Removes the profile, role bindings and team memberships of the user.
        The procedure decides on its own whether the user was the last member
        of their organization and, if so, removes the organization with its
        teams as well.
        """
        ...

    # ── invitations ───────────────────────────────────────────────────────

    @abstractmethod
    async def generate_invitation_token(self, ctx: UserSessionContext) -> str:
        ...

    @abstractmethod
    async def create_invitation(
        self,
        ctx: UserSessionContext,
        *,
        organization_id: str,
        email: str,
        role: Role,
        invited_by: str,
        token: str,
        expires_at: datetime,
    ) -> Invitation:
        ...

    @abstractmethod
    async def get_invitation(self, ctx: UserSessionContext, invitation_id: str) -> Invitation | None:
        ...

    @abstractmethod
    async def find_invitation(
        self, ctx: UserSessionContext, organization_id: str, email: str
    ) -> Invitation | None:
        ...

    @abstractmethod
    async def list_invitations(self, ctx: UserSessionContext, organization_id: str) -> list[Invitation]:
        ...

    @abstractmethod
    async def update_invitation(
        self, ctx: UserSessionContext, invitation_id: str, fields: dict[str, Any]
    ) -> Invitation:
        ...

    @abstractmethod
    async def validate_invitation_token(self, token: str) -> InvitationDetails:
        """Public lookup; unknown, expired or used tokens come back ``valid=False``."""
        ...

    @abstractmethod
    async def accept_invitation(self, ctx: UserSessionContext, token: str) -> bool:
        ...

    # ── activity log ──────────────────────────────────────────────────────

    @abstractmethod
    async def insert_user_log(
        self,
        ctx: UserSessionContext,
        *,
        organization_id: str,
        module: str,
        action: str,
        record_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        team_id: str | None = None,
    ) -> None:
        ...

    @abstractmethod
    async def list_organization_logs(
        self, ctx: UserSessionContext, organization_id: str, limit: int = 100
    ) -> list[UserLog]:
        ...
