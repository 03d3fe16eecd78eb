"""Built-in SQL implementation of the identity and data services.

Used in local mode and in tests. It mirrors the managed backend's behavior
closely enough for the workflows to be exercised end to end: sessions are
JWTs, the administrative calls check the service-role key, and
``delete_user_account`` runs as a single transaction the way the stored
procedure does.
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rubberband.errors.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    ConflictError,
    NotFoundError,
)
from rubberband.models.enums import InvitationStatus, Role, TeamRole
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
from rubberband.repositories.identity_repo import IdentityRepository
from rubberband.repositories.invitation_repo import InvitationRepository
from rubberband.repositories.organization_repo import OrganizationRepository, OrganizationSettingsRepository
from rubberband.repositories.profile_repo import ProfileRepository
from rubberband.repositories.team_repo import TeamMemberRepository, TeamRepository
from rubberband.repositories.user_log_repo import UserLogRepository
from rubberband.repositories.user_role_repo import UserRoleRepository
from rubberband.services.backend.base import DataService, IdentityService
from rubberband.services.context import AdministrativeContext, UserSessionContext, require_admin
from rubberband.services.id_generator import generate_id, generate_token
from rubberband.services.security import decode_access_token, hash_password, make_access_token, verify_password

logger = logging.getLogger(__name__)

_ORGANIZATION_FIELDS = {
    "name", "country", "logo_url", "workspace_handle", "referral_source", "timezone", "subscription_plan",
}
_PROFILE_FIELDS = {"first_name", "last_name", "full_name", "avatar_url", "subscribe_to_updates", "email"}
_SETTINGS_FIELDS = {"has_completed_onboarding", "primary_use_case", "business_type", "workflow_style"}
_INVITATION_FIELDS = {"token", "expires_at", "status", "role"}
_TEAM_FIELDS = {"name", "description"}


def _aware(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _pick(fields: dict[str, Any], allowed: set[str], operation: str) -> dict[str, Any]:
    unknown = set(fields) - allowed
    if unknown:
        raise BackendError(operation, f"unknown columns: {', '.join(sorted(unknown))}")
    return fields


class SqlBackend(IdentityService, DataService):
    """Identity and data service on top of an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service_role_key: str,
        emulate_triggers: bool = False,
    ):
        self._session_factory = session_factory
        self._service_role_key = service_role_key
        self.emulate_triggers = emulate_triggers

    @asynccontextmanager
    async def _transaction(self, operation: str):
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except IntegrityError as exc:
                logger.warning("%s violated a constraint: %s", operation, exc.orig)
                raise ConflictError(f"{operation}: record already exists") from exc
            except SQLAlchemyError as exc:
                logger.error("%s failed: %s", operation, exc)
                raise BackendError(operation, str(exc)) from exc

    async def _authorize(self, session: AsyncSession, ctx: UserSessionContext) -> None:
        if not isinstance(ctx, UserSessionContext):
            raise AuthenticationError("User session required")
        if await IdentityRepository(session).get(ctx.user_id) is None:
            raise AuthenticationError("Session identity no longer exists")

    def _check_admin(self, admin: AdministrativeContext, operation: str) -> None:
        require_admin(admin)
        if not self._service_role_key:
            raise BackendError(operation, "service role key is not configured")
        if not secrets.compare_digest(admin.service_role_key, self._service_role_key):
            raise BackendError(operation, "invalid service role key")

    # ── IdentityService ───────────────────────────────────────────────────

    async def create_identity(self, email: str, password: str) -> AuthSession:
        async with self._transaction("create_identity") as session:
            repo = IdentityRepository(session)
            if await repo.get_by_email(email):
                raise ConflictError("User already registered")
            row = await repo.create(
                id=generate_id("usr_"),
                email=email,
                hashed_password=hash_password(password),
            )
            if self.emulate_triggers:
                await ProfileRepository(session).create(id=row.id, email=email)
            identity = Identity.model_validate(row)

        token, expires_in = make_access_token(identity.id, identity.email)
        return AuthSession(access_token=token, expires_in=expires_in, user=identity)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        async with self._transaction("sign_in") as session:
            repo = IdentityRepository(session)
            row = await repo.get_by_email(email)
            if not row or not verify_password(password, row.hashed_password):
                raise AuthenticationError("Invalid login credentials")
            await repo.update_last_sign_in(row)
            identity = Identity.model_validate(row)

        token, expires_in = make_access_token(identity.id, identity.email)
        return AuthSession(access_token=token, expires_in=expires_in, user=identity)

    async def get_user(self, access_token: str) -> Identity:
        try:
            claims = decode_access_token(access_token)
        except ValueError as exc:
            raise AuthenticationError(str(exc)) from exc
        async with self._transaction("get_user") as session:
            row = await IdentityRepository(session).get(claims.get("sub", ""))
            if row is None:
                raise AuthenticationError("No user found")
            return Identity.model_validate(row)

    async def list_identities(
        self, admin: AdministrativeContext, page: int = 1, per_page: int = 50
    ) -> list[Identity]:
        self._check_admin(admin, "list_identities")
        async with self._transaction("list_identities") as session:
            rows = await IdentityRepository(session).list_page(page, per_page)
            return [Identity.model_validate(r) for r in rows]

    async def get_identity(self, admin: AdministrativeContext, user_id: str) -> Identity | None:
        self._check_admin(admin, "get_identity")
        async with self._transaction("get_identity") as session:
            row = await IdentityRepository(session).get(user_id)
            return Identity.model_validate(row) if row else None

    async def delete_identity(self, admin: AdministrativeContext, user_id: str) -> None:
        self._check_admin(admin, "delete_identity")
        async with self._transaction("delete_identity") as session:
            repo = IdentityRepository(session)
            row = await repo.get(user_id)
            if row is None:
                raise NotFoundError("Identity", user_id)
            await repo.delete(row)

    # ── organizations ─────────────────────────────────────────────────────

    async def create_organization(self, ctx: UserSessionContext, name: str) -> Organization:
        async with self._transaction("create_organization") as session:
            await self._authorize(session, ctx)
            row = await OrganizationRepository(session).create(id=generate_id("org_"), name=name)
            if self.emulate_triggers:
                await OrganizationSettingsRepository(session).create(
                    id=generate_id("ost_"), organization_id=row.id, has_completed_onboarding=False
                )
            return Organization.model_validate(row)

    async def get_organization(self, ctx: UserSessionContext, organization_id: str) -> Organization | None:
        async with self._transaction("get_organization") as session:
            await self._authorize(session, ctx)
            row = await OrganizationRepository(session).get(organization_id)
            return Organization.model_validate(row) if row else None

    async def update_organization(
        self, ctx: UserSessionContext, organization_id: str, fields: dict[str, Any]
    ) -> Organization:
        fields = _pick(fields, _ORGANIZATION_FIELDS, "update_organization")
        async with self._transaction("update_organization") as session:
            await self._authorize(session, ctx)
            repo = OrganizationRepository(session)
            row = await repo.get(organization_id)
            if row is None:
                raise NotFoundError("Organization", organization_id)
            await repo.update(row, **fields)
            return Organization.model_validate(row)

    # ── role bindings ─────────────────────────────────────────────────────

    async def create_role_binding(
        self, ctx: UserSessionContext, user_id: str, organization_id: str, role: Role
    ) -> RoleBinding:
        async with self._transaction("create_role_binding") as session:
            await self._authorize(session, ctx)
            if await OrganizationRepository(session).get(organization_id) is None:
                raise NotFoundError("Organization", organization_id)
            row = await UserRoleRepository(session).create(
                id=generate_id("rol_"),
                user_id=user_id,
                organization_id=organization_id,
                role=Role(role).value,
            )
            return RoleBinding.model_validate(row)

    async def list_role_bindings(
        self,
        ctx: UserSessionContext,
        *,
        user_id: str | None = None,
        organization_id: str | None = None,
    ) -> list[RoleBinding]:
        async with self._transaction("list_role_bindings") as session:
            await self._authorize(session, ctx)
            rows = await UserRoleRepository(session).list_filtered(user_id, organization_id)
            return [RoleBinding.model_validate(r) for r in rows]

    async def update_role_binding(
        self, ctx: UserSessionContext, user_id: str, organization_id: str, role: Role
    ) -> RoleBinding:
        async with self._transaction("update_role_binding") as session:
            await self._authorize(session, ctx)
            repo = UserRoleRepository(session)
            row = await repo.get_binding(user_id, organization_id)
            if row is None:
                raise NotFoundError("RoleBinding", f"{user_id}@{organization_id}")
            await repo.update(row, role=Role(role).value)
            return RoleBinding.model_validate(row)

    async def delete_role_binding(self, ctx: UserSessionContext, user_id: str, organization_id: str) -> None:
        async with self._transaction("delete_role_binding") as session:
            await self._authorize(session, ctx)
            removed = await UserRoleRepository(session).delete_binding(user_id, organization_id)
            if not removed:
                raise NotFoundError("RoleBinding", f"{user_id}@{organization_id}")

    # ── profiles ──────────────────────────────────────────────────────────

    async def get_profile(self, ctx: UserSessionContext, user_id: str) -> Profile | None:
        async with self._transaction("get_profile") as session:
            await self._authorize(session, ctx)
            row = await ProfileRepository(session).get(user_id)
            return Profile.model_validate(row) if row else None

    async def find_profile_by_email(self, ctx: UserSessionContext, email: str) -> Profile | None:
        async with self._transaction("find_profile_by_email") as session:
            await self._authorize(session, ctx)
            row = await ProfileRepository(session).get_by_email(email)
            return Profile.model_validate(row) if row else None

    async def list_profiles(self, ctx: UserSessionContext, user_ids: list[str]) -> list[Profile]:
        async with self._transaction("list_profiles") as session:
            await self._authorize(session, ctx)
            rows = await ProfileRepository(session).list_for_ids(user_ids)
            return [Profile.model_validate(r) for r in rows]

    async def create_profile(self, ctx: UserSessionContext, user_id: str, email: str) -> Profile:
        async with self._transaction("create_profile") as session:
            await self._authorize(session, ctx)
            row = await ProfileRepository(session).create(id=user_id, email=email)
            return Profile.model_validate(row)

    async def update_profile(self, ctx: UserSessionContext, user_id: str, fields: dict[str, Any]) -> Profile:
        fields = _pick(fields, _PROFILE_FIELDS, "update_profile")
        async with self._transaction("update_profile") as session:
            await self._authorize(session, ctx)
            repo = ProfileRepository(session)
            row = await repo.get(user_id)
            if row is None:
                raise NotFoundError("Profile", user_id)
            await repo.update(row, **fields)
            return Profile.model_validate(row)

    # ── organization settings ─────────────────────────────────────────────

    async def get_organization_settings(
        self, ctx: UserSessionContext, organization_id: str
    ) -> OrganizationSettings | None:
        async with self._transaction("get_organization_settings") as session:
            await self._authorize(session, ctx)
            row = await OrganizationSettingsRepository(session).get_for_organization(organization_id)
            return OrganizationSettings.model_validate(row) if row else None

    async def create_organization_settings(
        self, ctx: UserSessionContext, organization_id: str, has_completed_onboarding: bool = False
    ) -> OrganizationSettings:
        async with self._transaction("create_organization_settings") as session:
            await self._authorize(session, ctx)
            row = await OrganizationSettingsRepository(session).create(
                id=generate_id("ost_"),
                organization_id=organization_id,
                has_completed_onboarding=has_completed_onboarding,
            )
            return OrganizationSettings.model_validate(row)

    async def update_organization_settings(
        self, ctx: UserSessionContext, organization_id: str, fields: dict[str, Any]
    ) -> OrganizationSettings:
        fields = _pick(fields, _SETTINGS_FIELDS, "update_organization_settings")
        async with self._transaction("update_organization_settings") as session:
            await self._authorize(session, ctx)
            repo = OrganizationSettingsRepository(session)
            row = await repo.get_for_organization(organization_id)
            if row is None:
                raise NotFoundError("OrganizationSettings", organization_id)
            await repo.update(row, **fields)
            return OrganizationSettings.model_validate(row)

    # ── teams ─────────────────────────────────────────────────────────────

    async def create_team(
        self, ctx: UserSessionContext, organization_id: str, name: str, description: str | None = None
    ) -> Team:
        async with self._transaction("create_team") as session:
            await self._authorize(session, ctx)
            if await OrganizationRepository(session).get(organization_id) is None:
                raise NotFoundError("Organization", organization_id)
            row = await TeamRepository(session).create(
                id=generate_id("team_"),
                organization_id=organization_id,
                name=name,
                description=description,
            )
            return Team.model_validate(row)

    async def get_team(self, ctx: UserSessionContext, team_id: str) -> Team | None:
        async with self._transaction("get_team") as session:
            await self._authorize(session, ctx)
            row = await TeamRepository(session).get(team_id)
            return Team.model_validate(row) if row else None

    async def list_teams(self, ctx: UserSessionContext, organization_id: str) -> list[Team]:
        async with self._transaction("list_teams") as session:
            await self._authorize(session, ctx)
            rows = await TeamRepository(session).list_for_organization(organization_id)
            return [Team.model_validate(r) for r in rows]

    async def update_team(self, ctx: UserSessionContext, team_id: str, fields: dict[str, Any]) -> Team:
        fields = _pick(fields, _TEAM_FIELDS, "update_team")
        async with self._transaction("update_team") as session:
            await self._authorize(session, ctx)
            repo = TeamRepository(session)
            row = await repo.get(team_id)
            if row is None:
                raise NotFoundError("Team", team_id)
            await repo.update(row, **fields)
            return Team.model_validate(row)

    async def delete_team(self, ctx: UserSessionContext, team_id: str) -> None:
        async with self._transaction("delete_team") as session:
            await self._authorize(session, ctx)
            await TeamMemberRepository(session).delete_by_field("team_id", team_id)
            removed = await TeamRepository(session).delete_by_field("id", team_id)
            if not removed:
                raise NotFoundError("Team", team_id)

    async def list_team_members(
        self,
        ctx: UserSessionContext,
        *,
        team_id: str | None = None,
        user_id: str | None = None,
    ) -> list[TeamMember]:
        async with self._transaction("list_team_members") as session:
            await self._authorize(session, ctx)
            rows = await TeamMemberRepository(session).list_filtered(team_id, user_id)
            return [TeamMember.model_validate(r) for r in rows]

    async def get_team_member(self, ctx: UserSessionContext, member_id: str) -> TeamMember | None:
        async with self._transaction("get_team_member") as session:
            await self._authorize(session, ctx)
            row = await TeamMemberRepository(session).get(member_id)
            return TeamMember.model_validate(row) if row else None

    async def add_team_member(
        self, ctx: UserSessionContext, team_id: str, user_id: str, role: TeamRole
    ) -> TeamMember:
        async with self._transaction("add_team_member") as session:
            await self._authorize(session, ctx)
            if await TeamRepository(session).get(team_id) is None:
                raise NotFoundError("Team", team_id)
            row = await TeamMemberRepository(session).create(
                id=generate_id("tmm_"),
                team_id=team_id,
                user_id=user_id,
                role=TeamRole(role).value,
            )
            return TeamMember.model_validate(row)

    async def update_team_member(self, ctx: UserSessionContext, member_id: str, role: TeamRole) -> TeamMember:
        async with self._transaction("update_team_member") as session:
            await self._authorize(session, ctx)
            repo = TeamMemberRepository(session)
            row = await repo.get(member_id)
            if row is None:
                raise NotFoundError("TeamMember", member_id)
            await repo.update(row, role=TeamRole(role).value)
            return TeamMember.model_validate(row)

    async def delete_team_member(self, ctx: UserSessionContext, member_id: str) -> None:
        async with self._transaction("delete_team_member") as session:
            await self._authorize(session, ctx)
            removed = await TeamMemberRepository(session).delete_by_field("id", member_id)
            if not removed:
                raise NotFoundError("TeamMember", member_id)

    # ── account deletion procedure ────────────────────────────────────────

    async def delete_user_account(self, ctx: UserSessionContext, user_id: str) -> bool:
        async with self._transaction("delete_user_account") as session:
            await self._authorize(session, ctx)
            if ctx.user_id != user_id:
                raise AuthorizationError("Users can only delete their own account")

            roles = UserRoleRepository(session)
            invitations = InvitationRepository(session)
            logs = UserLogRepository(session)
            team_members = TeamMemberRepository(session)

            # Decided before the caller's own bindings go away
            sole_member_of = [
                binding.organization_id
                for binding in await roles.list_filtered(user_id=user_id)
                if await roles.count_members(binding.organization_id) == 1
            ]

            await ProfileRepository(session).delete_by_field("id", user_id)
            await roles.delete_by_field("user_id", user_id)
            await team_members.delete_by_field("user_id", user_id)
            await invitations.delete_by_field("invited_by", user_id)
            await logs.delete_by_field("user_id", user_id)

            for org_id in sole_member_of:
                logger.info("Deleting organization %s with its last member %s", org_id, user_id)
                await OrganizationSettingsRepository(session).delete_for_organization(org_id)
                await team_members.delete_for_organization(org_id)
                await TeamRepository(session).delete_by_field("organization_id", org_id)
                await invitations.delete_by_field("organization_id", org_id)
                await logs.delete_by_field("organization_id", org_id)
                await roles.delete_by_field("organization_id", org_id)
                await OrganizationRepository(session).delete(org_id)
        return True

    # ── invitations ───────────────────────────────────────────────────────

    async def generate_invitation_token(self, ctx: UserSessionContext) -> str:
        return generate_token()

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
        async with self._transaction("create_invitation") as session:
            await self._authorize(session, ctx)
            row = await InvitationRepository(session).create(
                id=generate_id("inv_"),
                organization_id=organization_id,
                email=email,
                role=Role(role).value,
                invited_by=invited_by,
                token=token,
                status=InvitationStatus.PENDING.value,
                expires_at=expires_at,
            )
            return Invitation.model_validate(row)

    async def get_invitation(self, ctx: UserSessionContext, invitation_id: str) -> Invitation | None:
        async with self._transaction("get_invitation") as session:
            await self._authorize(session, ctx)
            row = await InvitationRepository(session).get(invitation_id)
            return Invitation.model_validate(row) if row else None

    async def find_invitation(
        self, ctx: UserSessionContext, organization_id: str, email: str
    ) -> Invitation | None:
        async with self._transaction("find_invitation") as session:
            await self._authorize(session, ctx)
            row = await InvitationRepository(session).get_for_email(organization_id, email)
            return Invitation.model_validate(row) if row else None

    async def list_invitations(self, ctx: UserSessionContext, organization_id: str) -> list[Invitation]:
        async with self._transaction("list_invitations") as session:
            await self._authorize(session, ctx)
            rows = await InvitationRepository(session).list_for_organization(organization_id)
            return [Invitation.model_validate(r) for r in rows]

    async def update_invitation(
        self, ctx: UserSessionContext, invitation_id: str, fields: dict[str, Any]
    ) -> Invitation:
        fields = _pick(fields, _INVITATION_FIELDS, "update_invitation")
        async with self._transaction("update_invitation") as session:
            await self._authorize(session, ctx)
            repo = InvitationRepository(session)
            row = await repo.get(invitation_id)
            if row is None:
                raise NotFoundError("Invitation", invitation_id)
            await repo.update(row, **{k: getattr(v, "value", v) for k, v in fields.items()})
            return Invitation.model_validate(row)

    async def validate_invitation_token(self, token: str) -> InvitationDetails:
        async with self._transaction("validate_invitation_token") as session:
            row = await InvitationRepository(session).get_by_token(token)
            if row is None:
                return InvitationDetails(valid=False)
            org = await OrganizationRepository(session).get(row.organization_id)
            valid = (
                row.status == InvitationStatus.PENDING
                and _aware(row.expires_at) > datetime.now(timezone.utc)
                and org is not None
            )
            return InvitationDetails(
                invitation_id=row.id,
                organization_id=row.organization_id,
                organization_name=org.name if org else None,
                email=row.email,
                role=row.role,
                valid=valid,
            )

    async def accept_invitation(self, ctx: UserSessionContext, token: str) -> bool:
        async with self._transaction("accept_invitation") as session:
            await self._authorize(session, ctx)
            invitations = InvitationRepository(session)
            row = await invitations.get_by_token(token)
            if (
                row is None
                or row.status != InvitationStatus.PENDING
                or _aware(row.expires_at) <= datetime.now(timezone.utc)
            ):
                return False
            if row.email.lower() != ctx.email.lower():
                raise AuthorizationError("Invitation was issued to a different e-mail address")

            roles = UserRoleRepository(session)
            if await roles.get_binding(ctx.user_id, row.organization_id) is None:
                await roles.create(
                    id=generate_id("rol_"),
                    user_id=ctx.user_id,
                    organization_id=row.organization_id,
                    role=row.role,
                )
            await invitations.update(row, status=InvitationStatus.ACCEPTED.value)
        return True

    # ── activity log ──────────────────────────────────────────────────────

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
        async with self._transaction("insert_user_log") as session:
            await self._authorize(session, ctx)
            await UserLogRepository(session).create(
                id=generate_id("log_"),
                user_id=ctx.user_id,
                organization_id=organization_id,
                team_id=team_id,
                module=module,
                action=action,
                record_id=record_id,
                log_metadata=metadata or {},
            )

    async def list_organization_logs(
        self, ctx: UserSessionContext, organization_id: str, limit: int = 100
    ) -> list[UserLog]:
        async with self._transaction("list_organization_logs") as session:
            await self._authorize(session, ctx)
            rows = await UserLogRepository(session).list_for_organization(organization_id, limit)
            return [UserLog.model_validate(r) for r in rows]
