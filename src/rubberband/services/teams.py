"""Teams within the caller's organization.

Any organization member can list teams. Creating a team needs an
organization admin; changing a team or its members needs an organization
admin or an admin of that team.
"""

import logging

from rubberband.errors.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from rubberband.models.enums import Role, TeamRole
from rubberband.models.tenant import Profile, RoleBinding, Team, TeamMember
from rubberband.services.backend.base import DataService
from rubberband.services.context import UserSessionContext
from rubberband.services.members import require_membership, require_org_admin

logger = logging.getLogger(__name__)


async def _team_in_organization(
    data: DataService, ctx: UserSessionContext, team_id: str
) -> tuple[Team, RoleBinding]:
    membership = await require_membership(data, ctx)
    team = await data.get_team(ctx, team_id)
    if team is None or team.organization_id != membership.organization_id:
        raise NotFoundError("Team", team_id)
    return team, membership


async def _require_team_manager(data: DataService, ctx: UserSessionContext, team_id: str) -> Team:
    team, membership = await _team_in_organization(data, ctx, team_id)
    if membership.role == Role.ADMIN:
        return team
    own = await data.list_team_members(ctx, team_id=team_id, user_id=ctx.user_id)
    if not any(m.role == TeamRole.ADMIN for m in own):
        raise AuthorizationError("Only organization or team admins can manage this team")
    return team


async def _member_of_team(data: DataService, ctx: UserSessionContext, member_id: str) -> TeamMember:
    member = await data.get_team_member(ctx, member_id)
    if member is None:
        raise NotFoundError("TeamMember", member_id)
    await _require_team_manager(data, ctx, member.team_id)
    return member


async def list_teams(data: DataService, ctx: UserSessionContext) -> list[Team]:
    membership = await require_membership(data, ctx)
    return await data.list_teams(ctx, membership.organization_id)


async def list_my_teams(data: DataService, ctx: UserSessionContext) -> list[tuple[Team, TeamRole]]:
    """Teams the caller belongs to, with the caller's role in each."""
    memberships = await data.list_team_members(ctx, user_id=ctx.user_id)
    result = []
    for member in memberships:
        team = await data.get_team(ctx, member.team_id)
        if team is not None:
            result.append((team, member.role))
    return result


async def get_team(data: DataService, ctx: UserSessionContext, team_id: str) -> Team:
    team, _ = await _team_in_organization(data, ctx, team_id)
    return team


async def create_team(
    data: DataService, ctx: UserSessionContext, name: str, description: str | None = None
) -> Team:
    membership = await require_org_admin(data, ctx)
    name = name.strip()
    if not name:
        raise ValidationError("Team name is required")
    team = await data.create_team(ctx, membership.organization_id, name, description)
    logger.info("Team %s created in %s by %s", team.id, membership.organization_id, ctx.user_id)
    return team


async def update_team(
    data: DataService,
    ctx: UserSessionContext,
    team_id: str,
    *,
    name: str | None = None,
    description: str | None = None,
) -> Team:
    team = await _require_team_manager(data, ctx, team_id)
    fields = {}
    if name is not None:
        if not name.strip():
            raise ValidationError("Team name is required")
        fields["name"] = name.strip()
    if description is not None:
        fields["description"] = description
    if not fields:
        return team
    return await data.update_team(ctx, team_id, fields)


async def delete_team(data: DataService, ctx: UserSessionContext, team_id: str) -> None:
    await _require_team_manager(data, ctx, team_id)
    await data.delete_team(ctx, team_id)
    logger.info("Team %s deleted by %s", team_id, ctx.user_id)


async def list_team_members(
    data: DataService, ctx: UserSessionContext, team_id: str
) -> list[tuple[TeamMember, Profile | None]]:
    await _team_in_organization(data, ctx, team_id)
    team_members = await data.list_team_members(ctx, team_id=team_id)
    profiles = {p.id: p for p in await data.list_profiles(ctx, [m.user_id for m in team_members])}
    return [(m, profiles.get(m.user_id)) for m in team_members]


async def add_team_member(
    data: DataService, ctx: UserSessionContext, team_id: str, email: str, role: TeamRole
) -> TeamMember:
    """Add an existing organization member, found by e-mail, to the team."""
    team = await _require_team_manager(data, ctx, team_id)
    profile = await data.find_profile_by_email(ctx, email.strip().lower())
    if profile is None:
        raise NotFoundError("User", email)
    bindings = await data.list_role_bindings(ctx, user_id=profile.id, organization_id=team.organization_id)
    if not bindings:
        raise ValidationError("User is not a member of this organization")
    try:
        member = await data.add_team_member(ctx, team_id, profile.id, role)
    except ConflictError as exc:
        raise ConflictError("User is already a member of this team") from exc
    logger.info("Added %s to team %s as %s", profile.id, team_id, role)
    return member


async def update_team_member_role(
    data: DataService, ctx: UserSessionContext, member_id: str, role: TeamRole
) -> TeamMember:
    await _member_of_team(data, ctx, member_id)
    return await data.update_team_member(ctx, member_id, role)


async def remove_team_member(data: DataService, ctx: UserSessionContext, member_id: str) -> None:
    member = await _member_of_team(data, ctx, member_id)
    await data.delete_team_member(ctx, member_id)
    logger.info("Removed %s from team %s", member.user_id, member.team_id)
