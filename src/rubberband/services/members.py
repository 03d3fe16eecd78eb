"""Organization membership lookups and administration."""

import logging

from rubberband.errors.exceptions import AuthorizationError, NotFoundError, ValidationError
from rubberband.models.enums import Role
from rubberband.models.tenant import Profile, RoleBinding
from rubberband.services.backend.base import DataService
from rubberband.services.context import UserSessionContext

logger = logging.getLogger(__name__)


async def get_membership(data: DataService, ctx: UserSessionContext) -> RoleBinding | None:
    """Return the caller's organization binding, or None for an identity without one."""
    bindings = await data.list_role_bindings(ctx, user_id=ctx.user_id)
    return bindings[0] if bindings else None


async def require_membership(data: DataService, ctx: UserSessionContext) -> RoleBinding:
    membership = await get_membership(data, ctx)
    if membership is None:
        raise NotFoundError("Organization membership", ctx.user_id)
    return membership


async def require_org_admin(data: DataService, ctx: UserSessionContext) -> RoleBinding:
    membership = await require_membership(data, ctx)
    if membership.role != Role.ADMIN:
        raise AuthorizationError("Only admins can manage the organization")
    return membership


async def list_members(data: DataService, ctx: UserSessionContext) -> list[tuple[RoleBinding, Profile | None]]:
    membership = await require_membership(data, ctx)
    bindings = await data.list_role_bindings(ctx, organization_id=membership.organization_id)
    profiles = {p.id: p for p in await data.list_profiles(ctx, [b.user_id for b in bindings])}
    return [(b, profiles.get(b.user_id)) for b in bindings]


async def update_member_role(data: DataService, ctx: UserSessionContext, user_id: str, role: Role) -> RoleBinding:
    membership = await require_org_admin(data, ctx)
    binding = await data.update_role_binding(ctx, user_id, membership.organization_id, role)
    logger.info("Role of %s in %s changed to %s by %s", user_id, membership.organization_id, role, ctx.user_id)
    return binding


async def remove_member(data: DataService, ctx: UserSessionContext, user_id: str) -> None:
    membership = await require_org_admin(data, ctx)
    if user_id == ctx.user_id:
        raise ValidationError("You cannot remove yourself from the organization")
    await data.delete_role_binding(ctx, user_id, membership.organization_id)
    logger.info("Removed %s from %s", user_id, membership.organization_id)
