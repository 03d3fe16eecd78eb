"""Editing the caller's profile and their organization after onboarding."""

import logging
from typing import Any

from rubberband.errors.exceptions import AuthorizationError, NotFoundError, ValidationError
from rubberband.models.enums import Role
from rubberband.models.tenant import Organization, Profile
from rubberband.services.backend.base import DataService
from rubberband.services.context import UserSessionContext
from rubberband.services.members import require_membership
from rubberband.services.workflows.ensure import ensure_profile

logger = logging.getLogger(__name__)


def present(fields: dict[str, Any]) -> dict[str, Any]:
    """Drop fields the caller left unset."""
    return {k: v for k, v in fields.items() if v is not None}


def with_full_name(fields: dict[str, Any]) -> dict[str, Any]:
    """Derive ``full_name`` from first and last name when only those were given."""
    if "full_name" in fields or not (fields.get("first_name") or fields.get("last_name")):
        return fields
    full_name = " ".join(part for part in (fields.get("first_name"), fields.get("last_name")) if part)
    return {**fields, "full_name": full_name}


async def get_own_profile(data: DataService, ctx: UserSessionContext) -> Profile:
    profile, _ = await ensure_profile(data, ctx, ctx.user_id, ctx.email)
    return profile


async def update_own_profile(data: DataService, ctx: UserSessionContext, fields: dict[str, Any]) -> Profile:
    changes = with_full_name(present(fields))
    profile, _ = await ensure_profile(data, ctx, ctx.user_id, ctx.email)
    if not changes:
        return profile
    logger.info("Updating profile of %s: %s", ctx.user_id, sorted(changes))
    return await data.update_profile(ctx, ctx.user_id, changes)


async def get_current_organization(data: DataService, ctx: UserSessionContext) -> Organization:
    membership = await require_membership(data, ctx)
    organization = await data.get_organization(ctx, membership.organization_id)
    if organization is None:
        raise NotFoundError("Organization", membership.organization_id)
    return organization


async def update_current_organization(
    data: DataService, ctx: UserSessionContext, fields: dict[str, Any]
) -> Organization:
    """Admin-only rename, logo and detail changes of the caller's organization."""
    membership = await require_membership(data, ctx)
    if membership.role != Role.ADMIN:
        raise AuthorizationError("Only administrators can change organization details")
    changes = present(fields)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise ValidationError("Organization name is required")
    if not changes:
        return await get_current_organization(data, ctx)
    logger.info("Updating organization %s: %s", membership.organization_id, sorted(changes))
    return await data.update_organization(ctx, membership.organization_id, changes)
