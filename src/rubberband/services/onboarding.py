"""Post-signup onboarding and organization reconciliation."""

import logging
from dataclasses import dataclass
from typing import Any

from rubberband.errors.exceptions import AuthorizationError, ConflictError, ValidationError
from rubberband.models.enums import Role
from rubberband.models.tenant import Organization, OrganizationSettings
from rubberband.services.backend.base import DataService
from rubberband.services.context import UserSessionContext
from rubberband.services.members import get_membership, require_membership
from rubberband.services.profiles import present, with_full_name
from rubberband.services.workflows.ensure import ensure_organization_settings, ensure_profile

logger = logging.getLogger(__name__)


@dataclass
class OnboardingStatus:
    organization_id: str | None
    has_completed_onboarding: bool


async def get_onboarding_status(data: DataService, ctx: UserSessionContext) -> OnboardingStatus:
    membership = await get_membership(data, ctx)
    if membership is None:
        return OnboardingStatus(organization_id=None, has_completed_onboarding=False)
    org_settings = await data.get_organization_settings(ctx, membership.organization_id)
    return OnboardingStatus(
        organization_id=membership.organization_id,
        has_completed_onboarding=bool(org_settings and org_settings.has_completed_onboarding),
    )


async def update_organization_settings(
    data: DataService,
    ctx: UserSessionContext,
    *,
    primary_use_case: str | None = None,
    business_type: str | None = None,
    workflow_style: str | None = None,
    completed_onboarding: bool | None = None,
) -> OrganizationSettings:
    """Change only the settings fields that were supplied."""
    membership = await require_membership(data, ctx)
    fields = present(
        {
            "primary_use_case": primary_use_case,
            "business_type": business_type,
            "workflow_style": workflow_style,
            "has_completed_onboarding": completed_onboarding,
        }
    )
    current, _ = await ensure_organization_settings(data, ctx, membership.organization_id)
    if not fields:
        return current
    logger.info("Updating settings of %s: %s", membership.organization_id, sorted(fields))
    return await data.update_organization_settings(ctx, membership.organization_id, fields)


async def complete_onboarding(
    data: DataService,
    ctx: UserSessionContext,
    *,
    personal: dict[str, Any],
    organization: dict[str, Any],
    use_case: dict[str, Any],
) -> OrganizationSettings:
    membership = await require_membership(data, ctx)
    org_id = membership.organization_id

    org_fields = present(organization)
    if org_fields and membership.role != Role.ADMIN:
        raise AuthorizationError("Only admins can change organization details")

    profile_fields = with_full_name(present(personal))
    if profile_fields:
        await ensure_profile(data, ctx, ctx.user_id, ctx.email)
        await data.update_profile(ctx, ctx.user_id, profile_fields)

    if org_fields:
        await data.update_organization(ctx, org_id, org_fields)

    await ensure_organization_settings(data, ctx, org_id)
    result = await data.update_organization_settings(
        ctx, org_id, {**present(use_case), "has_completed_onboarding": True}
    )
    logger.info("Onboarding completed for %s in %s", ctx.user_id, org_id)
    return result


async def skip_onboarding(data: DataService, ctx: UserSessionContext) -> OrganizationSettings:
    membership = await require_membership(data, ctx)
    await ensure_organization_settings(data, ctx, membership.organization_id)
    logger.info("Onboarding skipped for %s", ctx.user_id)
    return await data.update_organization_settings(
        ctx, membership.organization_id, {"has_completed_onboarding": True}
    )


async def create_organization_for_session(data: DataService, ctx: UserSessionContext, name: str) -> Organization:
    """Give an identity without an organization its own tenant.

    This is how an identity left behind by an aborted signup recovers.
    """
    if await get_membership(data, ctx) is not None:
        raise ConflictError("User already belongs to an organization")
    name = name.strip()
    if not name:
        raise ValidationError("Organization name is required")

    organization = await data.create_organization(ctx, name)
    await data.create_role_binding(ctx, ctx.user_id, organization.id, Role.ADMIN)
    await ensure_profile(data, ctx, ctx.user_id, ctx.email)
    await ensure_organization_settings(data, ctx, organization.id)
    logger.info("Organization %s created for existing identity %s", organization.id, ctx.user_id)
    return organization
