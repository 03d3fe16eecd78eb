"""Idempotent ensure-exists operations for rows a data-service trigger may also create."""

import logging

from rubberband.errors.exceptions import ConflictError
from rubberband.models.tenant import OrganizationSettings, Profile
from rubberband.services.backend.base import DataService
from rubberband.services.context import UserSessionContext

logger = logging.getLogger(__name__)


async def ensure_profile(
    data: DataService, ctx: UserSessionContext, user_id: str, email: str
) -> tuple[Profile, bool]:
    """Return the profile for ``user_id``, creating it if absent.

    The second element is True when this call inserted the row.
    """
    existing = await data.get_profile(ctx, user_id)
    if existing is not None:
        logger.info("Profile already exists for %s", user_id)
        return existing, False

    try:
        profile = await data.create_profile(ctx, user_id, email)
    except ConflictError:
        # Lost the race against the signup trigger
        profile = await data.get_profile(ctx, user_id)
        if profile is None:
            raise
        return profile, False
    logger.info("Profile created for %s", user_id)
    return profile, True


async def ensure_organization_settings(
    data: DataService, ctx: UserSessionContext, organization_id: str
) -> tuple[OrganizationSettings, bool]:
    """Return the settings row of ``organization_id``, creating it if absent."""
    existing = await data.get_organization_settings(ctx, organization_id)
    if existing is not None:
        logger.info("Organization settings already exist for %s", organization_id)
        return existing, False

    try:
        created = await data.create_organization_settings(ctx, organization_id, has_completed_onboarding=False)
    except ConflictError:
        existing = await data.get_organization_settings(ctx, organization_id)
        if existing is None:
            raise
        return existing, False
    logger.info("Organization settings created for %s", organization_id)
    return created, True
