"""User activity logging."""

import logging
from datetime import datetime, timezone
from typing import Any

from rubberband.errors.exceptions import RubberbandError
from rubberband.models.tenant import UserLog
from rubberband.services.backend.base import DataService
from rubberband.services.context import UserSessionContext
from rubberband.services.members import get_membership, require_org_admin

logger = logging.getLogger(__name__)


async def log_user_action(
    data: DataService,
    ctx: UserSessionContext,
    module: str,
    action: str,
    record_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    team_id: str | None = None,
) -> bool:
    """Record an action for the caller's organization.

    Never raises: activity logging must not break the request that triggered
    it. Returns whether a row was written.
    """
    try:
        membership = await get_membership(data, ctx)
        if membership is None:
            logger.warning("Cannot log user action: no organization found for %s", ctx.user_id)
            return False
        await data.insert_user_log(
            ctx,
            organization_id=membership.organization_id,
            module=module,
            action=action,
            record_id=record_id,
            metadata={**(metadata or {}), "timestamp": datetime.now(timezone.utc).isoformat()},
            team_id=team_id,
        )
    except RubberbandError as exc:
        logger.error("Failed to log user action %s:%s: %s", module, action, exc.message)
        return False
    logger.debug("Logged %s:%s for %s", module, action, ctx.user_id)
    return True


async def list_organization_logs(data: DataService, ctx: UserSessionContext, limit: int = 100) -> list[UserLog]:
    membership = await require_org_admin(data, ctx)
    return await data.list_organization_logs(ctx, membership.organization_id, limit)
