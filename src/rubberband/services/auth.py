"""Login and session introspection."""

import logging
from dataclasses import dataclass, field

from rubberband.models.enums import NextStep
from rubberband.models.tenant import AuthSession, Identity, RoleBinding
from rubberband.services.backend.base import DataService, IdentityService
from rubberband.services.context import UserSessionContext
from rubberband.services.onboarding import get_onboarding_status

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    session: AuthSession
    next_step: NextStep
    organization_id: str | None = None


@dataclass
class CurrentUser:
    identity: Identity
    memberships: list[RoleBinding] = field(default_factory=list)


def session_context(auth: AuthSession) -> UserSessionContext:
    return UserSessionContext(user_id=auth.user.id, email=auth.user.email, access_token=auth.access_token)


async def login(identity: IdentityService, data: DataService, email: str, password: str) -> LoginResult:
    """Sign in and decide where the client goes next.

    An identity without an organization is routed to organization creation
    instead of failing, so an aborted signup can be finished.
    """
    auth = await identity.sign_in(email, password)
    ctx = session_context(auth)
    status = await get_onboarding_status(data, ctx)
    if status.organization_id is None:
        logger.warning("User %s has no organization, routing to organization creation", auth.user.id)
        next_step = NextStep.CREATE_ORGANIZATION
    elif status.has_completed_onboarding:
        next_step = NextStep.DASHBOARD
    else:
        next_step = NextStep.ONBOARDING
    logger.info("User %s logged in, next step %s", auth.user.id, next_step)
    return LoginResult(session=auth, next_step=next_step, organization_id=status.organization_id)


async def current_user(identity: IdentityService, data: DataService, ctx: UserSessionContext) -> CurrentUser:
    user = await identity.get_user(ctx.access_token)
    memberships = await data.list_role_bindings(ctx, user_id=user.id)
    return CurrentUser(identity=user, memberships=memberships)
