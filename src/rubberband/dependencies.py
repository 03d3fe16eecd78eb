"""FastAPI dependency injection providers."""

from typing import Annotated

from fastapi import Depends, Request

from rubberband.config import settings
from rubberband.errors.exceptions import AuthenticationError
from rubberband.services.backend.base import DataService, IdentityService
from rubberband.services.context import AdministrativeContext, UserSessionContext
from rubberband.services.notifier import EmailNotifier


def get_identity_service(request: Request) -> IdentityService:
    return request.app.state.backend


def get_data_service(request: Request) -> DataService:
    return request.app.state.backend


def get_notifier(request: Request) -> EmailNotifier:
    return request.app.state.notifier


async def get_current_session(request: Request) -> UserSessionContext:
    """Return the caller's session or raise 401."""
    user = getattr(request.state, "user", {})
    if "_auth_error" in user:
        raise AuthenticationError(user["_auth_error"])
    if not user or user.get("sub") in ("anonymous", "") or not user.get("access_token"):
        raise AuthenticationError("Authentication required")
    return UserSessionContext(user_id=user["sub"], email=user.get("email", ""), access_token=user["access_token"])


def get_admin_context() -> AdministrativeContext:
    """Administrative context from server configuration only, never from the request."""
    return AdministrativeContext(service_role_key=settings.supabase_service_role_key)


# Type aliases for dependency injection
Identities = Annotated[IdentityService, Depends(get_identity_service)]
Data = Annotated[DataService, Depends(get_data_service)]
Notifier = Annotated[EmailNotifier, Depends(get_notifier)]
CurrentSession = Annotated[UserSessionContext, Depends(get_current_session)]
AdminContext = Annotated[AdministrativeContext, Depends(get_admin_context)]
