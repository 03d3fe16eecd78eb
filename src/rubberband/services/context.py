"""Credential contexts passed explicitly into every backend call.

``UserSessionContext`` carries an end user's bearer token and is subject to the
data service's row-level authorization. ``AdministrativeContext`` carries the
service-role secret and is the only context the identity-administration calls
accept. The two types are unrelated so one can never stand in for the other.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rubberband.errors.exceptions import AuthorizationError


@dataclass(frozen=True)
class UserSessionContext:
    user_id: str
    email: str
    access_token: str = field(repr=False)


@dataclass(frozen=True)
class AdministrativeContext:
    service_role_key: str = field(repr=False)
    label: str = "service-role"


def require_admin(ctx: object) -> AdministrativeContext:
    """Reject anything but an administrative context for destructive calls."""
    if not isinstance(ctx, AdministrativeContext):
        raise AuthorizationError("Administrative context required")
    return ctx
