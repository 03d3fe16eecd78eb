"""Supabase implementation of the identity and data services.

Talks to GoTrue (``/auth/v1``) for identities and to PostgREST (``/rest/v1``)
for tables and stored procedures. User calls carry the caller's bearer token
so row-level security applies. Administrative calls carry the service-role
key, which only ever comes from server configuration.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from rubberband.errors.exceptions import AuthenticationError, BackendError, ConflictError
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
from rubberband.services.backend.base import DataService, IdentityService
from rubberband.services.context import AdministrativeContext, UserSessionContext, require_admin

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}", None
    if not isinstance(body, dict):
        return str(body), None
    message = body.get("msg") or body.get("message") or body.get("error_description") or body.get("error")
    return str(message or f"HTTP {response.status_code}"), body.get("code")


class SupabaseBackend(IdentityService, DataService):
    """Identity and data service backed by a Supabase project."""

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._anon_key = anon_key
        self._client = httpx.AsyncClient(
            base_url=url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _user_headers(self, ctx: UserSessionContext | None) -> dict[str, str]:
        token = ctx.access_token if ctx is not None and ctx.access_token else self._anon_key
        return {"apikey": self._anon_key, "Authorization": f"Bearer {token}"}

    def _admin_headers(self, admin: AdministrativeContext) -> dict[str, str]:
        require_admin(admin)
        return {"apikey": admin.service_role_key, "Authorization": f"Bearer {admin.service_role_key}"}

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        headers: dict[str, str],
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, headers=headers, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.error("%s request failed: %s", operation, exc)
            raise BackendError(operation, str(exc)) from exc

        if response.is_success:
            if not response.content:
                return None
            return response.json()

        message, code = _error_message(response)
        if code == _UNIQUE_VIOLATION or response.status_code == 409:
            raise ConflictError(f"{operation}: {message}")
        if "already registered" in message.lower() or "already been registered" in message.lower():
            raise ConflictError(message)
        logger.warning("%s returned %s: %s", operation, response.status_code, message)
        raise BackendError(operation, message, details={"status": response.status_code, "code": code})

    async def _select(
        self, operation: str, ctx: UserSessionContext | None, table: str, **filters: Any
    ) -> list[dict]:
        params: dict[str, Any] = {"select": "*"}
        for key, value in filters.items():
            if key in ("order", "limit"):
                params[key] = value
            elif isinstance(value, list):
                params[key] = f"in.({','.join(value)})"
            else:
                params[key] = f"eq.{value}"
        return await self._request(
            operation, "GET", f"/rest/v1/{table}", headers=self._user_headers(ctx), params=params
        ) or []

    async def _insert(self, operation: str, ctx: UserSessionContext, table: str, values: dict) -> dict:
        headers = {**self._user_headers(ctx), "Prefer": "return=representation"}
        rows = await self._request(operation, "POST", f"/rest/v1/{table}", headers=headers, json=[values])
        if not rows:
            raise BackendError(operation, "insert returned no rows")
        return rows[0]

    async def _update(
        self, operation: str, ctx: UserSessionContext, table: str, values: dict, **filters: str
    ) -> list[dict]:
        headers = {**self._user_headers(ctx), "Prefer": "return=representation"}
        params = {key: f"eq.{value}" for key, value in filters.items()}
        return await self._request(
            operation, "PATCH", f"/rest/v1/{table}", headers=headers, params=params, json=values
        ) or []

    async def _delete(self, operation: str, ctx: UserSessionContext, table: str, **filters: str) -> None:
        params = {key: f"eq.{value}" for key, value in filters.items()}
        await self._request(operation, "DELETE", f"/rest/v1/{table}", headers=self._user_headers(ctx), params=params)

    async def _rpc(self, name: str, ctx: UserSessionContext | None, args: dict | None = None) -> Any:
        return await self._request(
            name, "POST", f"/rest/v1/rpc/{name}", headers=self._user_headers(ctx), json=args or {}
        )

    @staticmethod
    def _one(operation: str, rows: list[dict], resource: str) -> dict:
        if not rows:
            raise BackendError(operation, f"{resource} not found")
        return rows[0]

    # ------------------------------------------------------------------
    # IdentityService
    # ------------------------------------------------------------------

    @staticmethod
    def _session_from(body: dict, operation: str) -> AuthSession:
        user = body.get("user") or body
        if not user.get("id"):
            raise BackendError(operation, "no user returned from auth")
        return AuthSession(
            access_token=body.get("access_token") or "",
            expires_in=int(body.get("expires_in") or 0),
            user=Identity.model_validate(user),
        )

    async def create_identity(self, email: str, password: str) -> AuthSession:
        body = await self._request(
            "create_identity",
            "POST",
            "/auth/v1/signup",
            headers={"apikey": self._anon_key},
            json={"email": email, "password": password},
        )
        return self._session_from(body or {}, "create_identity")

    async def sign_in(self, email: str, password: str) -> AuthSession:
        try:
            body = await self._request(
                "sign_in",
                "POST",
                "/auth/v1/token",
                headers={"apikey": self._anon_key},
                params={"grant_type": "password"},
                json={"email": email, "password": password},
            )
        except BackendError as exc:
            raise AuthenticationError("Invalid login credentials") from exc
        return self._session_from(body or {}, "sign_in")

    async def get_user(self, access_token: str) -> Identity:
        try:
            body = await self._request(
                "get_user",
                "GET",
                "/auth/v1/user",
                headers={"apikey": self._anon_key, "Authorization": f"Bearer {access_token}"},
            )
        except BackendError as exc:
            raise AuthenticationError(f"Authentication failed: {exc.message}") from exc
        return Identity.model_validate(body)

    async def list_identities(
        self, admin: AdministrativeContext, page: int = 1, per_page: int = 50
    ) -> list[Identity]:
        body = await self._request(
            "list_identities",
            "GET",
            "/auth/v1/admin/users",
            headers=self._admin_headers(admin),
            params={"page": page, "per_page": per_page},
        )
        users = body.get("users", []) if isinstance(body, dict) else body or []
        return [Identity.model_validate(u) for u in users]

    async def get_identity(self, admin: AdministrativeContext, user_id: str) -> Identity | None:
        try:
            body = await self._request(
                "get_identity", "GET", f"/auth/v1/admin/users/{user_id}", headers=self._admin_headers(admin)
            )
        except BackendError as exc:
            if isinstance(exc.details, dict) and exc.details.get("status") == 404:
                return None
            raise
        return Identity.model_validate(body)

    async def delete_identity(self, admin: AdministrativeContext, user_id: str) -> None:
        await self._request(
            "delete_identity", "DELETE", f"/auth/v1/admin/users/{user_id}", headers=self._admin_headers(admin)
        )

    # ------------------------------------------------------------------
    # Organizations and role bindings
    # ------------------------------------------------------------------

    async def create_organization(self, ctx: UserSessionContext, name: str) -> Organization:
        row = await self._insert("create_organization", ctx, "organizations", {"name": name})
        return Organization.model_validate(row)

    async def get_organization(self, ctx: UserSessionContext, organization_id: str) -> Organization | None:
        rows = await self._select("get_organization", ctx, "organizations", id=organization_id)
        return Organization.model_validate(rows[0]) if rows else None

    async def update_organization(
        self, ctx: UserSessionContext, organization_id: str, fields: dict[str, Any]
    ) -> Organization:
        rows = await self._update("update_organization", ctx, "organizations", fields, id=organization_id)
        return Organization.model_validate(self._one("update_organization", rows, "organization"))

    async def create_role_binding(
        self, ctx: UserSessionContext, user_id: str, organization_id: str, role: Role
    ) -> RoleBinding:
        row = await self._insert(
            "create_role_binding",
            ctx,
            "user_roles",
            {"user_id": user_id, "organization_id": organization_id, "role": Role(role).value},
        )
        return RoleBinding.model_validate(row)

    async def list_role_bindings(
        self,
        ctx: UserSessionContext,
        *,
        user_id: str | None = None,
        organization_id: str | None = None,
    ) -> list[RoleBinding]:
        filters = {}
        if user_id is not None:
            filters["user_id"] = user_id
        if organization_id is not None:
            filters["organization_id"] = organization_id
        rows = await self._select("list_role_bindings", ctx, "user_roles", **filters)
        return [RoleBinding.model_validate(r) for r in rows]

    async def update_role_binding(
        self, ctx: UserSessionContext, user_id: str, organization_id: str, role: Role
    ) -> RoleBinding:
        rows = await self._update(
            "update_role_binding",
            ctx,
            "user_roles",
            {"role": Role(role).value},
            user_id=user_id,
            organization_id=organization_id,
        )
        return RoleBinding.model_validate(self._one("update_role_binding", rows, "role binding"))

    async def delete_role_binding(self, ctx: UserSessionContext, user_id: str, organization_id: str) -> None:
        await self._delete(
            "delete_role_binding", ctx, "user_roles", user_id=user_id, organization_id=organization_id
        )

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def get_profile(self, ctx: UserSessionContext, user_id: str) -> Profile | None:
        rows = await self._select("get_profile", ctx, "profiles", id=user_id)
        return Profile.model_validate(rows[0]) if rows else None

    async def find_profile_by_email(self, ctx: UserSessionContext, email: str) -> Profile | None:
        rows = await self._select("find_profile_by_email", ctx, "profiles", email=email)
        return Profile.model_validate(rows[0]) if rows else None

    async def list_profiles(self, ctx: UserSessionContext, user_ids: list[str]) -> list[Profile]:
        if not user_ids:
            return []
        rows = await self._select("list_profiles", ctx, "profiles", id=user_ids)
        return [Profile.model_validate(r) for r in rows]

    async def create_profile(self, ctx: UserSessionContext, user_id: str, email: str) -> Profile:
        row = await self._insert("create_profile", ctx, "profiles", {"id": user_id, "email": email})
        return Profile.model_validate(row)

    async def update_profile(self, ctx: UserSessionContext, user_id: str, fields: dict[str, Any]) -> Profile:
        rows = await self._update("update_profile", ctx, "profiles", fields, id=user_id)
        return Profile.model_validate(self._one("update_profile", rows, "profile"))

    # ------------------------------------------------------------------
    # Organization settings
    # ------------------------------------------------------------------

    async def get_organization_settings(
        self, ctx: UserSessionContext, organization_id: str
    ) -> OrganizationSettings | None:
        rows = await self._select(
            "get_organization_settings", ctx, "organization_settings", organization_id=organization_id
        )
        return OrganizationSettings.model_validate(rows[0]) if rows else None

    async def create_organization_settings(
        self, ctx: UserSessionContext, organization_id: str, has_completed_onboarding: bool = False
    ) -> OrganizationSettings:
        row = await self._insert(
            "create_organization_settings",
            ctx,
            "organization_settings",
            {"organization_id": organization_id, "has_completed_onboarding": has_completed_onboarding},
        )
        return OrganizationSettings.model_validate(row)

    async def update_organization_settings(
        self, ctx: UserSessionContext, organization_id: str, fields: dict[str, Any]
    ) -> OrganizationSettings:
        rows = await self._update(
            "update_organization_settings",
            ctx,
            "organization_settings",
            fields,
            organization_id=organization_id,
        )
        return OrganizationSettings.model_validate(
            self._one("update_organization_settings", rows, "organization settings")
        )

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def create_team(
        self, ctx: UserSessionContext, organization_id: str, name: str, description: str | None = None
    ) -> Team:
        row = await self._insert(
            "create_team",
            ctx,
            "teams",
            {"organization_id": organization_id, "name": name, "description": description},
        )
        return Team.model_validate(row)

    async def get_team(self, ctx: UserSessionContext, team_id: str) -> Team | None:
        rows = await self._select("get_team", ctx, "teams", id=team_id)
        return Team.model_validate(rows[0]) if rows else None

    async def list_teams(self, ctx: UserSessionContext, organization_id: str) -> list[Team]:
        rows = await self._select(
            "list_teams", ctx, "teams", organization_id=organization_id, order="created_at.asc"
        )
        return [Team.model_validate(r) for r in rows]

    async def update_team(self, ctx: UserSessionContext, team_id: str, fields: dict[str, Any]) -> Team:
        rows = await self._update("update_team", ctx, "teams", fields, id=team_id)
        return Team.model_validate(self._one("update_team", rows, "team"))

    async def delete_team(self, ctx: UserSessionContext, team_id: str) -> None:
        # team_members rows go with the team through ON DELETE CASCADE
        await self._delete("delete_team", ctx, "teams", id=team_id)

    async def list_team_members(
        self,
        ctx: UserSessionContext,
        *,
        team_id: str | None = None,
        user_id: str | None = None,
    ) -> list[TeamMember]:
        filters = {}
        if team_id is not None:
            filters["team_id"] = team_id
        if user_id is not None:
            filters["user_id"] = user_id
        rows = await self._select("list_team_members", ctx, "team_members", **filters)
        return [TeamMember.model_validate(r) for r in rows]

    async def get_team_member(self, ctx: UserSessionContext, member_id: str) -> TeamMember | None:
        rows = await self._select("get_team_member", ctx, "team_members", id=member_id)
        return TeamMember.model_validate(rows[0]) if rows else None

    async def add_team_member(
        self, ctx: UserSessionContext, team_id: str, user_id: str, role: TeamRole
    ) -> TeamMember:
        row = await self._insert(
            "add_team_member",
            ctx,
            "team_members",
            {"team_id": team_id, "user_id": user_id, "role": TeamRole(role).value},
        )
        return TeamMember.model_validate(row)

    async def update_team_member(self, ctx: UserSessionContext, member_id: str, role: TeamRole) -> TeamMember:
        rows = await self._update(
            "update_team_member", ctx, "team_members", {"role": TeamRole(role).value}, id=member_id
        )
        return TeamMember.model_validate(self._one("update_team_member", rows, "team member"))

    async def delete_team_member(self, ctx: UserSessionContext, member_id: str) -> None:
        await self._delete("delete_team_member", ctx, "team_members", id=member_id)

    # ------------------------------------------------------------------
    # Account deletion procedure
    # ------------------------------------------------------------------

    async def delete_user_account(self, ctx: UserSessionContext, user_id: str) -> bool:
        result = await self._rpc("delete_user_account", ctx, {"user_id_param": user_id})
        return bool(result)

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def generate_invitation_token(self, ctx: UserSessionContext) -> str:
        token = await self._rpc("generate_invitation_token", ctx)
        if not token:
            raise BackendError("generate_invitation_token", "no token returned")
        return str(token)

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
        row = await self._insert(
            "create_invitation",
            ctx,
            "invitations",
            {
                "organization_id": organization_id,
                "email": email,
                "role": Role(role).value,
                "invited_by": invited_by,
                "token": token,
                "status": InvitationStatus.PENDING.value,
                "expires_at": expires_at.isoformat(),
            },
        )
        return Invitation.model_validate(row)

    async def get_invitation(self, ctx: UserSessionContext, invitation_id: str) -> Invitation | None:
        rows = await self._select("get_invitation", ctx, "invitations", id=invitation_id)
        return Invitation.model_validate(rows[0]) if rows else None

    async def find_invitation(
        self, ctx: UserSessionContext, organization_id: str, email: str
    ) -> Invitation | None:
        rows = await self._select(
            "find_invitation", ctx, "invitations", organization_id=organization_id, email=email
        )
        return Invitation.model_validate(rows[0]) if rows else None

    async def list_invitations(self, ctx: UserSessionContext, organization_id: str) -> list[Invitation]:
        rows = await self._select(
            "list_invitations", ctx, "invitations", organization_id=organization_id, order="created_at.desc"
        )
        return [Invitation.model_validate(r) for r in rows]

    async def update_invitation(
        self, ctx: UserSessionContext, invitation_id: str, fields: dict[str, Any]
    ) -> Invitation:
        values = {
            key: value.isoformat() if isinstance(value, datetime) else getattr(value, "value", value)
            for key, value in fields.items()
        }
        rows = await self._update("update_invitation", ctx, "invitations", values, id=invitation_id)
        return Invitation.model_validate(self._one("update_invitation", rows, "invitation"))

    async def validate_invitation_token(self, token: str) -> InvitationDetails:
        rows = await self._rpc("validate_invitation_token", None, {"token_param": token})
        if not rows:
            return InvitationDetails(valid=False)
        return InvitationDetails.model_validate(rows[0])

    async def accept_invitation(self, ctx: UserSessionContext, token: str) -> bool:
        result = await self._rpc(
            "accept_invitation", ctx, {"token_param": token, "user_id_param": ctx.user_id}
        )
        return bool(result)

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

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
        await self._insert(
            "insert_user_log",
            ctx,
            "user_logs",
            {
                "user_id": ctx.user_id,
                "organization_id": organization_id,
                "team_id": team_id,
                "module": module,
                "action": action,
                "record_id": record_id,
                "metadata": metadata or {},
            },
        )

    async def list_organization_logs(
        self, ctx: UserSessionContext, organization_id: str, limit: int = 100
    ) -> list[UserLog]:
        rows = await self._select(
            "list_organization_logs",
            ctx,
            "user_logs",
            organization_id=organization_id,
            order="timestamp.desc",
            limit=limit,
        )
        return [UserLog.model_validate(r) for r in rows]
