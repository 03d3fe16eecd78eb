"""Supabase backend tests against a mocked HTTP transport.

Covers:
- GoTrue signup / password grant / admin calls and their headers
- PostgREST filters, inserts and the stored procedures
- error mapping: unique violations, "already registered", HTTP failures
"""

import json

import httpx
import pytest

from rubberband.errors.exceptions import AuthenticationError, AuthorizationError, BackendError, ConflictError
from rubberband.models.enums import Role, TeamRole
from rubberband.services.backend.supabase import SupabaseBackend
from rubberband.services.context import AdministrativeContext, UserSessionContext

USER = {"id": "uuid-1", "email": "ada@example.com", "created_at": "2024-01-01T00:00:00Z"}
CTX = UserSessionContext(user_id="uuid-1", email="ada@example.com", access_token="user-jwt")
ADMIN = AdministrativeContext(service_role_key="service-key")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _backend(handler) -> tuple[SupabaseBackend, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    backend = SupabaseBackend(
        "https://project.supabase.co/", "anon-key", transport=httpx.MockTransport(_record)
    )
    return backend, seen


# ---------------------------------------------------------------------------
# Identity service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_identity_posts_to_signup():
    backend, seen = _backend(
        lambda r: httpx.Response(200, json={"access_token": "jwt", "expires_in": 3600, "user": USER})
    )
    session = await backend.create_identity("ada@example.com", "s3cret-pass")

    assert session.user.id == "uuid-1"
    assert session.access_token == "jwt"
    assert seen[0].url.path == "/auth/v1/signup"
    assert seen[0].headers["apikey"] == "anon-key"
    assert json.loads(seen[0].content) == {"email": "ada@example.com", "password": "s3cret-pass"}
    await backend.aclose()


@pytest.mark.asyncio
async def test_already_registered_maps_to_conflict():
    backend, _ = _backend(lambda r: httpx.Response(422, json={"msg": "User already registered"}))
    with pytest.raises(ConflictError):
        await backend.create_identity("ada@example.com", "s3cret-pass")


@pytest.mark.asyncio
async def test_sign_in_failure_is_authentication_error():
    backend, seen = _backend(lambda r: httpx.Response(400, json={"error_description": "Invalid login credentials"}))
    with pytest.raises(AuthenticationError):
        await backend.sign_in("ada@example.com", "wrong")
    assert seen[0].url.params["grant_type"] == "password"


@pytest.mark.asyncio
async def test_admin_calls_use_service_role_key():
    backend, seen = _backend(lambda r: httpx.Response(200, json={"users": [USER]}))
    users = await backend.list_identities(ADMIN, page=1, per_page=1)

    assert [u.id for u in users] == ["uuid-1"]
    assert seen[0].url.path == "/auth/v1/admin/users"
    assert seen[0].headers["Authorization"] == "Bearer service-key"
    assert seen[0].url.params["per_page"] == "1"


@pytest.mark.asyncio
async def test_admin_calls_refuse_user_context():
    backend, seen = _backend(lambda r: httpx.Response(200, json={}))
    with pytest.raises(AuthorizationError):
        await backend.delete_identity(CTX, "uuid-1")
    assert seen == []


@pytest.mark.asyncio
async def test_get_identity_not_found_returns_none():
    backend, _ = _backend(lambda r: httpx.Response(404, json={"msg": "User not found"}))
    assert await backend.get_identity(ADMIN, "missing") is None


@pytest.mark.asyncio
async def test_transport_error_becomes_backend_error():
    def _boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend, _ = _backend(_boom)
    with pytest.raises(BackendError) as exc_info:
        await backend.delete_identity(ADMIN, "uuid-1")
    assert exc_info.value.operation == "delete_identity"


# ---------------------------------------------------------------------------
# Data service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_insert_uses_user_token_and_returns_row():
    row = {"user_id": "uuid-1", "organization_id": "org-1", "role": "admin"}
    backend, seen = _backend(lambda r: httpx.Response(201, json=[row]))

    binding = await backend.create_role_binding(CTX, "uuid-1", "org-1", Role.ADMIN)

    assert binding.role == Role.ADMIN
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/rest/v1/user_roles"
    assert request.headers["Authorization"] == "Bearer user-jwt"
    assert request.headers["Prefer"] == "return=representation"
    assert json.loads(request.content) == [row]


@pytest.mark.asyncio
async def test_unique_violation_maps_to_conflict():
    backend, _ = _backend(
        lambda r: httpx.Response(409, json={"code": "23505", "message": "duplicate key value"})
    )
    with pytest.raises(ConflictError):
        await backend.create_organization_settings(CTX, "org-1")


@pytest.mark.asyncio
async def test_select_builds_postgrest_filters():
    backend, seen = _backend(lambda r: httpx.Response(200, json=[]))
    assert await backend.list_profiles(CTX, ["a", "b"]) == []
    assert await backend.get_organization_settings(CTX, "org-1") is None

    assert seen[0].url.params["id"] == "in.(a,b)"
    assert seen[1].url.params["organization_id"] == "eq.org-1"


@pytest.mark.asyncio
async def test_team_member_insert_and_filters():
    row = {"id": "tm-1", "team_id": "team-1", "user_id": "uuid-2", "role": "contributor"}
    backend, seen = _backend(lambda r: httpx.Response(201 if r.method == "POST" else 200, json=[row]))

    member = await backend.add_team_member(CTX, "team-1", "uuid-2", TeamRole.CONTRIBUTOR)
    listed = await backend.list_team_members(CTX, user_id="uuid-2")

    assert member.role == TeamRole.CONTRIBUTOR
    assert seen[0].url.path == "/rest/v1/team_members"
    assert json.loads(seen[0].content) == [{"team_id": "team-1", "user_id": "uuid-2", "role": "contributor"}]
    assert [m.id for m in listed] == ["tm-1"]
    assert seen[1].url.params["user_id"] == "eq.uuid-2"
    assert "team_id" not in seen[1].url.params


@pytest.mark.asyncio
async def test_delete_team_filters_by_id():
    backend, seen = _backend(lambda r: httpx.Response(204))
    await backend.delete_team(CTX, "team-1")
    assert seen[0].method == "DELETE"
    assert seen[0].url.path == "/rest/v1/teams"
    assert seen[0].url.params["id"] == "eq.team-1"


@pytest.mark.asyncio
async def test_delete_user_account_calls_procedure():
    backend, seen = _backend(lambda r: httpx.Response(200, json=True))
    assert await backend.delete_user_account(CTX, "uuid-1") is True
    assert seen[0].url.path == "/rest/v1/rpc/delete_user_account"
    assert json.loads(seen[0].content) == {"user_id_param": "uuid-1"}
    assert seen[0].headers["Authorization"] == "Bearer user-jwt"


@pytest.mark.asyncio
async def test_procedure_failure_is_backend_error():
    backend, _ = _backend(lambda r: httpx.Response(400, json={"code": "P0001", "message": "not allowed"}))
    with pytest.raises(BackendError) as exc_info:
        await backend.delete_user_account(CTX, "uuid-1")
    assert exc_info.value.details == {"status": 400, "code": "P0001"}


@pytest.mark.asyncio
async def test_validate_invitation_token_reads_first_row():
    details = {
        "invitation_id": "inv-1",
        "organization_id": "org-1",
        "organization_name": "Acme",
        "email": "guest@example.com",
        "role": "viewer",
        "valid": True,
    }
    backend, seen = _backend(lambda r: httpx.Response(200, json=[details]))
    result = await backend.validate_invitation_token("tok")

    assert result.valid
    assert result.organization_name == "Acme"
    assert json.loads(seen[0].content) == {"token_param": "tok"}
    # Public call: only the anon key is sent
    assert seen[0].headers["Authorization"] == "Bearer anon-key"


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_build_backend_picks_supabase_when_configured(monkeypatch):
    from rubberband.config import Settings
    from rubberband.services.backend import build_backend
    from rubberband.services.backend.sql import SqlBackend

    monkeypatch.setenv("RUBBERBAND_SUPABASE_URL", "https://project.supabase.co")
    backend = build_backend(Settings())
    assert isinstance(backend, SupabaseBackend)
    await backend.aclose()

    monkeypatch.setenv("RUBBERBAND_LOCAL_MODE", "1")
    with pytest.raises(ValueError):
        build_backend(Settings())
    assert isinstance(build_backend(Settings(), session_factory=object()), SqlBackend)
