"""Account deletion workflow tests.

Covers:
- sole member deletion removes the organization, its settings and the identity
- deleting one of several members keeps the organization
- team memberships go with the account, teams go with a deleted organization
- privilege check failure deletes nothing
- data cleanup failure never reaches identity deletion
- identity deletion failure leaves the data gone and the identity in place
- administrative calls refuse user sessions
"""

import logging

import pytest

from conftest import SERVICE_KEY, count_rows, session_of
from rubberband.db.models import (
    IdentityRow,
    OrganizationRow,
    OrganizationSettingsRow,
    ProfileRow,
    TeamMemberRow,
    TeamRow,
    UserRoleRow,
)
from rubberband.errors.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BackendError,
    DataCleanupFailed,
    IdentityDeletionFailed,
    ServiceMisconfigured,
)
from rubberband.models.enums import DeprovisioningState, Role, TeamRole
from rubberband.services.context import AdministrativeContext, UserSessionContext
from rubberband.services.workflows.deprovisioning import DeprovisioningWorkflow
from rubberband.services.workflows.provisioning import ProvisioningWorkflow


async def _signup(backend, email="u1@example.com", org="orgA"):
    return await ProvisioningWorkflow(backend, backend).provision(email, "s3cret-pass", org)


def _workflow(backend, key: str = SERVICE_KEY) -> DeprovisioningWorkflow:
    return DeprovisioningWorkflow(backend, backend, AdministrativeContext(service_role_key=key))


# ---------------------------------------------------------------------------
# Successful deletion
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sole_member_deletion_removes_organization(make_backend, session_factory):
    backend = make_backend()
    signup = await _signup(backend)
    org_id = signup.organization.id

    result = await _workflow(backend).deprovision(session_of(signup.session), is_last_member=True)

    assert result.state == DeprovisioningState.IDENTITY_DELETED
    assert backend.calls[-3:] == ["list_identities", "delete_user_account", "delete_identity"]
    assert [s.state for s in result.steps] == [
        DeprovisioningState.PRIVILEGE_VERIFIED,
        DeprovisioningState.DATA_DELETED,
        DeprovisioningState.IDENTITY_DELETED,
    ]
    assert await count_rows(session_factory, OrganizationRow, id=org_id) == 0
    assert await count_rows(session_factory, OrganizationSettingsRow, organization_id=org_id) == 0
    assert await count_rows(session_factory, UserRoleRow) == 0
    assert await count_rows(session_factory, ProfileRow) == 0
    assert await count_rows(session_factory, IdentityRow) == 0


@pytest.mark.asyncio
async def test_member_deletion_keeps_shared_organization(backend, session_factory):
    founder = await _signup(backend, "founder@example.com", "Shared")
    org_id = founder.organization.id
    member = await backend.create_identity("member@example.com", "s3cret-pass")
    await backend.create_role_binding(session_of(founder.session), member.user.id, org_id, Role.VIEWER)

    # Client guesses wrong; the procedure decides
    await _workflow(backend).deprovision(session_of(member), is_last_member=True)

    assert await count_rows(session_factory, OrganizationRow, id=org_id) == 1
    assert await count_rows(session_factory, UserRoleRow, organization_id=org_id) == 1
    assert await count_rows(session_factory, IdentityRow, id=founder.identity_id) == 1
    assert await count_rows(session_factory, IdentityRow, id=member.user.id) == 0


@pytest.mark.asyncio
async def test_member_deletion_removes_team_memberships_only(backend, session_factory):
    founder = await _signup(backend, "founder@example.com", "Shared")
    founder_ctx = session_of(founder.session)
    org_id = founder.organization.id
    member = session_of(await backend.create_identity("member@example.com", "s3cret-pass"))
    await backend.create_role_binding(founder_ctx, member.user_id, org_id, Role.VIEWER)
    team = await backend.create_team(founder_ctx, org_id, "Design")
    await backend.add_team_member(founder_ctx, team.id, founder.identity_id, TeamRole.ADMIN)
    await backend.add_team_member(founder_ctx, team.id, member.user_id, TeamRole.VIEWER)

    await _workflow(backend).deprovision(member)

    assert await count_rows(session_factory, TeamRow, id=team.id) == 1
    assert await count_rows(session_factory, TeamMemberRow, user_id=member.user_id) == 0
    assert await count_rows(session_factory, TeamMemberRow, user_id=founder.identity_id) == 1


@pytest.mark.asyncio
async def test_sole_member_deletion_removes_teams(backend, session_factory):
    signup = await _signup(backend)
    ctx = session_of(signup.session)
    team = await backend.create_team(ctx, signup.organization.id, "Solo")
    await backend.add_team_member(ctx, team.id, ctx.user_id, TeamRole.ADMIN)

    await _workflow(backend).deprovision(ctx)

    assert await count_rows(session_factory, TeamRow) == 0
    assert await count_rows(session_factory, TeamMemberRow) == 0


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_privilege_check_failure_deletes_nothing(make_backend, session_factory):
    backend = make_backend()
    signup = await _signup(backend)

    with pytest.raises(ServiceMisconfigured) as exc_info:
        await _workflow(backend, key="wrong-key").deprovision(session_of(signup.session))

    assert exc_info.value.state == DeprovisioningState.ABORTED_AT_PRIVILEGE
    assert "delete_user_account" not in backend.calls
    assert "delete_identity" not in backend.calls
    assert await count_rows(session_factory, OrganizationRow) == 1
    assert await count_rows(session_factory, IdentityRow) == 1


@pytest.mark.asyncio
async def test_unconfigured_service_key_fails_closed(session_factory, make_backend):
    backend = make_backend()
    signup = await _signup(backend)
    backend._service_role_key = ""

    with pytest.raises(ServiceMisconfigured):
        await _workflow(backend, key="").deprovision(session_of(signup.session))
    assert "delete_user_account" not in backend.calls


@pytest.mark.asyncio
async def test_cleanup_error_skips_identity_deletion(make_backend, session_factory):
    backend = make_backend(failures={"delete_user_account": BackendError("delete_user_account", "fk violation")})
    signup = await _signup(backend)

    with pytest.raises(DataCleanupFailed) as exc_info:
        await _workflow(backend).deprovision(session_of(signup.session))

    assert exc_info.value.state == DeprovisioningState.ABORTED_AT_DATA
    assert "fk violation" in exc_info.value.details["cause"]
    assert backend.calls.count("delete_identity") == 0
    assert await count_rows(session_factory, IdentityRow) == 1


@pytest.mark.asyncio
async def test_cleanup_returning_false_skips_identity_deletion(make_backend):
    backend = make_backend(failures={"delete_user_account": False})
    signup = await _signup(backend)

    with pytest.raises(DataCleanupFailed):
        await _workflow(backend).deprovision(session_of(signup.session))
    assert "delete_identity" not in backend.calls


@pytest.mark.asyncio
async def test_identity_deletion_failure_leaves_identity(make_backend, session_factory, caplog):
    backend = make_backend(failures={"delete_identity": BackendError("delete_identity", "gateway timeout")})
    signup = await _signup(backend)

    with caplog.at_level(logging.CRITICAL), pytest.raises(IdentityDeletionFailed) as exc_info:
        await _workflow(backend).deprovision(session_of(signup.session))

    assert exc_info.value.state == DeprovisioningState.ABORTED_AT_IDENTITY
    assert exc_info.value.operator_action_required is True
    assert await count_rows(session_factory, OrganizationRow) == 0
    assert await count_rows(session_factory, ProfileRow) == 0
    assert await count_rows(session_factory, IdentityRow, id=signup.identity_id) == 1
    assert any("operator_action_required" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Contexts
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_workflow_requires_administrative_context(backend):
    signup = await _signup(backend)
    with pytest.raises(AuthorizationError):
        DeprovisioningWorkflow(backend, backend, session_of(signup.session))


@pytest.mark.asyncio
async def test_delete_identity_refuses_user_session(backend):
    signup = await _signup(backend)
    with pytest.raises(AuthorizationError):
        await backend.delete_identity(session_of(signup.session), signup.identity_id)


@pytest.mark.asyncio
async def test_session_for_other_user_is_rejected(backend, session_factory):
    victim = await _signup(backend, "victim@example.com", "Victim Org")
    attacker = await _signup(backend, "attacker@example.com", "Attacker Org")
    forged = UserSessionContext(
        user_id=victim.identity_id, email=victim.session.user.email, access_token=attacker.session.access_token
    )

    with pytest.raises(AuthenticationError):
        await _workflow(backend).deprovision(forged)
    assert await count_rows(session_factory, IdentityRow) == 2


@pytest.mark.asyncio
async def test_cleanup_procedure_only_deletes_own_account(backend):
    victim = await _signup(backend, "victim@example.com", "Victim Org")
    attacker = await _signup(backend, "attacker@example.com", "Attacker Org")
    with pytest.raises(AuthorizationError):
        await backend.delete_user_account(session_of(attacker.session), victim.identity_id)
