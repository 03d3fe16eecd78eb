"""Profile and organization editing after onboarding."""

import pytest

from conftest import session_of
from rubberband.errors.exceptions import AuthorizationError, NotFoundError, ValidationError
from rubberband.models.enums import Role
from rubberband.services import profiles
from rubberband.services.workflows.provisioning import ProvisioningWorkflow


async def _owner_and_viewer(backend):
    signup = await ProvisioningWorkflow(backend, backend).provision("owner@example.com", "s3cret-pass", "Acme")
    owner = session_of(signup.session)
    viewer = session_of(await backend.create_identity("viewer@example.com", "s3cret-pass"))
    await backend.create_role_binding(owner, viewer.user_id, signup.organization.id, Role.VIEWER)
    return owner, viewer


@pytest.mark.asyncio
async def test_profile_update_derives_full_name(backend):
    owner, _ = await _owner_and_viewer(backend)
    profile = await profiles.update_own_profile(
        backend, owner, {"first_name": "Ada", "last_name": "Lovelace", "avatar_url": None}
    )
    assert profile.full_name == "Ada Lovelace"
    assert profile.email == "owner@example.com"


@pytest.mark.asyncio
async def test_profile_is_created_on_first_read(backend):
    _, viewer = await _owner_and_viewer(backend)
    assert await backend.get_profile(viewer, viewer.user_id) is None

    profile = await profiles.get_own_profile(backend, viewer)
    assert profile.id == viewer.user_id
    assert profile.email == "viewer@example.com"


@pytest.mark.asyncio
async def test_admin_renames_organization(backend):
    owner, viewer = await _owner_and_viewer(backend)
    updated = await profiles.update_current_organization(
        backend, owner, {"name": " Acme Ltd ", "logo_url": "https://cdn.example.com/logo.png", "country": None}
    )
    assert updated.name == "Acme Ltd"
    assert updated.logo_url == "https://cdn.example.com/logo.png"
    assert (await profiles.get_current_organization(backend, viewer)).name == "Acme Ltd"


@pytest.mark.asyncio
async def test_viewer_cannot_change_organization(backend):
    owner, viewer = await _owner_and_viewer(backend)
    with pytest.raises(AuthorizationError):
        await profiles.update_current_organization(backend, viewer, {"name": "Hijack"})
    assert (await profiles.get_current_organization(backend, owner)).name == "Acme"


@pytest.mark.asyncio
async def test_blank_organization_name_rejected(backend):
    owner, _ = await _owner_and_viewer(backend)
    with pytest.raises(ValidationError):
        await profiles.update_current_organization(backend, owner, {"name": "  "})


@pytest.mark.asyncio
async def test_organization_lookup_without_membership(backend):
    loner = session_of(await backend.create_identity("loner@example.com", "s3cret-pass"))
    with pytest.raises(NotFoundError):
        await profiles.get_current_organization(backend, loner)
