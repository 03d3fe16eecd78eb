"""Signup, login and session routes."""

from fastapi import APIRouter

from rubberband.dependencies import CurrentSession, Data, Identities
from rubberband.models.api import LoginRequest, LoginResponse, MeResponse, SignupRequest, SignupResponse
from rubberband.services.auth import current_user, login
from rubberband.services.workflows.provisioning import ProvisioningWorkflow

router = APIRouter(tags=["Auth"])


@router.post("/auth/signup", response_model=SignupResponse, status_code=201)
async def signup(body: SignupRequest, identity: Identities, data: Data):
    result = await ProvisioningWorkflow(identity, data).provision(
        body.email, body.password, body.organization_name
    )
    return SignupResponse(
        access_token=result.session.access_token,
        expires_in=result.session.expires_in,
        user=result.session.user,
        state=result.state,
        organization=result.organization,
        next_step=result.next_step,
        warnings=result.warnings,
    )


@router.post("/auth/login", response_model=LoginResponse)
async def login_route(body: LoginRequest, identity: Identities, data: Data):
    result = await login(identity, data, body.email, body.password)
    return LoginResponse(
        access_token=result.session.access_token,
        expires_in=result.session.expires_in,
        user=result.session.user,
        next_step=result.next_step,
        organization_id=result.organization_id,
    )


@router.get("/auth/me", response_model=MeResponse)
async def me(session: CurrentSession, identity: Identities, data: Data):
    user = await current_user(identity, data, session)
    return MeResponse(user=user.identity, memberships=user.memberships)
